import os
import uuid

from flask import Blueprint, abort, current_app, request
from flask_login import current_user, login_required
from werkzeug.utils import secure_filename

from .. import limiter
from ..allowlist.service import check_approval, mark_used
from ..audit import log_event
from ..auth.routes import form_errors
from ..models import Application, db
from ..workflow.documents import attach_document, missing_documents, remove_document, required_documents
from ..workflow.errors import MissingRequiredField
from ..workflow.service import submit_application, update_draft
from ..workflow.store import load_application
from .forms import ApplicationForm, DocumentForm, DraftUpdateForm

applications_bp = Blueprint("applications", __name__)

_PROFILE_FIELDS = (
    "full_name",
    "email",
    "date_of_birth",
    "marital_status",
    "spouse_name",
    "photo_url",
    "admission_level",
    "church_name",
    "fellowship",
    "association",
    "theological_institution",
    "theological_qualification",
    "mentor_name",
    "mentor_contact",
)


def _owned_application(public_id):
    application = load_application(public_id)
    if application.user_id != current_user.id:
        abort(404)
    return application


def _with_checklist(application):
    body = application.to_dict()
    body["required_documents"] = sorted(
        required_documents(application.admission_level, application.marital_status)
    )
    body["missing_documents"] = missing_documents(application)
    return body


def _clean(value):
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


@applications_bp.route("", methods=["GET"])
@login_required
def list_applications():
    applications = (
        Application.query.filter_by(user_id=current_user.id).order_by(Application.created_at.desc()).all()
    )
    return {"applications": [a.to_dict() for a in applications]}, 200


@applications_bp.route("", methods=["POST"])
@login_required
@limiter.limit("10 per hour")
def create_application():
    form = ApplicationForm()
    if not form.validate_on_submit():
        return form_errors(form)

    approved, phone = check_approval(form.phone.data)
    if not approved:
        log_event("application_refused", detail=f"phone={phone} not on allowlist")
        return {
            "error": "phone_not_approved",
            "message": "This phone number has not been approved to apply.",
            "retryable": False,
        }, 403

    application = Application(user_id=current_user.id, phone=phone, status="draft")
    for name in _PROFILE_FIELDS:
        setattr(application, name, _clean(getattr(form, name).data))
    db.session.add(application)
    db.session.flush()
    mark_used(phone, application.id)
    db.session.commit()

    log_event(
        "application_created",
        target_type="application",
        target_id=application.id,
        detail=f"{application.full_name} opened a {application.admission_level} application",
        user_id=current_user.id,
    )
    return _with_checklist(application), 201


@applications_bp.route("/<public_id>", methods=["GET"])
@login_required
def get_application(public_id):
    if current_user.is_reviewer:
        application = load_application(public_id)
    else:
        application = _owned_application(public_id)
    return _with_checklist(application), 200


@applications_bp.route("/<public_id>", methods=["PATCH"])
@login_required
def edit_application(public_id):
    application = _owned_application(public_id)
    form = DraftUpdateForm()
    if not form.validate_on_submit():
        return form_errors(form)

    supplied = set((request.get_json(silent=True) or {}).keys())
    changes = {name: _clean(getattr(form, name).data) for name in _PROFILE_FIELDS if name in supplied}
    for required in ("full_name", "admission_level", "church_name", "fellowship", "association", "email"):
        if required in changes and changes[required] is None:
            raise MissingRequiredField(required)

    application = update_draft(application, changes)
    return _with_checklist(application), 200


@applications_bp.route("/<public_id>/documents", methods=["POST"])
@login_required
@limiter.limit("60 per hour")
def upload_document(public_id):
    application = _owned_application(public_id)
    form = DocumentForm()
    if not form.validate_on_submit():
        return form_errors(form)

    upload = form.file.data
    storage_dir = os.path.join(current_app.config["DOCUMENT_STORAGE"], application.public_id)
    os.makedirs(storage_dir, exist_ok=True)
    filename = f"{uuid.uuid4().hex}_{secure_filename(upload.filename)}"

    path = os.path.join(storage_dir, filename)
    upload.save(path)
    try:
        document = attach_document(
            application,
            form.document_type.data.strip(),
            upload.filename,
            f"{application.public_id}/{filename}",
        )
    except Exception:
        # The file is only kept once its document row exists.
        os.remove(path)
        raise
    current_app.logger.info("Stored %s for application %s", document.document_type, application.public_id)
    return _with_checklist(application), 201


@applications_bp.route("/<public_id>/documents/<path:document_type>", methods=["DELETE"])
@login_required
def delete_document(public_id, document_type):
    application = _owned_application(public_id)
    remove_document(application, document_type)
    return _with_checklist(application), 200


@applications_bp.route("/<public_id>/submit", methods=["POST"])
@login_required
@limiter.limit("10 per hour")
def submit(public_id):
    application = _owned_application(public_id)
    missing = missing_documents(application)
    if missing:
        return {
            "error": "documents_missing",
            "message": "Upload every required document before submitting.",
            "retryable": False,
            "missing_documents": missing,
        }, 422

    outcome = submit_application(application.id, current_user.id)
    return outcome.to_dict(), 200
