from flask import Blueprint, request
from flask_login import current_user

from .. import limiter
from ..auth.routes import form_errors, role_required
from ..models import ApprovedApplicant
from .forms import ApprovePhoneForm, ChangePhoneForm
from .service import approve_phone, change_approved_phone, check_approval, phone_history

allowlist_bp = Blueprint("allowlist", __name__)

super_admin_required = role_required("super_admin")


@allowlist_bp.route("", methods=["GET"])
@super_admin_required
def index():
    records = ApprovedApplicant.query.order_by(ApprovedApplicant.approved_at.desc()).all()
    return {"approved_applicants": [r.to_dict() for r in records]}, 200


@allowlist_bp.route("", methods=["POST"])
@super_admin_required
@limiter.limit("60 per minute")
def approve():
    form = ApprovePhoneForm()
    if not form.validate_on_submit():
        return form_errors(form)

    record, created = approve_phone(form.phone_number.data, current_user.id, form.notes.data)
    return {"approved_applicant": record.to_dict(), "created": created}, 201 if created else 200


@allowlist_bp.route("/<int:record_id>/phone", methods=["POST"])
@super_admin_required
@limiter.limit("30 per minute")
def change_phone(record_id):
    form = ChangePhoneForm()
    if not form.validate_on_submit():
        return form_errors(form)

    record, history = change_approved_phone(record_id, form.new_phone_number.data, form.reason.data, current_user.id)
    return {"approved_applicant": record.to_dict(), "change": history.to_dict() if history else None}, 200


@allowlist_bp.route("/<int:record_id>/history")
@super_admin_required
def history(record_id):
    return {"history": [entry.to_dict() for entry in phone_history(record_id)]}, 200


@allowlist_bp.route("/check")
@super_admin_required
def check():
    approved, normalized = check_approval(request.args.get("phone", ""))
    return {"phone_number": normalized, "approved": approved}, 200
