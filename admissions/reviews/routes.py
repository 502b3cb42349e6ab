import io

from flask import Blueprint, send_file
from flask_login import current_user

from .. import limiter
from ..audit import events_for, log_event
from ..auth.routes import form_errors, role_required
from ..letter_service import letter_for
from ..models import REVIEWER_ROLES
from ..workflow.rules import allowed_actions
from ..workflow.service import review_queue, submit_review
from ..workflow.store import load_application
from .forms import ReviewForm

reviews_bp = Blueprint("reviews", __name__)

reviewer_required = role_required(*REVIEWER_ROLES)


def _review_view(application):
    body = application.to_dict()
    body["allowed_actions"] = [str(a) for a in allowed_actions(application.status, current_user.role)]
    body["admin_notes"] = application.admin_notes
    return body


@reviews_bp.route("/queue")
@reviewer_required
def queue():
    applications = review_queue(current_user.role)
    return {"applications": [_review_view(a) for a in applications]}, 200


@reviews_bp.route("/<public_id>")
@reviewer_required
def detail(public_id):
    application = load_application(public_id)
    body = _review_view(application)
    body["history"] = [
        {
            "action": entry.action,
            "user_id": entry.user_id,
            "detail": entry.detail,
            "timestamp": entry.timestamp.isoformat() if entry.timestamp else None,
        }
        for entry in events_for("application", application.id)
    ]
    return body, 200


@reviews_bp.route("/<public_id>", methods=["POST"])
@reviewer_required
@limiter.limit("60 per minute")
def decide(public_id):
    form = ReviewForm()
    if not form.validate_on_submit():
        return form_errors(form)

    outcome = submit_review(
        public_id,
        actor_role=current_user.role,
        actor_id=current_user.id,
        action=form.action.data,
        payload=form.to_payload(),
    )
    return outcome.to_dict(), 200


@reviews_bp.route("/<public_id>/letter.pdf")
@reviewer_required
def letter(public_id):
    application = load_application(public_id)
    pdf_bytes = letter_for(application)
    log_event(
        "letter_downloaded",
        target_type="application",
        target_id=application.id,
        detail=f"{application.status} letter",
        user_id=current_user.id,
    )
    return send_file(
        io.BytesIO(pdf_bytes),
        mimetype="application/pdf",
        as_attachment=True,
        download_name=f"{application.status}-letter-{application.public_id[:8]}.pdf",
    )
