from dataclasses import dataclass

from flask import current_app

from ..audit import log_event
from ..models import Application, _utcnow, db
from .errors import DispatchError, InvalidRoleForState
from .rules import Role, Status, allowed_actions, evaluate_transition
from .store import conditional_update, load_application


@dataclass
class ReviewOutcome:
    application: Application
    notification_sent: bool
    warning: str | None = None

    def to_dict(self):
        return {
            "application": self.application.to_dict(),
            "notification_sent": self.notification_sent,
            "warning": self.warning,
        }


def _notify(application):
    """Send the status SMS for ``application``. Never raises."""
    public_id, status = application.public_id, application.status
    try:
        from ..sms_service import send_status_notification

        send_status_notification(
            application.phone,
            application.full_name,
            application.status,
            application_id=application.id,
        )
    except DispatchError as exc:
        current_app.logger.warning(
            "Status notification for application %s (%s) not sent: %s", public_id, status, exc.message
        )
        return False, f"Notification not sent: {exc.message}"
    except Exception:
        # The transition is already committed.
        db.session.rollback()
        current_app.logger.exception("Status notification for application %s (%s) crashed.", public_id, status)
        return False, "Notification not sent: the SMS gateway could not be reached."
    return True, None


def submit_review(application_id, actor_role, actor_id, action, payload=None):
    """Apply a reviewer decision to an application.

    The state change is committed before the applicant is notified, and a
    failed notification is reported through ``ReviewOutcome.warning`` rather
    than undoing the transition.
    """
    application = load_application(application_id)
    patch = evaluate_transition(application, actor_role, action, payload, actor_id=actor_id, now=_utcnow())

    application = conditional_update(
        application.id,
        patch.expected_status,
        patch.fields,
        expected_version=application.version,
    )

    detail = f"{actor_role} {action}: {patch.expected_status} -> {patch.new_status}"
    if "rejection_reason" in patch.fields:
        detail += f" (reason: {patch.fields['rejection_reason'][:200]})"
    log_event(
        f"application_{action}",
        target_type="application",
        target_id=application.id,
        detail=detail,
        user_id=actor_id,
    )
    current_app.logger.info("Application %s moved to %s by %s", application.public_id, application.status, actor_role)

    sent, warning = _notify(application)
    return ReviewOutcome(application=application, notification_sent=sent, warning=warning)


def submit_application(application_id, user_id):
    """Move the applicant's own draft to ``submitted``."""
    application = load_application(application_id)
    if application.user_id != user_id:
        raise InvalidRoleForState("Only the applicant can submit this application.")
    if application.status != Status.DRAFT:
        raise InvalidRoleForState(
            f"Application is already {application.status}.", status=application.status
        )

    application = conditional_update(
        application.id,
        Status.DRAFT,
        {"status": str(Status.SUBMITTED), "submitted_at": _utcnow()},
        expected_version=application.version,
    )
    log_event(
        "application_submitted",
        target_type="application",
        target_id=application.id,
        detail=f"{application.full_name} submitted a {application.admission_level} application",
        user_id=user_id,
    )

    sent, warning = _notify(application)
    return ReviewOutcome(application=application, notification_sent=sent, warning=warning)


def review_queue(actor_role):
    """Applications the given role can currently act on, oldest submission first."""
    role = Role(actor_role)
    statuses = [str(status) for status in Status if allowed_actions(status, role)]
    if not statuses:
        return []
    return (
        Application.query.filter(Application.status.in_(statuses))
        .order_by(Application.submitted_at.asc(), Application.id.asc())
        .all()
    )


def update_draft(application, changes):
    """Edit personal and ministry fields while the application is a draft."""
    if application.status != Status.DRAFT:
        raise InvalidRoleForState(
            f"Application is {application.status}; only drafts can be edited.", status=application.status
        )
    for key, value in changes.items():
        setattr(application, key, value)
    db.session.commit()
    return application
