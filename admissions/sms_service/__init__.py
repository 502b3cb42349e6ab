import json
import time

import httpx
from flask import current_app

from ..models import NotificationLog, _utcnow, db
from ..workflow.errors import DispatchError

# Seconds to pause between messages when resending a batch
_BULK_SEND_DELAY = 0.2

STATUS_MESSAGES = {
    "draft": (
        "Dear {name}, your ministerial application has been saved as a draft. "
        "Complete and submit it from the applicant portal. - {org}"
    ),
    "submitted": (
        "Dear {name}, your ministerial application has been submitted successfully and is under review. "
        "You will be notified of any updates. - {org}"
    ),
    "local_screening": (
        "Dear {name}, your application is currently under local screening. "
        "We will keep you informed of the progress. - {org}"
    ),
    "association_approved": (
        "Dear {name}, your application has been approved at the association level "
        "and is proceeding to the next stage. - {org}"
    ),
    "vp_review": "Dear {name}, your application is now under Vice President review. - {org}",
    "interview_scheduled": (
        "Dear {name}, your interview has been scheduled! Please check your applicant portal "
        "for details and download your interview letter. - {org}"
    ),
    "approved": (
        "Congratulations {name}! Your ministerial application has been approved. "
        "Please log in to download your admission letter. - {org}"
    ),
    "rejected": (
        "Dear {name}, your application status has been updated. "
        "Please check your portal for detailed feedback and next steps. - {org}"
    ),
}

ALLOWLIST_APPROVAL_MESSAGE = (
    "Your phone number has been approved to apply for ministerial admission. "
    "Please visit the application portal and use OTP verification to proceed."
)


def render_status_message(status, recipient_name):
    """Return the SMS text for ``status`` addressed to ``recipient_name``."""
    template = STATUS_MESSAGES.get(str(status))
    if template is None:
        raise KeyError(f"No notification template for status '{status}'")
    org = current_app.config["ORGANIZATION_NAME"]
    return template.format(name=(recipient_name or "Applicant").strip(), org=org)


def send_sms(destinations, message):
    """Send one message to each phone number in ``destinations``.

    Returns the gateway's decoded response. Raises :class:`DispatchError` when
    the gateway is not configured, times out, or refuses the message.
    """
    api_key = current_app.config.get("FROGAPI_API_KEY")
    username = current_app.config.get("FROGAPI_USERNAME")
    if not api_key or not username:
        current_app.logger.debug("SMS skipped (FrogAPI credentials not configured): %s", message[:40])
        raise DispatchError("SMS gateway is not configured.")

    payload = {
        "senderid": current_app.config["FROGAPI_SENDER_ID"],
        "destinations": [{"destination": phone.lstrip("+")} for phone in destinations],
        "message": message,
        "smstype": "text",
    }
    try:
        resp = httpx.post(
            current_app.config["FROGAPI_BASE_URL"].rstrip("/") + "/sms/send",
            headers={
                "API-KEY": api_key,
                "USERNAME": username,
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
            json=payload,
            timeout=current_app.config["SMS_TIMEOUT_SECONDS"],
        )
        resp.raise_for_status()
        body = resp.json()
    except (httpx.HTTPError, httpx.InvalidURL, ValueError) as exc:
        raise DispatchError(f"SMS gateway request failed: {exc}") from exc

    gateway_status = str(body.get("status", "")).upper() if isinstance(body, dict) else ""
    if gateway_status in ("FAILED", "ERROR"):
        raise DispatchError(f"SMS gateway refused the message: {body.get('message', gateway_status)}")
    return body


def send_status_notification(phone, recipient_name, new_status, application_id=None):
    """Tell an applicant their application moved to ``new_status``.

    Every attempt is recorded in :class:`NotificationLog`; failed rows are
    picked up again by :func:`retry_failed_notifications`.
    """
    message = render_status_message(new_status, recipient_name)
    entry = NotificationLog(
        application_id=application_id,
        recipient_phone=phone,
        recipient_name=recipient_name,
        status_key=str(new_status),
        message=message,
    )
    db.session.add(entry)
    try:
        ack = send_sms([phone], message)
    except DispatchError as exc:
        entry.state = "failed"
        entry.last_error = exc.message[:500]
        db.session.commit()
        raise

    entry.state = "sent"
    entry.sent_at = _utcnow()
    entry.provider_response = json.dumps(ack)[:2000]
    db.session.commit()
    return ack


def send_allowlist_approval(phone):
    return send_sms([phone], ALLOWLIST_APPROVAL_MESSAGE)


def retry_failed_notifications():
    """Resend failed status notifications that still have attempts left."""
    max_attempts = current_app.config.get("NOTIFICATION_MAX_ATTEMPTS", 3)
    pending = (
        NotificationLog.query.filter(
            NotificationLog.state == "failed",
            NotificationLog.attempts < max_attempts,
        )
        .order_by(NotificationLog.created_at.asc())
        .all()
    )
    if not pending:
        return 0

    sent_count = 0
    for index, entry in enumerate(pending):
        entry.attempts += 1
        try:
            ack = send_sms([entry.recipient_phone], entry.message)
        except DispatchError as exc:
            entry.last_error = exc.message[:500]
            current_app.logger.warning(
                "Retry %d/%d failed for notification %s: %s", entry.attempts, max_attempts, entry.id, exc.message
            )
        else:
            entry.state = "sent"
            entry.sent_at = _utcnow()
            entry.last_error = None
            entry.provider_response = json.dumps(ack)[:2000]
            sent_count += 1
        db.session.commit()
        if index < len(pending) - 1:
            time.sleep(_BULK_SEND_DELAY)

    current_app.logger.info("Notification retry: %d of %d resent.", sent_count, len(pending))
    return sent_count
