"""Pre-authorization allowlist of phone numbers permitted to apply."""

import re

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..audit import log_event
from ..models import ApprovedApplicant, PhoneNumberHistory, _utcnow, db
from ..workflow.errors import DispatchError, DuplicatePhone, MissingRequiredField, NotFound

_WHITESPACE = re.compile(r"\s+")


def normalize_phone(raw, country_code="233"):
    """Return ``raw`` in canonical international form.

    Whitespace is removed, a leading ``0`` becomes ``country_code`` and a
    leading ``+`` is added when missing: ``0557083554`` -> ``+233557083554``.
    """
    phone = _WHITESPACE.sub("", raw or "")
    if not phone:
        raise MissingRequiredField("phone_number", "A phone number is required.")
    if phone.startswith("0"):
        phone = country_code + phone[1:]
    if not phone.startswith("+"):
        phone = "+" + phone
    return phone


def _normalize(raw):
    return normalize_phone(raw, current_app.config.get("COUNTRY_CALLING_CODE", "233"))


def find_by_phone(phone_number):
    return ApprovedApplicant.query.filter_by(phone_number=_normalize(phone_number)).first()


def check_approval(phone_number):
    """Return ``(approved, normalized)`` for the applicant sign-up check.

    A number is approved while its allowlist entry exists and has not yet
    been used to open an application.
    """
    normalized = _normalize(phone_number)
    record = ApprovedApplicant.query.filter_by(phone_number=normalized).first()
    return (record is not None and not record.used), normalized


def approve_phone(phone_number, approver_id, notes=None):
    """Add ``phone_number`` to the allowlist.

    Approving a number that is already listed is not an error: only the notes
    are updated. Returns ``(record, created)``.
    """
    normalized = _normalize(phone_number)
    notes = notes.strip() if notes and notes.strip() else None

    existing = ApprovedApplicant.query.filter_by(phone_number=normalized).first()
    if existing is not None:
        if notes:
            existing.notes = notes
            db.session.commit()
        current_app.logger.info("Phone number already approved: %s", normalized)
        return existing, False

    record = ApprovedApplicant(phone_number=normalized, approved_by=approver_id, notes=notes)
    db.session.add(record)
    try:
        db.session.commit()
    except IntegrityError:
        # Lost a race with another approver; the number is listed either way.
        db.session.rollback()
        record = ApprovedApplicant.query.filter_by(phone_number=normalized).first()
        if record is None:
            raise
        return record, False

    log_event(
        "phone_approved",
        target_type="approved_applicant",
        target_id=record.id,
        detail=f"Approved {normalized} to apply",
        user_id=approver_id,
    )

    try:
        from ..sms_service import send_allowlist_approval

        send_allowlist_approval(normalized)
    except DispatchError as exc:
        current_app.logger.warning("Approval SMS to %s not sent: %s", normalized, exc.message)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Approval SMS to %s crashed.", normalized)

    return record, True


def change_approved_phone(record_id, new_phone_number, reason, actor_id):
    """Replace the phone number on an allowlist entry.

    Returns ``(record, history)``; ``history`` is None when the number is
    unchanged.

    The history row is committed before the entry itself is touched, so a
    failure between the two writes leaves an audit row without a change,
    never a change without an audit row.
    """
    record = db.session.get(ApprovedApplicant, record_id)
    if record is None:
        raise NotFound(f"Approved applicant {record_id} does not exist.", record_id=record_id)

    normalized = _normalize(new_phone_number)
    if normalized == record.phone_number:
        current_app.logger.info("Allowlist entry %s already uses %s; nothing to change.", record.id, normalized)
        return record, None

    holder = ApprovedApplicant.query.filter_by(phone_number=normalized).first()
    if holder is not None:
        raise DuplicatePhone(f"{normalized} is already on the allowlist.", phone_number=normalized)

    old_phone = record.phone_number
    history = PhoneNumberHistory(
        approved_applicant_id=record.id,
        old_phone_number=old_phone,
        new_phone_number=normalized,
        changed_by=actor_id,
        changed_at=_utcnow(),
        reason=reason.strip() if reason and reason.strip() else None,
    )
    db.session.add(history)
    db.session.commit()

    record = db.session.get(ApprovedApplicant, record_id)
    record.phone_number = normalized
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise DuplicatePhone(f"{normalized} is already on the allowlist.", phone_number=normalized) from None

    log_event(
        "phone_changed",
        target_type="approved_applicant",
        target_id=record.id,
        detail=f"Phone changed from {old_phone} to {normalized}",
        user_id=actor_id,
    )
    return record, history


def phone_history(record_id):
    """Phone number changes for an allowlist entry, newest first."""
    record = db.session.get(ApprovedApplicant, record_id)
    if record is None:
        raise NotFound(f"Approved applicant {record_id} does not exist.", record_id=record_id)
    return record.history.order_by(None).order_by(
        PhoneNumberHistory.changed_at.desc(), PhoneNumberHistory.id.desc()
    ).all()


def mark_used(phone_number, application_id):
    """Bind an allowlist entry to the application it was used to open."""
    record = find_by_phone(phone_number)
    if record is None:
        return None
    record.used = True
    record.application_id = application_id
    return record
