from flask import has_request_context, request
from flask_login import current_user

from ..models import AuditLog, db


def _acting_user_id():
    if has_request_context() and current_user and current_user.is_authenticated:
        return current_user.id
    return None


def _client_ip():
    return request.remote_addr if has_request_context() else None


def _session_has_pending_writes():
    session = db.session
    return bool(session.new or session.dirty or session.deleted)


def log_event(action, target_type=None, target_id=None, detail=None, user_id=None, commit=None):
    """Record an audit event.

    Workflow code passes ``user_id`` explicitly; the signed-in user is only a
    fallback for route-level events such as logins. When ``commit`` is None
    the entry commits on its own unless the session already holds other
    writes, in which case it is flushed and rides along with them.
    """
    if commit is None:
        commit = not _session_has_pending_writes()

    entry = AuditLog(
        user_id=_acting_user_id() if user_id is None else user_id,
        action=action,
        target_type=target_type,
        target_id=target_id,
        detail=detail,
        ip_address=_client_ip(),
    )
    db.session.add(entry)
    if commit:
        db.session.commit()
    else:
        db.session.flush()
    return entry


def events_for(target_type, target_id, limit=100):
    """Audit entries for one record, oldest first."""
    return (
        AuditLog.query.filter_by(target_type=target_type, target_id=target_id)
        .order_by(AuditLog.timestamp.asc(), AuditLog.id.asc())
        .limit(limit)
        .all()
    )
