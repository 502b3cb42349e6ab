from datetime import UTC, datetime, timedelta
from functools import wraps

import bcrypt
from flask import Blueprint, abort, current_app
from flask_login import current_user, login_required, login_user, logout_user

from .. import limiter
from ..audit import log_event
from ..models import User, db
from .forms import LoginForm

auth_bp = Blueprint("auth", __name__)


def role_required(*roles):
    """Restrict a view to users holding one of ``roles``."""

    def decorator(f):
        @wraps(f)
        @login_required
        def decorated(*args, **kwargs):
            if current_user.role not in roles:
                abort(403)
            return f(*args, **kwargs)

        return decorated

    return decorator


def form_errors(form):
    return {
        "error": "invalid_payload",
        "message": "The request payload is invalid.",
        "retryable": False,
        "fields": {name: list(errors) for name, errors in form.errors.items()},
    }, 422


def _as_utc(value):
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def _invalid_credentials():
    return {"error": "invalid_credentials", "message": "Invalid email or password.", "retryable": False}, 401


def _burn_hash_time():
    # Keeps unknown and locked accounts as slow as a real password check.
    bcrypt.checkpw(b"not-a-real-password", bcrypt.gensalt())


def _is_locked(user, now):
    return user.locked_until is not None and _as_utc(user.locked_until) > now


def _record_failed_attempt(user, now):
    """Bump the failure counter in SQL and lock the account at the limit."""
    User.query.filter_by(id=user.id).update(
        {"failed_login_count": db.func.coalesce(User.failed_login_count, 0) + 1}
    )
    db.session.commit()
    db.session.refresh(user)

    if user.failed_login_count < current_app.config.get("MAX_FAILED_LOGINS", 5):
        return
    minutes = current_app.config.get("ACCOUNT_LOCKOUT_MINUTES", 15)
    user.locked_until = now + timedelta(minutes=minutes)
    db.session.commit()
    log_event(
        "account_locked",
        "user",
        user.id,
        detail=f"{user.failed_login_count} failed sign-ins; locked for {minutes} minutes",
    )


@auth_bp.route("/login", methods=["POST"])
@limiter.limit("5 per minute")
def login():
    form = LoginForm()
    if not form.validate_on_submit():
        return form_errors(form)

    now = datetime.now(UTC)
    email = form.email.data.lower().strip()
    user = User.query.filter_by(email=email).first()

    if user is None:
        _burn_hash_time()
        log_event("login_failed", detail=f"email={email}")
        return _invalid_credentials()

    if _is_locked(user, now):
        _burn_hash_time()
        log_event("login_locked", "user", user.id)
        return {
            "error": "account_locked",
            "message": "Too many failed sign-ins. Try again later.",
            "retryable": True,
        }, 423

    if not user.check_password(form.password.data):
        _record_failed_attempt(user, now)
        log_event("login_failed", "user", user.id, detail=f"email={email}")
        return _invalid_credentials()

    if not user.is_active_account:
        log_event("login_inactive", "user", user.id)
        return {"error": "account_inactive", "message": "This account is not active.", "retryable": False}, 403

    user.failed_login_count = 0
    user.locked_until = None
    user.last_login_at = now
    login_user(user, remember=bool(form.remember_me.data))
    db.session.commit()

    log_event("login_success", "user", user.id)
    return {"user": user.to_dict()}, 200


@auth_bp.route("/logout", methods=["POST"])
@login_required
def logout():
    log_event("logout", "user", current_user.id)
    logout_user()
    return {"status": "signed_out"}, 200


@auth_bp.route("/me")
@login_required
def me():
    return {"user": current_user.to_dict()}, 200
