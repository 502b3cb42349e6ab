import logging
import os
import secrets
from contextlib import nullcontext
from datetime import UTC, datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path

from flask import Flask
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_login import LoginManager
from flask_migrate import Migrate, upgrade
from flask_wtf.csrf import CSRFProtect

from .config import config_by_name
from .models import db

login_manager = LoginManager()
login_manager.session_protection = "strong"

# Counters live in process memory (RATELIMIT_STORAGE_URI=memory://), which
# matches the single gunicorn worker this service runs with.
limiter = Limiter(key_func=get_remote_address)
migrate = Migrate()
csrf = CSRFProtect()

_LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def create_app(config_name=None):
    from dotenv import load_dotenv

    # gunicorn does not go through run.py, so the factory loads .env itself
    load_dotenv(Path(__file__).resolve().parent.parent / ".env")

    config_name = config_name or os.environ.get("FLASK_ENV", "development")
    settings = config_by_name.get(config_name, config_by_name["development"])

    app = Flask(__name__)
    app.config.from_object(settings)
    if hasattr(settings, "init_app"):
        settings.init_app(app)

    if app.config.get("TRUST_PROXY"):
        from werkzeug.middleware.proxy_fix import ProxyFix

        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1)

    _configure_logging(app)
    Path(app.config["DOCUMENT_STORAGE"]).mkdir(parents=True, exist_ok=True)

    for extension in (db, login_manager, limiter, csrf):
        extension.init_app(app)
    migrate.init_app(app, db)

    _register_login_hooks(app)
    _register_blueprints(app)
    _register_security_headers(app)

    if app.config.get("SCHEDULER_ENABLED"):
        from .notifications.scheduler import init_scheduler

        init_scheduler(app)

    _register_health_routes(app)

    with app.app_context():
        upgrade()
        _seed_admin_if_needed(app)

    return app


def _register_login_hooks(app):
    from .models import User

    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, int(user_id))

    @login_manager.unauthorized_handler
    def unauthorized():
        return {"error": "unauthorized", "message": "Please sign in.", "retryable": False}, 401


def _register_blueprints(app):
    from .allowlist.routes import allowlist_bp
    from .applications.routes import applications_bp
    from .auth.routes import auth_bp
    from .errors import register_error_handlers
    from .reviews.routes import reviews_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(applications_bp, url_prefix="/applications")
    app.register_blueprint(reviews_bp, url_prefix="/reviews")
    app.register_blueprint(allowlist_bp, url_prefix="/allowlist")
    register_error_handlers(app)


def _register_security_headers(app):
    # JSON only: nothing here is meant to be framed, sniffed or cached.
    static_headers = {
        "X-Content-Type-Options": "nosniff",
        "X-Frame-Options": "DENY",
        "Referrer-Policy": "strict-origin-when-cross-origin",
        "Cache-Control": "no-store",
    }
    if not app.debug:
        static_headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        static_headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none'"

    @app.after_request
    def set_security_headers(response):
        response.headers.update(static_headers)
        return response


def _register_health_routes(app):
    @app.route("/ping")
    def ping():
        return {"status": "ok", "timestamp": _now_iso()}, 200

    @app.route("/health")
    def health():
        """Liveness of the database and the notification retry scheduler."""
        max_failures = max(1, int(app.config.get("SCHEDULER_MAX_CONSECUTIVE_FAILURES", 3)))
        scheduler_report, scheduler_ok = _scheduler_report(app, max_failures)
        database_report = _database_report(app)

        healthy = scheduler_ok and database_report["status"] == "ok"
        body = {
            "status": "ok" if healthy else "degraded",
            "timestamp": _now_iso(),
            "scheduler": scheduler_report,
            "database": database_report,
        }
        return body, 200 if healthy else 503


def _now_iso():
    return datetime.now(UTC).isoformat()


def _scheduler_report(app, max_failures):
    scheduler = getattr(app, "scheduler", None)
    if scheduler is None:
        return {"running": False, "reason": "disabled"}, True
    try:
        report = _scheduler_status(app, scheduler, max_failures)
    except Exception:
        app.logger.exception("Scheduler probe failed during health check.")
        return {"running": False, "reason": "probe_failed"}, False
    return report, report["running"] and not report["failing_jobs"]


def _database_report(app):
    try:
        db.session.execute(db.text("SELECT 1"))
    except Exception:
        app.logger.exception("Database probe failed during health check.")
        db.session.rollback()
        return {"status": "error", "error": "unavailable"}
    return {"status": "ok"}


def _scheduler_status(app, scheduler, max_failures):
    state = getattr(app, "scheduler_state", None) or {}
    with getattr(app, "scheduler_state_lock", None) or nullcontext():
        job_state = {job_id: dict(entry) for job_id, entry in state.get("jobs", {}).items()}

    jobs = []
    failing_jobs = []
    for job in scheduler.get_jobs():
        entry = job_state.get(job.id, {})
        failures = int(entry.get("consecutive_failures", 0))
        if failures >= max_failures:
            failing_jobs.append(job.id)
        jobs.append(
            {
                "id": job.id,
                "next_run": job.next_run_time.isoformat() if job.next_run_time else None,
                "last_status": entry.get("last_status"),
                "last_run_at": entry.get("last_run_at"),
                "last_error": entry.get("last_error"),
                "consecutive_failures": failures,
            }
        )
    return {"running": bool(scheduler.running), "jobs": jobs, "failing_jobs": failing_jobs}


def _configure_logging(app):
    """Send INFO and above to logs/admissions.log outside debug and tests."""
    if app.debug or app.testing:
        return

    log_path = Path(app.root_path).parent / "logs" / "admissions.log"
    log_path.parent.mkdir(exist_ok=True)

    handler = RotatingFileHandler(log_path, maxBytes=5 * 1024 * 1024, backupCount=5)
    handler.setFormatter(logging.Formatter(_LOG_FORMAT))
    handler.setLevel(logging.INFO)
    app.logger.addHandler(handler)
    app.logger.setLevel(logging.INFO)


_WEAK_PASSWORD_MARKERS = ("password", "changeme", "admin", "example", "letmein", "qwerty")


def _admin_password_is_weak(password):
    lowered = password.lower()
    return (
        len(password) < 12
        or not any(c.isupper() for c in password)
        or not any(c.islower() for c in password)
        or not any(c.isdigit() for c in password)
        or any(marker in lowered for marker in _WEAK_PASSWORD_MARKERS)
    )


def _seed_admin_if_needed(app):
    """Create the first super admin so the allowlist can be managed at all."""
    from .models import User

    if User.query.filter_by(role="super_admin").first() is not None:
        return

    email = os.environ.get("ADMIN_EMAIL", "admin@admissions.example.org")
    password = os.environ.get("ADMIN_PASSWORD")
    generated = False
    if not app.debug:
        if not password:
            raise RuntimeError("ADMIN_PASSWORD must be set to create the first super admin account.")
        if _admin_password_is_weak(password):
            raise RuntimeError(
                "ADMIN_PASSWORD for first-run admin account is too weak "
                "(12+ characters with upper, lower case letters and digits, no common words)."
            )
    elif not password:
        password = secrets.token_urlsafe(16)
        generated = True

    admin = User(email=email, display_name="Administrator", role="super_admin")
    admin.set_password(password)
    db.session.add(admin)
    db.session.commit()
    app.logger.info("Super admin account created: %s", email)

    if generated:
        credentials = Path(app.instance_path) / ".admin_password"
        credentials.parent.mkdir(parents=True, exist_ok=True)
        credentials.write_text(f"Email:    {email}\nPassword: {password}\n")
        credentials.chmod(0o600)
        app.logger.warning(
            "ADMIN_PASSWORD is not set; a random super admin password was written to %s.", credentials
        )
