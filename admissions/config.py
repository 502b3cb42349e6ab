import os
from pathlib import Path
from urllib.parse import urlparse

BASE_DIR = Path(__file__).resolve().parent.parent
STORAGE_DIR = BASE_DIR / "storage"


_WEAK_SECRET_MARKERS = ("changeme", "change-this", "replace", "secret", "example", "default")
_SECRET_HINT = 'Generate one with: python -c "import secrets; print(secrets.token_hex(32))"'


def _require_strong_secret():
    secret_key = os.environ.get("SECRET_KEY", "").strip()
    if not secret_key:
        raise RuntimeError("SECRET_KEY environment variable must be set in production")
    if len(secret_key) < 32:
        raise RuntimeError(f"SECRET_KEY is too short for production (minimum 32 characters). {_SECRET_HINT}")
    if any(marker in secret_key.lower() for marker in _WEAK_SECRET_MARKERS):
        raise RuntimeError(f"SECRET_KEY appears to be a placeholder and is not allowed in production. {_SECRET_HINT}")
    return secret_key


def _require_https_domain():
    domain = os.environ.get("ADMISSIONS_DOMAIN", "").strip()
    parsed = urlparse(domain)
    if parsed.scheme != "https" or not parsed.netloc:
        raise RuntimeError(
            "ADMISSIONS_DOMAIN must be set to a valid https:// URL in production "
            "(e.g. https://admissions.example.org)."
        )
    return domain.rstrip("/")


def _require_single_worker():
    # The notification retry job runs in-process; a second worker would
    # resend the same failed messages.
    raw = os.environ.get("WEB_CONCURRENCY")
    if not raw:
        return
    try:
        workers = int(raw)
    except ValueError as exc:
        raise RuntimeError("WEB_CONCURRENCY must be an integer when set.") from exc
    if workers <= 0:
        raise RuntimeError("WEB_CONCURRENCY must be at least 1 when set.")
    if workers > 1:
        raise RuntimeError(
            f"WEB_CONCURRENCY is set to {raw} but the admissions service requires a single worker "
            "(in-process notification scheduler and rate limiter). Set WEB_CONCURRENCY=1 or remove it."
        )


def _env_flag(name, default):
    return os.environ.get(name, default).lower() == "true"


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY") or os.urandom(32).hex()
    SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL", f"sqlite:///{BASE_DIR / 'admissions.db'}")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    MAX_CONTENT_LENGTH = int(os.environ.get("MAX_UPLOAD_SIZE_MB", "15")) * 1024 * 1024

    # Storage paths
    DOCUMENT_STORAGE = os.environ.get("DOCUMENT_STORAGE", str(STORAGE_DIR / "documents"))
    ALLOWED_DOCUMENT_EXTENSIONS = ("pdf", "jpg", "jpeg", "png")

    # Organization branding (letters and SMS sign-off)
    ORGANIZATION_NAME = os.environ.get("ORGANIZATION_NAME", "Ghana Baptist Convention Conference")
    ORGANIZATION_SUBTITLE = os.environ.get("ORGANIZATION_SUBTITLE", "MINISTERIAL ADMISSION")
    ADMISSIONS_DOMAIN = os.environ.get("ADMISSIONS_DOMAIN", "http://localhost:8080")
    # "Name|Role;Name|Role"
    LETTER_SIGNATORIES = os.environ.get("LETTER_SIGNATORIES", "")

    # Phone numbers
    COUNTRY_CALLING_CODE = os.environ.get("COUNTRY_CALLING_CODE", "233")

    # SMS gateway (FrogAPI)
    FROGAPI_BASE_URL = os.environ.get("FROGAPI_BASE_URL", "https://frogapi.wigal.com.gh/api/v3")
    FROGAPI_USERNAME = os.environ.get("FROGAPI_USERNAME", "")
    FROGAPI_API_KEY = os.environ.get("FROGAPI_API_KEY", "")
    FROGAPI_SENDER_ID = os.environ.get("FROGAPI_SENDER_ID", "GBCC")
    SMS_TIMEOUT_SECONDS = float(os.environ.get("SMS_TIMEOUT_SECONDS", "10"))
    NOTIFICATION_MAX_ATTEMPTS = int(os.environ.get("NOTIFICATION_MAX_ATTEMPTS", "3"))

    # Reverse proxy (X-Forwarded-* headers are only honoured when set)
    TRUST_PROXY = _env_flag("TRUST_PROXY", "false")

    # Security
    MAX_FAILED_LOGINS = int(os.environ.get("MAX_FAILED_LOGINS", "5"))
    ACCOUNT_LOCKOUT_MINUTES = int(os.environ.get("ACCOUNT_LOCKOUT_MINUTES", "15"))

    # Rate limiting
    RATELIMIT_DEFAULT = os.environ.get("RATELIMIT_DEFAULT", "300 per hour")
    RATELIMIT_STORAGE_URI = os.environ.get("RATELIMIT_STORAGE_URI", "memory://")

    # Session
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SECURE = False
    SESSION_COOKIE_SAMESITE = "Lax"
    PERMANENT_SESSION_LIFETIME = 3600 * 8  # 8 hours

    # Scheduler
    SCHEDULER_ENABLED = _env_flag("SCHEDULER_ENABLED", "true")
    SCHEDULER_RETRY_INTERVAL_MINUTES = int(os.environ.get("SCHEDULER_RETRY_INTERVAL_MINUTES", "15"))
    SCHEDULER_MAX_CONSECUTIVE_FAILURES = int(os.environ.get("SCHEDULER_MAX_CONSECUTIVE_FAILURES", "3"))


class DevelopmentConfig(Config):
    DEBUG = True

    @classmethod
    def init_app(cls, app):
        if not os.environ.get("SECRET_KEY"):
            app.logger.warning("SECRET_KEY not set; using an ephemeral key. Sessions will not survive restarts.")


class ProductionConfig(Config):
    DEBUG = False
    SESSION_COOKIE_SECURE = True

    @classmethod
    def init_app(cls, app):
        secret_key = _require_strong_secret()
        domain = _require_https_domain()
        _require_single_worker()

        # Class attributes were read at import time; pin the validated values.
        app.config["SECRET_KEY"] = secret_key
        app.config["ADMISSIONS_DOMAIN"] = domain
        # Production sits behind a reverse proxy unless told otherwise.
        app.config["TRUST_PROXY"] = _env_flag("TRUST_PROXY", "true")
        app.config["SCHEDULER_ENABLED"] = _env_flag("SCHEDULER_ENABLED", "true")


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    WTF_CSRF_ENABLED = False
    RATELIMIT_ENABLED = False
    SCHEDULER_ENABLED = False
    FROGAPI_USERNAME = ""
    FROGAPI_API_KEY = ""
    SERVER_NAME = "localhost"
    SECRET_KEY = "testing-secret-key"
    LETTER_SIGNATORIES = "Rev. Test Signer|General Secretary"


config_by_name = {
    "development": DevelopmentConfig,
    "production": ProductionConfig,
    "testing": TestingConfig,
}
