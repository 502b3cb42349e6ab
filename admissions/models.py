import sqlite3
import uuid
from datetime import UTC, datetime

import bcrypt
from flask_login import UserMixin
from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import event
from sqlalchemy.engine import Engine

db = SQLAlchemy()


def _utcnow():
    return datetime.now(UTC)


def _uuid():
    return uuid.uuid4().hex


@event.listens_for(Engine, "connect")
def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    if isinstance(dbapi_connection, sqlite3.Connection):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


ROLE_CHOICES = ("super_admin", "local_officer", "association_head", "vp_office", "applicant")
REVIEWER_ROLES = ("super_admin", "local_officer", "association_head", "vp_office")
ADMISSION_LEVELS = ("licensing", "recognition", "ordination")
MARITAL_STATUSES = ("single", "married", "divorced", "widowed")


# ── User ────────────────────────────────────────────────────────────


class User(UserMixin, db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    public_id = db.Column(db.String(32), unique=True, nullable=False, default=_uuid)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    display_name = db.Column(db.String(255), nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)
    role = db.Column(db.String(30), nullable=False, default="applicant")
    phone_number = db.Column(db.String(20), nullable=True)
    is_active_account = db.Column(db.Boolean, nullable=False, default=True)
    failed_login_count = db.Column(db.Integer, nullable=False, default=0)
    locked_until = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=_utcnow)
    last_login_at = db.Column(db.DateTime, nullable=True)

    applications = db.relationship(
        "Application",
        backref="owner",
        lazy="dynamic",
        foreign_keys="Application.user_id",
    )

    def set_password(self, password):
        self.password_hash = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=12)).decode("utf-8")

    def check_password(self, password):
        return bcrypt.checkpw(password.encode("utf-8"), self.password_hash.encode("utf-8"))

    @property
    def is_super_admin(self):
        return self.role == "super_admin"

    @property
    def is_reviewer(self):
        return self.role in REVIEWER_ROLES

    @property
    def is_active(self):
        """Flask-Login uses this to check if user session is valid."""
        return self.is_active_account

    def to_dict(self):
        return {
            "id": self.public_id,
            "email": self.email,
            "display_name": self.display_name,
            "role": self.role,
            "phone_number": self.phone_number,
        }

    def __repr__(self):
        return f"<User {self.email} ({self.role})>"


# ── Application ─────────────────────────────────────────────────────


class Application(db.Model):
    __tablename__ = "applications"

    id = db.Column(db.Integer, primary_key=True)
    public_id = db.Column(db.String(32), unique=True, nullable=False, default=_uuid)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)

    # Applicant
    full_name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(20), nullable=False)
    date_of_birth = db.Column(db.Date, nullable=True)
    marital_status = db.Column(db.String(20), nullable=True)
    spouse_name = db.Column(db.String(255), nullable=True)
    photo_url = db.Column(db.String(500), nullable=True)

    # Ministry
    admission_level = db.Column(db.String(20), nullable=False)
    church_name = db.Column(db.String(255), nullable=False)
    fellowship = db.Column(db.String(255), nullable=False)
    association = db.Column(db.String(255), nullable=False)
    sector = db.Column(db.String(100), nullable=True)
    theological_institution = db.Column(db.String(255), nullable=True)
    theological_qualification = db.Column(db.String(255), nullable=True)
    mentor_name = db.Column(db.String(255), nullable=True)
    mentor_contact = db.Column(db.String(50), nullable=True)

    # Workflow
    status = db.Column(db.String(30), nullable=False, default="draft", index=True)
    version = db.Column(db.Integer, nullable=False, default=1)
    submitted_at = db.Column(db.DateTime, nullable=True)

    local_reviewed_by = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    local_reviewed_at = db.Column(db.DateTime, nullable=True)
    local_notes = db.Column(db.Text, nullable=True)

    association_reviewed_by = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    association_reviewed_at = db.Column(db.DateTime, nullable=True)
    association_notes = db.Column(db.Text, nullable=True)

    vp_reviewed_by = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    vp_reviewed_at = db.Column(db.DateTime, nullable=True)
    vp_notes = db.Column(db.Text, nullable=True)

    rejection_reason = db.Column(db.Text, nullable=True)
    interview_date = db.Column(db.String(50), nullable=True)
    interview_location = db.Column(db.String(255), nullable=True)
    admin_notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=_utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=_utcnow, onupdate=_utcnow)

    __table_args__ = (
        db.CheckConstraint(
            "admission_level IN ('licensing', 'recognition', 'ordination')",
            name="ck_applications_admission_level",
        ),
    )

    documents = db.relationship(
        "ApplicationDocument",
        backref="application",
        lazy="select",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="ApplicationDocument.document_type",
    )

    @property
    def is_terminal(self):
        return self.status in ("approved", "rejected")

    def to_dict(self):
        def _ts(value):
            return value.isoformat() if value else None

        return {
            "id": self.public_id,
            "full_name": self.full_name,
            "email": self.email,
            "phone": self.phone,
            "date_of_birth": _ts(self.date_of_birth),
            "marital_status": self.marital_status,
            "spouse_name": self.spouse_name,
            "photo_url": self.photo_url,
            "admission_level": self.admission_level,
            "church_name": self.church_name,
            "fellowship": self.fellowship,
            "association": self.association,
            "sector": self.sector,
            "theological_institution": self.theological_institution,
            "theological_qualification": self.theological_qualification,
            "mentor_name": self.mentor_name,
            "mentor_contact": self.mentor_contact,
            "status": self.status,
            "version": self.version,
            "submitted_at": _ts(self.submitted_at),
            "reviews": {
                stage: {
                    "reviewed_by": getattr(self, f"{stage}_reviewed_by"),
                    "reviewed_at": _ts(getattr(self, f"{stage}_reviewed_at")),
                    "notes": getattr(self, f"{stage}_notes"),
                }
                for stage in ("local", "association", "vp")
            },
            "rejection_reason": self.rejection_reason,
            "interview_date": self.interview_date,
            "interview_location": self.interview_location,
            "documents": [doc.to_dict() for doc in self.documents],
        }

    def __repr__(self):
        return f"<Application {self.public_id[:8]} {self.full_name} ({self.status})>"


class ApplicationDocument(db.Model):
    __tablename__ = "application_documents"

    id = db.Column(db.Integer, primary_key=True)
    application_id = db.Column(
        db.Integer, db.ForeignKey("applications.id", ondelete="CASCADE"), nullable=False, index=True
    )
    document_type = db.Column(db.String(100), nullable=False)
    document_name = db.Column(db.String(255), nullable=False)
    storage_ref = db.Column(db.String(500), nullable=False)
    uploaded_at = db.Column(db.DateTime, nullable=False, default=_utcnow)

    __table_args__ = (db.UniqueConstraint("application_id", "document_type", name="uq_application_document_type"),)

    def to_dict(self):
        return {
            "document_type": self.document_type,
            "document_name": self.document_name,
            "storage_ref": self.storage_ref,
            "uploaded_at": self.uploaded_at.isoformat() if self.uploaded_at else None,
        }


# ── Allowlist ───────────────────────────────────────────────────────


class ApprovedApplicant(db.Model):
    __tablename__ = "approved_applicants"

    id = db.Column(db.Integer, primary_key=True)
    phone_number = db.Column(db.String(20), unique=True, nullable=False, index=True)
    approved_by = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    approved_at = db.Column(db.DateTime, nullable=False, default=_utcnow)
    notes = db.Column(db.Text, nullable=True)
    used = db.Column(db.Boolean, nullable=False, default=False)
    application_id = db.Column(db.Integer, db.ForeignKey("applications.id", ondelete="SET NULL"), nullable=True)

    history = db.relationship(
        "PhoneNumberHistory",
        backref="approved_applicant",
        lazy="dynamic",
        order_by="PhoneNumberHistory.changed_at.desc()",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "phone_number": self.phone_number,
            "approved_by": self.approved_by,
            "approved_at": self.approved_at.isoformat() if self.approved_at else None,
            "notes": self.notes,
            "used": self.used,
        }

    def __repr__(self):
        return f"<ApprovedApplicant {self.phone_number}>"


class PhoneNumberHistory(db.Model):
    """Append-only record of allowlist phone number changes."""

    __tablename__ = "phone_number_history"

    id = db.Column(db.Integer, primary_key=True)
    approved_applicant_id = db.Column(
        db.Integer, db.ForeignKey("approved_applicants.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    old_phone_number = db.Column(db.String(20), nullable=False)
    new_phone_number = db.Column(db.String(20), nullable=False)
    changed_by = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    changed_at = db.Column(db.DateTime, nullable=False, default=_utcnow, index=True)
    reason = db.Column(db.Text, nullable=True)

    def to_dict(self):
        return {
            "id": self.id,
            "old_phone_number": self.old_phone_number,
            "new_phone_number": self.new_phone_number,
            "changed_by": self.changed_by,
            "changed_at": self.changed_at.isoformat() if self.changed_at else None,
            "reason": self.reason,
        }


@event.listens_for(PhoneNumberHistory, "before_update")
def _history_is_immutable(mapper, connection, target):
    raise ValueError("Phone number history rows cannot be modified.")


@event.listens_for(PhoneNumberHistory, "before_delete")
def _history_is_permanent(mapper, connection, target):
    raise ValueError("Phone number history rows cannot be deleted.")


# ── Notification Log ────────────────────────────────────────────────


class NotificationLog(db.Model):
    __tablename__ = "notification_logs"

    id = db.Column(db.Integer, primary_key=True)
    application_id = db.Column(
        db.Integer, db.ForeignKey("applications.id", ondelete="CASCADE"), nullable=True, index=True
    )
    recipient_phone = db.Column(db.String(20), nullable=False)
    recipient_name = db.Column(db.String(255), nullable=True)
    status_key = db.Column(db.String(30), nullable=True)
    message = db.Column(db.Text, nullable=False)
    state = db.Column(db.String(10), nullable=False, default="failed", index=True)  # sent, failed
    attempts = db.Column(db.Integer, nullable=False, default=1)
    last_error = db.Column(db.Text, nullable=True)
    provider_response = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=_utcnow)
    sent_at = db.Column(db.DateTime, nullable=True)

    def __repr__(self):
        return f"<NotificationLog {self.status_key} to {self.recipient_phone} ({self.state})>"


# ── Audit Log ───────────────────────────────────────────────────────


class AuditLog(db.Model):
    __tablename__ = "audit_logs"

    id = db.Column(db.Integer, primary_key=True)
    timestamp = db.Column(db.DateTime, nullable=False, default=_utcnow, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    action = db.Column(db.String(100), nullable=False, index=True)
    target_type = db.Column(db.String(50), nullable=True)  # application, approved_applicant, user
    target_id = db.Column(db.Integer, nullable=True)
    detail = db.Column(db.Text, nullable=True)
    ip_address = db.Column(db.String(45), nullable=True)

    user = db.relationship("User", backref="audit_logs", lazy="joined")

    def __repr__(self):
        return f"<AuditLog {self.action} at {self.timestamp}>"
