"""Required-documents checklist and attachment lifecycle."""

from ..models import ApplicationDocument, db
from .errors import InvalidRoleForState, MissingRequiredField, NotFound

BASE_DOCUMENTS = frozenset(
    {
        "Birth Certificate",
        "Certificate of Baptism",
        "Fellowship Screening Evidence",
        "Association Endorsement Letter",
        "Theological Certificates",
        "Theological Transcripts",
        "Other Academic Certificates",
        "Financial Clearance",
    }
)

MARRIED_DOCUMENTS = frozenset({"Marriage Certificate"})

LEVEL_DOCUMENTS = {
    "licensing": frozenset({"Mentor Commitment Letter", "Vision Statement"}),
    "recognition": frozenset({"GBC License Letter", "Appointment Letter with Job Description"}),
    "ordination": frozenset(
        {
            "GBC License Letter",
            "Recognition Certificate",
            "Appointment Letter",
            "Ministry Evaluation Paper",
        }
    ),
}

ALL_DOCUMENT_TYPES = BASE_DOCUMENTS | MARRIED_DOCUMENTS | frozenset().union(*LEVEL_DOCUMENTS.values())


def required_documents(admission_level, marital_status=None):
    """Document types an applicant must upload before submitting."""
    docs = set(BASE_DOCUMENTS)
    if (marital_status or "").strip().lower() == "married":
        docs |= MARRIED_DOCUMENTS
    docs |= LEVEL_DOCUMENTS.get((admission_level or "").strip().lower(), frozenset())
    return frozenset(docs)


def missing_documents(application):
    uploaded = {doc.document_type for doc in application.documents}
    required = required_documents(application.admission_level, application.marital_status)
    return sorted(required - uploaded)


def _ensure_editable(application):
    if application.status != "draft":
        raise InvalidRoleForState(
            f"Documents can only change while the application is a draft (it is {application.status}).",
            status=application.status,
        )


def attach_document(application, document_type, document_name, storage_ref):
    """Attach a document, replacing any earlier upload of the same type."""
    _ensure_editable(application)
    if document_type not in ALL_DOCUMENT_TYPES:
        raise MissingRequiredField("document_type", f"Unknown document type '{document_type}'.")
    if not document_name or not storage_ref:
        raise MissingRequiredField("document_name" if not document_name else "storage_ref")

    existing = ApplicationDocument.query.filter_by(
        application_id=application.id, document_type=document_type
    ).first()
    if existing is not None:
        db.session.delete(existing)
        db.session.flush()

    document = ApplicationDocument(
        application_id=application.id,
        document_type=document_type,
        document_name=document_name,
        storage_ref=storage_ref,
    )
    db.session.add(document)
    db.session.commit()
    db.session.refresh(application)
    return document


def remove_document(application, document_type):
    _ensure_editable(application)
    existing = ApplicationDocument.query.filter_by(
        application_id=application.id, document_type=document_type
    ).first()
    if existing is None:
        raise NotFound(f"No '{document_type}' document on this application.")
    db.session.delete(existing)
    db.session.commit()
    db.session.refresh(application)
