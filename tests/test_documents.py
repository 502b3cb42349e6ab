"""Tests for the required-documents checklist."""

import pytest

from admissions.models import Application, ApplicationDocument, db
from admissions.workflow.documents import (
    BASE_DOCUMENTS,
    attach_document,
    missing_documents,
    remove_document,
    required_documents,
)
from admissions.workflow.errors import InvalidRoleForState, MissingRequiredField, NotFound
from tests.conftest import _attach_required_documents, _make_application


def test_required_documents_by_level_and_marital_status():
    licensing = required_documents("licensing", "single")
    assert BASE_DOCUMENTS <= licensing
    assert "Mentor Commitment Letter" in licensing
    assert "Marriage Certificate" not in licensing

    ordination = required_documents("Ordination", "Married")
    assert "Ministry Evaluation Paper" in ordination
    assert "Recognition Certificate" in ordination
    assert "Marriage Certificate" in ordination

    recognition = required_documents("recognition")
    assert len(recognition) == len(BASE_DOCUMENTS) + 2


def test_missing_documents_shrinks_as_uploads_arrive(applicant):
    application = _make_application(applicant)
    assert "Birth Certificate" in missing_documents(application)

    attach_document(application, "Birth Certificate", "birth.pdf", "x/birth.pdf")
    assert "Birth Certificate" not in missing_documents(application)


def test_complete_application_has_nothing_missing(applicant):
    application = _make_application(applicant, admission_level="ordination", marital_status="married")
    _attach_required_documents(application)
    assert missing_documents(application) == []


def test_attach_replaces_same_type(applicant):
    application = _make_application(applicant)
    attach_document(application, "Birth Certificate", "old.pdf", "x/old.pdf")
    attach_document(application, "Birth Certificate", "new.pdf", "x/new.pdf")

    documents = ApplicationDocument.query.filter_by(application_id=application.id).all()
    assert [d.document_name for d in documents] == ["new.pdf"]


def test_attach_rejects_unknown_type(applicant):
    application = _make_application(applicant)
    with pytest.raises(MissingRequiredField):
        attach_document(application, "Library Card", "card.pdf", "x/card.pdf")


def test_documents_are_frozen_after_submission(applicant):
    application = _make_application(applicant, status="submitted")
    with pytest.raises(InvalidRoleForState):
        attach_document(application, "Birth Certificate", "birth.pdf", "x/birth.pdf")
    with pytest.raises(InvalidRoleForState):
        remove_document(application, "Birth Certificate")


def test_remove_document(applicant):
    application = _make_application(applicant)
    attach_document(application, "Vision Statement", "vision.pdf", "x/vision.pdf")

    remove_document(application, "Vision Statement")
    assert ApplicationDocument.query.count() == 0

    with pytest.raises(NotFound):
        remove_document(application, "Vision Statement")


def test_deleting_application_removes_its_documents(applicant):
    application = _make_application(applicant)
    _attach_required_documents(application)
    assert ApplicationDocument.query.count() > 0

    db.session.delete(application)
    db.session.commit()

    assert ApplicationDocument.query.count() == 0


def test_database_cascade_removes_documents_on_bulk_delete(applicant):
    application = _make_application(applicant)
    attach_document(application, "Vision Statement", "vision.pdf", "x/vision.pdf")

    db.session.execute(db.delete(Application).where(Application.id == application.id))
    db.session.commit()

    assert ApplicationDocument.query.count() == 0
