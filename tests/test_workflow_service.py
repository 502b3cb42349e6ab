"""Tests for the review workflow controller."""

from types import SimpleNamespace

import pytest
from sqlalchemy.exc import OperationalError

from admissions.models import Application, AuditLog, NotificationLog
from admissions.workflow import service as workflow_service
from admissions.workflow.errors import ConcurrentModification, InvalidRoleForState, NotFound
from admissions.workflow.rules import ForcePayload, ReviewPayload
from admissions.workflow.service import review_queue, submit_application, submit_review, update_draft
from tests.conftest import _make_application, _make_user


def test_full_pipeline_reaches_approved(
    applicant, local_officer, association_head, vp_office, sms_gateway
):
    application = _make_application(applicant)

    outcome = submit_application(application.id, applicant.id)
    assert outcome.application.status == "submitted"
    assert outcome.application.submitted_at is not None

    outcome = submit_review(application.public_id, "local_officer", local_officer.id, "approve")
    assert outcome.application.status == "local_screening"
    assert outcome.application.local_reviewed_by == local_officer.id

    outcome = submit_review(
        application.public_id, "association_head", association_head.id, "approve", ReviewPayload(notes="Endorsed")
    )
    assert outcome.application.status == "association_approved"
    assert outcome.application.association_notes == "Endorsed"

    outcome = submit_review(
        application.public_id, "vp_office", vp_office.id, "approve", ReviewPayload(sector="Northern Sector")
    )
    assert outcome.application.status == "vp_review"
    assert outcome.application.sector == "Northern Sector"
    vp_reviewed_at = outcome.application.vp_reviewed_at

    outcome = submit_review(application.public_id, "vp_office", vp_office.id, "approve")
    assert outcome.application.status == "approved"
    assert outcome.application.vp_reviewed_at == vp_reviewed_at
    assert outcome.notification_sent is True
    assert outcome.warning is None

    # Every state change notified the applicant once
    assert sms_gateway.call_count == 5
    assert NotificationLog.query.filter_by(state="sent").count() == 5
    assert outcome.application.version == 6

    actions = [e.action for e in AuditLog.query.order_by(AuditLog.id).all()]
    assert actions == [
        "application_submitted",
        "application_approve",
        "application_approve",
        "application_approve",
        "application_approve",
    ]


def test_notification_payload(applicant, local_officer, sms_gateway):
    application = _make_application(applicant, status="submitted")

    submit_review(application.id, "local_officer", local_officer.id, "approve")

    _, kwargs = sms_gateway.call_args
    assert kwargs["json"]["destinations"] == [{"destination": "233557083554"}]
    assert kwargs["json"]["smstype"] == "text"
    assert "local screening" in kwargs["json"]["message"]
    assert kwargs["headers"]["API-KEY"] == "test-key"


def test_rejection_stores_reason(applicant, association_head):
    application = _make_application(applicant, status="local_screening")

    outcome = submit_review(
        application.id,
        "association_head",
        association_head.id,
        "reject",
        ReviewPayload(reason="Association endorsement letter is unsigned"),
    )

    assert outcome.application.status == "rejected"
    assert outcome.application.rejection_reason == "Association endorsement letter is unsigned"
    audit = AuditLog.query.filter_by(action="application_reject").one()
    assert "unsigned" in audit.detail


def test_failed_dispatch_keeps_transition(applicant, local_officer):
    # Gateway credentials are blank under the testing config
    application = _make_application(applicant, status="submitted")

    outcome = submit_review(application.id, "local_officer", local_officer.id, "approve")

    assert outcome.application.status == "local_screening"
    assert outcome.notification_sent is False
    assert "not configured" in outcome.warning
    entry = NotificationLog.query.one()
    assert entry.state == "failed"
    assert entry.status_key == "local_screening"


def test_invalid_role_leaves_application_untouched(applicant, vp_office):
    application = _make_application(applicant, status="submitted")

    with pytest.raises(InvalidRoleForState):
        submit_review(application.id, "vp_office", vp_office.id, "approve", ReviewPayload(sector="X"))

    fresh = Application.query.filter_by(id=application.id).one()
    assert fresh.status == "submitted"
    assert fresh.version == 1
    assert NotificationLog.query.count() == 0


def test_second_reviewer_on_stale_snapshot_loses(applicant, local_officer, monkeypatch):
    application = _make_application(applicant, status="submitted")
    stale = SimpleNamespace(
        id=application.id, public_id=application.public_id, status="submitted", sector=None, version=1
    )

    submit_review(application.id, "local_officer", local_officer.id, "reject", ReviewPayload(reason="Incomplete"))

    monkeypatch.setattr(workflow_service, "load_application", lambda application_id: stale)
    with pytest.raises(ConcurrentModification) as exc_info:
        submit_review(application.id, "local_officer", local_officer.id, "approve")
    assert exc_info.value.retryable is True

    fresh = Application.query.filter_by(id=application.id).one()
    assert fresh.status == "rejected"
    assert fresh.version == 2


def test_force_to_interview(applicant, super_admin):
    application = _make_application(applicant, status="vp_review", sector="Coastal")

    outcome = submit_review(
        application.public_id,
        "super_admin",
        super_admin.id,
        "force",
        ForcePayload(
            target_status="interview_scheduled",
            interview_date="2026-04-02T10:00",
            interview_location="Convention Hall",
            notes="Panel interview",
        ),
    )

    assert outcome.application.status == "interview_scheduled"
    assert outcome.application.interview_location == "Convention Hall"
    assert outcome.application.admin_notes == "Panel interview"


def test_unknown_application_is_not_found(local_officer):
    with pytest.raises(NotFound):
        submit_review("does-not-exist", "local_officer", local_officer.id, "approve")


def test_submit_application_checks_owner_and_status(applicant):
    stranger = _make_user(email="stranger@test.com")
    application = _make_application(applicant)

    with pytest.raises(InvalidRoleForState):
        submit_application(application.id, stranger.id)

    submit_application(application.id, applicant.id)
    with pytest.raises(InvalidRoleForState):
        submit_application(application.id, applicant.id)


def test_review_queue_matches_role(applicant):
    submitted = _make_application(applicant, status="submitted")
    screening = _make_application(applicant, status="local_screening")
    _make_application(applicant, status="approved")
    _make_application(applicant, status="draft")

    assert [a.id for a in review_queue("local_officer")] == [submitted.id]
    assert [a.id for a in review_queue("association_head")] == [screening.id]
    assert review_queue("vp_office") == []
    assert {a.id for a in review_queue("super_admin")} == {submitted.id, screening.id}


def test_update_draft_only_while_draft(applicant):
    application = _make_application(applicant)
    update_draft(application, {"church_name": "Grace Baptist Church"})
    assert Application.query.filter_by(id=application.id).one().church_name == "Grace Baptist Church"

    application = _make_application(applicant, status="submitted")
    with pytest.raises(InvalidRoleForState):
        update_draft(application, {"church_name": "Elsewhere"})


def test_malformed_gateway_url_keeps_transition(app, applicant, local_officer, monkeypatch):
    monkeypatch.setitem(app.config, "FROGAPI_USERNAME", "gbcc")
    monkeypatch.setitem(app.config, "FROGAPI_API_KEY", "test-key")
    monkeypatch.setitem(app.config, "FROGAPI_BASE_URL", "http://[::1")
    application = _make_application(applicant, status="submitted")

    outcome = submit_review(application.id, "local_officer", local_officer.id, "approve")

    assert outcome.application.status == "local_screening"
    assert outcome.notification_sent is False
    assert "SMS gateway request failed" in outcome.warning
    assert NotificationLog.query.one().state == "failed"


def test_notification_log_failure_keeps_transition(applicant, local_officer, monkeypatch):
    def _broken_log(*args, **kwargs):
        raise OperationalError("INSERT INTO notification_logs", {}, Exception("database is locked"))

    monkeypatch.setattr("admissions.sms_service.send_status_notification", _broken_log)
    application = _make_application(applicant, status="submitted")

    outcome = submit_review(application.id, "local_officer", local_officer.id, "approve")

    assert outcome.notification_sent is False
    assert outcome.warning
    assert outcome.application.status == "local_screening"
    assert Application.query.filter_by(id=application.id).one().status == "local_screening"
