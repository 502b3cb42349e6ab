"""Tests for the phone allowlist and its change audit."""

import pytest

from admissions.allowlist.service import (
    approve_phone,
    change_approved_phone,
    check_approval,
    mark_used,
    normalize_phone,
    phone_history,
)
from admissions.models import ApprovedApplicant, AuditLog, PhoneNumberHistory
from admissions.workflow.errors import DuplicatePhone, MissingRequiredField, NotFound
from tests.conftest import _make_application


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("0557083554", "+233557083554"),
        ("055 708 3554", "+233557083554"),
        ("233557083554", "+233557083554"),
        ("+233557083554", "+233557083554"),
        (" +233 55 708 3554 ", "+233557083554"),
        ("\t0244\n123456", "+233244123456"),
    ],
)
def test_normalize_phone(raw, expected):
    assert normalize_phone(raw) == expected


def test_normalize_phone_with_other_country_code():
    assert normalize_phone("08031234567", country_code="234") == "+2348031234567"


@pytest.mark.parametrize("raw", ["", "   ", None])
def test_normalize_phone_rejects_empty(raw):
    with pytest.raises(MissingRequiredField):
        normalize_phone(raw)


def test_approve_phone_is_idempotent(super_admin):
    record, created = approve_phone("0557083554", super_admin.id, notes="Referred by association")
    assert created is True
    assert record.phone_number == "+233557083554"

    again, created_again = approve_phone("+233 557 083 554", super_admin.id)
    assert created_again is False
    assert again.id == record.id
    assert again.notes == "Referred by association"
    assert ApprovedApplicant.query.count() == 1
    assert AuditLog.query.filter_by(action="phone_approved").count() == 1


def test_approve_phone_sends_sms(super_admin, sms_gateway):
    approve_phone("0557083554", super_admin.id)

    _, kwargs = sms_gateway.call_args
    assert kwargs["json"]["destinations"] == [{"destination": "233557083554"}]
    assert "approved to apply" in kwargs["json"]["message"]


def test_check_approval(super_admin, applicant):
    assert check_approval("0557083554") == (False, "+233557083554")

    approve_phone("0557083554", super_admin.id)
    assert check_approval("055 708 3554") == (True, "+233557083554")

    application = _make_application(applicant)
    mark_used("0557083554", application.id)
    assert check_approval("0557083554") == (False, "+233557083554")


def test_change_phone_writes_history(super_admin):
    record, _ = approve_phone("0557083554", super_admin.id)

    updated, history = change_approved_phone(record.id, "0244123456", "Applicant changed networks", super_admin.id)

    assert updated.phone_number == "+233244123456"
    assert history.old_phone_number == "+233557083554"
    assert history.new_phone_number == "+233244123456"
    assert history.changed_by == super_admin.id
    assert history.reason == "Applicant changed networks"
    assert AuditLog.query.filter_by(action="phone_changed").count() == 1


def test_change_phone_history_is_newest_first(super_admin):
    record, _ = approve_phone("0557083554", super_admin.id)
    change_approved_phone(record.id, "0244123456", "first", super_admin.id)
    change_approved_phone(record.id, "0201112222", "second", super_admin.id)

    history = phone_history(record.id)
    assert [h.reason for h in history] == ["second", "first"]
    assert history[0].old_phone_number == "+233244123456"


def test_change_phone_refuses_duplicate(super_admin):
    first, _ = approve_phone("0557083554", super_admin.id)
    approve_phone("0244123456", super_admin.id)

    with pytest.raises(DuplicatePhone):
        change_approved_phone(first.id, "+233244123456", "typo", super_admin.id)

    assert PhoneNumberHistory.query.count() == 0
    assert ApprovedApplicant.query.filter_by(id=first.id).one().phone_number == "+233557083554"


def test_change_phone_unknown_record(super_admin):
    with pytest.raises(NotFound):
        change_approved_phone(9999, "0244123456", None, super_admin.id)
    with pytest.raises(NotFound):
        phone_history(9999)


def test_history_rows_are_immutable(super_admin, db):
    record, _ = approve_phone("0557083554", super_admin.id)
    _, history = change_approved_phone(record.id, "0244123456", "moved", super_admin.id)

    history.reason = "rewritten"
    with pytest.raises(ValueError, match="cannot be modified"):
        db.session.commit()
    db.session.rollback()

    db.session.delete(PhoneNumberHistory.query.one())
    with pytest.raises(ValueError, match="cannot be deleted"):
        db.session.commit()
    db.session.rollback()
    assert PhoneNumberHistory.query.one().reason == "moved"


def test_approve_phone_survives_broken_gateway(super_admin, monkeypatch):
    def _crash(phone):
        raise RuntimeError("gateway client misconfigured")

    monkeypatch.setattr("admissions.sms_service.send_allowlist_approval", _crash)

    record, created = approve_phone("0557083554", super_admin.id)

    assert created is True
    assert ApprovedApplicant.query.filter_by(id=record.id).one().phone_number == "+233557083554"


def test_change_to_current_number_records_nothing(super_admin):
    record, _ = approve_phone("0557083554", super_admin.id)

    updated, history = change_approved_phone(record.id, "055 708 3554", "Same SIM", super_admin.id)

    assert history is None
    assert updated.phone_number == "+233557083554"
    assert PhoneNumberHistory.query.count() == 0
    assert AuditLog.query.filter_by(action="phone_changed").count() == 0
