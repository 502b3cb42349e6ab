"""Tests for the super-admin allowlist endpoints."""

from admissions.models import ApprovedApplicant


def test_allowlist_is_super_admin_only(local_client):
    rv = local_client.post("/allowlist", json={"phone_number": "0557083554"})
    assert rv.status_code == 403


def test_approve_then_reapprove(admin_client):
    rv = admin_client.post("/allowlist", json={"phone_number": "0557083554", "notes": "Referred"})
    assert rv.status_code == 201
    assert rv.get_json()["approved_applicant"]["phone_number"] == "+233557083554"

    rv = admin_client.post("/allowlist", json={"phone_number": "+233 557 083 554"})
    assert rv.status_code == 200
    assert rv.get_json()["created"] is False

    rv = admin_client.get("/allowlist")
    assert len(rv.get_json()["approved_applicants"]) == 1


def test_change_phone_and_history(admin_client, super_admin):
    record_id = admin_client.post("/allowlist", json={"phone_number": "0557083554"}).get_json()[
        "approved_applicant"
    ]["id"]

    rv = admin_client.post(
        f"/allowlist/{record_id}/phone", json={"new_phone_number": "0244123456", "reason": "New SIM"}
    )
    assert rv.status_code == 200
    body = rv.get_json()
    assert body["approved_applicant"]["phone_number"] == "+233244123456"
    assert body["change"]["old_phone_number"] == "+233557083554"
    assert body["change"]["changed_by"] == super_admin.id

    rv = admin_client.get(f"/allowlist/{record_id}/history")
    history = rv.get_json()["history"]
    assert len(history) == 1
    assert history[0]["reason"] == "New SIM"


def test_change_to_listed_phone_is_409(admin_client):
    first = admin_client.post("/allowlist", json={"phone_number": "0557083554"}).get_json()["approved_applicant"]
    admin_client.post("/allowlist", json={"phone_number": "0244123456"})

    rv = admin_client.post(f"/allowlist/{first['id']}/phone", json={"new_phone_number": "0244123456"})

    assert rv.status_code == 409
    assert rv.get_json()["error"] == "duplicate_phone"
    assert ApprovedApplicant.query.filter_by(id=first["id"]).one().phone_number == "+233557083554"


def test_change_unknown_record_is_404(admin_client):
    rv = admin_client.post("/allowlist/999/phone", json={"new_phone_number": "0244123456"})
    assert rv.status_code == 404


def test_check_endpoint(admin_client):
    rv = admin_client.get("/allowlist/check?phone=0557083554")
    assert rv.get_json() == {"phone_number": "+233557083554", "approved": False}

    admin_client.post("/allowlist", json={"phone_number": "0557083554"})
    rv = admin_client.get("/allowlist/check?phone=055 708 3554")
    assert rv.get_json()["approved"] is True


def test_check_without_phone_is_422(admin_client):
    rv = admin_client.get("/allowlist/check")
    assert rv.status_code == 422
