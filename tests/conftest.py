import tempfile
from unittest.mock import patch

import pytest
from flask import g, request_started

from admissions.models import Application, ApplicationDocument, User
from admissions.models import db as _db
from admissions.workflow.documents import required_documents


@pytest.fixture(scope="session")
def app():
    """Create a Flask application configured for testing (session-scoped)."""
    with (
        patch("admissions.upgrade"),
        patch("admissions._seed_admin_if_needed"),
    ):
        from admissions import create_app

        _app = create_app("testing")

    # Keep uploads out of the project tree
    _app.config["DOCUMENT_STORAGE"] = tempfile.mkdtemp()

    # Requests reuse the test's app context, so each role client must not
    # inherit the user Flask-Login cached on ``g`` for the previous request.
    def _reset_login_cache(sender, **extra):
        g.pop("_login_user", None)

    request_started.connect(_reset_login_cache, _app, weak=False)

    yield _app


@pytest.fixture(autouse=True)
def db(app):
    """Create all tables before each test, drop them after."""
    with app.app_context():
        _db.create_all()
        yield _db
        _db.session.remove()
        _db.drop_all()


@pytest.fixture()
def client(app):
    """Unauthenticated test client."""
    return app.test_client()


def _make_user(
    email="applicant@test.com",
    password="TestPass1",
    role="applicant",
    display_name="Test Applicant",
    is_active_account=True,
):
    """Create and persist a User. Callable multiple times per test."""
    user = User(
        email=email,
        display_name=display_name,
        role=role,
        is_active_account=is_active_account,
    )
    user.set_password(password)
    _db.session.add(user)
    _db.session.commit()
    return user


def _make_application(user=None, status="draft", **overrides):
    """Create and persist an Application in any status."""
    fields = {
        "full_name": "Kwame Mensah",
        "email": "kwame@test.com",
        "phone": "+233557083554",
        "admission_level": "licensing",
        "marital_status": "single",
        "church_name": "Calvary Baptist Church",
        "fellowship": "Accra Fellowship",
        "association": "Greater Accra Association",
        "status": status,
    }
    fields.update(overrides)
    application = Application(user_id=user.id if user is not None else None, **fields)
    _db.session.add(application)
    _db.session.commit()
    return application


def _attach_required_documents(application):
    """Mark every required document as uploaded."""
    for document_type in required_documents(application.admission_level, application.marital_status):
        _db.session.add(
            ApplicationDocument(
                application_id=application.id,
                document_type=document_type,
                document_name=f"{document_type}.pdf",
                storage_ref=f"{application.public_id}/{document_type}.pdf",
            )
        )
    _db.session.commit()


def _login(client, email="applicant@test.com", password="TestPass1"):
    """Log in via the real /login route and return the response."""
    return client.post("/login", json={"email": email, "password": password})


@pytest.fixture()
def applicant(db):
    return _make_user()


@pytest.fixture()
def local_officer(db):
    return _make_user(email="local@test.com", role="local_officer", display_name="Local Officer")


@pytest.fixture()
def association_head(db):
    return _make_user(email="association@test.com", role="association_head", display_name="Association Head")


@pytest.fixture()
def vp_office(db):
    return _make_user(email="vp@test.com", role="vp_office", display_name="VP Office")


@pytest.fixture()
def super_admin(db):
    return _make_user(email="admin@test.com", password="AdminPass1", role="super_admin", display_name="Admin")


@pytest.fixture()
def applicant_client(app, applicant):
    client = app.test_client()
    _login(client, applicant.email, "TestPass1")
    return client


@pytest.fixture()
def local_client(app, local_officer):
    client = app.test_client()
    _login(client, local_officer.email, "TestPass1")
    return client


@pytest.fixture()
def association_client(app, association_head):
    client = app.test_client()
    _login(client, association_head.email, "TestPass1")
    return client


@pytest.fixture()
def vp_client(app, vp_office):
    client = app.test_client()
    _login(client, vp_office.email, "TestPass1")
    return client


@pytest.fixture()
def admin_client(app, super_admin):
    client = app.test_client()
    _login(client, super_admin.email, "AdminPass1")
    return client


@pytest.fixture()
def sms_gateway(app, monkeypatch):
    """Configure gateway credentials and capture outgoing SMS requests."""
    monkeypatch.setitem(app.config, "FROGAPI_USERNAME", "gbcc")
    monkeypatch.setitem(app.config, "FROGAPI_API_KEY", "test-key")
    with patch("admissions.sms_service.httpx.post") as mock_post:
        mock_post.return_value.json.return_value = {"status": "ACCEPTED", "message": "queued"}
        mock_post.return_value.raise_for_status.return_value = None
        yield mock_post
