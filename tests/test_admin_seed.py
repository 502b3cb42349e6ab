"""Seed-admin password policy tests."""

import pytest

from admissions import _seed_admin_if_needed
from admissions.models import User


@pytest.fixture()
def not_debug(app, monkeypatch):
    monkeypatch.setitem(app.config, "DEBUG", False)
    return monkeypatch


def test_seed_admin_requires_password_when_not_debug(app, not_debug):
    not_debug.setenv("ADMIN_EMAIL", "seed-missing@test.com")
    not_debug.delenv("ADMIN_PASSWORD", raising=False)

    with pytest.raises(RuntimeError, match="ADMIN_PASSWORD must be set"):
        _seed_admin_if_needed(app)
    assert User.query.filter_by(role="super_admin").first() is None


@pytest.mark.parametrize("password", ["weakpassword", "ChangeMe123Now!", "Short1A"])
def test_seed_admin_rejects_weak_password(app, not_debug, password):
    not_debug.setenv("ADMIN_EMAIL", "seed-weak@test.com")
    not_debug.setenv("ADMIN_PASSWORD", password)

    with pytest.raises(RuntimeError, match="too weak"):
        _seed_admin_if_needed(app)
    assert User.query.filter_by(role="super_admin").first() is None


def test_seed_admin_accepts_strong_password(app, not_debug):
    not_debug.setenv("ADMIN_EMAIL", "seed-strong@test.com")
    not_debug.setenv("ADMIN_PASSWORD", "StrongSteward42Z")

    _seed_admin_if_needed(app)

    admin = User.query.filter_by(email="seed-strong@test.com", role="super_admin").one()
    assert admin.check_password("StrongSteward42Z")


def test_seed_admin_skips_when_super_admin_exists(app, not_debug, super_admin):
    not_debug.delenv("ADMIN_PASSWORD", raising=False)
    _seed_admin_if_needed(app)
    assert User.query.filter_by(role="super_admin").count() == 1
