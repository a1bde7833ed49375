"""
Shared pytest fixtures for the coverage tracker test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - repos: In-memory repositories for service tests
    - register: API registration helper (adds bearer "headers")
    - manager / engineer / reviewer: registered users with tokens
"""

import pytest

from coverage_tracker import create_app
from coverage_tracker.models import db as _db
from fakes import FakeRepositories


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    application = create_app("testing")
    return application


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


@pytest.fixture()
def repos():
    """Fresh in-memory repositories."""
    return FakeRepositories()


# ── API helpers ──────────────────────────────────────────────────────────


@pytest.fixture()
def register(client):
    """Register a user via the API; returns ``{"user", "token", "headers"}``."""

    def _register(username, role="engineer", password="secret123", **fields):
        res = client.post(
            "/api/auth/register",
            json={"username": username, "password": password, "role": role, **fields},
        )
        assert res.status_code == 201, res.get_json()
        account = res.get_json()
        account["headers"] = {"Authorization": f"Bearer {account['token']}"}
        return account

    return _register


@pytest.fixture()
def manager(register):
    return register("mia.manager", role="manager", first_name="Mia", last_name="Manager")


@pytest.fixture()
def engineer(register):
    return register("eli.engineer", role="engineer", first_name="Eli", last_name="Engineer")


@pytest.fixture()
def reviewer(register):
    return register("rae.reviewer", role="reviewer", first_name="Rae", last_name="Reviewer")
