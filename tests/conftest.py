"""
Shared pytest fixtures for the Fit-Out Dashboard test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - admin_user / regular_user / other_user: pre-created users
    - client: test client acting as the admin (X-User-Id header)
    - client_as: factory for a client acting as any user
    - project: a project created through the API by the admin
"""

import pytest

from fitout import create_app
from fitout.models import db as _db
from fitout.models.user import User


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
def session(app, _setup_db, monkeypatch):
    """Per-test: open app context, rollback after test, recreate tables."""
    # Real LLM providers stay off; the gateway falls back to the local stub
    for key in ("GEMINI_API_KEY", "ANTHROPIC_API_KEY", "OPENAI_API_KEY", "API_AUTH_ENABLED"):
        monkeypatch.delenv(key, raising=False)
    with app.app_context():
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


def _make_user(open_id, name, role="user"):
    user = User(open_id=open_id, name=name, email=f"{open_id}@example.com", role=role)
    _db.session.add(user)
    _db.session.commit()
    return user


@pytest.fixture()
def admin_user():
    return _make_user("admin-1", "Ada Admin", role="admin")


@pytest.fixture()
def regular_user():
    return _make_user("user-1", "Riley Site")


@pytest.fixture()
def other_user():
    return _make_user("user-2", "Sam Outsider")


@pytest.fixture()
def client_as(app):
    """Return a factory: ``client_as(user)`` → test client identified as ``user``."""
    def _factory(user):
        c = app.test_client()
        c.environ_base["HTTP_X_USER_ID"] = str(user.id)
        return c
    return _factory


@pytest.fixture()
def client(client_as, admin_user):
    """Flask test client acting as the admin user."""
    return client_as(admin_user)


@pytest.fixture()
def anon_client(app):
    """Flask test client with no identity."""
    return app.test_client()


# ── Convenience fixtures ─────────────────────────────────────────────────


@pytest.fixture()
def project(client):
    """Create and return a test project (JSON) via the API."""
    res = client.post("/api/v1/projects", json={
        "name": "Harbour View Office",
        "client_name": "Acme Holdings",
        "location": "Dubai Marina",
        "budget": 100000,
        "currency": "USD",
        "start_date": "2026-01-01",
        "end_date": "2026-06-30",
        "status": "in_progress",
    })
    assert res.status_code == 201
    return res.get_json()
