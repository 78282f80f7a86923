"""
Shared pytest fixtures for the ProSync test suite.

Provides:
    - app: Flask application in "testing" config (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test app context + table recreate (autouse)
    - client: Flask test client
    - backend: each storage backend in turn (local JSON in tmp_path, relational)
    - users_repo / projects_repo / agenda_repo: repositories over ``backend``
    - sink: in-memory sink recording every write
    - auth_headers: Authorization header of a logged-in admin
"""

import pytest

from prosync import create_app
from prosync.models import db as _db
from prosync.services.backends.local import LocalJSONBackend
from prosync.services.backends.relational import RelationalBackend
from prosync.services.change_feed import ChangeFeed
from prosync.services.repository import AgendaRepository, ProjectRepository, UserRepository

TEST_ROUNDS = 4
ADMIN_PASSWORD = "admin"


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    return create_app("testing")


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


# ── Storage fixtures ─────────────────────────────────────────────────────


@pytest.fixture(params=["local", "relational"])
def backend(request, tmp_path):
    """Every repository test runs against both backends."""
    if request.param == "local":
        return LocalJSONBackend(tmp_path / "store")
    return RelationalBackend()


@pytest.fixture()
def local_backend(tmp_path):
    return LocalJSONBackend(tmp_path / "store")


@pytest.fixture()
def feed():
    return ChangeFeed()


@pytest.fixture()
def users_repo(backend):
    return UserRepository(backend, bootstrap_password=ADMIN_PASSWORD, password_rounds=TEST_ROUNDS)


@pytest.fixture()
def projects_repo(backend, feed):
    return ProjectRepository(backend, feed=feed)


@pytest.fixture()
def agenda_repo(backend):
    return AgendaRepository(backend)


class RecordingSink:
    """Sink double: keeps every written file in memory."""

    def __init__(self):
        self.files = {}

    def write(self, filename, content):
        self.files[filename] = content
        return f"memory://{filename}"


@pytest.fixture()
def sink():
    return RecordingSink()


# ── API convenience fixtures ─────────────────────────────────────────────


@pytest.fixture()
def auth_headers(client):
    """Log in as the bootstrap admin and return the Authorization header."""
    res = client.post(
        "/api/v1/auth/login",
        json={"username": "admin", "password": ADMIN_PASSWORD},
    )
    assert res.status_code == 200, res.get_json()
    return {"Authorization": f"Bearer {res.get_json()['token']}"}
