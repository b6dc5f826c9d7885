"""
Shared pytest fixtures for the Taskflow test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - make_user / make_node / make_edge: ORM factories (committed rows)
    - designer, manager, admin: pre-created users
    - auth_headers: build a Bearer header for a user
"""

from datetime import timedelta

import pytest

from taskflow import create_app
from taskflow.models import db as _db
from taskflow.models.auth import Role, User
from taskflow.models.workflow import Edge, Node
from taskflow.services.jwt_service import generate_access_token
from taskflow.utils.crypto import hash_password
from taskflow.utils.helpers import utcnow

TEST_PASSWORD = "s3cret-pass"


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


# ── Factories ────────────────────────────────────────────────────────────

# Hashed once per session
_PASSWORD_HASH = None


def _password_hash():
    global _PASSWORD_HASH
    if _PASSWORD_HASH is None:
        _PASSWORD_HASH = hash_password(TEST_PASSWORD)
    return _PASSWORD_HASH


@pytest.fixture()
def make_user():
    counter = {"n": 0}

    def _make(username=None, role=Role.DESIGNER, score=100.0):
        counter["n"] += 1
        user = User(
            username=username or f"user{counter['n']}",
            password_hash=_password_hash(),
            role=int(role),
            score=score,
        )
        _db.session.add(user)
        _db.session.commit()
        return user

    return _make


@pytest.fixture()
def make_node():
    def _make(assignee, *, title="Task", status="pending", due_in=timedelta(days=1),
              due_date=None, creator=None, supervisor=None, workflow=None, is_urgent=False):
        node = Node(
            title=title,
            status=status,
            due_date=due_date if due_date is not None else utcnow() + due_in,
            assignee_id=assignee.id if assignee is not None else None,
            creator_id=creator.id if creator is not None else None,
            supervisor_id=supervisor.id if supervisor is not None else None,
            workflow_id=workflow.id if workflow is not None else None,
            is_urgent=is_urgent,
        )
        _db.session.add(node)
        _db.session.commit()
        return node

    return _make


@pytest.fixture()
def make_edge():
    def _make(source, target):
        edge = Edge(source_node_id=source.id, target_node_id=target.id)
        _db.session.add(edge)
        _db.session.commit()
        return edge

    return _make


@pytest.fixture()
def designer(make_user):
    return make_user("dana", Role.DESIGNER)


@pytest.fixture()
def supervisor(make_user):
    return make_user("sam", Role.SUPERVISOR)


@pytest.fixture()
def manager(make_user):
    return make_user("morgan", Role.MANAGER)


@pytest.fixture()
def admin(make_user):
    return make_user("root", Role.ADMIN)


@pytest.fixture()
def auth_headers():
    def _headers(user):
        return {"Authorization": f"Bearer {generate_access_token(user)}"}

    return _headers


@pytest.fixture()
def user_password():
    """Plain-text password of every factory-made user."""
    return TEST_PASSWORD
