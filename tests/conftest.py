import pytest
from flask import g, request_started

from config import TestConfig
from portal import create_app
from portal.extensions import db as _db
from portal.models import Role, User

PASSWORD = "correct-horse-1"


@pytest.fixture
def app():
    app = create_app(TestConfig)

    # The app context below stays pushed for the whole test, so each test
    # request reuses it; drop Flask-Login's per-request user cache so every
    # client is resolved from its own session cookie.
    def _reset_login_cache(sender, **extra):
        g.pop("_login_user", None)

    request_started.connect(_reset_login_cache, app)
    with app.app_context():
        _db.create_all()
        yield app
        _db.session.remove()
        _db.drop_all()


@pytest.fixture
def db(app):
    return _db


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make(role=Role.EMPLOYEE, department="IT", name=None, email=None, is_available=True, is_active=True):
        counter["n"] += 1
        user = User(
            email=email or f"user{counter['n']}@example.com",
            name=name or f"{role} {counter['n']}",
            role=role,
            department=department,
            permissions=[],
            is_available=is_available,
            is_active=is_active,
        )
        user.set_password(PASSWORD)
        db.session.add(user)
        db.session.commit()
        return user

    return _make


@pytest.fixture
def client_for(app):
    """Return a test client logged in as `user`."""

    def _client(user):
        client = app.test_client()
        resp = client.post("/auth/login", json={"email": user.email, "password": PASSWORD})
        assert resp.status_code == 200, resp.get_json()
        return client

    return _client
