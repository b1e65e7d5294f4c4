import os
from pathlib import Path

import bcrypt
import pytest

# Configure a dedicated SQLite DB and admin credentials before importing the app.
TEST_DB_PATH = Path(__file__).resolve().parent / "pytest_enquiries.db"
ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "correct horse battery staple"
AUTH_SECRET = "test-auth-secret-0123456789abcdefghij"

os.environ["FLASK_ENV"] = "testing"
os.environ["DATABASE_URL"] = f"sqlite:///{TEST_DB_PATH.as_posix()}"
os.environ["AUTH_SECRET"] = AUTH_SECRET
os.environ["ADMIN_EMAIL"] = ADMIN_EMAIL
os.environ["ADMIN_PASSWORD_HASH"] = bcrypt.hashpw(
    ADMIN_PASSWORD.encode("utf-8"), bcrypt.gensalt(rounds=4)
).decode("utf-8")
os.environ.pop("ADMIN_PASSWORD_HASH_B64", None)

from app import app as _flask_app, db
from services.auth_service import Role, SessionUser, sign_session


@pytest.fixture
def flask_app():
    _flask_app.config["TESTING"] = True

    with _flask_app.app_context():
        db.session.remove()
        db.drop_all()
        db.create_all()
        yield _flask_app
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


@pytest.fixture
def client(flask_app):
    with flask_app.test_client() as client:
        yield client


@pytest.fixture
def login_as(client, flask_app):
    """Put a signed session cookie for the given role on the test client."""

    def _login_as(role, email="staff@example.com"):
        token = sign_session(
            SessionUser(email=email, role=Role(role)),
            flask_app.config["AUTH_SECRET"],
        )
        client.set_cookie(flask_app.config["SESSION_TOKEN_COOKIE"], token)
        return token

    return _login_as


GENERAL_ENQUIRY = {
    "mode": "GENERAL",
    "type": "QUICK_QUESTION",
    "name": "Jane",
    "email": "jane@example.com",
    "message": "Hi",
}

FLEET_ENQUIRY = {
    "mode": "FLEET",
    "type": "FLEET_ENQUIRY",
    "name": "Bob",
    "phone": "07000000000",
    "message": "Fleet of 10 vans",
}

PART_EX_ENQUIRY = {
    "mode": "PART_EX",
    "type": "PART_EXCHANGE",
    "name": "Priya",
    "email": "priya@example.com",
    "message": "What would you give me for my Transit?",
    "reg": "AB12 CDE",
    "mileage": "84000",
}


@pytest.fixture
def create_enquiry(client):
    def _create(**overrides):
        payload = {**GENERAL_ENQUIRY, **overrides}
        resp = client.post("/api/enquiries", json=payload)
        assert resp.status_code == 201, resp.get_json()
        return resp.get_json()["enquiry"]

    return _create
