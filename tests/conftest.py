"""
Pytest configuration and fixtures

Every test gets its own in-memory SQLite database, injected into a fresh
application through ``create_app(database=...)``. Nothing persists between
tests.
"""
import os
import sys
from uuid import uuid4

import pytest

# Settings are read at import time, so the environment must be ready first.
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-testing-at-least-32-chars")
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENVIRONMENT"] = "test"
os.environ["LOG_FORMAT"] = "text"
os.environ["LOG_LEVEL"] = "WARNING"

# Add the project root to the path so tests import the application modules
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from fastapi.testclient import TestClient

from core.database import Database, build_engine
from main import create_app

STRONG_PASSWORD = "IronForge2024"


@pytest.fixture
def database():
    db = Database(build_engine("sqlite://"))
    db.create_all()
    yield db
    db.dispose()


@pytest.fixture
def app(database):
    return create_app(database=database)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


def signup_payload(**overrides) -> dict:
    payload = {
        "full_name": "Test Athlete",
        "email": f"athlete_{uuid4().hex[:12]}@example.com",
        "password": STRONG_PASSWORD,
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def signed_up(client):
    """A freshly signed-up athlete whose cookies are held by ``client``."""
    payload = signup_payload()
    resp = client.post("/api/auth/signup", json=payload)
    assert resp.status_code == 201, resp.text
    body = resp.json()
    return {"payload": payload, "body": body, "user_id": body["user"]["id"]}


@pytest.fixture
def bearer(app):
    """
    A bearer-token client: signs up, then drops the cookies so every request
    authenticates through the Authorization header only.
    """
    with TestClient(app) as c:
        resp = c.post("/api/auth/signup", json=signup_payload())
        assert resp.status_code == 201, resp.text
        body = resp.json()
        c.cookies.clear()
        c.headers["Authorization"] = f"Bearer {body['token']}"
        yield {"client": c, "user_id": body["user"]["id"], "token": body["token"]}
