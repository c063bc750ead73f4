from __future__ import annotations

import os

# The settings object is built at import time, so the environment is fixed first.
os.environ["USE_MOCK_DB"] = "true"
os.environ["MOCK_DB_PATH"] = ""
os.environ["DEBUG"] = "true"
os.environ["PASSWORD_HASH_METHOD"] = "pbkdf2:sha256:1000"
os.environ["AI_ENABLED"] = "false"
os.environ["GEMINI_API_KEY"] = ""
os.environ["NOTIFICATION_WEBHOOK_URL"] = ""
os.environ["SEED_DEMO_DATA"] = "false"
os.environ["REQUIRE_EMAIL_VERIFICATION"] = "true"

import pytest
from fastapi.testclient import TestClient

from app.config.mock_firestore import get_mock_db
from app.main import app
from app.services.geo_service import get_geo_service


@pytest.fixture(autouse=True)
def clean_store():
    get_mock_db().reset()
    get_geo_service().clear_cache()
    yield
    get_geo_service().clear_cache()


@pytest.fixture
def db():
    return get_mock_db()


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client


def auth_header(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def register_tourist(client: TestClient, email: str = "asha@example.com", name: str = "Asha Das") -> dict:
    """Register, verify and log in a tourist. Returns the login body."""
    response = client.post("/auth/register/tourist", json={
        "email": email,
        "password": "secret123",
        "name": name,
        "aadhaar_number": "1234 5678 9012",
        "trip_itinerary": "Guwahati - Shillong - Kaziranga",
    })
    assert response.status_code == 201, response.text
    token = response.json()["verification_token"]
    assert client.post("/auth/verify-email", json={"token": token}).status_code == 200

    response = client.post("/auth/login", json={"email": email, "password": "secret123"})
    assert response.status_code == 200, response.text
    return response.json()


def mock_login(client: TestClient, role: str) -> dict:
    response = client.post(f"/auth/mock-login/{role}")
    assert response.status_code == 200, response.text
    return response.json()


@pytest.fixture
def tourist(client):
    body = register_tourist(client)
    return {
        "token": body["token"],
        "headers": auth_header(body["token"]),
        "user": body["user"],
        "digital_id": body["user"]["digital_id"],
    }


@pytest.fixture
def authority(client):
    body = mock_login(client, "authority")
    return {"token": body["token"], "headers": auth_header(body["token"]), "user": body["user"]}


@pytest.fixture
def admin(client):
    body = mock_login(client, "admin")
    return {"token": body["token"], "headers": auth_header(body["token"]), "user": body["user"]}
