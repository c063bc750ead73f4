from __future__ import annotations

from conftest import auth_header, mock_login, register_tourist


def register(client, email="admin@example.com", password="secret123", role="admin"):
    return client.post("/auth/register", json={
        "email": email,
        "password": password,
        "name": "Meera Sen",
        "role": role,
    })


def test_register_returns_unverified_user(client) -> None:
    response = register(client)
    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    assert body["user"]["role"] == "admin"
    assert body["user"]["is_verified"] is False
    assert body["verification_token"]


def test_register_rejects_bad_input(client) -> None:
    assert register(client, email="not-an-email").status_code == 400
    assert register(client, password="123").status_code == 400
    assert register(client, role="authority").status_code == 400

    assert register(client).status_code == 201
    duplicate = register(client, email="ADMIN@example.com")
    assert duplicate.status_code == 400
    assert "already registered" in duplicate.json()["detail"]


def test_login_requires_verified_email(client) -> None:
    register(client)
    response = client.post("/auth/login", json={"email": "admin@example.com", "password": "secret123"})
    assert response.status_code == 403
    assert response.json()["detail"] == "EMAIL_NOT_VERIFIED"


def test_verify_then_login(client) -> None:
    token = register(client).json()["verification_token"]

    verified = client.post("/auth/verify-email", json={"token": token})
    assert verified.status_code == 200
    assert verified.json()["user"]["is_verified"] is True
    assert client.get("/auth/email-verified", params={"email": "admin@example.com"}).json()["is_verified"]

    # Tokens are single use
    assert client.post("/auth/verify-email", json={"token": token}).status_code == 400

    response = client.post("/auth/login", json={"email": "admin@example.com", "password": "secret123"})
    assert response.status_code == 200
    body = response.json()
    assert body["token"]
    assert body["redirect_url"] == "/admin/dashboard"

    me = client.get("/auth/me", headers=auth_header(body["token"]))
    assert me.status_code == 200
    assert me.json()["email"] == "admin@example.com"


def test_wrong_password_is_unauthorized(client) -> None:
    token = register(client).json()["verification_token"]
    client.post("/auth/verify-email", json={"token": token})
    response = client.post("/auth/login", json={"email": "admin@example.com", "password": "wrong-pass"})
    assert response.status_code == 401


def test_me_requires_session(client) -> None:
    assert client.get("/auth/me").status_code == 401
    assert client.get("/auth/me", headers=auth_header("bogus")).status_code == 401


def test_logout_ends_session(client) -> None:
    token = register_tourist(client)["token"]
    assert client.get("/auth/me", headers=auth_header(token)).status_code == 200
    client.post("/auth/logout", headers=auth_header(token))
    assert client.get("/auth/me", headers=auth_header(token)).status_code == 401


def test_tourist_registration_issues_digital_id(client) -> None:
    body = register_tourist(client)
    digital_id = body["user"]["digital_id"]
    assert digital_id
    assert body["redirect_url"] == "/tourist/dashboard"

    verify = client.get(f"/auth/verify-digital-id/{digital_id}").json()
    assert verify["valid"] is True
    assert client.get("/auth/verify-digital-id/unknown").json()["valid"] is False


def test_tourist_registration_rejects_bad_aadhaar(client) -> None:
    response = client.post("/auth/register/tourist", json={
        "email": "ravi@example.com",
        "password": "secret123",
        "name": "Ravi",
        "aadhaar_number": "1234",
    })
    assert response.status_code == 400


def test_password_reset_flow(client) -> None:
    body = register_tourist(client)
    old_token = body["token"]

    reset_token = client.post("/auth/forgot-password", json={"email": "asha@example.com"}).json()["verification_token"]
    assert reset_token

    short = client.post("/auth/reset-password", json={"token": reset_token, "new_password": "short"})
    assert short.status_code == 400

    response = client.post("/auth/reset-password", json={"token": reset_token, "new_password": "new-secret-1"})
    assert response.status_code == 200

    # Sessions issued before the reset are gone
    assert client.get("/auth/me", headers=auth_header(old_token)).status_code == 401
    assert client.post("/auth/login", json={"email": "asha@example.com", "password": "secret123"}).status_code == 401
    assert client.post("/auth/login", json={"email": "asha@example.com", "password": "new-secret-1"}).status_code == 200


def test_forgot_password_for_unknown_email_is_silent(client) -> None:
    response = client.post("/auth/forgot-password", json={"email": "nobody@example.com"})
    assert response.status_code == 200
    assert response.json()["verification_token"] is None


def test_resend_verification(client) -> None:
    register(client)
    response = client.post("/auth/resend-verification", json={"email": "admin@example.com"})
    assert response.status_code == 200
    token = response.json()["verification_token"]
    assert client.post("/auth/verify-email", json={"token": token}).status_code == 200


def test_admin_creates_authority(client, admin, tourist) -> None:
    payload = {
        "email": "officer@police.example.com",
        "password": "officer-pass",
        "name": "Inspector Bora",
        "organization": "Assam Police",
    }
    assert client.post("/auth/authorities", json=payload, headers=tourist["headers"]).status_code == 403

    response = client.post("/auth/authorities", json=payload, headers=admin["headers"])
    assert response.status_code == 201
    assert response.json()["role"] == "authority"
    assert response.json()["is_verified"] is True

    login = client.post("/auth/login", json={"email": payload["email"], "password": payload["password"]})
    assert login.status_code == 200
    assert login.json()["redirect_url"] == "/authority/dashboard"


def test_mock_login_reuses_user(client) -> None:
    first = mock_login(client, "authority")
    second = mock_login(client, "authority")
    assert first["user"]["id"] == second["user"]["id"]
    assert first["token"] != second["token"]
    assert client.post("/auth/mock-login/superuser").status_code == 400
