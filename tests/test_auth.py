from __future__ import annotations

from prf_monitor.services.auth_service import ensure_default_admin
from prf_monitor.utils.security import create_access_token, verify_token

TEST_PASSWORD = "Secret123!"


def test_login_returns_bearer_token(client, doccon_user):
    response = client.post(
        "/api/auth/login",
        data={"username": "test_doccon", "password": TEST_PASSWORD},
    )
    assert response.status_code == 200
    body = response.json()
    assert body["token_type"] == "bearer"

    claims = verify_token(body["access_token"])
    assert claims["sub"] == str(doccon_user.id)
    assert claims["role"] == "DOCCON"


def test_login_wrong_password(client, doccon_user):
    response = client.post(
        "/api/auth/login",
        data={"username": "test_doccon", "password": "nope-nope"},
    )
    assert response.status_code == 401
    assert response.json()["error"]["message"] == "Incorrect username or password"


def test_login_inactive_user(client, db, doccon_user):
    doccon_user.is_active = False
    db.commit()
    response = client.post(
        "/api/auth/login",
        data={"username": "test_doccon", "password": TEST_PASSWORD},
    )
    assert response.status_code == 401


def test_me_returns_profile(client, viewer_headers):
    response = client.get("/api/auth/me", headers=viewer_headers)
    assert response.status_code == 200
    body = response.json()
    assert body["username"] == "test_user"
    assert body["role"] == "USER"
    assert "password_hash" not in body


def test_me_requires_token(client, db):
    response = client.get("/api/auth/me")
    assert response.status_code == 401


def test_invalid_token_rejected(client, db):
    response = client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401
    assert response.json()["success"] is False


def test_token_for_deleted_user_rejected(client, db):
    token = create_access_token({"sub": "999", "username": "ghost", "role": "ADMIN"})
    response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401


def test_refresh_issues_new_token(client, admin_user, admin_headers):
    response = client.post("/api/auth/refresh", headers=admin_headers)
    assert response.status_code == 200
    claims = verify_token(response.json()["access_token"])
    assert claims["username"] == "test_admin"


def test_viewer_cannot_create_account(client, viewer_headers):
    response = client.post(
        "/api/coa/",
        json={"coa_code": "X1", "coa_name": "Blocked"},
        headers=viewer_headers,
    )
    assert response.status_code == 403


def test_ensure_default_admin_is_idempotent(db):
    first = ensure_default_admin(db)
    second = ensure_default_admin(db)
    assert first.id == second.id
    assert first.role == "ADMIN"
