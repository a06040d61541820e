from __future__ import annotations

from fastapi.testclient import TestClient


def test_token_success(client: TestClient) -> None:
    resp = client.post(
        "/api/v1/auth/token",
        data={"username": "admin", "password": "password"},
        headers={"Content-Type": "application/x-www-form-urlencoded"},
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["token_type"] == "bearer"
    assert isinstance(body["access_token"], str) and body["access_token"]


def test_token_wrong_password(client: TestClient) -> None:
    resp = client.post(
        "/api/v1/auth/token",
        data={"username": "admin", "password": "wrong"},
        headers={"Content-Type": "application/x-www-form-urlencoded"},
    )
    assert resp.status_code == 401



def test_token_carries_expiry_and_scopes(client: TestClient) -> None:
    resp = client.post(
        "/api/v1/auth/token",
        data={"username": "admin", "password": "password"},
        headers={"Content-Type": "application/x-www-form-urlencoded"},
    )
    body = resp.json()
    assert body["expires_in"] == 30 * 60
    assert body["scope"] == "readings:read readings:write"
    assert resp.headers["cache-control"] == "no-store"


def test_me(client: TestClient, auth: dict[str, str]) -> None:
    resp = client.get("/api/v1/auth/me", headers=auth)
    assert resp.status_code == 200
    assert resp.json()["username"] == "admin"


def test_read_only_token_cannot_refresh(client: TestClient) -> None:
    resp = client.post(
        "/api/v1/auth/token",
        data={"username": "admin", "password": "password", "scope": "readings:read"},
        headers={"Content-Type": "application/x-www-form-urlencoded"},
    )
    assert resp.json()["scope"] == "readings:read"
    headers = {"Authorization": f"Bearer {resp.json()['access_token']}"}

    assert client.get("/api/v1/readings/status", headers=headers).status_code == 200
    assert client.post("/api/v1/readings/refresh", headers=headers).status_code == 403


def test_garbage_token_rejected(client: TestClient) -> None:
    resp = client.get("/api/v1/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert resp.status_code == 401
