from __future__ import annotations

from dataclasses import replace

import pytest
from fastapi.testclient import TestClient

from warden.domain.errors import InfrastructureError
from warden.main import create_app


@pytest.fixture
def api_client(settings):
    """Provide a FastAPI test client with an isolated in-memory store."""
    app = create_app(settings)
    with TestClient(app) as client:
        yield client, app.state.account_service


def _signup_and_login(client, username="alice", password="secret1"):
    assert client.post("/v1/auth/signup", json={"username": username, "password": password}).status_code == 201
    response = client.post("/v1/auth/login", json={"username": username, "password": password})
    assert response.status_code == 200
    return response.json()


def _bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def test_signup_returns_public_account_shape(api_client):
    client, _ = api_client

    response = client.post("/v1/auth/signup", json={"username": "alice", "password": "secret1"})

    assert response.status_code == 201
    assert response.json() == {"username": "alice", "roles": ["ROLE_USER"], "blocked": False}


def test_signup_errors(api_client):
    client, _ = api_client
    client.post("/v1/auth/signup", json={"username": "alice", "password": "secret1"})

    weak = client.post("/v1/auth/signup", json={"username": "bob", "password": "short"})
    duplicate = client.post("/v1/auth/signup", json={"username": "alice", "password": "secret1"})

    assert weak.status_code == 400
    assert weak.json()["detail"] == "password too weak"
    assert duplicate.status_code == 409


def test_login_returns_user_and_tokens(api_client):
    client, _ = api_client

    body = _signup_and_login(client)

    assert body["user"] == {"username": "alice", "roles": ["ROLE_USER"], "blocked": False}
    assert body["accessToken"]
    assert body["refreshToken"]
    assert body["expiresIn"] == 900


def test_login_rejects_bad_password(api_client):
    client, _ = api_client
    _signup_and_login(client)

    response = client.post("/v1/auth/login", json={"username": "alice", "password": "wrong-one"})

    assert response.status_code == 401
    assert response.json()["detail"] == "invalid credentials"


def test_refresh_token_flow(api_client):
    client, _ = api_client
    issued = _signup_and_login(client)

    first = client.post("/v1/auth/refresh", json={"refreshToken": issued["refreshToken"]})
    replay = client.post("/v1/auth/refresh", json={"refreshToken": issued["refreshToken"]})

    assert first.status_code == 200
    rotated = first.json()
    assert set(rotated) == {"accessToken", "newRefreshToken", "expiresIn", "refreshExpiresIn"}
    assert rotated["newRefreshToken"] != issued["refreshToken"]
    assert replay.status_code == 401


def test_refresh_token_rejects_expired(settings):
    app = create_app(replace(settings, refresh_ttl_seconds=-30))
    with TestClient(app) as client:
        issued = _signup_and_login(client)
        resp = client.post("/v1/auth/refresh", json={"refreshToken": issued["refreshToken"]})
    assert resp.status_code == 401
    assert "expired" in resp.json()["detail"]


def test_logout_requires_access_token(api_client):
    client, service = api_client
    issued = _signup_and_login(client)

    anonymous = client.post("/v1/auth/logout", json={"refreshToken": issued["refreshToken"]})
    authorised = client.post(
        "/v1/auth/logout",
        json={"refreshToken": issued["refreshToken"]},
        headers=_bearer(issued["accessToken"]),
    )

    assert anonymous.status_code == 401
    assert authorised.status_code == 200
    assert authorised.json() == {"message": "Logged out successfully"}
    assert service.get_account("alice").refresh_tokens == set()


def test_logout_with_unknown_refresh_token_succeeds(api_client):
    client, _ = api_client
    issued = _signup_and_login(client)

    response = client.post(
        "/v1/auth/logout", json={"refreshToken": "unknown"}, headers=_bearer(issued["accessToken"])
    )

    assert response.status_code == 200


def test_admin_endpoints_require_admin_role(api_client):
    client, _ = api_client
    user = _signup_and_login(client)

    response = client.post("/v1/auth/admin/block", json={"username": "alice"}, headers=_bearer(user["accessToken"]))
    assert response.status_code == 403
    assert client.post("/v1/auth/admin/block", json={"username": "alice"}).status_code == 401


def test_admin_block_unblock_remove(api_client, grant_admin):
    client, service = api_client
    _signup_and_login(client)
    client.post("/v1/auth/signup", json={"username": "root", "password": "rootpass"})
    grant_admin(service._repository, "root")
    admin = client.post("/v1/auth/login", json={"username": "root", "password": "rootpass"}).json()
    headers = _bearer(admin["accessToken"])

    assert client.post("/v1/auth/admin/block", json={"username": "alice"}, headers=headers).json() == {
        "message": "User blocked"
    }
    assert client.post("/v1/auth/admin/block", json={"username": "alice"}, headers=headers).status_code == 409
    assert client.post("/v1/auth/admin/block", json={"username": "ghost"}, headers=headers).status_code == 404
    blocked_login = client.post("/v1/auth/login", json={"username": "alice", "password": "secret1"})
    assert blocked_login.status_code == 401

    assert client.post("/v1/auth/admin/unblock", json={"username": "alice"}, headers=headers).status_code == 200
    assert client.post("/v1/auth/login", json={"username": "alice", "password": "secret1"}).status_code == 200

    assert client.post("/v1/auth/admin/remove", json={"username": "alice"}, headers=headers).status_code == 200
    assert client.post("/v1/auth/admin/remove", json={"username": "alice"}, headers=headers).status_code == 200
    assert service.get_account("alice") is None


def test_signup_guard(settings):
    guarded = replace(settings, signup_access_token="access", signup_secret_token="secret")
    payload = {"username": "alice", "password": "secret1"}
    with TestClient(create_app(guarded)) as client:
        missing = client.post("/v1/auth/signup", json=payload)
        wrong = client.post(
            "/v1/auth/signup", json=payload, headers={"X-Access-Token": "access", "X-Secret-Token": "nope"}
        )
        accepted = client.post(
            "/v1/auth/signup", json=payload, headers={"X-Access-Token": "access", "X-Secret-Token": "secret"}
        )

    assert missing.status_code == 401
    assert missing.json()["detail"] == "missing signup tokens"
    assert wrong.json()["detail"] == "invalid signup tokens"
    assert accepted.status_code == 201


def test_store_failure_maps_to_503(api_client, monkeypatch):
    client, service = api_client

    def unavailable(username):
        raise InfrastructureError("account store unavailable")

    monkeypatch.setattr(service._repository, "find_by_username", unavailable)
    response = client.post("/v1/auth/login", json={"username": "alice", "password": "secret1"})

    assert response.status_code == 503


def test_health_and_metrics(api_client):
    client, _ = api_client
    _signup_and_login(client)

    assert client.get("/healthz").json() == {"status": "ok"}
    metrics = client.get("/metrics")
    assert metrics.status_code == 200
    assert "warden_auth_events_total" in metrics.text
