"""Table-driven authentication and platform-admin checks.

Each row: method, path, caller, expected status.  Management routes need
the platform ``admin`` role; validate/join/me only need a valid token.
"""

from __future__ import annotations

from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from orgaccess.services import token_service
from tests.conftest import auth, mint_token

_ID = str(uuid4())

_ADMIN_ONLY: list[tuple[str, str]] = [
    ("POST", "/v1/orgs"),
    ("GET", "/v1/orgs"),
    ("GET", f"/v1/orgs/{_ID}"),
    ("GET", "/v1/orgs/slug/acme"),
    ("PATCH", f"/v1/orgs/{_ID}"),
    ("DELETE", f"/v1/orgs/{_ID}"),
    ("GET", f"/v1/orgs/{_ID}/members"),
    ("POST", f"/v1/orgs/{_ID}/members"),
    ("PATCH", f"/v1/orgs/{_ID}/members/{_ID}"),
    ("DELETE", f"/v1/orgs/{_ID}/members/{_ID}"),
    ("GET", f"/v1/orgs/{_ID}/licenses"),
    ("POST", f"/v1/orgs/{_ID}/licenses"),
    ("GET", f"/v1/orgs/{_ID}/seats"),
    ("GET", f"/v1/org-licenses/{_ID}"),
    ("PATCH", f"/v1/org-licenses/{_ID}"),
    ("POST", f"/v1/org-licenses/{_ID}/seats"),
    ("DELETE", f"/v1/user-licenses/{_ID}"),
    ("POST", "/v1/org-codes"),
    ("GET", "/v1/org-codes"),
    ("POST", "/v1/org-codes/use"),
    ("GET", f"/v1/org-codes/{_ID}"),
    ("PATCH", f"/v1/org-codes/{_ID}"),
    ("POST", f"/v1/org-codes/{_ID}/revoke"),
    ("POST", f"/v1/org-codes/{_ID}/reactivate"),
]


@pytest.mark.parametrize(("method", "path"), _ADMIN_ONLY)
def test_admin_routes_reject_anonymous(client: TestClient, method: str, path: str) -> None:
    resp = client.request(method, path)
    assert resp.status_code == 401


@pytest.mark.parametrize(("method", "path"), _ADMIN_ONLY)
def test_admin_routes_reject_plain_users(client: TestClient, method: str, path: str) -> None:
    resp = client.request(method, path, headers=auth(mint_token(username=str(uuid4()))))
    assert resp.status_code == 403
    assert resp.json() == {"detail": "Insufficient permissions"}


@pytest.mark.parametrize(
    ("method", "path"),
    [
        ("POST", "/v1/org-codes/validate"),
        ("POST", "/v1/org-codes/join"),
        ("GET", "/v1/orgs/me"),
    ],
)
def test_user_routes_reject_anonymous(client: TestClient, method: str, path: str) -> None:
    resp = client.request(method, path, json={"code": "X"})
    assert resp.status_code == 401


def test_expired_token_is_rejected(client: TestClient) -> None:
    token = token_service.create_access_token(sub=str(uuid4()), ttl_minutes=-1)

    resp = client.get("/v1/orgs/me", headers=auth(token))

    assert resp.status_code == 401
    assert resp.json()["detail"] == "Token expired"
    assert resp.headers["WWW-Authenticate"] == "Bearer"


def test_garbage_token_is_rejected(client: TestClient) -> None:
    resp = client.get("/v1/orgs/me", headers=auth("not.a.jwt"))

    assert resp.status_code == 401
    assert resp.json()["detail"] == "Invalid token"
