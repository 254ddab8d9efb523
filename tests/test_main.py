from __future__ import annotations

from fastapi.testclient import TestClient


def _routes(client: TestClient) -> set[tuple[str, str]]:
    paths = client.get("/openapi.json").json()["paths"]
    return {(method.upper(), path) for path, ops in paths.items() for method in ops}


def test_all_routers_are_mounted(client: TestClient) -> None:
    routes = _routes(client)
    assert ("GET", "/health") in routes
    assert client.get("/metrics").status_code == 200
    assert ("POST", "/v1/orgs") in routes
    assert ("POST", "/v1/org-codes/join") in routes
    assert ("POST", "/v1/org-licenses/{license_id}/seats") in routes
    assert ("DELETE", "/v1/user-licenses/{user_license_id}") in routes


def test_docs_are_off_outside_dev(client: TestClient) -> None:
    assert client.get("/docs").status_code == 404


def test_domain_errors_map_to_detail_body(client: TestClient, admin_token: str) -> None:
    resp = client.get(
        "/v1/orgs/slug/ghost", headers={"Authorization": f"Bearer {admin_token}"}
    )
    assert resp.status_code == 404
    assert resp.json() == {"detail": 'Organization with slug "ghost" not found'}


def test_validation_errors_are_422(client: TestClient, admin_token: str) -> None:
    resp = client.post(
        "/v1/orgs", json={"slug": "acme"}, headers={"Authorization": f"Bearer {admin_token}"}
    )
    assert resp.status_code == 422
