"""Every response carries an X-Request-ID, generated or echoed."""

from __future__ import annotations

import logging
import uuid

import pytest
from fastapi.testclient import TestClient


def test_request_id_generated_when_not_provided(client: TestClient) -> None:
    resp = client.get("/health")
    uuid.UUID(resp.headers["x-request-id"])


def test_request_id_echoed_when_provided(client: TestClient) -> None:
    resp = client.get("/health", headers={"X-Request-ID": "my-custom-request-id-123"})
    assert resp.headers["x-request-id"] == "my-custom-request-id-123"


def test_request_id_present_on_error_responses(client: TestClient) -> None:
    resp = client.get("/v1/orgs")  # no token
    assert resp.status_code == 401
    assert resp.headers.get("x-request-id") is not None


def test_request_id_present_on_domain_errors(client: TestClient, admin_token: str) -> None:
    resp = client.get(
        f"/v1/orgs/{uuid.uuid4()}",
        headers={"Authorization": f"Bearer {admin_token}", "X-Request-ID": "trace-404"},
    )
    assert resp.status_code == 404
    assert resp.headers["x-request-id"] == "trace-404"


def test_request_summary_is_logged(
    client: TestClient, caplog: pytest.LogCaptureFixture
) -> None:
    with caplog.at_level(logging.INFO, logger="orgaccess.middleware.request_context"):
        client.get("/health", headers={"X-Request-ID": "summary-1"})

    (record,) = [r for r in caplog.records if getattr(r, "path", None) == "/health"]
    assert record.method == "GET"
    assert record.status_code == 200
    assert record.duration_ms >= 0
