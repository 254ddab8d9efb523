from __future__ import annotations

from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from orgaccess.api import health


def test_health_without_database(client: TestClient) -> None:
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok", "checks": {"database": "not_configured"}}


def test_ready_without_database(client: TestClient) -> None:
    assert client.get("/ready").status_code == 200


class _BrokenEngine:
    def connect(self):
        raise OperationalError("SELECT 1", {}, ConnectionRefusedError("refused"))


def test_unreachable_database_degrades(client: TestClient, monkeypatch) -> None:
    monkeypatch.setattr(health.db, "engine", _BrokenEngine())

    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "degraded", "checks": {"database": "degraded"}}

    assert client.get("/ready").status_code == 503
