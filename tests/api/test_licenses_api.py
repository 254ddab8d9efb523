from __future__ import annotations

from uuid import uuid4

from fastapi.testclient import TestClient

from orgaccess.api.dependencies import memory_store
from tests.conftest import (
    auth,
    seed,
    seed_license_type,
    seed_member,
    seed_org,
    seed_pool,
    seed_user,
)


def _pool_with_member(total_seats: int = 50, used_seats: int = 10):
    org = seed(seed_org(memory_store))
    lt = seed(seed_license_type(memory_store))
    pool = seed(
        seed_pool(memory_store, org, lt, total_seats=total_seats, used_seats=used_seats)
    )
    user = seed(seed_user(memory_store))
    seed(seed_member(memory_store, org, user))
    return pool, user


def test_allocate_and_deallocate(client: TestClient, admin_token: str) -> None:
    pool, user = _pool_with_member()

    resp = client.post(
        f"/v1/org-licenses/{pool.id}/seats",
        json={"user_id": str(user.id)},
        headers=auth(admin_token),
    )
    assert resp.status_code == 201, resp.text
    lic = resp.json()
    assert lic["status"] == "active"
    assert lic["org_id"] == str(pool.org_id)

    got = client.get(f"/v1/org-licenses/{pool.id}", headers=auth(admin_token)).json()
    assert got["used_seats"] == 11
    assert got["available_seats"] == 39

    resp = client.post(
        f"/v1/org-licenses/{pool.id}/seats",
        json={"user_id": str(user.id)},
        headers=auth(admin_token),
    )
    assert resp.status_code == 409

    resp = client.delete(f"/v1/user-licenses/{lic['id']}", headers=auth(admin_token))
    assert resp.status_code == 204
    got = client.get(f"/v1/org-licenses/{pool.id}", headers=auth(admin_token)).json()
    assert got["used_seats"] == 10


def test_allocate_from_full_pool(client: TestClient, admin_token: str) -> None:
    pool, user = _pool_with_member(total_seats=10, used_seats=10)

    resp = client.post(
        f"/v1/org-licenses/{pool.id}/seats",
        json={"user_id": str(user.id)},
        headers=auth(admin_token),
    )

    assert resp.status_code == 400
    assert resp.json() == {"detail": "No available seats in the license pool"}


def test_shrink_below_used(client: TestClient, admin_token: str) -> None:
    pool, _ = _pool_with_member(total_seats=40, used_seats=30)

    resp = client.patch(
        f"/v1/org-licenses/{pool.id}", json={"total_seats": 20}, headers=auth(admin_token)
    )

    assert resp.status_code == 400
    assert resp.json()["detail"] == (
        "Cannot reduce seats to 20. Currently 30 seats are in use."
    )


def test_update_pool(client: TestClient, admin_token: str) -> None:
    pool, _ = _pool_with_member()

    resp = client.patch(
        f"/v1/org-licenses/{pool.id}",
        json={"total_seats": 60, "notes": "upgraded"},
        headers=auth(admin_token),
    )

    assert resp.status_code == 200
    assert resp.json()["total_seats"] == 60
    assert resp.json()["available_seats"] == 50
    assert resp.json()["notes"] == "upgraded"


def test_missing_pool_and_license(client: TestClient, admin_token: str) -> None:
    resp = client.get(f"/v1/org-licenses/{uuid4()}", headers=auth(admin_token))
    assert resp.status_code == 404
    resp = client.delete(f"/v1/user-licenses/{uuid4()}", headers=auth(admin_token))
    assert resp.status_code == 404
    assert resp.json()["detail"] == "User license not found"
