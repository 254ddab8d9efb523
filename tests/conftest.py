from __future__ import annotations

import asyncio
import os
import sys
from dataclasses import replace
from pathlib import Path

# Service and API tests run against the in-memory store.
os.environ.pop("DATABASE_URL", None)
os.environ.setdefault("APP_ENV", "test")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from orgaccess.api.dependencies import memory_store  # noqa: E402
from orgaccess.core.clock import utc_now_ts  # noqa: E402
from orgaccess.main import app  # noqa: E402
from orgaccess.models.license import (  # noqa: E402
    LicenseType,
    OrganizationLicense,
    UserLicense,
)
from orgaccess.models.org_code import OrganizationCode  # noqa: E402
from orgaccess.models.organization import Organization, OrgMembership  # noqa: E402
from orgaccess.models.user import User  # noqa: E402
from orgaccess.repos.store import InMemoryStore  # noqa: E402
from orgaccess.services import token_service  # noqa: E402

# Ensure repo root is on sys.path so `from tests.conftest import ...` works.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

DAY = 86_400


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture(autouse=True)
def reset_memory_store() -> None:
    """Clear the app's in-memory store between tests."""
    memory_store.clear()


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


def mint_token(
    username: str = "test-user",
    roles: list[str] | None = None,
) -> str:
    """Create a valid ES256 JWT for testing."""
    return token_service.create_access_token(sub=username, roles=roles)


def auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def seed(coro):
    """Run a seeding coroutine from a sync (TestClient) test."""
    return asyncio.run(coro)


@pytest.fixture
def admin_token() -> str:
    return mint_token(username="platform-admin", roles=["admin"])


# ---------------------------------------------------------------------------
# Seeding helpers (work against any store)
# ---------------------------------------------------------------------------


async def seed_user(store, email: str = "user@example.com", name: str = "") -> User:
    user = User.new(email=email, name=name)
    await store.users.add(user)
    return user


async def seed_org(store, slug: str = "acme", **kwargs) -> Organization:
    org = Organization.new(name=slug.replace("-", " ").title(), slug=slug, **kwargs)
    await store.orgs.add(org)
    return org


async def seed_member(
    store,
    org: Organization,
    user: User,
    role: str = "member",
    *,
    registration_code: str | None = None,
    is_active: bool = True,
) -> OrgMembership:
    membership = OrgMembership.new(
        org_id=org.id,
        user_id=user.id,
        org_role=role,
        registration_code=registration_code,
    )
    if not is_active:
        membership = replace(membership, is_active=False)
    await store.members.add(membership)
    return membership


async def seed_license_type(store, name: str = "Pro") -> LicenseType:
    license_type = LicenseType.new(name=name, tier="pro")
    await store.license_types.add(license_type)
    return license_type


async def seed_pool(
    store,
    org: Organization,
    license_type: LicenseType,
    *,
    total_seats: int = 10,
    used_seats: int = 0,
    end_date: int | None = None,
) -> OrganizationLicense:
    pool = OrganizationLicense.new(
        org_id=org.id,
        license_type_id=license_type.id,
        total_seats=total_seats,
        end_date=utc_now_ts() + 365 * DAY if end_date is None else end_date,
    )
    await store.pools.add(pool)
    for _ in range(used_seats):
        assert await store.pools.claim_seat(pool.id)
    return await store.pools.get_by_id(pool.id)


async def seed_grant(
    store, pool: OrganizationLicense, user: User, *, claim: bool = True
) -> UserLicense:
    """A pooled license for ``user``; claims the seat unless told otherwise."""
    if claim:
        assert await store.pools.claim_seat(pool.id)
    lic = UserLicense.from_pool(pool, user_id=user.id)
    await store.user_licenses.add(lic)
    return lic


async def seed_code(
    store,
    org: Organization,
    code: str = "ACME-2025-ABCD1234",
    *,
    current_uses: int = 0,
    status: str = "active",
    **kwargs,
) -> OrganizationCode:
    record = OrganizationCode.new(code=code, org_id=org.id, **kwargs)
    record = replace(record, current_uses=current_uses, status=status)
    await store.codes.add(record)
    return record

