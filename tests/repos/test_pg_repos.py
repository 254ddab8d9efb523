"""SQL repos and PgStore, exercised against SQLite through aiosqlite.

Each test gets a fresh in-memory database; StaticPool keeps the single
connection alive for the lifetime of the engine.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from dataclasses import replace

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from orgaccess.core.clock import utc_now_ts
from orgaccess.db import tables  # noqa: F401  (registers the tables on Base)
from orgaccess.db.engine import Base
from orgaccess.repos.store import PgStore
from orgaccess.services import code_lifecycle, license_pool
from orgaccess.services.code_validator import validate_code
from orgaccess.services.errors import BadRequestError
from orgaccess.services.registration_service import join_with_code
from tests.conftest import (
    DAY,
    seed_code,
    seed_grant,
    seed_license_type,
    seed_member,
    seed_org,
    seed_pool,
    seed_user,
)


@pytest.fixture
async def session() -> AsyncGenerator[AsyncSession, None]:
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as s:
        yield s
    await engine.dispose()


@pytest.fixture
def pg_store(session: AsyncSession) -> PgStore:
    return PgStore(session)


# ---- seat counters ----


async def test_claim_seat_stops_at_total(pg_store) -> None:
    org = await seed_org(pg_store)
    pool = await seed_pool(pg_store, org, await seed_license_type(pg_store), total_seats=2)

    results = [await pg_store.pools.claim_seat(pool.id) for _ in range(3)]

    assert results == [True, True, False]
    assert (await pg_store.pools.get_by_id(pool.id)).used_seats == 2


async def test_release_seat_floors_at_zero(pg_store) -> None:
    org = await seed_org(pg_store)
    pool = await seed_pool(pg_store, org, await seed_license_type(pg_store), used_seats=1)

    assert await pg_store.pools.release_seat(pool.id)
    assert not await pg_store.pools.release_seat(pool.id)
    assert (await pg_store.pools.get_by_id(pool.id)).used_seats == 0


async def test_set_total_seats_guards_used(pg_store) -> None:
    org = await seed_org(pg_store)
    pool = await seed_pool(
        pg_store, org, await seed_license_type(pg_store), total_seats=10, used_seats=6
    )

    assert not await pg_store.pools.set_total_seats(pool.id, 5)
    assert await pg_store.pools.set_total_seats(pool.id, 6)
    assert (await pg_store.pools.get_by_id(pool.id)).total_seats == 6


async def test_pool_update_leaves_counters_alone(pg_store) -> None:
    org = await seed_org(pg_store)
    pool = await seed_pool(pg_store, org, await seed_license_type(pg_store), used_seats=3)

    await pg_store.pools.update(replace(pool, used_seats=0, total_seats=99, notes="x"))

    stored = await pg_store.pools.get_by_id(pool.id)
    assert (stored.used_seats, stored.total_seats, stored.notes) == (3, 10, "x")


# ---- code counters ----


async def test_increment_uses_derives_status(pg_store) -> None:
    org = await seed_org(pg_store)
    record = await seed_code(pg_store, org, max_uses=2, current_uses=1)

    updated = await pg_store.codes.increment_uses(record.id)

    assert updated.current_uses == 2
    assert updated.status == "exhausted"
    assert await pg_store.codes.increment_uses(record.id) is None


async def test_increment_uses_refuses_revoked(pg_store) -> None:
    org = await seed_org(pg_store)
    record = await seed_code(pg_store, org, status="revoked")

    assert await pg_store.codes.increment_uses(record.id) is None

    unchanged = await pg_store.codes.get_by_id(record.id)
    assert unchanged.current_uses == 0
    assert unchanged.status == "revoked"


async def test_code_listing_filters(pg_store) -> None:
    acme = await seed_org(pg_store, "acme")
    other = await seed_org(pg_store, "other")
    await seed_code(pg_store, acme, "ACME-1")
    await seed_code(pg_store, acme, "ACME-2", status="revoked")
    await seed_code(pg_store, other, "OTHER-1")

    items, total = await pg_store.codes.list_page(offset=0, limit=10, org_id=acme.id)
    assert total == 2
    assert {c.code for c in items} == {"ACME-1", "ACME-2"}

    items, total = await pg_store.codes.list_page(offset=0, limit=10, status="revoked")
    assert [c.code for c in items] == ["ACME-2"]


# ---- members and orgs ----


async def test_member_counts_and_ordering(pg_store) -> None:
    org = await seed_org(pg_store)
    member = await seed_user(pg_store, "m@example.com")
    owner = await seed_user(pg_store, "o@example.com")
    gone = await seed_user(pg_store, "g@example.com")
    await seed_member(pg_store, org, member)
    await seed_member(pg_store, org, owner, "owner")
    await seed_member(pg_store, org, gone, "owner", is_active=False)

    assert await pg_store.members.count_active(org.id) == 2
    assert await pg_store.members.count_active_owners(org.id) == 1
    listed = await pg_store.members.list_by_org(org.id)
    assert [m.user_id for m in listed] == [owner.id, member.id]
    everyone = await pg_store.members.list_by_org(org.id, include_inactive=True)
    assert len(everyone) == 3


async def test_org_search_and_hidden_inactive(pg_store) -> None:
    await seed_org(pg_store, "acme")
    gone = await seed_org(pg_store, "globex")
    await pg_store.orgs.update(replace(gone, status="inactive"))

    items, total = await pg_store.orgs.list_page(offset=0, limit=10)
    assert (total, [o.slug for o in items]) == (1, ["acme"])

    items, total = await pg_store.orgs.list_page(
        offset=0, limit=10, search="GLOB", status="inactive"
    )
    assert [o.slug for o in items] == ["globex"]


# ---- service flows through PgStore ----


async def test_allocate_and_deallocate(pg_store) -> None:
    org = await seed_org(pg_store)
    pool = await seed_pool(pg_store, org, await seed_license_type(pg_store), total_seats=1)
    user = await seed_user(pg_store)
    await seed_member(pg_store, org, user)

    lic = await license_pool.allocate_seat(pg_store, pool.id, user.id)
    assert (await pg_store.pools.get_by_id(pool.id)).used_seats == 1

    other = await seed_user(pg_store, "other@example.com")
    await seed_member(pg_store, org, other)
    with pytest.raises(BadRequestError, match="No available seats"):
        await license_pool.allocate_seat(pg_store, pool.id, other.id)

    await license_pool.deallocate_seat(pg_store, lic.id)
    assert (await pg_store.pools.get_by_id(pool.id)).used_seats == 0
    assert await pg_store.user_licenses.get_by_id(lic.id) is None


async def test_join_revoke_reactivate(pg_store) -> None:
    org = await seed_org(pg_store)
    lt = await seed_license_type(pg_store)
    pool = await seed_pool(pg_store, org, lt, total_seats=3)
    owner = await seed_user(pg_store, "owner@example.com")
    await seed_member(pg_store, org, owner, "owner")
    record = await seed_code(pg_store, org, auto_assign_license_type_id=lt.id)
    user = await seed_user(pg_store)

    joined = await join_with_code(pg_store, record.code, user.id)
    assert joined.license is not None
    assert (await pg_store.codes.get_by_id(record.id)).current_uses == 1

    revoked = await code_lifecycle.revoke_code(pg_store, record.id)
    assert revoked.affected_users == 1
    assert (await pg_store.pools.get_by_id(pool.id)).used_seats == 0
    assert not (await pg_store.members.get(org.id, user.id)).is_active

    restored = await code_lifecycle.reactivate_code(pg_store, record.id)
    assert restored.resumed_licenses == 1
    assert (await pg_store.pools.get_by_id(pool.id)).used_seats == 1
    assert (await pg_store.user_licenses.get_by_id(joined.license.id)).status == "active"


async def test_failed_transaction_rolls_back(pg_store, session) -> None:
    org = await seed_org(pg_store)
    pool = await seed_pool(pg_store, org, await seed_license_type(pg_store))
    user = await seed_user(pg_store)
    await seed_member(pg_store, org, user)
    await seed_grant(pg_store, pool, user)
    await session.commit()

    with pytest.raises(RuntimeError, match="boom"):
        async with pg_store.transaction():
            assert await pg_store.pools.claim_seat(pool.id)
            raise RuntimeError("boom")

    assert (await pg_store.pools.get_by_id(pool.id)).used_seats == 1


async def test_refused_join_status_write_is_redone(pg_store, session) -> None:
    org = await seed_org(pg_store)
    record = await seed_code(pg_store, org, valid_until=utc_now_ts() + DAY)
    user = await seed_user(pg_store)
    await session.commit()
    later = utc_now_ts() + 2 * DAY

    with pytest.raises(BadRequestError, match="Code has expired"):
        await join_with_code(pg_store, record.code, user.id, now=later)
    # The request's session transaction goes with the error.
    await session.rollback()
    assert (await pg_store.codes.get_by_id(record.id)).status == "active"

    validation = await validate_code(pg_store, record.code, now=later)

    assert validation.reason == "Code has expired"
    assert (await pg_store.codes.get_by_id(record.id)).status == "expired"
