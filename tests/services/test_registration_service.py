from __future__ import annotations

from dataclasses import replace

import pytest

from orgaccess.services import code_lifecycle, registration_service
from orgaccess.services.code_validator import validate_code
from orgaccess.services.errors import BadRequestError, ConflictError
from orgaccess.services.license_pool import allocate_seat
from orgaccess.services.registration_service import join_with_code
from tests.conftest import (
    seed_code,
    seed_license_type,
    seed_member,
    seed_org,
    seed_pool,
    seed_user,
)


async def test_join_adds_member_and_counts_use(store) -> None:
    org = await seed_org(store)
    record = await seed_code(store, org, default_role="admin", max_uses=10)
    user = await seed_user(store)

    result = await join_with_code(store, "acme-2025-abcd1234", user.id)

    assert result.organization.id == org.id
    assert result.membership.org_role == "admin"
    assert result.membership.registration_code == record.code
    assert result.license is None
    assert (await store.codes.get_by_id(record.id)).current_uses == 1


async def test_join_auto_assigns_license(store) -> None:
    org = await seed_org(store)
    lt = await seed_license_type(store)
    pool = await seed_pool(store, org, lt, total_seats=5)
    await seed_code(store, org, auto_assign_license_type_id=lt.id)
    user = await seed_user(store)

    result = await join_with_code(store, "ACME-2025-ABCD1234", user.id)

    assert result.license is not None
    assert result.license.license_type_id == lt.id
    assert (await store.pools.get_by_id(pool.id)).used_seats == 1


async def test_join_succeeds_when_pool_is_full(store) -> None:
    org = await seed_org(store)
    lt = await seed_license_type(store)
    pool = await seed_pool(store, org, lt, total_seats=1, used_seats=1)
    await seed_code(store, org, auto_assign_license_type_id=lt.id)
    user = await seed_user(store)

    result = await join_with_code(store, "ACME-2025-ABCD1234", user.id)

    assert result.license is None
    assert (await store.members.get(org.id, user.id)).is_active
    assert (await store.pools.get_by_id(pool.id)).used_seats == 1


async def test_join_succeeds_when_user_already_holds_type(store) -> None:
    org = await seed_org(store)
    lt = await seed_license_type(store)
    other_org = await seed_org(store, "other")
    other_pool = await seed_pool(store, other_org, lt)
    pool = await seed_pool(store, org, lt)
    await seed_code(store, org, auto_assign_license_type_id=lt.id)
    user = await seed_user(store)
    await seed_member(store, other_org, user)
    await allocate_seat(store, other_pool.id, user.id)

    result = await join_with_code(store, "ACME-2025-ABCD1234", user.id)

    assert result.license is None
    assert (await store.pools.get_by_id(pool.id)).used_seats == 0


async def test_join_without_active_pool(store) -> None:
    org = await seed_org(store)
    lt = await seed_license_type(store)
    await seed_code(store, org, auto_assign_license_type_id=lt.id)
    user = await seed_user(store)

    result = await join_with_code(store, "ACME-2025-ABCD1234", user.id)

    assert result.license is None


@pytest.mark.parametrize(
    ("status", "reason"),
    [("revoked", "Code is revoked"), ("exhausted", "Code has reached maximum uses")],
)
async def test_join_with_unusable_code(store, status: str, reason: str) -> None:
    org = await seed_org(store)
    uses = 1 if status == "exhausted" else 0
    await seed_code(store, org, max_uses=1, current_uses=uses, status=status)
    user = await seed_user(store)

    with pytest.raises(BadRequestError, match=f"Invalid organization code: {reason}"):
        await join_with_code(store, "ACME-2025-ABCD1234", user.id)

    assert await store.members.get(org.id, user.id) is None


async def test_join_unknown_code(store) -> None:
    user = await seed_user(store)
    with pytest.raises(BadRequestError, match="Invalid organization code"):
        await join_with_code(store, "NOPE", user.id)


async def test_failed_membership_does_not_count_use(store) -> None:
    org = await seed_org(store)
    record = await seed_code(store, org, max_uses=5)
    user = await seed_user(store)
    await seed_member(store, org, user)

    with pytest.raises(ConflictError):
        await join_with_code(store, record.code, user.id)

    assert (await store.codes.get_by_id(record.id)).current_uses == 0


async def test_join_rolls_back_membership_when_use_fails(store, monkeypatch) -> None:
    org = await seed_org(store)
    record = await seed_code(store, org, max_uses=5)
    user = await seed_user(store)

    async def lost_race(code_id):
        return None

    monkeypatch.setattr(store.codes, "increment_uses", lost_race)

    with pytest.raises(BadRequestError, match="Code has reached maximum uses"):
        await join_with_code(store, record.code, user.id)

    assert await store.members.get(org.id, user.id) is None


async def test_join_refused_when_revoked_after_validation(store, monkeypatch) -> None:
    org = await seed_org(store)
    record = await seed_code(store, org)
    user = await seed_user(store)

    async def validate_then_revoke(store_, code, *, now=None):
        validation = await validate_code(store_, code, now=now)
        await code_lifecycle.revoke_code(store_, record.id)
        return validation

    monkeypatch.setattr(registration_service, "validate_code", validate_then_revoke)

    with pytest.raises(BadRequestError, match="Code is revoked"):
        await join_with_code(store, record.code, user.id)

    assert await store.members.get(org.id, user.id) is None
    after = await store.codes.get_by_id(record.id)
    assert after.status == "revoked"
    assert after.current_uses == 0


async def test_join_reactivates_former_member(store) -> None:
    org = await seed_org(store)
    record = await seed_code(store, org)
    user = await seed_user(store)
    old = await seed_member(store, org, user, is_active=False)

    result = await join_with_code(store, record.code, user.id)

    assert result.membership.id == old.id
    assert result.membership.is_active
    assert result.membership.registration_code == record.code


async def test_join_respects_member_cap(store) -> None:
    org = await seed_org(store, max_members=1)
    record = await seed_code(store, org)
    await seed_member(store, org, await seed_user(store, "first@example.com"))
    user = await seed_user(store, "second@example.com")

    with pytest.raises(BadRequestError, match="maximum member limit"):
        await join_with_code(store, record.code, user.id)

    assert (await store.codes.get_by_id(record.id)).current_uses == 0


async def test_join_into_suspended_org(store) -> None:
    org = await seed_org(store)
    record = await seed_code(store, org)
    await store.orgs.update(replace(org, status="suspended"))
    user = await seed_user(store)

    with pytest.raises(BadRequestError, match="Organization is not active"):
        await join_with_code(store, record.code, user.id)
