from __future__ import annotations

from uuid import uuid4

import pytest

from orgaccess.services import organizations_service
from orgaccess.services.errors import BadRequestError, ConflictError, NotFoundError
from tests.conftest import (
    seed_code,
    seed_grant,
    seed_license_type,
    seed_member,
    seed_org,
    seed_pool,
    seed_user,
)


async def test_create_and_fetch(store) -> None:
    org = await organizations_service.create_organization(
        store,
        name="Acme Corp",
        slug="acme-corp",
        domain="acme.example",
        max_members=25,
        created_by="admin-1",
    )

    assert org.status == "active"
    assert org.created_at > 0
    assert (await organizations_service.get_organization(store, org.id)) == org
    assert (await organizations_service.get_organization_by_slug(store, "acme-corp")) == org


@pytest.mark.parametrize("slug", ["Acme", "acme_corp", "-acme", "acme--corp", ""])
async def test_create_rejects_bad_slug(store, slug: str) -> None:
    with pytest.raises(BadRequestError):
        await organizations_service.create_organization(store, name="X", slug=slug)


async def test_create_duplicate_slug(store) -> None:
    await seed_org(store, "acme")
    with pytest.raises(ConflictError, match="slug already exists"):
        await organizations_service.create_organization(store, name="Other", slug="acme")


async def test_create_duplicate_domain(store) -> None:
    await organizations_service.create_organization(
        store, name="A", slug="a", domain="shared.example"
    )
    with pytest.raises(ConflictError, match="domain already exists"):
        await organizations_service.create_organization(
            store, name="B", slug="b", domain="shared.example"
        )


async def test_get_missing(store) -> None:
    with pytest.raises(NotFoundError):
        await organizations_service.get_organization(store, uuid4())
    with pytest.raises(NotFoundError, match='slug "ghost"'):
        await organizations_service.get_organization_by_slug(store, "ghost")


async def test_list_hides_inactive_and_searches(store) -> None:
    await seed_org(store, "acme")
    await seed_org(store, "globex", contact_email="ops@globex.example")
    gone = await seed_org(store, "initech")
    await organizations_service.update_organization(store, gone.id, status="inactive")

    everyone = await organizations_service.list_organizations(store)
    assert {o.slug for o in everyone.items} == {"acme", "globex"}
    assert everyone.total == 2

    inactive = await organizations_service.list_organizations(store, status="inactive")
    assert [o.slug for o in inactive.items] == ["initech"]

    found = await organizations_service.list_organizations(store, search="GLOBEX.EXAMPLE")
    assert [o.slug for o in found.items] == ["globex"]


async def test_list_paginates(store) -> None:
    for i in range(5):
        await seed_org(store, f"org-{i}")

    page = await organizations_service.list_organizations(store, page=3, page_size=2)

    assert page.total == 5
    assert page.total_pages == 3
    assert len(page.items) == 1


async def test_list_rejects_unknown_status(store) -> None:
    with pytest.raises(BadRequestError):
        await organizations_service.list_organizations(store, status="archived")


async def test_update_fields(store) -> None:
    org = await seed_org(store)

    updated = await organizations_service.update_organization(
        store, org.id, name="Acme Inc", max_members=5, contact_name="Wile"
    )

    assert updated.name == "Acme Inc"
    assert updated.max_members == 5
    assert updated.contact_name == "Wile"
    assert updated.slug == org.slug


async def test_update_domain_taken_by_other_org(store) -> None:
    await seed_org(store, "a", domain="a.example")
    b = await seed_org(store, "b")

    with pytest.raises(ConflictError):
        await organizations_service.update_organization(store, b.id, domain="a.example")


async def test_update_rejects_negative_cap(store) -> None:
    org = await seed_org(store)
    with pytest.raises(BadRequestError):
        await organizations_service.update_organization(store, org.id, max_members=-1)


async def test_delete_refused_with_active_members(store) -> None:
    org = await seed_org(store)
    for i in range(3):
        await seed_member(store, org, await seed_user(store, f"u{i}@example.com"))

    with pytest.raises(
        BadRequestError, match="Cannot delete organization with 3 active members"
    ):
        await organizations_service.delete_organization(store, org.id)

    assert await store.orgs.get_by_id(org.id) is not None


async def test_delete_empty_org(store) -> None:
    org = await seed_org(store)
    await seed_member(store, org, await seed_user(store), is_active=False)

    await organizations_service.delete_organization(store, org.id)

    assert await store.orgs.get_by_id(org.id) is None


async def test_force_delete_removes_everything(store) -> None:
    org = await seed_org(store)
    pool = await seed_pool(store, org, await seed_license_type(store))
    record = await seed_code(store, org)
    user = await seed_user(store)
    await seed_member(store, org, user, "owner")
    lic = await seed_grant(store, pool, user)

    await organizations_service.delete_organization(store, org.id, force=True)

    assert await store.orgs.get_by_id(org.id) is None
    assert await store.pools.get_by_id(pool.id) is None
    assert await store.codes.get_by_id(record.id) is None
    assert await store.user_licenses.get_by_id(lic.id) is None
    assert await store.members.get(org.id, user.id) is None
    assert await store.users.get_by_id(user.id) is not None
