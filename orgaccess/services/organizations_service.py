from __future__ import annotations

import logging
import re
from dataclasses import replace
from uuid import UUID

from orgaccess.models.organization import ORG_STATUSES, Organization
from orgaccess.models.pagination import Page
from orgaccess.repos.store import Store
from orgaccess.services.errors import BadRequestError, ConflictError, NotFoundError

logger = logging.getLogger(__name__)

_SLUG_RE = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")


def _check_slug(slug: str) -> None:
    if not _SLUG_RE.match(slug):
        raise BadRequestError(
            "slug must be lowercase letters, digits and single hyphens"
        )


def _check_status(status: str) -> None:
    if status not in ORG_STATUSES:
        raise BadRequestError(f"invalid organization status {status!r}")


async def create_organization(
    store: Store,
    *,
    name: str,
    slug: str,
    domain: str | None = None,
    max_members: int = 0,
    contact_email: str | None = None,
    contact_name: str | None = None,
    created_by: str | None = None,
) -> Organization:
    _check_slug(slug)
    if max_members < 0:
        raise BadRequestError("max_members must be 0 (unlimited) or positive")

    async with store.transaction():
        if await store.orgs.get_by_slug(slug) is not None:
            raise ConflictError("An organization with this slug already exists")
        if domain and await store.orgs.get_by_domain(domain) is not None:
            raise ConflictError("An organization with this domain already exists")

        org = Organization.new(
            name=name,
            slug=slug,
            domain=domain,
            max_members=max_members,
            contact_email=contact_email,
            contact_name=contact_name,
            created_by=created_by,
        )
        await store.orgs.add(org)

    logger.info(
        "Created organization %s (%s)",
        org.name,
        org.slug,
        extra={"org_id": str(org.id), "actor_id": created_by},
    )
    return org


async def get_organization(store: Store, org_id: UUID) -> Organization:
    org = await store.orgs.get_by_id(org_id)
    if org is None:
        raise NotFoundError(f'Organization with ID "{org_id}" not found')
    return org


async def get_organization_by_slug(store: Store, slug: str) -> Organization:
    org = await store.orgs.get_by_slug(slug)
    if org is None:
        raise NotFoundError(f'Organization with slug "{slug}" not found')
    return org


async def list_organizations(
    store: Store,
    *,
    page: int = 1,
    page_size: int = 20,
    status: str | None = None,
    search: str | None = None,
) -> Page[Organization]:
    """Newest first.  Inactive organizations are left out unless asked for."""
    if status is not None:
        _check_status(status)
    items, total = await store.orgs.list_page(
        offset=(page - 1) * page_size, limit=page_size, status=status, search=search
    )
    return Page(items=items, page=page, page_size=page_size, total=total)


async def update_organization(
    store: Store,
    org_id: UUID,
    *,
    name: str | None = None,
    domain: str | None = None,
    status: str | None = None,
    max_members: int | None = None,
    contact_email: str | None = None,
    contact_name: str | None = None,
) -> Organization:
    if status is not None:
        _check_status(status)
    if max_members is not None and max_members < 0:
        raise BadRequestError("max_members must be 0 (unlimited) or positive")

    async with store.transaction():
        org = await get_organization(store, org_id)

        if domain and domain != org.domain:
            other = await store.orgs.get_by_domain(domain)
            if other is not None and other.id != org_id:
                raise ConflictError("An organization with this domain already exists")

        updated = replace(
            org,
            name=name if name is not None else org.name,
            domain=domain if domain is not None else org.domain,
            status=status if status is not None else org.status,
            max_members=max_members if max_members is not None else org.max_members,
            contact_email=(
                contact_email if contact_email is not None else org.contact_email
            ),
            contact_name=contact_name if contact_name is not None else org.contact_name,
        )
        await store.orgs.update(updated)

    logger.info("Updated organization %s", updated.name, extra={"org_id": str(org_id)})
    return updated


async def delete_organization(store: Store, org_id: UUID, *, force: bool = False) -> None:
    """Hard delete.  Refused while active members remain unless forced."""
    async with store.transaction():
        org = await get_organization(store, org_id)

        active = await store.members.count_active(org_id)
        if active > 0 and not force:
            logger.warning(
                "Refused to delete org=%s with %d active member(s)",
                org.slug,
                active,
                extra={"org_id": str(org_id)},
            )
            raise BadRequestError(
                f"Cannot delete organization with {active} active members. "
                "Use force delete to remove all members."
            )

        await store.user_licenses.delete_by_org(org_id)
        await store.pools.delete_by_org(org_id)
        await store.codes.delete_by_org(org_id)
        await store.members.delete_by_org(org_id)
        await store.orgs.delete(org_id)

    logger.info(
        "Permanently deleted organization %s (with %d members)",
        org.name,
        active,
        extra={"org_id": str(org_id)},
    )
