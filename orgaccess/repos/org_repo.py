from __future__ import annotations

from typing import Protocol
from uuid import UUID

from orgaccess.models.organization import Organization


class OrgRepo(Protocol):
    async def get_by_id(self, org_id: UUID) -> Organization | None: ...
    async def get_by_slug(self, slug: str) -> Organization | None: ...
    async def get_by_domain(self, domain: str) -> Organization | None: ...
    async def add(self, org: Organization) -> None: ...
    async def update(self, org: Organization) -> None: ...
    async def delete(self, org_id: UUID) -> None: ...
    async def list_page(
        self,
        *,
        offset: int,
        limit: int,
        status: str | None = None,
        search: str | None = None,
    ) -> tuple[list[Organization], int]: ...


def _matches(org: Organization, status: str | None, search: str | None) -> bool:
    if status is not None:
        if org.status != status:
            return False
    elif org.status == "inactive":
        # Deleted-in-place organizations are hidden unless asked for.
        return False
    if search:
        needle = search.lower()
        haystack = (org.name, org.slug, org.domain or "", org.contact_email or "")
        return any(needle in field.lower() for field in haystack)
    return True


class InMemoryOrgRepo:
    def __init__(self) -> None:
        self._by_id: dict[UUID, Organization] = {}
        self._by_slug: dict[str, Organization] = {}

    async def get_by_id(self, org_id: UUID) -> Organization | None:
        return self._by_id.get(org_id)

    async def get_by_slug(self, slug: str) -> Organization | None:
        return self._by_slug.get(slug)

    async def get_by_domain(self, domain: str) -> Organization | None:
        return next((o for o in self._by_id.values() if o.domain == domain), None)

    async def add(self, org: Organization) -> None:
        if org.slug in self._by_slug:
            raise ValueError("slug already exists")
        self._by_id[org.id] = org
        self._by_slug[org.slug] = org

    async def update(self, org: Organization) -> None:
        existing = self._by_id.get(org.id)
        if existing is None:
            raise KeyError("organization not found")
        self._by_slug.pop(existing.slug, None)
        self._by_id[org.id] = org
        self._by_slug[org.slug] = org

    async def delete(self, org_id: UUID) -> None:
        org = self._by_id.pop(org_id, None)
        if org is not None:
            self._by_slug.pop(org.slug, None)

    async def list_page(
        self,
        *,
        offset: int,
        limit: int,
        status: str | None = None,
        search: str | None = None,
    ) -> tuple[list[Organization], int]:
        matched = [o for o in self._by_id.values() if _matches(o, status, search)]
        matched.sort(key=lambda o: o.created_at, reverse=True)
        return matched[offset : offset + limit], len(matched)

    def snapshot(self) -> tuple:
        return dict(self._by_id), dict(self._by_slug)

    def restore(self, state: tuple) -> None:
        self._by_id, self._by_slug = state
