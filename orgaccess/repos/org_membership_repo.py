from __future__ import annotations

from typing import Protocol
from uuid import UUID

from orgaccess.models.organization import ORG_ROLES, OrgMembership


class OrgMembershipRepo(Protocol):
    async def get(self, org_id: UUID, user_id: UUID) -> OrgMembership | None: ...
    async def add(self, membership: OrgMembership) -> None: ...
    async def update(self, membership: OrgMembership) -> None: ...
    async def list_by_org(
        self, org_id: UUID, *, include_inactive: bool = False
    ) -> list[OrgMembership]: ...
    async def list_by_registration_code(
        self, org_id: UUID, code: str, *, is_active: bool
    ) -> list[OrgMembership]: ...
    async def get_active_for_user(self, user_id: UUID) -> OrgMembership | None: ...
    async def count_active(self, org_id: UUID) -> int: ...
    async def count_active_owners(self, org_id: UUID) -> int: ...
    async def delete_by_org(self, org_id: UUID) -> None: ...


def member_sort_key(m: OrgMembership) -> tuple[int, int]:
    """Owners first, then admins, then members; oldest first within a role."""
    return ORG_ROLES.index(m.org_role), m.joined_at


class InMemoryOrgMembershipRepo:
    def __init__(self) -> None:
        self._store: dict[tuple[UUID, UUID], OrgMembership] = {}

    async def get(self, org_id: UUID, user_id: UUID) -> OrgMembership | None:
        return self._store.get((org_id, user_id))

    async def add(self, membership: OrgMembership) -> None:
        key = (membership.org_id, membership.user_id)
        if key in self._store:
            raise ValueError("membership already exists")
        self._store[key] = membership

    async def update(self, membership: OrgMembership) -> None:
        key = (membership.org_id, membership.user_id)
        if key not in self._store:
            raise KeyError("membership not found")
        self._store[key] = membership

    async def list_by_org(
        self, org_id: UUID, *, include_inactive: bool = False
    ) -> list[OrgMembership]:
        members = [
            m
            for m in self._store.values()
            if m.org_id == org_id and (include_inactive or m.is_active)
        ]
        return sorted(members, key=member_sort_key)

    async def list_by_registration_code(
        self, org_id: UUID, code: str, *, is_active: bool
    ) -> list[OrgMembership]:
        return [
            m
            for m in self._store.values()
            if m.org_id == org_id
            and m.registration_code == code
            and m.is_active == is_active
        ]

    async def get_active_for_user(self, user_id: UUID) -> OrgMembership | None:
        active = [
            m for m in self._store.values() if m.user_id == user_id and m.is_active
        ]
        return min(active, key=lambda m: m.joined_at, default=None)

    async def count_active(self, org_id: UUID) -> int:
        return sum(1 for m in self._store.values() if m.org_id == org_id and m.is_active)

    async def count_active_owners(self, org_id: UUID) -> int:
        return sum(
            1
            for m in self._store.values()
            if m.org_id == org_id and m.is_active and m.is_owner
        )

    async def delete_by_org(self, org_id: UUID) -> None:
        for key in [k for k in self._store if k[0] == org_id]:
            del self._store[key]

    def snapshot(self) -> dict:
        return dict(self._store)

    def restore(self, state: dict) -> None:
        self._store = state
