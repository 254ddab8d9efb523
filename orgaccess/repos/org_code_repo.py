from __future__ import annotations

from dataclasses import replace
from typing import Protocol
from uuid import UUID

from orgaccess.models.org_code import OrganizationCode, derive_code_status


class OrgCodeRepo(Protocol):
    async def get_by_id(self, code_id: UUID) -> OrganizationCode | None: ...
    async def get_by_id_for_update(self, code_id: UUID) -> OrganizationCode | None: ...
    async def get_by_code(self, code: str) -> OrganizationCode | None: ...
    async def add(self, record: OrganizationCode) -> None: ...
    async def update(self, record: OrganizationCode) -> None: ...
    async def set_status(self, code_id: UUID, status: str) -> None: ...
    async def increment_uses(self, code_id: UUID) -> OrganizationCode | None: ...
    async def list_page(
        self,
        *,
        offset: int,
        limit: int,
        status: str | None = None,
        org_id: UUID | None = None,
    ) -> tuple[list[OrganizationCode], int]: ...
    async def delete_by_org(self, org_id: UUID) -> None: ...


class InMemoryOrgCodeRepo:
    def __init__(self) -> None:
        self._by_id: dict[UUID, OrganizationCode] = {}

    async def get_by_id(self, code_id: UUID) -> OrganizationCode | None:
        return self._by_id.get(code_id)

    async def get_by_id_for_update(self, code_id: UUID) -> OrganizationCode | None:
        return self._by_id.get(code_id)

    async def get_by_code(self, code: str) -> OrganizationCode | None:
        return next((c for c in self._by_id.values() if c.code == code), None)

    async def add(self, record: OrganizationCode) -> None:
        if await self.get_by_code(record.code) is not None:
            raise ValueError("code already exists")
        self._by_id[record.id] = record

    async def update(self, record: OrganizationCode) -> None:
        """Persist descriptive fields and status; the use counter is untouched."""
        existing = self._by_id.get(record.id)
        if existing is None:
            raise KeyError("code not found")
        self._by_id[record.id] = replace(record, current_uses=existing.current_uses)

    async def set_status(self, code_id: UUID, status: str) -> None:
        existing = self._by_id.get(code_id)
        if existing is None:
            raise KeyError("code not found")
        self._by_id[code_id] = replace(existing, status=status)

    async def increment_uses(self, code_id: UUID) -> OrganizationCode | None:
        """Atomically add one use. Returns the updated record, or None if the
        code doesn't exist, is revoked, or is already at max_uses."""
        existing = self._by_id.get(code_id)
        if existing is None or existing.is_revoked:
            return None
        if existing.max_uses is not None and existing.current_uses >= existing.max_uses:
            return None
        uses = existing.current_uses + 1
        updated = replace(
            existing,
            current_uses=uses,
            status=derive_code_status(
                uses,
                existing.max_uses,
                revoked=False,
                expired=existing.status == "expired",
            ),
        )
        self._by_id[code_id] = updated
        return updated

    async def list_page(
        self,
        *,
        offset: int,
        limit: int,
        status: str | None = None,
        org_id: UUID | None = None,
    ) -> tuple[list[OrganizationCode], int]:
        matched = [
            c
            for c in self._by_id.values()
            if (status is None or c.status == status)
            and (org_id is None or c.org_id == org_id)
        ]
        matched.sort(key=lambda c: c.created_at, reverse=True)
        return matched[offset : offset + limit], len(matched)

    async def delete_by_org(self, org_id: UUID) -> None:
        for code_id in [k for k, c in self._by_id.items() if c.org_id == org_id]:
            del self._by_id[code_id]

    def snapshot(self) -> dict:
        return dict(self._by_id)

    def restore(self, state: dict) -> None:
        self._by_id = state
