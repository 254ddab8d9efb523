"""License types, organization seat pools, and individual user licenses.

Seat counters are never written through ``update``.  They move only via
``claim_seat`` / ``release_seat`` / ``set_total_seats``, each of which
checks its guard and applies the change as one step, and reports whether
it won.  Callers treat a False return as "another request got there
first" rather than re-reading and retrying blindly.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Protocol
from uuid import UUID

from orgaccess.models.license import (
    HOLDING_STATUSES,
    LicenseType,
    OrganizationLicense,
    UserLicense,
)


class LicenseTypeRepo(Protocol):
    async def get_by_id(self, license_type_id: UUID) -> LicenseType | None: ...
    async def add(self, license_type: LicenseType) -> None: ...


class OrgLicenseRepo(Protocol):
    async def get_by_id(self, pool_id: UUID) -> OrganizationLicense | None: ...
    async def add(self, pool: OrganizationLicense) -> None: ...
    async def update(self, pool: OrganizationLicense) -> None: ...
    async def find_active(
        self, org_id: UUID, license_type_id: UUID
    ) -> OrganizationLicense | None: ...
    async def list_by_org(
        self, org_id: UUID, *, active_only: bool = False
    ) -> list[OrganizationLicense]: ...
    async def claim_seat(self, pool_id: UUID) -> bool: ...
    async def release_seat(self, pool_id: UUID) -> bool: ...
    async def set_total_seats(self, pool_id: UUID, total_seats: int) -> bool: ...
    async def delete_by_org(self, org_id: UUID) -> None: ...


class UserLicenseRepo(Protocol):
    async def get_by_id(self, license_id: UUID) -> UserLicense | None: ...
    async def add(self, lic: UserLicense) -> None: ...
    async def update(self, lic: UserLicense) -> None: ...
    async def delete(self, license_id: UUID) -> None: ...
    async def find_holding(
        self, user_id: UUID, license_type_id: UUID
    ) -> UserLicense | None: ...
    async def list_for_user_in_org(
        self, user_id: UUID, org_id: UUID, *, statuses: tuple[str, ...]
    ) -> list[UserLicense]: ...
    async def list_by_org(
        self, org_id: UUID, *, statuses: tuple[str, ...]
    ) -> list[UserLicense]: ...
    async def delete_by_org(self, org_id: UUID) -> None: ...


class InMemoryLicenseTypeRepo:
    def __init__(self) -> None:
        self._by_id: dict[UUID, LicenseType] = {}

    async def get_by_id(self, license_type_id: UUID) -> LicenseType | None:
        return self._by_id.get(license_type_id)

    async def add(self, license_type: LicenseType) -> None:
        self._by_id[license_type.id] = license_type

    def snapshot(self) -> dict:
        return dict(self._by_id)

    def restore(self, state: dict) -> None:
        self._by_id = state


class InMemoryOrgLicenseRepo:
    def __init__(self) -> None:
        self._by_id: dict[UUID, OrganizationLicense] = {}

    async def get_by_id(self, pool_id: UUID) -> OrganizationLicense | None:
        return self._by_id.get(pool_id)

    async def add(self, pool: OrganizationLicense) -> None:
        self._by_id[pool.id] = pool

    async def update(self, pool: OrganizationLicense) -> None:
        existing = self._by_id.get(pool.id)
        if existing is None:
            raise KeyError("organization license not found")
        self._by_id[pool.id] = replace(
            pool, used_seats=existing.used_seats, total_seats=existing.total_seats
        )

    async def find_active(
        self, org_id: UUID, license_type_id: UUID
    ) -> OrganizationLicense | None:
        return next(
            (
                p
                for p in self._by_id.values()
                if p.org_id == org_id
                and p.license_type_id == license_type_id
                and p.is_active
            ),
            None,
        )

    async def list_by_org(
        self, org_id: UUID, *, active_only: bool = False
    ) -> list[OrganizationLicense]:
        pools = [
            p
            for p in self._by_id.values()
            if p.org_id == org_id and (p.is_active or not active_only)
        ]
        return sorted(pools, key=lambda p: p.start_date, reverse=True)

    async def claim_seat(self, pool_id: UUID) -> bool:
        pool = self._by_id.get(pool_id)
        if pool is None or pool.used_seats >= pool.total_seats:
            return False
        self._by_id[pool_id] = replace(pool, used_seats=pool.used_seats + 1)
        return True

    async def release_seat(self, pool_id: UUID) -> bool:
        pool = self._by_id.get(pool_id)
        if pool is None or pool.used_seats <= 0:
            return False
        self._by_id[pool_id] = replace(pool, used_seats=pool.used_seats - 1)
        return True

    async def set_total_seats(self, pool_id: UUID, total_seats: int) -> bool:
        pool = self._by_id.get(pool_id)
        if pool is None or total_seats < pool.used_seats:
            return False
        self._by_id[pool_id] = replace(pool, total_seats=total_seats)
        return True

    async def delete_by_org(self, org_id: UUID) -> None:
        for pool_id in [k for k, p in self._by_id.items() if p.org_id == org_id]:
            del self._by_id[pool_id]

    def snapshot(self) -> dict:
        return dict(self._by_id)

    def restore(self, state: dict) -> None:
        self._by_id = state


class InMemoryUserLicenseRepo:
    def __init__(self) -> None:
        self._by_id: dict[UUID, UserLicense] = {}

    async def get_by_id(self, license_id: UUID) -> UserLicense | None:
        return self._by_id.get(license_id)

    async def add(self, lic: UserLicense) -> None:
        self._by_id[lic.id] = lic

    async def update(self, lic: UserLicense) -> None:
        if lic.id not in self._by_id:
            raise KeyError("user license not found")
        self._by_id[lic.id] = lic

    async def delete(self, license_id: UUID) -> None:
        self._by_id.pop(license_id, None)

    async def find_holding(
        self, user_id: UUID, license_type_id: UUID
    ) -> UserLicense | None:
        return next(
            (
                lic
                for lic in self._by_id.values()
                if lic.user_id == user_id
                and lic.license_type_id == license_type_id
                and lic.status in HOLDING_STATUSES
            ),
            None,
        )

    async def list_for_user_in_org(
        self, user_id: UUID, org_id: UUID, *, statuses: tuple[str, ...]
    ) -> list[UserLicense]:
        return [
            lic
            for lic in self._by_id.values()
            if lic.user_id == user_id and lic.org_id == org_id and lic.status in statuses
        ]

    async def list_by_org(
        self, org_id: UUID, *, statuses: tuple[str, ...]
    ) -> list[UserLicense]:
        return [
            lic
            for lic in self._by_id.values()
            if lic.org_id == org_id and lic.status in statuses
        ]

    async def delete_by_org(self, org_id: UUID) -> None:
        for lic_id in [k for k, lic in self._by_id.items() if lic.org_id == org_id]:
            del self._by_id[lic_id]

    def snapshot(self) -> dict:
        return dict(self._by_id)

    def restore(self, state: dict) -> None:
        self._by_id = state
