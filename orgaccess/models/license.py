from __future__ import annotations

import secrets
from dataclasses import dataclass
from uuid import UUID, uuid4

from orgaccess.core.clock import utc_now_ts

POOL_STATUSES = ("active", "expired", "suspended", "cancelled")
USER_LICENSE_STATUSES = ("active", "trial", "suspended", "expired", "cancelled")

# Statuses in which a user license occupies a seat and counts as "held".
HOLDING_STATUSES = ("active", "trial")


def _hex(n: int) -> str:
    return secrets.token_hex(n // 2).upper()


def generate_pool_key() -> str:
    return f"ORGLIC-{_hex(4)}-{_hex(4)}-{_hex(4)}"


def generate_user_license_key() -> str:
    return f"LIC-{_hex(4)}-{_hex(4)}-{_hex(4)}"


def append_note(notes: str | None, line: str) -> str:
    return f"{notes}\n\n{line}" if notes else line


@dataclass(frozen=True, slots=True)
class LicenseType:
    id: UUID
    name: str
    tier: str = "standard"

    @staticmethod
    def new(*, name: str, tier: str = "standard") -> LicenseType:
        return LicenseType(id=uuid4(), name=name, tier=tier)


@dataclass(frozen=True, slots=True)
class OrganizationLicense:
    """A seat pool: ``total_seats`` grants of one license type for one org.

    ``used_seats`` only moves through the repos' guarded claim/release
    calls, which keep ``0 <= used_seats <= total_seats``.
    """

    id: UUID
    org_id: UUID
    license_type_id: UUID
    total_seats: int
    end_date: int
    license_key: str
    used_seats: int = 0
    status: str = "active"  # active|expired|suspended|cancelled
    start_date: int = 0
    notes: str | None = None
    assigned_by: str | None = None

    @property
    def available_seats(self) -> int:
        return self.total_seats - self.used_seats

    @property
    def is_active(self) -> bool:
        return self.status == "active"

    @staticmethod
    def new(
        *,
        org_id: UUID,
        license_type_id: UUID,
        total_seats: int,
        end_date: int,
        start_date: int | None = None,
        notes: str | None = None,
        assigned_by: str | None = None,
    ) -> OrganizationLicense:
        return OrganizationLicense(
            id=uuid4(),
            org_id=org_id,
            license_type_id=license_type_id,
            total_seats=total_seats,
            end_date=end_date,
            license_key=generate_pool_key(),
            start_date=utc_now_ts() if start_date is None else start_date,
            notes=notes,
            assigned_by=assigned_by,
        )


@dataclass(frozen=True, slots=True)
class UserLicense:
    id: UUID
    user_id: UUID
    license_type_id: UUID
    license_key: str
    end_date: int
    org_id: UUID | None = None  # set iff allocated from an org pool
    status: str = "active"
    start_date: int = 0
    notes: str | None = None
    assigned_by: str | None = None

    @property
    def is_pooled(self) -> bool:
        return self.org_id is not None

    @property
    def holds_seat(self) -> bool:
        return self.status in HOLDING_STATUSES

    @staticmethod
    def from_pool(
        pool: OrganizationLicense,
        *,
        user_id: UUID,
        assigned_by: str | None = None,
    ) -> UserLicense:
        return UserLicense(
            id=uuid4(),
            user_id=user_id,
            license_type_id=pool.license_type_id,
            license_key=generate_user_license_key(),
            end_date=pool.end_date,
            org_id=pool.org_id,
            status="active",
            start_date=utc_now_ts(),
            notes=f"Allocated from organization license pool: {pool.license_key}",
            assigned_by=assigned_by,
        )
