"""PostgreSQL implementations of the license repos.

Seat counters change only through single guarded UPDATE statements.  The
WHERE clause carries the invariant (``used_seats < total_seats`` to claim,
``used_seats > 0`` to release, ``used_seats <= :total`` to shrink) and
``rowcount`` tells the caller whether the guard held at commit time.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from orgaccess.db.tables import (
    LicenseTypeRow,
    OrganizationLicenseRow,
    UserLicenseRow,
)
from orgaccess.models.license import (
    HOLDING_STATUSES,
    LicenseType,
    OrganizationLicense,
    UserLicense,
)


class PgLicenseTypeRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(self, license_type_id: UUID) -> LicenseType | None:
        stmt = select(LicenseTypeRow).where(LicenseTypeRow.id == license_type_id)
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return LicenseType(id=row.id, name=row.name, tier=row.tier)

    async def add(self, license_type: LicenseType) -> None:
        self._session.add(
            LicenseTypeRow(
                id=license_type.id, name=license_type.name, tier=license_type.tier
            )
        )
        await self._session.flush()


class PgOrgLicenseRepo:
    """Satisfies the OrgLicenseRepo Protocol using PostgreSQL."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def _many(self, *criteria) -> list[OrganizationLicense]:
        stmt = (
            select(OrganizationLicenseRow)
            .where(*criteria)
            .order_by(OrganizationLicenseRow.start_date.desc())
            .execution_options(populate_existing=True)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_pool(r) for r in rows]

    async def _guarded_update(self, pool_id: UUID, *guards, **values) -> bool:
        stmt = (
            update(OrganizationLicenseRow)
            .where(OrganizationLicenseRow.id == pool_id, *guards)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        return result.rowcount == 1

    async def get_by_id(self, pool_id: UUID) -> OrganizationLicense | None:
        found = await self._many(OrganizationLicenseRow.id == pool_id)
        return found[0] if found else None

    async def add(self, pool: OrganizationLicense) -> None:
        self._session.add(
            OrganizationLicenseRow(
                id=pool.id,
                org_id=pool.org_id,
                license_type_id=pool.license_type_id,
                total_seats=pool.total_seats,
                used_seats=pool.used_seats,
                license_key=pool.license_key,
                **_pool_values(pool),
            )
        )
        await self._session.flush()

    async def update(self, pool: OrganizationLicense) -> None:
        """Persist non-counter fields. Seats move via the guarded calls."""
        stmt = (
            update(OrganizationLicenseRow)
            .where(OrganizationLicenseRow.id == pool.id)
            .values(**_pool_values(pool))
        )
        await self._session.execute(stmt)

    async def find_active(
        self, org_id: UUID, license_type_id: UUID
    ) -> OrganizationLicense | None:
        found = await self._many(
            OrganizationLicenseRow.org_id == org_id,
            OrganizationLicenseRow.license_type_id == license_type_id,
            OrganizationLicenseRow.status == "active",
        )
        return found[0] if found else None

    async def list_by_org(
        self, org_id: UUID, *, active_only: bool = False
    ) -> list[OrganizationLicense]:
        criteria = [OrganizationLicenseRow.org_id == org_id]
        if active_only:
            criteria.append(OrganizationLicenseRow.status == "active")
        return await self._many(*criteria)

    async def claim_seat(self, pool_id: UUID) -> bool:
        return await self._guarded_update(
            pool_id,
            OrganizationLicenseRow.used_seats < OrganizationLicenseRow.total_seats,
            used_seats=OrganizationLicenseRow.used_seats + 1,
        )

    async def release_seat(self, pool_id: UUID) -> bool:
        return await self._guarded_update(
            pool_id,
            OrganizationLicenseRow.used_seats > 0,
            used_seats=OrganizationLicenseRow.used_seats - 1,
        )

    async def set_total_seats(self, pool_id: UUID, total_seats: int) -> bool:
        return await self._guarded_update(
            pool_id,
            OrganizationLicenseRow.used_seats <= total_seats,
            total_seats=total_seats,
        )

    async def delete_by_org(self, org_id: UUID) -> None:
        await self._session.execute(
            delete(OrganizationLicenseRow).where(OrganizationLicenseRow.org_id == org_id)
        )


class PgUserLicenseRepo:
    """Satisfies the UserLicenseRepo Protocol using PostgreSQL."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def _many(self, *criteria) -> list[UserLicense]:
        stmt = (
            select(UserLicenseRow)
            .where(*criteria)
            .order_by(UserLicenseRow.start_date)
            .execution_options(populate_existing=True)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_user_license(r) for r in rows]

    async def get_by_id(self, license_id: UUID) -> UserLicense | None:
        found = await self._many(UserLicenseRow.id == license_id)
        return found[0] if found else None

    async def add(self, lic: UserLicense) -> None:
        self._session.add(
            UserLicenseRow(
                id=lic.id,
                user_id=lic.user_id,
                license_type_id=lic.license_type_id,
                org_id=lic.org_id,
                license_key=lic.license_key,
                start_date=lic.start_date,
                assigned_by=lic.assigned_by,
                **_user_license_values(lic),
            )
        )
        await self._session.flush()

    async def update(self, lic: UserLicense) -> None:
        stmt = (
            update(UserLicenseRow)
            .where(UserLicenseRow.id == lic.id)
            .values(**_user_license_values(lic))
        )
        await self._session.execute(stmt)

    async def delete(self, license_id: UUID) -> None:
        await self._session.execute(
            delete(UserLicenseRow).where(UserLicenseRow.id == license_id)
        )

    async def find_holding(
        self, user_id: UUID, license_type_id: UUID
    ) -> UserLicense | None:
        found = await self._many(
            UserLicenseRow.user_id == user_id,
            UserLicenseRow.license_type_id == license_type_id,
            UserLicenseRow.status.in_(HOLDING_STATUSES),
        )
        return found[0] if found else None

    async def list_for_user_in_org(
        self, user_id: UUID, org_id: UUID, *, statuses: tuple[str, ...]
    ) -> list[UserLicense]:
        return await self._many(
            UserLicenseRow.user_id == user_id,
            UserLicenseRow.org_id == org_id,
            UserLicenseRow.status.in_(statuses),
        )

    async def list_by_org(
        self, org_id: UUID, *, statuses: tuple[str, ...]
    ) -> list[UserLicense]:
        return await self._many(
            UserLicenseRow.org_id == org_id, UserLicenseRow.status.in_(statuses)
        )

    async def delete_by_org(self, org_id: UUID) -> None:
        await self._session.execute(
            delete(UserLicenseRow).where(UserLicenseRow.org_id == org_id)
        )


def _pool_values(pool: OrganizationLicense) -> dict:
    return {
        "status": pool.status,
        "start_date": pool.start_date,
        "end_date": pool.end_date,
        "notes": pool.notes,
        "assigned_by": pool.assigned_by,
    }


def _user_license_values(lic: UserLicense) -> dict:
    return {
        "status": lic.status,
        "end_date": lic.end_date,
        "notes": lic.notes,
    }


def _row_to_pool(row: OrganizationLicenseRow) -> OrganizationLicense:
    return OrganizationLicense(
        id=row.id,
        org_id=row.org_id,
        license_type_id=row.license_type_id,
        total_seats=row.total_seats,
        used_seats=row.used_seats,
        end_date=row.end_date,
        license_key=row.license_key,
        status=row.status,
        start_date=row.start_date,
        notes=row.notes,
        assigned_by=row.assigned_by,
    )


def _row_to_user_license(row: UserLicenseRow) -> UserLicense:
    return UserLicense(
        id=row.id,
        user_id=row.user_id,
        license_type_id=row.license_type_id,
        license_key=row.license_key,
        end_date=row.end_date,
        org_id=row.org_id,
        status=row.status,
        start_date=row.start_date,
        notes=row.notes,
        assigned_by=row.assigned_by,
    )
