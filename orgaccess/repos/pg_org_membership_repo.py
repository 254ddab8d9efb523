"""PostgreSQL implementation of OrgMembershipRepo."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from orgaccess.db.tables import OrgMembershipRow
from orgaccess.models.organization import OrgMembership
from orgaccess.repos.org_membership_repo import member_sort_key


class PgOrgMembershipRepo:
    """Satisfies the OrgMembershipRepo Protocol using PostgreSQL."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def _many(self, *criteria) -> list[OrgMembership]:
        stmt = (
            select(OrgMembershipRow)
            .where(*criteria)
            .execution_options(populate_existing=True)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_membership(r) for r in rows]

    async def _count(self, *criteria) -> int:
        stmt = select(func.count()).select_from(OrgMembershipRow).where(*criteria)
        return (await self._session.execute(stmt)).scalar_one()

    async def get(self, org_id: UUID, user_id: UUID) -> OrgMembership | None:
        found = await self._many(
            OrgMembershipRow.org_id == org_id, OrgMembershipRow.user_id == user_id
        )
        return found[0] if found else None

    async def add(self, membership: OrgMembership) -> None:
        self._session.add(
            OrgMembershipRow(
                id=membership.id,
                org_id=membership.org_id,
                user_id=membership.user_id,
                **_membership_values(membership),
            )
        )
        await self._session.flush()

    async def update(self, membership: OrgMembership) -> None:
        stmt = (
            update(OrgMembershipRow)
            .where(OrgMembershipRow.org_id == membership.org_id)
            .where(OrgMembershipRow.user_id == membership.user_id)
            .values(**_membership_values(membership))
        )
        await self._session.execute(stmt)

    async def list_by_org(
        self, org_id: UUID, *, include_inactive: bool = False
    ) -> list[OrgMembership]:
        criteria = [OrgMembershipRow.org_id == org_id]
        if not include_inactive:
            criteria.append(OrgMembershipRow.is_active.is_(True))
        return sorted(await self._many(*criteria), key=member_sort_key)

    async def list_by_registration_code(
        self, org_id: UUID, code: str, *, is_active: bool
    ) -> list[OrgMembership]:
        return await self._many(
            OrgMembershipRow.org_id == org_id,
            OrgMembershipRow.registration_code == code,
            OrgMembershipRow.is_active.is_(is_active),
        )

    async def get_active_for_user(self, user_id: UUID) -> OrgMembership | None:
        active = await self._many(
            OrgMembershipRow.user_id == user_id, OrgMembershipRow.is_active.is_(True)
        )
        return min(active, key=lambda m: m.joined_at, default=None)

    async def count_active(self, org_id: UUID) -> int:
        return await self._count(
            OrgMembershipRow.org_id == org_id, OrgMembershipRow.is_active.is_(True)
        )

    async def count_active_owners(self, org_id: UUID) -> int:
        return await self._count(
            OrgMembershipRow.org_id == org_id,
            OrgMembershipRow.is_active.is_(True),
            OrgMembershipRow.org_role == "owner",
        )

    async def delete_by_org(self, org_id: UUID) -> None:
        await self._session.execute(
            delete(OrgMembershipRow).where(OrgMembershipRow.org_id == org_id)
        )


def _membership_values(m: OrgMembership) -> dict:
    return {
        "org_role": m.org_role,
        "is_active": m.is_active,
        "joined_at": m.joined_at,
        "department": m.department,
        "title": m.title,
        "invited_by": m.invited_by,
        "registration_code": m.registration_code,
        "suspended_by_code": m.suspended_by_code,
    }


def _row_to_membership(row: OrgMembershipRow) -> OrgMembership:
    return OrgMembership(
        id=row.id,
        org_id=row.org_id,
        user_id=row.user_id,
        org_role=row.org_role,
        is_active=row.is_active,
        joined_at=row.joined_at,
        department=row.department,
        title=row.title,
        invited_by=row.invited_by,
        registration_code=row.registration_code,
        suspended_by_code=row.suspended_by_code,
    )
