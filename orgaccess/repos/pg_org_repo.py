"""PostgreSQL implementation of OrgRepo."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from orgaccess.db.tables import OrganizationRow
from orgaccess.models.organization import Organization


class PgOrgRepo:
    """Satisfies the OrgRepo Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def _one(self, *criteria) -> Organization | None:
        stmt = (
            select(OrganizationRow)
            .where(*criteria)
            .execution_options(populate_existing=True)
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_org(row)

    async def get_by_id(self, org_id: UUID) -> Organization | None:
        return await self._one(OrganizationRow.id == org_id)

    async def get_by_slug(self, slug: str) -> Organization | None:
        return await self._one(OrganizationRow.slug == slug)

    async def get_by_domain(self, domain: str) -> Organization | None:
        return await self._one(OrganizationRow.domain == domain)

    async def add(self, org: Organization) -> None:
        self._session.add(OrganizationRow(id=org.id, **_org_values(org)))
        await self._session.flush()

    async def update(self, org: Organization) -> None:
        stmt = (
            update(OrganizationRow)
            .where(OrganizationRow.id == org.id)
            .values(**_org_values(org))
        )
        await self._session.execute(stmt)

    async def delete(self, org_id: UUID) -> None:
        await self._session.execute(
            delete(OrganizationRow).where(OrganizationRow.id == org_id)
        )

    async def list_page(
        self,
        *,
        offset: int,
        limit: int,
        status: str | None = None,
        search: str | None = None,
    ) -> tuple[list[Organization], int]:
        criteria = []
        if status is not None:
            criteria.append(OrganizationRow.status == status)
        else:
            criteria.append(OrganizationRow.status != "inactive")
        if search:
            pattern = f"%{search}%"
            criteria.append(
                or_(
                    OrganizationRow.name.ilike(pattern),
                    OrganizationRow.slug.ilike(pattern),
                    OrganizationRow.domain.ilike(pattern),
                    OrganizationRow.contact_email.ilike(pattern),
                )
            )

        total_stmt = select(func.count()).select_from(OrganizationRow).where(*criteria)
        total = (await self._session.execute(total_stmt)).scalar_one()

        stmt = (
            select(OrganizationRow)
            .where(*criteria)
            .order_by(OrganizationRow.created_at.desc())
            .offset(offset)
            .limit(limit)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_org(r) for r in rows], total


def _org_values(org: Organization) -> dict:
    return {
        "name": org.name,
        "slug": org.slug,
        "domain": org.domain,
        "status": org.status,
        "max_members": org.max_members,
        "contact_email": org.contact_email,
        "contact_name": org.contact_name,
        "created_by": org.created_by,
        "created_at": org.created_at,
    }


def _row_to_org(row: OrganizationRow) -> Organization:
    return Organization(
        id=row.id,
        name=row.name,
        slug=row.slug,
        domain=row.domain,
        status=row.status,
        max_members=row.max_members,
        contact_email=row.contact_email,
        contact_name=row.contact_name,
        created_by=row.created_by,
        created_at=row.created_at,
    )
