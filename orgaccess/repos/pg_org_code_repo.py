"""PostgreSQL implementation of OrgCodeRepo."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import case, delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from orgaccess.db.tables import OrganizationCodeRow
from orgaccess.models.org_code import OrganizationCode


class PgOrgCodeRepo:
    """Satisfies the OrgCodeRepo Protocol using PostgreSQL."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def _one(self, *criteria, for_update: bool = False) -> OrganizationCode | None:
        stmt = (
            select(OrganizationCodeRow)
            .where(*criteria)
            .execution_options(populate_existing=True)
        )
        if for_update:
            stmt = stmt.with_for_update()
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_code(row)

    async def get_by_id(self, code_id: UUID) -> OrganizationCode | None:
        return await self._one(OrganizationCodeRow.id == code_id)

    async def get_by_id_for_update(self, code_id: UUID) -> OrganizationCode | None:
        """Row-locks the code so concurrent revoke/reactivate calls serialize."""
        return await self._one(OrganizationCodeRow.id == code_id, for_update=True)

    async def get_by_code(self, code: str) -> OrganizationCode | None:
        return await self._one(OrganizationCodeRow.code == code)

    async def add(self, record: OrganizationCode) -> None:
        self._session.add(
            OrganizationCodeRow(
                id=record.id,
                code=record.code,
                org_id=record.org_id,
                current_uses=record.current_uses,
                created_by=record.created_by,
                created_at=record.created_at,
                **_code_values(record),
            )
        )
        await self._session.flush()

    async def update(self, record: OrganizationCode) -> None:
        """Persist descriptive fields and status; the use counter is untouched."""
        stmt = (
            update(OrganizationCodeRow)
            .where(OrganizationCodeRow.id == record.id)
            .values(**_code_values(record))
        )
        await self._session.execute(stmt)

    async def set_status(self, code_id: UUID, status: str) -> None:
        stmt = (
            update(OrganizationCodeRow)
            .where(OrganizationCodeRow.id == code_id)
            .values(status=status)
        )
        await self._session.execute(stmt)

    async def increment_uses(self, code_id: UUID) -> OrganizationCode | None:
        """Atomically add one use. Returns the updated record, or None if the
        code doesn't exist, is revoked, or is already at max_uses.

        The guard and the status derivation both live in the single UPDATE,
        so two concurrent redemptions can never both take the last use.
        """
        new_uses = OrganizationCodeRow.current_uses + 1
        stmt = (
            update(OrganizationCodeRow)
            .where(OrganizationCodeRow.id == code_id)
            .where(OrganizationCodeRow.status != "revoked")
            .where(
                (OrganizationCodeRow.max_uses.is_(None))
                | (OrganizationCodeRow.current_uses < OrganizationCodeRow.max_uses)
            )
            .values(
                current_uses=new_uses,
                status=case(
                    (
                        OrganizationCodeRow.max_uses.is_not(None)
                        & (new_uses >= OrganizationCodeRow.max_uses),
                        "exhausted",
                    ),
                    (OrganizationCodeRow.status == "expired", "expired"),
                    else_="active",
                ),
            )
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        if result.rowcount == 0:
            return None  # missing, revoked, or the last use went to someone else
        return await self.get_by_id(code_id)

    async def list_page(
        self,
        *,
        offset: int,
        limit: int,
        status: str | None = None,
        org_id: UUID | None = None,
    ) -> tuple[list[OrganizationCode], int]:
        criteria = []
        if status is not None:
            criteria.append(OrganizationCodeRow.status == status)
        if org_id is not None:
            criteria.append(OrganizationCodeRow.org_id == org_id)

        total_stmt = (
            select(func.count()).select_from(OrganizationCodeRow).where(*criteria)
        )
        total = (await self._session.execute(total_stmt)).scalar_one()

        stmt = (
            select(OrganizationCodeRow)
            .where(*criteria)
            .order_by(OrganizationCodeRow.created_at.desc())
            .offset(offset)
            .limit(limit)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_code(r) for r in rows], total

    async def delete_by_org(self, org_id: UUID) -> None:
        await self._session.execute(
            delete(OrganizationCodeRow).where(OrganizationCodeRow.org_id == org_id)
        )


def _code_values(record: OrganizationCode) -> dict:
    return {
        "status": record.status,
        "description": record.description,
        "max_uses": record.max_uses,
        "valid_from": record.valid_from,
        "valid_until": record.valid_until,
        "default_role": record.default_role,
        "auto_assign_license_type_id": record.auto_assign_license_type_id,
        "notes": record.notes,
    }


def _row_to_code(row: OrganizationCodeRow) -> OrganizationCode:
    return OrganizationCode(
        id=row.id,
        code=row.code,
        org_id=row.org_id,
        status=row.status,
        description=row.description,
        max_uses=row.max_uses,
        current_uses=row.current_uses,
        valid_from=row.valid_from,
        valid_until=row.valid_until,
        default_role=row.default_role,
        auto_assign_license_type_id=row.auto_assign_license_type_id,
        notes=row.notes,
        created_by=row.created_by,
        created_at=row.created_at,
    )
