from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from uuid import UUID

from orgaccess.core.clock import utc_now_ts
from orgaccess.core.metrics import CODE_REDEMPTIONS
from orgaccess.models.org_code import (
    OrganizationCode,
    derive_code_status,
    generate_code,
    normalize_code,
)
from orgaccess.models.organization import ORG_ROLES
from orgaccess.models.pagination import Page
from orgaccess.repos.store import Store
from orgaccess.services.errors import BadRequestError, ConflictError, NotFoundError
from orgaccess.services.revocation_cascade import restore_for_code, suspend_for_code

logger = logging.getLogger(__name__)

_UNSET = object()


@dataclass(frozen=True, slots=True)
class CodeTransition:
    code: str
    affected_users: int
    resumed_licenses: int | None = None
    message: str = ""


async def get_code(store: Store, code_id: UUID) -> OrganizationCode:
    record = await store.codes.get_by_id(code_id)
    if record is None:
        raise NotFoundError(f'Organization code with ID "{code_id}" not found')
    return record


async def list_codes(
    store: Store,
    *,
    page: int = 1,
    page_size: int = 20,
    status: str | None = None,
    org_id: UUID | None = None,
) -> Page[OrganizationCode]:
    items, total = await store.codes.list_page(
        offset=(page - 1) * page_size, limit=page_size, status=status, org_id=org_id
    )
    return Page(items=items, page=page, page_size=page_size, total=total)


async def create_code(
    store: Store,
    *,
    org_id: UUID,
    code: str | None = None,
    description: str | None = None,
    max_uses: int | None = None,
    valid_from: int | None = None,
    valid_until: int | None = None,
    default_role: str = "member",
    auto_assign_license_type_id: UUID | None = None,
    notes: str | None = None,
    created_by: str | None = None,
) -> OrganizationCode:
    if default_role not in ORG_ROLES:
        raise BadRequestError(f"invalid default_role {default_role!r}")
    if max_uses is not None and max_uses < 1:
        raise BadRequestError("max_uses must be at least 1")

    async with store.transaction():
        org = await store.orgs.get_by_id(org_id)
        if org is None:
            raise NotFoundError(f'Organization with ID "{org_id}" not found')

        value = normalize_code(code) if code else generate_code(org.slug)
        if await store.codes.get_by_code(value) is not None:
            raise ConflictError("This organization code already exists")

        if auto_assign_license_type_id is not None:
            if await store.license_types.get_by_id(auto_assign_license_type_id) is None:
                raise BadRequestError("Invalid license type ID for auto-assignment")

        record = OrganizationCode.new(
            code=value,
            org_id=org_id,
            description=description,
            max_uses=max_uses,
            valid_from=valid_from,
            valid_until=valid_until,
            default_role=default_role,
            auto_assign_license_type_id=auto_assign_license_type_id,
            notes=notes,
            created_by=created_by,
        )
        await store.codes.add(record)

    logger.info(
        "Created organization code %s for org=%s",
        record.code,
        org.slug,
        extra={"org_id": str(org_id), "code": record.code, "actor_id": created_by},
    )
    return record


async def update_code(
    store: Store,
    code_id: UUID,
    *,
    description=_UNSET,
    max_uses=_UNSET,
    valid_until=_UNSET,
    default_role=_UNSET,
    auto_assign_license_type_id=_UNSET,
    notes=_UNSET,
    now: int | None = None,
) -> OrganizationCode:
    """Edit a code's descriptive fields; status is re-derived afterwards.

    Fields left as the sentinel are untouched; passing None clears an
    optional field (e.g. ``max_uses=None`` removes the cap).
    """
    now = utc_now_ts() if now is None else now

    async with store.transaction():
        record = await get_code(store, code_id)
        changes: dict = {}
        if description is not _UNSET:
            changes["description"] = description
        if notes is not _UNSET:
            changes["notes"] = notes
        if valid_until is not _UNSET:
            changes["valid_until"] = valid_until
        if default_role is not _UNSET:
            if default_role not in ORG_ROLES:
                raise BadRequestError(f"invalid default_role {default_role!r}")
            changes["default_role"] = default_role
        if max_uses is not _UNSET:
            if max_uses is not None and max_uses < record.current_uses:
                raise BadRequestError(
                    f"Cannot set max_uses to {max_uses}. "
                    f"Code has already been used {record.current_uses} times."
                )
            changes["max_uses"] = max_uses
        if auto_assign_license_type_id is not _UNSET:
            if (
                auto_assign_license_type_id is not None
                and await store.license_types.get_by_id(auto_assign_license_type_id)
                is None
            ):
                raise BadRequestError("Invalid license type ID for auto-assignment")
            changes["auto_assign_license_type_id"] = auto_assign_license_type_id

        updated = replace(record, **changes)
        updated = replace(
            updated,
            status=derive_code_status(
                updated.current_uses,
                updated.max_uses,
                revoked=updated.is_revoked,
                expired=updated.is_expired_at(now),
            ),
        )
        await store.codes.update(updated)
    return updated


async def use_code(store: Store, code: str) -> OrganizationCode:
    """Record one redemption.

    The increment is a single guarded write, so concurrent redemptions of
    the last use cannot both succeed; the loser gets BadRequestError.
    The same write refuses a revoked code, so a revoke that commits between
    validation and redemption still wins.
    """
    code = normalize_code(code)
    async with store.transaction():
        record = await store.codes.get_by_code(code)
        if record is None:
            raise NotFoundError("Organization code not found")

        updated = await store.codes.increment_uses(record.id)
        if updated is None:
            current = await store.codes.get_by_id(record.id)
            if current is not None and current.is_revoked:
                CODE_REDEMPTIONS.labels(result="revoked").inc()
                logger.warning(
                    "Code %s was revoked before its use was counted",
                    code,
                    extra={"code": code},
                )
                raise BadRequestError("Code is revoked")
            CODE_REDEMPTIONS.labels(result="exhausted").inc()
            logger.warning(
                "Code %s redemption lost the race for its last use",
                code,
                extra={"code": code},
            )
            raise BadRequestError("Code has reached maximum uses")

    CODE_REDEMPTIONS.labels(result="used").inc()
    if updated.status == "exhausted":
        logger.info(
            "Code %s exhausted after %d uses",
            code,
            updated.current_uses,
            extra={"code": code, "org_id": str(updated.org_id)},
        )
    return updated


async def revoke_code(store: Store, code_id: UUID) -> CodeTransition:
    async with store.transaction():
        record = await store.codes.get_by_id_for_update(code_id)
        if record is None:
            raise NotFoundError(f'Organization code with ID "{code_id}" not found')
        if record.is_revoked:
            raise BadRequestError("Code is already revoked")

        await store.codes.set_status(record.id, "revoked")
        result = await suspend_for_code(store, record)

    logger.info(
        "Revoked organization code %s; suspended %d user(s)",
        record.code,
        result.affected_users,
        extra={"org_id": str(record.org_id), "code": record.code},
    )
    return CodeTransition(
        code=record.code,
        affected_users=result.affected_users,
        message=f"Code revoked. {result.affected_users} user(s) suspended.",
    )


async def reactivate_code(
    store: Store, code_id: UUID, *, now: int | None = None
) -> CodeTransition:
    now = utc_now_ts() if now is None else now

    async with store.transaction():
        record = await store.codes.get_by_id_for_update(code_id)
        if record is None:
            raise NotFoundError(f'Organization code with ID "{code_id}" not found')
        if not record.is_revoked:
            raise BadRequestError("Only revoked codes can be reactivated")

        await store.codes.set_status(
            record.id,
            derive_code_status(
                record.current_uses,
                record.max_uses,
                expired=record.is_expired_at(now),
            ),
        )
        result = await restore_for_code(store, record, now=now)

    return CodeTransition(
        code=record.code,
        affected_users=result.affected_users,
        resumed_licenses=result.resumed_licenses,
        message=(
            f"Code reactivated. {result.affected_users} membership(s) restored, "
            f"{result.resumed_licenses} license(s) resumed."
        ),
    )
