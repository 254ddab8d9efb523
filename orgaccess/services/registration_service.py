"""Self-service join: redeem a registration code for an existing user.

Validate the code, add the user as a member with the code's default role
(recording the code on the membership), and count the use, all in one
transaction.  If the code auto-assigns a license type, a seat is then
taken from that type's active pool.  A failed seat assignment never
undoes the join; the result simply carries ``license=None``.

A refused join raises, so with a database the request's transaction rolls
back, including any status correction validation made along the way (a
code found expired or exhausted).  That write is a cache: the next
validation derives the same status from the dates and counts and writes
it again.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from uuid import UUID

from orgaccess.models.license import UserLicense
from orgaccess.models.org_code import normalize_code
from orgaccess.models.organization import OrgMembership, OrgSummary
from orgaccess.repos.store import Store
from orgaccess.services import code_lifecycle, license_pool, membership_service
from orgaccess.services.code_validator import validate_code
from orgaccess.services.errors import BadRequestError, OrgAccessError

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class JoinResult:
    membership: OrgMembership
    organization: OrgSummary
    license: UserLicense | None = None


async def join_with_code(
    store: Store, code: str, user_id: UUID, *, now: int | None = None
) -> JoinResult:
    code = normalize_code(code)

    validation = await validate_code(store, code, now=now)
    if not validation.valid:
        logger.warning(
            "Join refused for user=%s: %s",
            user_id,
            validation.reason,
            extra={"code": code, "user_id": str(user_id)},
        )
        raise BadRequestError(f"Invalid organization code: {validation.reason}")

    org = validation.organization
    async with store.transaction():
        membership = await membership_service.add_member(
            store,
            org.id,
            user_id,
            validation.default_role or "member",
            registration_code=code,
        )
        await code_lifecycle.use_code(store, code)

    logger.info(
        "User %s joined org=%s with code %s",
        user_id,
        org.slug,
        code,
        extra={"org_id": str(org.id), "user_id": str(user_id), "code": code},
    )

    lic = None
    if validation.auto_assign_license_type_id is not None:
        lic = await _auto_assign(
            store, org.id, validation.auto_assign_license_type_id, user_id
        )
    return JoinResult(membership=membership, organization=org, license=lic)


async def _auto_assign(
    store: Store, org_id: UUID, license_type_id: UUID, user_id: UUID
) -> UserLicense | None:
    pool = await store.pools.find_active(org_id, license_type_id)
    if pool is None or pool.available_seats <= 0:
        logger.warning(
            "No available seats to auto-assign for user=%s",
            user_id,
            extra={"org_id": str(org_id), "user_id": str(user_id)},
        )
        return None
    try:
        return await license_pool.allocate_seat(store, pool.id, user_id)
    except OrgAccessError as exc:
        logger.warning(
            "Failed to auto-assign license for user=%s: %s",
            user_id,
            exc.message,
            extra={"org_id": str(org_id), "user_id": str(user_id)},
        )
        return None
