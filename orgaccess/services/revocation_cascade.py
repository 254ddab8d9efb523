"""Propagate a registration code's revoke/reactivate to its members.

Revoking a code cuts off everyone who joined with it: their pooled
licenses are suspended (seat returned to the pool) and their membership
row is deactivated.  Reactivating the code puts back exactly what the
revocation took away.

Each walk fetches its members once, up front, and runs inside a single
``store.transaction()``.  Both walks are idempotent: a row the revocation
already handled is no longer active, and a row the restore already
handled no longer carries ``suspended_by_code``, so a retry after a
partial failure converges on the same end state.

Provenance lives in the license ``notes``.  Suspension appends
``Suspended: Registration code <CODE> was revoked (was <status>)``; restore
only touches licenses whose latest note is that exact line, and puts the
recorded status back.  A grant whose type the user picked up elsewhere in
the meantime stays suspended.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace

from orgaccess.core.clock import utc_now_ts
from orgaccess.core.metrics import CODE_CASCADE_USERS, CODE_CASCADES, SEAT_OPERATIONS
from orgaccess.models.license import HOLDING_STATUSES, UserLicense, append_note
from orgaccess.models.org_code import OrganizationCode
from orgaccess.models.organization import OrgMembership
from orgaccess.repos.store import Store

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CascadeResult:
    affected_users: int
    resumed_licenses: int = 0


def suspension_note(code: str, prior_status: str = "active") -> str:
    return f"Suspended: Registration code {code} was revoked (was {prior_status})"


def resumption_note(code: str) -> str:
    return f"Resumed: Registration code {code} was reactivated"


def _status_before_suspension(lic: UserLicense, code: str) -> str | None:
    """The status this code's revocation took away, or None if it didn't
    suspend ``lic``."""
    if lic.status != "suspended" or not lic.notes:
        return None
    latest = lic.notes.rsplit("\n\n", 1)[-1]
    return next(
        (s for s in HOLDING_STATUSES if latest == suspension_note(code, s)), None
    )


async def _protected_owners(
    store: Store, record: OrganizationCode, members: list[OrgMembership]
) -> set:
    """Owners the cascade must leave alone to keep the org owned.

    If deactivating every code-joined member would leave other active
    members with no active owner, the longest-standing code-joined owner
    stays.  One owner is enough.
    """
    owners = [m for m in members if m.is_owner]
    if not owners:
        return set()
    remaining_members = await store.members.count_active(record.org_id) - len(members)
    remaining_owners = await store.members.count_active_owners(record.org_id) - len(owners)
    if remaining_owners == 0 and remaining_members > 0:
        keeper = min(owners, key=lambda m: m.joined_at)
        return {keeper.user_id}
    return set()


async def suspend_for_code(store: Store, record: OrganizationCode) -> CascadeResult:
    async with store.transaction():
        members = await store.members.list_by_registration_code(
            record.org_id, record.code, is_active=True
        )
        protected = await _protected_owners(store, record, members)
        if protected:
            logger.warning(
                "Code %s revocation keeps %d owner(s) active to preserve org ownership",
                record.code,
                len(protected),
                extra={"org_id": str(record.org_id), "code": record.code},
            )

        affected = 0
        for member in members:
            if member.user_id in protected:
                continue

            licenses = await store.user_licenses.list_for_user_in_org(
                member.user_id, record.org_id, statuses=HOLDING_STATUSES
            )
            for lic in licenses:
                await store.user_licenses.update(
                    replace(
                        lic,
                        status="suspended",
                        notes=append_note(
                            lic.notes, suspension_note(record.code, lic.status)
                        ),
                    )
                )
                pool = await store.pools.find_active(record.org_id, lic.license_type_id)
                if pool is not None:
                    await store.pools.release_seat(pool.id)
                SEAT_OPERATIONS.labels(operation="suspend").inc()

            await store.members.update(
                replace(member, is_active=False, suspended_by_code=record.code)
            )
            affected += 1
            logger.info(
                "Suspended member user=%s (%d license(s)) after code revocation",
                member.user_id,
                len(licenses),
                extra={"org_id": str(record.org_id), "code": record.code},
            )

    CODE_CASCADES.labels(action="revoke").inc()
    CODE_CASCADE_USERS.labels(action="revoke").inc(affected)
    return CascadeResult(affected_users=affected)


async def restore_for_code(
    store: Store, record: OrganizationCode, *, now: int | None = None
) -> CascadeResult:
    now = utc_now_ts() if now is None else now

    async with store.transaction():
        members = [
            m
            for m in await store.members.list_by_registration_code(
                record.org_id, record.code, is_active=False
            )
            if m.suspended_by_code == record.code
        ]

        resumed = 0
        for member in members:
            licenses = await store.user_licenses.list_for_user_in_org(
                member.user_id, record.org_id, statuses=("suspended",)
            )
            for lic in licenses:
                prior = _status_before_suspension(lic, record.code)
                if prior is None:
                    continue
                if await _resume_license(store, record, lic, prior, now=now):
                    resumed += 1

            await store.members.update(
                replace(member, is_active=True, suspended_by_code=None)
            )

    CODE_CASCADES.labels(action="reactivate").inc()
    CODE_CASCADE_USERS.labels(action="reactivate").inc(len(members))
    logger.info(
        "Code %s reactivated: %d member(s) restored, %d license(s) resumed",
        record.code,
        len(members),
        resumed,
        extra={"org_id": str(record.org_id), "code": record.code},
    )
    return CascadeResult(affected_users=len(members), resumed_licenses=resumed)


async def _resume_license(
    store: Store,
    record: OrganizationCode,
    lic: UserLicense,
    prior_status: str,
    *,
    now: int,
) -> bool:
    if lic.end_date < now:
        # Term ran out while suspended; it stays over.
        await store.user_licenses.update(
            replace(
                lic,
                status="expired",
                notes=append_note(
                    lic.notes,
                    f"Not resumed: license ended before code {record.code} "
                    "was reactivated",
                ),
            )
        )
        return False

    holding = await store.user_licenses.find_holding(lic.user_id, lic.license_type_id)
    if holding is not None:
        await store.user_licenses.update(
            replace(
                lic,
                notes=append_note(
                    lic.notes, "Not resumed: user already holds this license type"
                ),
            )
        )
        logger.warning(
            "License %s stays suspended: user=%s already holds license %s",
            lic.id,
            lic.user_id,
            holding.id,
            extra={"org_id": str(record.org_id), "license_id": str(lic.id)},
        )
        return False

    pool = await store.pools.find_active(record.org_id, lic.license_type_id)
    if pool is None or not await store.pools.claim_seat(pool.id):
        logger.warning(
            "License %s stays suspended: no free seat in the pool",
            lic.id,
            extra={"org_id": str(record.org_id), "license_id": str(lic.id)},
        )
        return False

    await store.user_licenses.update(
        replace(
            lic,
            status=prior_status,
            notes=append_note(lic.notes, resumption_note(record.code)),
        )
    )
    SEAT_OPERATIONS.labels(operation="resume").inc()
    return True
