"""Registration code validation.

``validate_code`` answers "may this code be redeemed right now?" and
returns a CodeValidation instead of raising, so join flows can branch on
``valid`` and surface ``reason`` to the user.  Checks run in a fixed
order and the first failure wins:

  1. the code exists
  2. it is not revoked
  3. its organization is active
  4. now >= valid_from
  5. now <= valid_until (when set)
  6. current_uses < max_uses (when set)

The only writes are idempotent status corrections.  A failed check on
the window or the cap persists "expired" / "exhausted"; a code that
passes every check is set back to "active" if its stored status lagged.
"""

from __future__ import annotations

import logging

from orgaccess.core.clock import utc_now_ts
from orgaccess.core.metrics import CODE_REDEMPTIONS
from orgaccess.models.org_code import CodeValidation, normalize_code
from orgaccess.models.organization import OrgSummary
from orgaccess.repos.store import Store

logger = logging.getLogger(__name__)


def _reject(code: str, reason: str, metric: str) -> CodeValidation:
    CODE_REDEMPTIONS.labels(result=metric).inc()
    logger.info("Rejected code=%s: %s", code, reason, extra={"code": code})
    return CodeValidation.reject(reason)


async def validate_code(
    store: Store, code: str, *, now: int | None = None
) -> CodeValidation:
    now = utc_now_ts() if now is None else now
    code = normalize_code(code)

    record = await store.codes.get_by_code(code)
    if record is None:
        return _reject(code, "Invalid organization code", "invalid")

    if record.is_revoked:
        return _reject(code, "Code is revoked", "revoked")

    org = await store.orgs.get_by_id(record.org_id)
    if org is None or not org.is_active:
        return _reject(code, "Organization is not active", "org_inactive")

    if now < record.valid_from:
        return _reject(code, "Code is not yet valid", "not_yet_valid")

    if record.is_expired_at(now):
        if record.status != "expired" and record.status != "exhausted":
            async with store.transaction():
                await store.codes.set_status(record.id, "expired")
        return _reject(code, "Code has expired", "expired")

    if record.max_uses is not None and record.current_uses >= record.max_uses:
        if record.status != "exhausted":
            async with store.transaction():
                await store.codes.set_status(record.id, "exhausted")
        return _reject(code, "Code has reached maximum uses", "exhausted")

    if record.status != "active":
        # Stored status lagged behind an edit to the window or the cap.
        async with store.transaction():
            await store.codes.set_status(record.id, "active")

    CODE_REDEMPTIONS.labels(result="valid").inc()
    return CodeValidation(
        valid=True,
        organization=OrgSummary.of(org),
        default_role=record.default_role,
        auto_assign_license_type_id=record.auto_assign_license_type_id,
    )
