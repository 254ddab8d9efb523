"""Registration codes.

A code's stored ``status`` is a cache.  The source of truth is
``derive_code_status``: revoked wins, then a full use-count, then expiry.
Every write path recomputes it instead of trusting what was read.
"""

from __future__ import annotations

import datetime
import secrets
from dataclasses import dataclass
from uuid import UUID, uuid4

from orgaccess.core.clock import utc_now_ts
from orgaccess.models.organization import OrgSummary

CODE_STATUSES = ("active", "revoked", "exhausted", "expired")


def normalize_code(code: str) -> str:
    return code.strip().upper()


def generate_code(slug: str, *, year: int | None = None) -> str:
    """Build a code like ``ACME-2025-ABCD1234`` from the org slug."""
    prefix = slug.upper().replace("-", "")[:8] or "ORG"
    if year is None:
        year = datetime.datetime.now(datetime.UTC).year
    return f"{prefix}-{year}-{secrets.token_hex(4).upper()}"


def derive_code_status(
    current_uses: int,
    max_uses: int | None,
    *,
    revoked: bool = False,
    expired: bool = False,
) -> str:
    if revoked:
        return "revoked"
    if max_uses is not None and current_uses >= max_uses:
        return "exhausted"
    if expired:
        return "expired"
    return "active"


@dataclass(frozen=True, slots=True)
class OrganizationCode:
    id: UUID
    code: str
    org_id: UUID
    status: str = "active"  # active|revoked|exhausted|expired
    description: str | None = None
    max_uses: int | None = None
    current_uses: int = 0
    valid_from: int = 0
    valid_until: int | None = None
    default_role: str = "member"
    auto_assign_license_type_id: UUID | None = None
    notes: str | None = None
    created_by: str | None = None
    created_at: int = 0

    @property
    def is_revoked(self) -> bool:
        return self.status == "revoked"

    def is_expired_at(self, now: int) -> bool:
        return self.valid_until is not None and now > self.valid_until

    @staticmethod
    def new(
        *,
        code: str,
        org_id: UUID,
        description: str | None = None,
        max_uses: int | None = None,
        valid_from: int | None = None,
        valid_until: int | None = None,
        default_role: str = "member",
        auto_assign_license_type_id: UUID | None = None,
        notes: str | None = None,
        created_by: str | None = None,
    ) -> OrganizationCode:
        now = utc_now_ts()
        return OrganizationCode(
            id=uuid4(),
            code=normalize_code(code),
            org_id=org_id,
            description=description,
            max_uses=max_uses,
            valid_from=now if valid_from is None else valid_from,
            valid_until=valid_until,
            default_role=default_role,
            auto_assign_license_type_id=auto_assign_license_type_id,
            notes=notes,
            created_by=created_by,
            created_at=now,
        )


@dataclass(frozen=True, slots=True)
class CodeValidation:
    """Outcome of checking whether a code may be redeemed right now.

    Expected rejections are data, not exceptions: ``valid`` is False and
    ``reason`` says why.
    """

    valid: bool
    reason: str | None = None
    organization: OrgSummary | None = None
    default_role: str | None = None
    auto_assign_license_type_id: UUID | None = None

    @staticmethod
    def reject(reason: str) -> CodeValidation:
        return CodeValidation(valid=False, reason=reason)
