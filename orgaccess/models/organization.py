from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID, uuid4

from orgaccess.core.clock import utc_now_ts

ORG_STATUSES = ("active", "suspended", "inactive")
ORG_ROLES = ("owner", "admin", "member")


@dataclass(frozen=True, slots=True)
class Organization:
    id: UUID
    name: str
    slug: str
    domain: str | None = None
    status: str = "active"  # active|suspended|inactive
    max_members: int = 0  # 0 = unlimited
    contact_email: str | None = None
    contact_name: str | None = None
    created_by: str | None = None
    created_at: int = 0

    @property
    def is_active(self) -> bool:
        return self.status == "active"

    @property
    def has_member_cap(self) -> bool:
        return self.max_members > 0

    @staticmethod
    def new(
        *,
        name: str,
        slug: str,
        domain: str | None = None,
        max_members: int = 0,
        contact_email: str | None = None,
        contact_name: str | None = None,
        created_by: str | None = None,
    ) -> Organization:
        return Organization(
            id=uuid4(),
            name=name,
            slug=slug,
            domain=domain,
            max_members=max_members,
            contact_email=contact_email,
            contact_name=contact_name,
            created_by=created_by,
            created_at=utc_now_ts(),
        )


@dataclass(frozen=True, slots=True)
class OrgSummary:
    """Minimal organization descriptor handed to join flows."""

    id: UUID
    name: str
    slug: str
    status: str

    @staticmethod
    def of(org: Organization) -> OrgSummary:
        return OrgSummary(id=org.id, name=org.name, slug=org.slug, status=org.status)


@dataclass(frozen=True, slots=True)
class OrgMembership:
    """One (organization, user) pairing.

    Rows are never purged: removal flips ``is_active`` and a later join
    reactivates the same row.  ``registration_code`` records which code,
    if any, the member joined with; the revocation cascade keys on it and
    stamps ``suspended_by_code`` on the rows it deactivates, so that
    reactivating the code restores exactly those rows.
    """

    id: UUID
    org_id: UUID
    user_id: UUID
    org_role: str  # owner|admin|member
    is_active: bool = True
    joined_at: int = 0
    department: str | None = None
    title: str | None = None
    invited_by: str | None = None
    registration_code: str | None = None
    suspended_by_code: str | None = None

    @property
    def is_owner(self) -> bool:
        return self.org_role == "owner"

    @staticmethod
    def new(
        *,
        org_id: UUID,
        user_id: UUID,
        org_role: str = "member",
        department: str | None = None,
        title: str | None = None,
        invited_by: str | None = None,
        registration_code: str | None = None,
    ) -> OrgMembership:
        return OrgMembership(
            id=uuid4(),
            org_id=org_id,
            user_id=user_id,
            org_role=org_role,
            is_active=True,
            joined_at=utc_now_ts(),
            department=department,
            title=title,
            invited_by=invited_by,
            registration_code=registration_code,
        )
