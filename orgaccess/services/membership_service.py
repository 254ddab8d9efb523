"""Organization membership management.

Two rules are enforced here and nowhere else:

  Capacity: once an organization with ``max_members > 0`` is full, no
  member is added, whether as a brand-new row or by reactivating a
  previously removed one.  (Reactivating a revoked code restores its
  members without this check.)

  Last owner: an organization with active members keeps at least one
  active owner.  Demoting or removing an owner is only allowed while
  another active owner exists.

Removal is a soft delete.  Seats held by a removed member are not
released here; callers that want that chain ``deallocate_seat``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from uuid import UUID

from orgaccess.models.license import UserLicense
from orgaccess.models.organization import ORG_ROLES, Organization, OrgMembership
from orgaccess.repos.store import Store
from orgaccess.services.errors import BadRequestError, ConflictError, NotFoundError

logger = logging.getLogger(__name__)

_LAST_OWNER = "Cannot remove the last owner. Assign another owner first."


@dataclass(frozen=True, slots=True)
class MemberWithLicense:
    membership: OrgMembership
    license: UserLicense | None


@dataclass(frozen=True, slots=True)
class UserOrganization:
    membership: OrgMembership
    organization: Organization


def _check_role(role: str) -> None:
    if role not in ORG_ROLES:
        raise BadRequestError(f"invalid org_role {role!r}")


async def _ensure_member_capacity(store: Store, org: Organization) -> None:
    if not org.has_member_cap:
        return
    if await store.members.count_active(org.id) >= org.max_members:
        logger.warning(
            "Member cap reached for org=%s (%d)",
            org.slug,
            org.max_members,
            extra={"org_id": str(org.id)},
        )
        raise BadRequestError(
            f"Organization has reached maximum member limit ({org.max_members})"
        )


async def _ensure_not_last_owner(store: Store, member: OrgMembership) -> None:
    if not (member.is_owner and member.is_active):
        return
    if await store.members.count_active_owners(member.org_id) <= 1:
        logger.warning(
            "Rejected change that would leave org=%s without an owner",
            member.org_id,
            extra={"org_id": str(member.org_id), "user_id": str(member.user_id)},
        )
        raise BadRequestError(_LAST_OWNER)


async def add_member(
    store: Store,
    org_id: UUID,
    user_id: UUID,
    role: str = "member",
    *,
    invited_by: str | None = None,
    registration_code: str | None = None,
    department: str | None = None,
    title: str | None = None,
) -> OrgMembership:
    _check_role(role)

    async with store.transaction():
        org = await store.orgs.get_by_id(org_id)
        if org is None:
            raise NotFoundError(f'Organization with ID "{org_id}" not found')
        if not org.is_active:
            raise BadRequestError("Organization is not active")

        user = await store.users.get_by_id(user_id)
        if user is None:
            raise NotFoundError(f'User with ID "{user_id}" not found')

        existing = await store.members.get(org_id, user_id)
        if existing is not None and existing.is_active:
            raise ConflictError("User is already a member of this organization")

        await _ensure_member_capacity(store, org)

        if existing is not None:
            membership = replace(
                existing,
                is_active=True,
                org_role=role,
                department=department,
                title=title,
                invited_by=invited_by,
                registration_code=registration_code,
                suspended_by_code=None,
            )
            await store.members.update(membership)
            logger.info(
                "Reactivated member %s in org=%s",
                user.email,
                org.slug,
                extra={"org_id": str(org_id), "user_id": str(user_id)},
            )
            return membership

        membership = OrgMembership.new(
            org_id=org_id,
            user_id=user_id,
            org_role=role,
            department=department,
            title=title,
            invited_by=invited_by,
            registration_code=registration_code,
        )
        await store.members.add(membership)

    logger.info(
        "Added member %s to org=%s as %s",
        user.email,
        org.slug,
        role,
        extra={"org_id": str(org_id), "user_id": str(user_id)},
    )
    return membership


async def update_member(
    store: Store,
    org_id: UUID,
    user_id: UUID,
    *,
    org_role: str | None = None,
    department: str | None = None,
    title: str | None = None,
) -> OrgMembership:
    if org_role is not None:
        _check_role(org_role)

    async with store.transaction():
        member = await store.members.get(org_id, user_id)
        if member is None:
            raise NotFoundError("Member not found in this organization")

        if org_role is not None and org_role != "owner":
            await _ensure_not_last_owner(store, member)

        updated = replace(
            member,
            org_role=org_role if org_role is not None else member.org_role,
            department=department if department is not None else member.department,
            title=title if title is not None else member.title,
        )
        await store.members.update(updated)
    return updated


async def remove_member(store: Store, org_id: UUID, user_id: UUID) -> OrgMembership:
    async with store.transaction():
        member = await store.members.get(org_id, user_id)
        if member is None or not member.is_active:
            raise NotFoundError("Active member not found in this organization")

        await _ensure_not_last_owner(store, member)

        removed = replace(member, is_active=False)
        await store.members.update(removed)

    logger.info(
        "Removed member user=%s from org=%s",
        user_id,
        org_id,
        extra={"org_id": str(org_id), "user_id": str(user_id)},
    )
    return removed


async def list_members(
    store: Store, org_id: UUID, *, include_inactive: bool = False
) -> list[MemberWithLicense]:
    """Members (owners first) with the active pooled license each one holds."""
    members = await store.members.list_by_org(org_id, include_inactive=include_inactive)
    licenses = await store.user_licenses.list_by_org(org_id, statuses=("active",))
    by_user = {lic.user_id: lic for lic in licenses}
    return [MemberWithLicense(membership=m, license=by_user.get(m.user_id)) for m in members]


async def get_user_organization(store: Store, user_id: UUID) -> UserOrganization | None:
    membership = await store.members.get_active_for_user(user_id)
    if membership is None:
        return None
    org = await store.orgs.get_by_id(membership.org_id)
    if org is None:
        return None
    return UserOrganization(membership=membership, organization=org)
