"""Organization registry, membership, and seat pool endpoints.

Management endpoints require the platform ``admin`` role; finer-grained
authorization (org owners managing their own org) belongs to the layer
in front of this service.
"""

from __future__ import annotations

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Query, status
from pydantic import BaseModel, Field

from orgaccess.api.dependencies import (
    AdminDep,
    PageDep,
    StoreDep,
    UserDep,
    principal_user_id,
)
from orgaccess.api.schemas import (
    MemberOut,
    MembershipOut,
    OrgLicenseOut,
    OrgOut,
    PageOut,
    SeatAvailabilityOut,
    UserLicenseOut,
    page_out,
)
from orgaccess.services import license_pool, membership_service, organizations_service

router = APIRouter(prefix="/v1/orgs", tags=["orgs"])


class OrgCreateIn(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    slug: str = Field(min_length=1, max_length=255)
    domain: str | None = None
    max_members: int = Field(default=0, ge=0)
    contact_email: str | None = None
    contact_name: str | None = None


class OrgUpdateIn(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    domain: str | None = None
    status: str | None = None
    max_members: int | None = Field(default=None, ge=0)
    contact_email: str | None = None
    contact_name: str | None = None


class AddMemberIn(BaseModel):
    user_id: UUID
    org_role: str = "member"
    department: str | None = None
    title: str | None = None


class UpdateMemberIn(BaseModel):
    org_role: str | None = None
    department: str | None = None
    title: str | None = None


class LicenseCreateIn(BaseModel):
    license_type_id: UUID
    total_seats: int = Field(ge=1)
    end_date: int
    start_date: int | None = None
    notes: str | None = None


class MyOrganizationOut(BaseModel):
    organization: OrgOut
    membership: MembershipOut


# --- Organizations ---


@router.post("", response_model=OrgOut, status_code=status.HTTP_201_CREATED)
async def create_org(body: OrgCreateIn, store: StoreDep, principal: AdminDep) -> OrgOut:
    org = await organizations_service.create_organization(
        store, **body.model_dump(), created_by=principal.user_id
    )
    return OrgOut.model_validate(org)


@router.get("", response_model=PageOut[OrgOut])
async def list_orgs(
    store: StoreDep,
    _: AdminDep,
    paging: PageDep,
    status_filter: Annotated[str | None, Query(alias="status")] = None,
    search: str | None = None,
) -> dict:
    page = await organizations_service.list_organizations(
        store,
        page=paging.page,
        page_size=paging.page_size,
        status=status_filter,
        search=search,
    )
    return page_out(page, OrgOut)


@router.get("/me", response_model=MyOrganizationOut | None)
async def my_org(store: StoreDep, principal: UserDep) -> MyOrganizationOut | None:
    """The caller's active organization, or null."""
    found = await membership_service.get_user_organization(
        store, principal_user_id(principal)
    )
    if found is None:
        return None
    return MyOrganizationOut(
        organization=OrgOut.model_validate(found.organization),
        membership=MembershipOut.model_validate(found.membership),
    )


@router.get("/slug/{slug}", response_model=OrgOut)
async def get_org_by_slug(slug: str, store: StoreDep, _: AdminDep) -> OrgOut:
    org = await organizations_service.get_organization_by_slug(store, slug)
    return OrgOut.model_validate(org)


@router.get("/{org_id}", response_model=OrgOut)
async def get_org(org_id: UUID, store: StoreDep, _: AdminDep) -> OrgOut:
    org = await organizations_service.get_organization(store, org_id)
    return OrgOut.model_validate(org)


@router.patch("/{org_id}", response_model=OrgOut)
async def update_org(
    org_id: UUID, body: OrgUpdateIn, store: StoreDep, _: AdminDep
) -> OrgOut:
    org = await organizations_service.update_organization(
        store, org_id, **body.model_dump(exclude_unset=True)
    )
    return OrgOut.model_validate(org)


@router.delete("/{org_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_org(
    org_id: UUID, store: StoreDep, _: AdminDep, force: bool = False
) -> None:
    await organizations_service.delete_organization(store, org_id, force=force)


# --- Members ---


@router.get("/{org_id}/members", response_model=list[MemberOut])
async def list_members(
    org_id: UUID, store: StoreDep, _: AdminDep, include_inactive: bool = False
) -> list[MemberOut]:
    await organizations_service.get_organization(store, org_id)
    members = await membership_service.list_members(
        store, org_id, include_inactive=include_inactive
    )
    return [
        MemberOut.model_validate(m.membership).model_copy(
            update={
                "license": UserLicenseOut.model_validate(m.license) if m.license else None
            }
        )
        for m in members
    ]


@router.post(
    "/{org_id}/members",
    response_model=MembershipOut,
    status_code=status.HTTP_201_CREATED,
)
async def add_member(
    org_id: UUID, body: AddMemberIn, store: StoreDep, principal: AdminDep
) -> MembershipOut:
    membership = await membership_service.add_member(
        store,
        org_id,
        body.user_id,
        body.org_role,
        invited_by=principal.user_id,
        department=body.department,
        title=body.title,
    )
    return MembershipOut.model_validate(membership)


@router.patch("/{org_id}/members/{user_id}", response_model=MembershipOut)
async def update_member(
    org_id: UUID, user_id: UUID, body: UpdateMemberIn, store: StoreDep, _: AdminDep
) -> MembershipOut:
    membership = await membership_service.update_member(
        store, org_id, user_id, **body.model_dump(exclude_unset=True)
    )
    return MembershipOut.model_validate(membership)


@router.delete("/{org_id}/members/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_member(
    org_id: UUID, user_id: UUID, store: StoreDep, _: AdminDep
) -> None:
    await membership_service.remove_member(store, org_id, user_id)


# --- License pools ---


@router.get("/{org_id}/licenses", response_model=list[OrgLicenseOut])
async def list_licenses(
    org_id: UUID, store: StoreDep, _: AdminDep, active_only: bool = False
) -> list[OrgLicenseOut]:
    await organizations_service.get_organization(store, org_id)
    pools = await license_pool.list_licenses(store, org_id, active_only=active_only)
    return [OrgLicenseOut.model_validate(p) for p in pools]


@router.post(
    "/{org_id}/licenses",
    response_model=OrgLicenseOut,
    status_code=status.HTTP_201_CREATED,
)
async def create_license(
    org_id: UUID, body: LicenseCreateIn, store: StoreDep, principal: AdminDep
) -> OrgLicenseOut:
    pool = await license_pool.create_license(
        store, org_id=org_id, **body.model_dump(), assigned_by=principal.user_id
    )
    return OrgLicenseOut.model_validate(pool)


@router.get("/{org_id}/seats", response_model=list[SeatAvailabilityOut])
async def available_seats(
    org_id: UUID, store: StoreDep, _: AdminDep
) -> list[SeatAvailabilityOut]:
    await organizations_service.get_organization(store, org_id)
    seats = await license_pool.get_available_seats(store, org_id)
    return [SeatAvailabilityOut.model_validate(s) for s in seats]
