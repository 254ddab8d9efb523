"""Seat pool maintenance and per-user seat allocation."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, status
from pydantic import BaseModel, Field

from orgaccess.api.dependencies import AdminDep, StoreDep
from orgaccess.api.schemas import OrgLicenseOut, UserLicenseOut
from orgaccess.services import license_pool

router = APIRouter(tags=["licenses"])


class LicenseUpdateIn(BaseModel):
    total_seats: int | None = Field(default=None, ge=0)
    status: str | None = None
    end_date: int | None = None
    notes: str | None = None


class AllocateIn(BaseModel):
    user_id: UUID


@router.get("/v1/org-licenses/{license_id}", response_model=OrgLicenseOut)
async def get_license(license_id: UUID, store: StoreDep, _: AdminDep) -> OrgLicenseOut:
    pool = await license_pool.get_license(store, license_id)
    return OrgLicenseOut.model_validate(pool)


@router.patch("/v1/org-licenses/{license_id}", response_model=OrgLicenseOut)
async def update_license(
    license_id: UUID, body: LicenseUpdateIn, store: StoreDep, _: AdminDep
) -> OrgLicenseOut:
    pool = await license_pool.update_license(
        store, license_id, **body.model_dump(exclude_unset=True)
    )
    return OrgLicenseOut.model_validate(pool)


@router.post(
    "/v1/org-licenses/{license_id}/seats",
    response_model=UserLicenseOut,
    status_code=status.HTTP_201_CREATED,
)
async def allocate_seat(
    license_id: UUID, body: AllocateIn, store: StoreDep, principal: AdminDep
) -> UserLicenseOut:
    lic = await license_pool.allocate_seat(
        store, license_id, body.user_id, assigned_by=principal.user_id
    )
    return UserLicenseOut.model_validate(lic)


@router.delete("/v1/user-licenses/{user_license_id}", status_code=status.HTTP_204_NO_CONTENT)
async def deallocate_seat(user_license_id: UUID, store: StoreDep, _: AdminDep) -> None:
    await license_pool.deallocate_seat(store, user_license_id)
