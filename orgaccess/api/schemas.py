"""Pydantic response models shared by the routers.

Domain dataclasses are read with ``from_attributes`` so services can keep
returning plain models.  Timestamps are epoch seconds throughout.
"""

from __future__ import annotations

from typing import Generic, TypeVar
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from orgaccess.models.pagination import Page

T = TypeVar("T")


class _Out(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class PaginationOut(BaseModel):
    page: int
    page_size: int
    total: int
    total_pages: int


class PageOut(BaseModel, Generic[T]):
    items: list[T]
    pagination: PaginationOut


def page_out(page: Page, item_model: type[_Out]) -> dict:
    return {
        "items": [item_model.model_validate(i) for i in page.items],
        "pagination": PaginationOut(
            page=page.page,
            page_size=page.page_size,
            total=page.total,
            total_pages=page.total_pages,
        ),
    }


class OrgOut(_Out):
    id: UUID
    name: str
    slug: str
    domain: str | None
    status: str
    max_members: int
    contact_email: str | None
    contact_name: str | None
    created_by: str | None
    created_at: int


class OrgSummaryOut(_Out):
    id: UUID
    name: str
    slug: str
    status: str


class MembershipOut(_Out):
    id: UUID
    org_id: UUID
    user_id: UUID
    org_role: str
    is_active: bool
    joined_at: int
    department: str | None
    title: str | None
    invited_by: str | None
    registration_code: str | None


class UserLicenseOut(_Out):
    id: UUID
    user_id: UUID
    license_type_id: UUID
    org_id: UUID | None
    license_key: str
    status: str
    start_date: int
    end_date: int
    notes: str | None
    assigned_by: str | None


class MemberOut(MembershipOut):
    license: UserLicenseOut | None = None


class OrgLicenseOut(_Out):
    id: UUID
    org_id: UUID
    license_type_id: UUID
    license_key: str
    status: str
    total_seats: int
    used_seats: int
    available_seats: int
    start_date: int
    end_date: int
    notes: str | None
    assigned_by: str | None


class SeatAvailabilityOut(_Out):
    license_id: UUID
    license_type_id: UUID
    license_type_name: str
    total_seats: int
    used_seats: int
    available_seats: int
    expires_at: int


class CodeOut(_Out):
    id: UUID
    code: str
    org_id: UUID
    status: str
    description: str | None
    max_uses: int | None
    current_uses: int
    valid_from: int
    valid_until: int | None
    default_role: str
    auto_assign_license_type_id: UUID | None
    notes: str | None
    created_by: str | None
    created_at: int


class CodeValidationOut(_Out):
    valid: bool
    reason: str | None = None
    organization: OrgSummaryOut | None = None
    default_role: str | None = None
    auto_assign_license_type_id: UUID | None = None


class CodeTransitionOut(_Out):
    code: str
    affected_users: int
    resumed_licenses: int | None = None
    message: str


class JoinOut(_Out):
    membership: MembershipOut
    organization: OrgSummaryOut
    license: UserLicenseOut | None = None
