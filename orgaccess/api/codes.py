"""Registration code endpoints.

``/validate`` and ``/join`` are open to any authenticated user; the rest
is platform-admin only.
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
    CodeOut,
    CodeTransitionOut,
    CodeValidationOut,
    JoinOut,
    PageOut,
    page_out,
)
from orgaccess.services import code_lifecycle, registration_service
from orgaccess.services.code_validator import validate_code

router = APIRouter(prefix="/v1/org-codes", tags=["org-codes"])


class CodeIn(BaseModel):
    code: str = Field(min_length=1, max_length=64)


class CodeCreateIn(BaseModel):
    org_id: UUID
    code: str | None = Field(default=None, max_length=64)
    description: str | None = None
    max_uses: int | None = Field(default=None, ge=1)
    valid_from: int | None = None
    valid_until: int | None = None
    default_role: str = "member"
    auto_assign_license_type_id: UUID | None = None
    notes: str | None = None


class CodeUpdateIn(BaseModel):
    description: str | None = None
    max_uses: int | None = Field(default=None, ge=1)
    valid_until: int | None = None
    default_role: str | None = None
    auto_assign_license_type_id: UUID | None = None
    notes: str | None = None


@router.post("", response_model=CodeOut, status_code=status.HTTP_201_CREATED)
async def create_code(body: CodeCreateIn, store: StoreDep, principal: AdminDep) -> CodeOut:
    record = await code_lifecycle.create_code(
        store, **body.model_dump(), created_by=principal.user_id
    )
    return CodeOut.model_validate(record)


@router.get("", response_model=PageOut[CodeOut])
async def list_codes(
    store: StoreDep,
    _: AdminDep,
    paging: PageDep,
    status_filter: Annotated[str | None, Query(alias="status")] = None,
    org_id: UUID | None = None,
) -> dict:
    page = await code_lifecycle.list_codes(
        store,
        page=paging.page,
        page_size=paging.page_size,
        status=status_filter,
        org_id=org_id,
    )
    return page_out(page, CodeOut)


@router.post("/validate", response_model=CodeValidationOut)
async def validate(body: CodeIn, store: StoreDep, _: UserDep) -> CodeValidationOut:
    result = await validate_code(store, body.code)
    return CodeValidationOut.model_validate(result)


@router.post("/join", response_model=JoinOut, status_code=status.HTTP_201_CREATED)
async def join(body: CodeIn, store: StoreDep, principal: UserDep) -> JoinOut:
    result = await registration_service.join_with_code(
        store, body.code, principal_user_id(principal)
    )
    return JoinOut.model_validate(result)


@router.post("/use", response_model=CodeOut)
async def use(body: CodeIn, store: StoreDep, _: AdminDep) -> CodeOut:
    record = await code_lifecycle.use_code(store, body.code)
    return CodeOut.model_validate(record)


@router.get("/{code_id}", response_model=CodeOut)
async def get_code(code_id: UUID, store: StoreDep, _: AdminDep) -> CodeOut:
    record = await code_lifecycle.get_code(store, code_id)
    return CodeOut.model_validate(record)


@router.patch("/{code_id}", response_model=CodeOut)
async def update_code(
    code_id: UUID, body: CodeUpdateIn, store: StoreDep, _: AdminDep
) -> CodeOut:
    record = await code_lifecycle.update_code(
        store, code_id, **body.model_dump(exclude_unset=True)
    )
    return CodeOut.model_validate(record)


@router.post("/{code_id}/revoke", response_model=CodeTransitionOut)
async def revoke(code_id: UUID, store: StoreDep, _: AdminDep) -> CodeTransitionOut:
    result = await code_lifecycle.revoke_code(store, code_id)
    return CodeTransitionOut.model_validate(result)


@router.post("/{code_id}/reactivate", response_model=CodeTransitionOut)
async def reactivate(code_id: UUID, store: StoreDep, _: AdminDep) -> CodeTransitionOut:
    result = await code_lifecycle.reactivate_code(store, code_id)
    return CodeTransitionOut.model_validate(result)
