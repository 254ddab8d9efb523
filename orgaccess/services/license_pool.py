"""Organization license pools and seat allocation.

A pool grants ``total_seats`` licenses of one type to one organization.
Allocating a seat creates a UserLicense for a member and bumps the pool's
``used_seats``; deallocating deletes the grant and gives the seat back.
Seat counters only move through the repos' guarded writes, so two
requests racing for the last seat cannot both win.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from uuid import UUID

from orgaccess.core.metrics import SEAT_OPERATIONS
from orgaccess.models.license import POOL_STATUSES, OrganizationLicense, UserLicense
from orgaccess.repos.store import Store
from orgaccess.services.errors import BadRequestError, ConflictError, NotFoundError

logger = logging.getLogger(__name__)

_NO_SEATS = "No available seats in the license pool"


@dataclass(frozen=True, slots=True)
class SeatAvailability:
    license_id: UUID
    license_type_id: UUID
    license_type_name: str
    total_seats: int
    used_seats: int
    available_seats: int
    expires_at: int


async def get_license(store: Store, pool_id: UUID) -> OrganizationLicense:
    pool = await store.pools.get_by_id(pool_id)
    if pool is None:
        raise NotFoundError("Organization license not found")
    return pool


async def create_license(
    store: Store,
    *,
    org_id: UUID,
    license_type_id: UUID,
    total_seats: int,
    end_date: int,
    start_date: int | None = None,
    notes: str | None = None,
    assigned_by: str | None = None,
) -> OrganizationLicense:
    if total_seats < 1:
        raise BadRequestError("total_seats must be at least 1")

    async with store.transaction():
        org = await store.orgs.get_by_id(org_id)
        if org is None:
            raise NotFoundError(f'Organization with ID "{org_id}" not found')
        if not org.is_active:
            raise BadRequestError("Organization is not active")

        license_type = await store.license_types.get_by_id(license_type_id)
        if license_type is None:
            raise NotFoundError(f'License type with ID "{license_type_id}" not found')

        if await store.pools.find_active(org_id, license_type_id) is not None:
            raise ConflictError(
                "Organization already has an active license of this type. "
                "Update the existing license instead."
            )

        pool = OrganizationLicense.new(
            org_id=org_id,
            license_type_id=license_type_id,
            total_seats=total_seats,
            end_date=end_date,
            start_date=start_date,
            notes=notes,
            assigned_by=assigned_by,
        )
        await store.pools.add(pool)

    logger.info(
        "Created %s pool %s with %d seats for org=%s",
        license_type.name,
        pool.license_key,
        total_seats,
        org.slug,
        extra={"org_id": str(org_id), "license_id": str(pool.id), "actor_id": assigned_by},
    )
    return pool


async def list_licenses(
    store: Store, org_id: UUID, *, active_only: bool = False
) -> list[OrganizationLicense]:
    return await store.pools.list_by_org(org_id, active_only=active_only)


async def update_license(
    store: Store,
    pool_id: UUID,
    *,
    total_seats: int | None = None,
    status: str | None = None,
    end_date: int | None = None,
    notes: str | None = None,
) -> OrganizationLicense:
    if status is not None and status not in POOL_STATUSES:
        raise BadRequestError(f"invalid license status {status!r}")

    async with store.transaction():
        pool = await get_license(store, pool_id)

        if total_seats is not None and total_seats != pool.total_seats:
            if not await store.pools.set_total_seats(pool_id, total_seats):
                current = await get_license(store, pool_id)
                logger.warning(
                    "Refused to shrink pool %s to %d seats (%d in use)",
                    current.license_key,
                    total_seats,
                    current.used_seats,
                    extra={"org_id": str(pool.org_id), "license_id": str(pool_id)},
                )
                raise BadRequestError(
                    f"Cannot reduce seats to {total_seats}. "
                    f"Currently {current.used_seats} seats are in use."
                )

        if status is not None or end_date is not None or notes is not None:
            await store.pools.update(
                replace(
                    pool,
                    status=status if status is not None else pool.status,
                    end_date=end_date if end_date is not None else pool.end_date,
                    notes=notes if notes is not None else pool.notes,
                )
            )
        updated = await get_license(store, pool_id)
    return updated


async def allocate_seat(
    store: Store, pool_id: UUID, user_id: UUID, *, assigned_by: str | None = None
) -> UserLicense:
    async with store.transaction():
        pool = await get_license(store, pool_id)
        if not pool.is_active:
            raise BadRequestError("Organization license is not active")
        if pool.available_seats <= 0:
            raise BadRequestError(_NO_SEATS)

        member = await store.members.get(pool.org_id, user_id)
        if member is None or not member.is_active:
            raise BadRequestError("User is not an active member of this organization")

        if await store.user_licenses.find_holding(user_id, pool.license_type_id):
            raise ConflictError("User already has an active license of this type")

        if not await store.pools.claim_seat(pool.id):
            SEAT_OPERATIONS.labels(operation="allocate_rejected").inc()
            logger.warning(
                "Seat claim on pool %s lost to a concurrent allocation",
                pool.license_key,
                extra={"org_id": str(pool.org_id), "user_id": str(user_id)},
            )
            raise BadRequestError(_NO_SEATS)

        lic = UserLicense.from_pool(pool, user_id=user_id, assigned_by=assigned_by)
        await store.user_licenses.add(lic)

    SEAT_OPERATIONS.labels(operation="allocate").inc()
    logger.info(
        "Allocated seat from pool %s to user=%s",
        pool.license_key,
        user_id,
        extra={
            "org_id": str(pool.org_id),
            "user_id": str(user_id),
            "license_id": str(lic.id),
            "actor_id": assigned_by,
        },
    )
    return lic


async def deallocate_seat(store: Store, user_license_id: UUID) -> UserLicense:
    async with store.transaction():
        lic = await store.user_licenses.get_by_id(user_license_id)
        if lic is None:
            raise NotFoundError("User license not found")
        if not lic.is_pooled:
            raise BadRequestError(
                "This license was not allocated from an organization pool"
            )

        await store.user_licenses.delete(lic.id)
        if lic.holds_seat:
            pool = await store.pools.find_active(lic.org_id, lic.license_type_id)
            if pool is not None:
                await store.pools.release_seat(pool.id)

    SEAT_OPERATIONS.labels(operation="deallocate").inc()
    logger.info(
        "Deallocated license %s from user=%s",
        lic.license_key,
        lic.user_id,
        extra={"org_id": str(lic.org_id), "user_id": str(lic.user_id)},
    )
    return lic


async def get_available_seats(store: Store, org_id: UUID) -> list[SeatAvailability]:
    out: list[SeatAvailability] = []
    for pool in await store.pools.list_by_org(org_id, active_only=True):
        license_type = await store.license_types.get_by_id(pool.license_type_id)
        out.append(
            SeatAvailability(
                license_id=pool.id,
                license_type_id=pool.license_type_id,
                license_type_name=license_type.name if license_type else "",
                total_seats=pool.total_seats,
                used_seats=pool.used_seats,
                available_seats=pool.available_seats,
                expires_at=pool.end_date,
            )
        )
    return out
