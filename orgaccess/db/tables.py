"""SQLAlchemy table definitions.

These map to the frozen dataclass domain models in orgaccess/models/.
Repos convert between rows and dataclasses; nothing outside
orgaccess/repos/pg_*.py touches these classes.

Timestamps are Integer epoch seconds.  Counter invariants are also
declared as CHECK constraints so a bug in a guarded update fails loudly
at the database instead of silently over-allocating.
"""

from __future__ import annotations

import uuid

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from orgaccess.db.engine import Base


class UserRow(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    email: Mapped[str] = mapped_column(String(320), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class OrganizationRow(Base):
    __tablename__ = "organizations"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    domain: Mapped[str | None] = mapped_column(String(255), unique=True, nullable=True)
    status: Mapped[str] = mapped_column(
        String(32), nullable=False, default="active"
    )  # active|suspended|inactive
    max_members: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    contact_email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    contact_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_by: Mapped[str | None] = mapped_column(String(320), nullable=True)
    created_at: Mapped[int] = mapped_column(Integer, nullable=False)


class OrgMembershipRow(Base):
    __tablename__ = "org_memberships"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    org_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("organizations.id"), nullable=False
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False
    )
    org_role: Mapped[str] = mapped_column(String(32), nullable=False)  # owner|admin|member
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    joined_at: Mapped[int] = mapped_column(Integer, nullable=False)
    department: Mapped[str | None] = mapped_column(String(255), nullable=True)
    title: Mapped[str | None] = mapped_column(String(255), nullable=True)
    invited_by: Mapped[str | None] = mapped_column(String(320), nullable=True)
    registration_code: Mapped[str | None] = mapped_column(
        String(64), nullable=True, index=True
    )
    suspended_by_code: Mapped[str | None] = mapped_column(String(64), nullable=True)

    __table_args__ = (UniqueConstraint("org_id", "user_id"),)


class LicenseTypeRow(Base):
    __tablename__ = "license_types"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    tier: Mapped[str] = mapped_column(String(32), nullable=False, default="standard")


class OrganizationCodeRow(Base):
    __tablename__ = "organization_codes"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    code: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    org_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("organizations.id"), nullable=False, index=True
    )
    status: Mapped[str] = mapped_column(
        String(32), nullable=False, default="active"
    )  # active|revoked|exhausted|expired
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    max_uses: Mapped[int | None] = mapped_column(Integer, nullable=True)
    current_uses: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    valid_from: Mapped[int] = mapped_column(Integer, nullable=False)
    valid_until: Mapped[int | None] = mapped_column(Integer, nullable=True)
    default_role: Mapped[str] = mapped_column(
        String(32), nullable=False, default="member"
    )
    auto_assign_license_type_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("license_types.id"), nullable=True
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by: Mapped[str | None] = mapped_column(String(320), nullable=True)
    created_at: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (
        CheckConstraint(
            "max_uses IS NULL OR current_uses <= max_uses",
            name="ck_org_codes_uses_within_max",
        ),
    )


class OrganizationLicenseRow(Base):
    __tablename__ = "organization_licenses"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    org_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("organizations.id"), nullable=False, index=True
    )
    license_type_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("license_types.id"), nullable=False
    )
    status: Mapped[str] = mapped_column(
        String(32), nullable=False, default="active"
    )  # active|expired|suspended|cancelled
    total_seats: Mapped[int] = mapped_column(Integer, nullable=False)
    used_seats: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    start_date: Mapped[int] = mapped_column(Integer, nullable=False)
    end_date: Mapped[int] = mapped_column(Integer, nullable=False)
    license_key: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    assigned_by: Mapped[str | None] = mapped_column(String(320), nullable=True)

    __table_args__ = (
        CheckConstraint(
            "used_seats >= 0 AND used_seats <= total_seats",
            name="ck_org_licenses_seats_in_range",
        ),
    )


class UserLicenseRow(Base):
    __tablename__ = "user_licenses"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False, index=True
    )
    license_type_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("license_types.id"), nullable=False
    )
    org_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("organizations.id"), nullable=True, index=True
    )
    license_key: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    status: Mapped[str] = mapped_column(
        String(32), nullable=False, default="active"
    )  # active|trial|suspended|expired|cancelled
    start_date: Mapped[int] = mapped_column(Integer, nullable=False)
    end_date: Mapped[int] = mapped_column(Integer, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    assigned_by: Mapped[str | None] = mapped_column(String(320), nullable=True)
