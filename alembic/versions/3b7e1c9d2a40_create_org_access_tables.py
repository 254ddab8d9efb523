"""create org access tables

Revision ID: 3b7e1c9d2a40
Revises:
Create Date: 2026-10-17 00:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3b7e1c9d2a40"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("email", sa.String(length=320), nullable=False, unique=True),
        sa.Column("name", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
    )

    op.create_table(
        "organizations",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("slug", sa.String(length=255), nullable=False, unique=True),
        sa.Column("domain", sa.String(length=255), nullable=True, unique=True),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="active"),
        sa.Column("max_members", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("contact_email", sa.String(length=320), nullable=True),
        sa.Column("contact_name", sa.String(length=255), nullable=True),
        sa.Column("created_by", sa.String(length=320), nullable=True),
        sa.Column("created_at", sa.Integer(), nullable=False),
    )

    op.create_table(
        "license_types",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("tier", sa.String(length=32), nullable=False, server_default="standard"),
    )

    op.create_table(
        "org_memberships",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("org_id", sa.Uuid(), sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("org_role", sa.String(length=32), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("joined_at", sa.Integer(), nullable=False),
        sa.Column("department", sa.String(length=255), nullable=True),
        sa.Column("title", sa.String(length=255), nullable=True),
        sa.Column("invited_by", sa.String(length=320), nullable=True),
        sa.Column("registration_code", sa.String(length=64), nullable=True),
        sa.Column("suspended_by_code", sa.String(length=64), nullable=True),
        sa.UniqueConstraint("org_id", "user_id"),
    )
    op.create_index(
        "ix_org_memberships_registration_code", "org_memberships", ["registration_code"]
    )

    op.create_table(
        "organization_codes",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("code", sa.String(length=64), nullable=False, unique=True),
        sa.Column("org_id", sa.Uuid(), sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="active"),
        sa.Column("description", sa.String(length=500), nullable=True),
        sa.Column("max_uses", sa.Integer(), nullable=True),
        sa.Column("current_uses", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("valid_from", sa.Integer(), nullable=False),
        sa.Column("valid_until", sa.Integer(), nullable=True),
        sa.Column("default_role", sa.String(length=32), nullable=False, server_default="member"),
        sa.Column(
            "auto_assign_license_type_id",
            sa.Uuid(),
            sa.ForeignKey("license_types.id"),
            nullable=True,
        ),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_by", sa.String(length=320), nullable=True),
        sa.Column("created_at", sa.Integer(), nullable=False),
        sa.CheckConstraint(
            "max_uses IS NULL OR current_uses <= max_uses",
            name="ck_org_codes_uses_within_max",
        ),
    )
    op.create_index("ix_organization_codes_org_id", "organization_codes", ["org_id"])

    op.create_table(
        "organization_licenses",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("org_id", sa.Uuid(), sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column(
            "license_type_id", sa.Uuid(), sa.ForeignKey("license_types.id"), nullable=False
        ),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="active"),
        sa.Column("total_seats", sa.Integer(), nullable=False),
        sa.Column("used_seats", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("start_date", sa.Integer(), nullable=False),
        sa.Column("end_date", sa.Integer(), nullable=False),
        sa.Column("license_key", sa.String(length=64), nullable=False, unique=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("assigned_by", sa.String(length=320), nullable=True),
        sa.CheckConstraint(
            "used_seats >= 0 AND used_seats <= total_seats",
            name="ck_org_licenses_seats_in_range",
        ),
    )
    op.create_index("ix_organization_licenses_org_id", "organization_licenses", ["org_id"])

    op.create_table(
        "user_licenses",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column(
            "license_type_id", sa.Uuid(), sa.ForeignKey("license_types.id"), nullable=False
        ),
        sa.Column("org_id", sa.Uuid(), sa.ForeignKey("organizations.id"), nullable=True),
        sa.Column("license_key", sa.String(length=64), nullable=False, unique=True),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="active"),
        sa.Column("start_date", sa.Integer(), nullable=False),
        sa.Column("end_date", sa.Integer(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("assigned_by", sa.String(length=320), nullable=True),
    )
    op.create_index("ix_user_licenses_user_id", "user_licenses", ["user_id"])
    op.create_index("ix_user_licenses_org_id", "user_licenses", ["org_id"])


def downgrade() -> None:
    op.drop_table("user_licenses")
    op.drop_table("organization_licenses")
    op.drop_table("organization_codes")
    op.drop_table("org_memberships")
    op.drop_table("license_types")
    op.drop_table("organizations")
    op.drop_table("users")
