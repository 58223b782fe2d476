"""Initial schema: users, brand/supplier profiles, organisations, members, invites.

Revision ID: 001
Revises:
Create Date: 2026-10-18

Adds:
- users, brands, suppliers
- organisations with a CHECK tying the profile FK to the type
- organisation_members with a partial unique index allowing one OWNER
- organisation_invites with a partial unique index on open (organisation, email) pairs
"""

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "001"
down_revision = None
branch_labels = None
depends_on = None

ACCOUNT_TYPES = ("MEMBER", "BRAND", "SUPPLIER", "ADMIN")
ORGANISATION_TYPES = ("BRAND", "SUPPLIER")
ORGANISATION_ROLES = ("OWNER", "ADMIN", "MEMBER")


def upgrade() -> None:
    """Create the organisation schema."""
    op.create_table(
        "users",
        sa.Column("id", sa.CHAR(36), primary_key=True),
        sa.Column("email", sa.String(255), unique=True, nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("first_name", sa.String(100), nullable=False),
        sa.Column("last_name", sa.String(100), nullable=False, server_default=""),
        sa.Column("job_title", sa.String(255), nullable=True),
        sa.Column(
            "account_type",
            sa.Enum(*ACCOUNT_TYPES, name="accounttype"),
            server_default="MEMBER",
        ),
        sa.Column("is_active", sa.Boolean, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("last_login", sa.DateTime(timezone=True), nullable=True),
    )

    for table in ("brands", "suppliers"):
        op.create_table(
            table,
            sa.Column("id", sa.CHAR(36), primary_key=True),
            sa.Column("name", sa.String(255), nullable=False),
            sa.Column("slug", sa.String(120), unique=True, nullable=False),
            sa.Column("description", sa.Text, nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        )

    op.create_table(
        "organisations",
        sa.Column("id", sa.CHAR(36), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("slug", sa.String(120), unique=True, nullable=False),
        sa.Column("type", sa.Enum(*ORGANISATION_TYPES, name="organisationtype"), nullable=False),
        sa.Column(
            "brand_id",
            sa.CHAR(36),
            sa.ForeignKey("brands.id", ondelete="RESTRICT"),
            unique=True,
            nullable=True,
        ),
        sa.Column(
            "supplier_id",
            sa.CHAR(36),
            sa.ForeignKey("suppliers.id", ondelete="RESTRICT"),
            unique=True,
            nullable=True,
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint(
            "(type = 'BRAND' AND brand_id IS NOT NULL AND supplier_id IS NULL) OR "
            "(type = 'SUPPLIER' AND supplier_id IS NOT NULL AND brand_id IS NULL)",
            name="ck_organisation_profile_matches_type",
        ),
    )

    op.create_table(
        "organisation_members",
        sa.Column("id", sa.CHAR(36), primary_key=True),
        sa.Column(
            "organisation_id",
            sa.CHAR(36),
            sa.ForeignKey("organisations.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "user_id",
            sa.CHAR(36),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "role",
            sa.Enum(*ORGANISATION_ROLES, name="organisationrole"),
            nullable=False,
            server_default="MEMBER",
        ),
        sa.Column("joined_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("organisation_id", "user_id", name="uq_org_member_org_user"),
    )
    op.create_index("ix_org_members_user_id", "organisation_members", ["user_id"])
    op.create_index(
        "uq_org_members_single_owner",
        "organisation_members",
        ["organisation_id"],
        unique=True,
        postgresql_where=sa.text("role = 'OWNER'"),
        sqlite_where=sa.text("role = 'OWNER'"),
    )

    op.create_table(
        "organisation_invites",
        sa.Column("id", sa.CHAR(36), primary_key=True),
        sa.Column(
            "organisation_id",
            sa.CHAR(36),
            sa.ForeignKey("organisations.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("token", sa.String(64), unique=True, nullable=False),
        sa.Column(
            "role",
            sa.Enum(*ORGANISATION_ROLES, name="organisationrole").with_variant(
                postgresql.ENUM(*ORGANISATION_ROLES, name="organisationrole", create_type=False),
                "postgresql",
            ),
            nullable=False,
            server_default="MEMBER",
        ),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column(
            "created_by_id",
            sa.CHAR(36),
            sa.ForeignKey("users.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("accepted_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index(
        "ix_org_invites_organisation_id", "organisation_invites", ["organisation_id"]
    )
    op.create_index("ix_org_invites_email", "organisation_invites", ["email"])
    op.create_index(
        "uq_org_invites_open_email",
        "organisation_invites",
        ["organisation_id", "email"],
        unique=True,
        postgresql_where=sa.text("accepted_at IS NULL"),
        sqlite_where=sa.text("accepted_at IS NULL"),
    )


def downgrade() -> None:
    """Drop the organisation schema."""
    op.drop_index("uq_org_invites_open_email", table_name="organisation_invites")
    op.drop_index("ix_org_invites_email", table_name="organisation_invites")
    op.drop_index("ix_org_invites_organisation_id", table_name="organisation_invites")
    op.drop_table("organisation_invites")
    op.drop_index("uq_org_members_single_owner", table_name="organisation_members")
    op.drop_index("ix_org_members_user_id", table_name="organisation_members")
    op.drop_table("organisation_members")
    op.drop_table("organisations")
    op.drop_table("suppliers")
    op.drop_table("brands")
    op.drop_table("users")
    sa.Enum(name="organisationrole").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="organisationtype").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="accounttype").drop(op.get_bind(), checkfirst=True)
