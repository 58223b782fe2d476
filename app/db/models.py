"""SQLAlchemy database models."""

import enum
from datetime import UTC, datetime
from typing import Optional
from uuid import uuid4

from sqlalchemy import (
    CHAR,
    Boolean,
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.sql import func


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


def generate_uuid() -> str:
    """Generate a UUID string for primary keys.

    Returns:
        str: UUID as 36-character string.
    """
    return str(uuid4())


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(UTC)


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes read back from the database as UTC.

    Args:
        value: Datetime from a model column.

    Returns:
        datetime: Timezone-aware datetime.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


class AccountType(str, enum.Enum):
    """Directory account type chosen at signup."""

    MEMBER = "MEMBER"
    BRAND = "BRAND"
    SUPPLIER = "SUPPLIER"
    ADMIN = "ADMIN"  # Platform back-office staff


class OrganisationType(str, enum.Enum):
    """Kind of profile an organisation is built around."""

    BRAND = "BRAND"
    SUPPLIER = "SUPPLIER"


class OrganisationRole(str, enum.Enum):
    """Role of a user inside an organisation."""

    OWNER = "OWNER"  # Exactly one per organisation
    ADMIN = "ADMIN"  # Can invite and manage members
    MEMBER = "MEMBER"  # No management rights


class InviteStatus(str, enum.Enum):
    """Derived invite status. Never stored."""

    PENDING = "pending"
    EXPIRED = "expired"
    ACCEPTED = "accepted"


def _enum_column(enum_cls: type[enum.Enum]) -> Enum:
    return Enum(enum_cls, values_callable=lambda x: [e.value for e in x])


class User(Base):
    """User model.

    Attributes:
        id: Primary key UUID.
        email: Login email (unique).
        password_hash: Hashed password.
        first_name: Given name.
        last_name: Family name.
        job_title: Optional job title shown in team listings.
        account_type: Directory account type.
        is_active: Whether the user can sign in.
        created_at: Creation timestamp.
        last_login: Last login timestamp.
    """

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(CHAR(36), primary_key=True, default=generate_uuid)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    job_title: Mapped[str | None] = mapped_column(String(255), nullable=True)
    account_type: Mapped[AccountType] = mapped_column(
        _enum_column(AccountType), default=AccountType.MEMBER
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    last_login: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    memberships: Mapped[list["OrganisationMember"]] = relationship(
        "OrganisationMember", back_populates="user", cascade="all, delete-orphan"
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class Brand(Base):
    """Brand directory profile."""

    __tablename__ = "brands"

    id: Mapped[str] = mapped_column(CHAR(36), primary_key=True, default=generate_uuid)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(120), unique=True, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    organisation: Mapped[Optional["Organisation"]] = relationship(
        "Organisation", back_populates="brand", uselist=False
    )


class Supplier(Base):
    """Supplier directory profile."""

    __tablename__ = "suppliers"

    id: Mapped[str] = mapped_column(CHAR(36), primary_key=True, default=generate_uuid)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(120), unique=True, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    organisation: Mapped[Optional["Organisation"]] = relationship(
        "Organisation", back_populates="supplier", uselist=False
    )


class Organisation(Base):
    """Organisation grouping users around one Brand or Supplier profile.

    Exactly one of ``brand_id``/``supplier_id`` is set and it matches
    ``type``; the database enforces this with a CHECK constraint.

    Attributes:
        id: Primary key UUID.
        name: Display name.
        slug: URL-friendly identifier.
        type: BRAND or SUPPLIER.
        brand_id: FK to the brand profile (BRAND organisations).
        supplier_id: FK to the supplier profile (SUPPLIER organisations).
        created_at: Creation timestamp.
    """

    __tablename__ = "organisations"
    __table_args__ = (
        CheckConstraint(
            "(type = 'BRAND' AND brand_id IS NOT NULL AND supplier_id IS NULL) OR "
            "(type = 'SUPPLIER' AND supplier_id IS NOT NULL AND brand_id IS NULL)",
            name="ck_organisation_profile_matches_type",
        ),
    )

    id: Mapped[str] = mapped_column(CHAR(36), primary_key=True, default=generate_uuid)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(120), unique=True, nullable=False)
    type: Mapped[OrganisationType] = mapped_column(_enum_column(OrganisationType), nullable=False)
    brand_id: Mapped[str | None] = mapped_column(
        CHAR(36), ForeignKey("brands.id", ondelete="RESTRICT"), unique=True, nullable=True
    )
    supplier_id: Mapped[str | None] = mapped_column(
        CHAR(36), ForeignKey("suppliers.id", ondelete="RESTRICT"), unique=True, nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    brand: Mapped[Optional["Brand"]] = relationship("Brand", back_populates="organisation")
    supplier: Mapped[Optional["Supplier"]] = relationship(
        "Supplier", back_populates="organisation"
    )
    members: Mapped[list["OrganisationMember"]] = relationship(
        "OrganisationMember", back_populates="organisation", cascade="all, delete-orphan"
    )
    invites: Mapped[list["OrganisationInvite"]] = relationship(
        "OrganisationInvite", back_populates="organisation", cascade="all, delete-orphan"
    )

    @property
    def profile(self) -> Brand | Supplier:
        """The linked profile, selected by ``type``."""
        if self.type == OrganisationType.BRAND:
            return self.brand
        return self.supplier


class OrganisationMember(Base):
    """Membership of a user in an organisation.

    Attributes:
        id: Primary key UUID.
        organisation_id: FK to organisation.
        user_id: FK to user.
        role: OWNER, ADMIN or MEMBER.
        joined_at: When the user joined.
    """

    __tablename__ = "organisation_members"
    __table_args__ = (
        UniqueConstraint("organisation_id", "user_id", name="uq_org_member_org_user"),
        Index("ix_org_members_user_id", "user_id"),
        # At most one OWNER per organisation
        Index(
            "uq_org_members_single_owner",
            "organisation_id",
            unique=True,
            sqlite_where=text("role = 'OWNER'"),
            postgresql_where=text("role = 'OWNER'"),
        ),
    )

    id: Mapped[str] = mapped_column(CHAR(36), primary_key=True, default=generate_uuid)
    organisation_id: Mapped[str] = mapped_column(
        CHAR(36), ForeignKey("organisations.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(
        CHAR(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    role: Mapped[OrganisationRole] = mapped_column(
        _enum_column(OrganisationRole), default=OrganisationRole.MEMBER, nullable=False
    )
    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )

    # Relationships
    organisation: Mapped["Organisation"] = relationship("Organisation", back_populates="members")
    user: Mapped["User"] = relationship("User", back_populates="memberships")


class OrganisationInvite(Base):
    """Time-boxed invite for one email address to join an organisation.

    Status is derived from ``accepted_at`` and ``expires_at`` on read.

    Attributes:
        id: Primary key UUID.
        organisation_id: FK to organisation.
        email: Invited address, case-sensitive as stored.
        token: Opaque URL-safe token.
        role: Role granted on acceptance (ADMIN or MEMBER).
        expires_at: Expiry timestamp.
        created_at: Creation timestamp.
        created_by_id: FK to inviting user.
        accepted_at: When the invite was accepted.
    """

    __tablename__ = "organisation_invites"
    __table_args__ = (
        Index("ix_org_invites_organisation_id", "organisation_id"),
        Index("ix_org_invites_email", "email"),
        # At most one unaccepted invite per (organisation, email)
        Index(
            "uq_org_invites_open_email",
            "organisation_id",
            "email",
            unique=True,
            sqlite_where=text("accepted_at IS NULL"),
            postgresql_where=text("accepted_at IS NULL"),
        ),
    )

    id: Mapped[str] = mapped_column(CHAR(36), primary_key=True, default=generate_uuid)
    organisation_id: Mapped[str] = mapped_column(
        CHAR(36), ForeignKey("organisations.id", ondelete="CASCADE"), nullable=False
    )
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    token: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    role: Mapped[OrganisationRole] = mapped_column(
        _enum_column(OrganisationRole), default=OrganisationRole.MEMBER, nullable=False
    )
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )
    created_by_id: Mapped[str | None] = mapped_column(
        CHAR(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    accepted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Relationships
    organisation: Mapped["Organisation"] = relationship("Organisation", back_populates="invites")
    created_by: Mapped[Optional["User"]] = relationship("User", foreign_keys=[created_by_id])

    def status_at(self, now: datetime) -> InviteStatus:
        """Derive the invite status at a point in time.

        Args:
            now: Aware reference time.

        Returns:
            InviteStatus: accepted, expired or pending.
        """
        if self.accepted_at is not None:
            return InviteStatus.ACCEPTED
        if now > as_utc(self.expires_at):
            return InviteStatus.EXPIRED
        return InviteStatus.PENDING
