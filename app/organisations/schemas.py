"""Pydantic schemas for organisations and memberships."""

from datetime import datetime
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field

from app.db.models import OrganisationRole, OrganisationType


class BrandProfile(BaseModel):
    """Brand side of an organisation profile."""

    type: Literal["BRAND"] = "BRAND"
    id: str
    name: str
    slug: str
    description: str | None = None

    model_config = ConfigDict(from_attributes=True)


class SupplierProfile(BaseModel):
    """Supplier side of an organisation profile."""

    type: Literal["SUPPLIER"] = "SUPPLIER"
    id: str
    name: str
    slug: str
    description: str | None = None

    model_config = ConfigDict(from_attributes=True)


OrganisationProfile = Annotated[BrandProfile | SupplierProfile, Field(discriminator="type")]


class OrganisationCreate(BaseModel):
    """Schema for creating an organisation with a fresh profile."""

    type: OrganisationType
    name: str = Field(..., min_length=2, max_length=255)
    description: str | None = Field(None, max_length=5000)


class OrganisationClaim(BaseModel):
    """Schema for claiming an existing brand or supplier listing."""

    type: OrganisationType
    profile_id: str


class OrganisationResponse(BaseModel):
    """Schema for organisation details."""

    id: str
    name: str
    slug: str
    type: OrganisationType
    profile: OrganisationProfile
    created_at: datetime | None = None


class MyOrganisationResponse(OrganisationResponse):
    """Organisation as seen by one of its members."""

    user_role: OrganisationRole
    joined_at: datetime | None = None


class OrganisationDetail(BaseModel):
    """Response for a single organisation."""

    success: bool = True
    organisation: OrganisationResponse
    user_role: OrganisationRole


class OrganisationList(BaseModel):
    """Response listing the caller's organisations."""

    success: bool = True
    organisations: list[MyOrganisationResponse]
    total: int


class MemberResponse(BaseModel):
    """Schema for a member row with denormalised profile fields."""

    user_id: str
    role: OrganisationRole
    joined_at: datetime | None = None
    full_name: str
    email: str
    job_title: str | None = None


class MemberList(BaseModel):
    """Response listing organisation members."""

    success: bool = True
    members: list[MemberResponse]
    user_role: OrganisationRole


class MemberRoleUpdate(BaseModel):
    """Schema for changing a member's role."""

    role: OrganisationRole


class OwnershipTransfer(BaseModel):
    """Schema for transferring ownership."""

    new_owner_id: str = Field(..., min_length=1)


class SuccessResponse(BaseModel):
    """Generic success acknowledgement."""

    success: bool = True
    message: str | None = None
