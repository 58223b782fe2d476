"""Pydantic schemas for organisation invites."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from app.db.models import InviteStatus, OrganisationRole, OrganisationType


class InviteCreate(BaseModel):
    """Schema for creating an invite.

    The email is checked by the service so that a malformed address is
    reported as a BadRequest with a readable message.
    """

    email: str = Field(..., max_length=255)
    role: str = "MEMBER"


class InviteResponse(BaseModel):
    """Schema for an invite with its derived status."""

    id: str
    organisation_id: str
    email: str
    role: OrganisationRole
    status: InviteStatus
    created_at: datetime | None = None
    expires_at: datetime
    accepted_at: datetime | None = None
    created_by_name: str | None = None

    model_config = ConfigDict(from_attributes=True)


class InviteCreated(BaseModel):
    """Response for a newly created invite."""

    success: bool = True
    invite: InviteResponse
    invite_url: str
    token: str
    message: str


class InviteList(BaseModel):
    """Response listing an organisation's invites."""

    success: bool = True
    invites: list[InviteResponse]
    pending_count: int


class InviteOrganisation(BaseModel):
    """Organisation summary shown on the join page."""

    id: str
    name: str
    slug: str
    type: OrganisationType


class InvitePreview(BaseModel):
    """Public details of a usable invite token."""

    success: bool = True
    email: str
    role: OrganisationRole
    organisation: InviteOrganisation
    expires_at: datetime


class InviteAccept(BaseModel):
    """Body for accepting an invite during onboarding."""

    invite_token: str = Field(..., min_length=1)


class InviteAccepted(BaseModel):
    """Response after joining an organisation."""

    success: bool = True
    message: str
    organisation: InviteOrganisation
    role: OrganisationRole
