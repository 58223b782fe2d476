"""Organisation invite API routes."""

from typing import Annotated

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.config import get_settings
from app.db.models import InviteStatus, utcnow
from app.dependencies import AuthContext, CurrentAuth, get_db
from app.invites.schemas import (
    InviteAccept,
    InviteAccepted,
    InviteCreate,
    InviteCreated,
    InviteList,
    InviteOrganisation,
    InvitePreview,
)
from app.invites.service import (
    InviteService,
    get_invite_service,
    send_invite_notification,
)
from app.organisations.schemas import SuccessResponse

router = APIRouter()


def get_service(db: Annotated[Session, Depends(get_db)]) -> InviteService:
    """Get invite service dependency."""
    return get_invite_service(db)


def _create(
    service: InviteService,
    auth: AuthContext,
    data: InviteCreate,
    organisation_id: str | None,
) -> InviteCreated:
    invite, invite_url = service.create_invite(
        auth.user_id, data.email, data.role, organisation_id=organisation_id
    )
    response = service.to_response(invite, utcnow())
    send_invite_notification(
        to_email=invite.email,
        organisation_name=invite.organisation.name,
        inviter_name=response.created_by_name or "A team member",
        role=invite.role.value,
        invite_url=invite_url,
    )
    return InviteCreated(
        invite=response,
        invite_url=invite_url,
        token=invite.token,
        message=(
            f"Invite sent to {invite.email}. "
            f"They have {get_settings().invite_expiry_days} days to accept."
        ),
    )


def _list(service: InviteService, auth: AuthContext, organisation_id: str | None) -> InviteList:
    invites = service.list_invites(auth.user_id, organisation_id)
    pending = sum(1 for inv in invites if inv.status == InviteStatus.PENDING)
    return InviteList(invites=invites, pending_count=pending)


@router.post(
    "/organisations/{org_id}/invites",
    response_model=InviteCreated,
    status_code=status.HTTP_201_CREATED,
)
async def create_organisation_invite(
    org_id: str,
    data: InviteCreate,
    auth: CurrentAuth,
    service: Annotated[InviteService, Depends(get_service)],
):
    """Invite an email address to an organisation.

    The invite is committed before the email is attempted; the returned URL
    works whether or not it is delivered.

    Args:
        org_id: Organisation UUID.
        data: Email and role.
        auth: Caller context.
        service: Invite service.

    Returns:
        InviteCreated: Invite, token and shareable URL.
    """
    return _create(service, auth, data, org_id)


@router.get("/organisations/{org_id}/invites", response_model=InviteList)
async def list_organisation_invites(
    org_id: str,
    auth: CurrentAuth,
    service: Annotated[InviteService, Depends(get_service)],
):
    """List an organisation's invites with their status (owner or admin only)."""
    return _list(service, auth, org_id)


@router.post(
    "/me/organisation/invite",
    response_model=InviteCreated,
    status_code=status.HTTP_201_CREATED,
)
async def create_my_organisation_invite(
    data: InviteCreate,
    auth: CurrentAuth,
    service: Annotated[InviteService, Depends(get_service)],
    org_id: str | None = None,
):
    """Invite to the caller's organisation.

    ``org_id`` is required when the caller belongs to more than one.
    """
    return _create(service, auth, data, org_id)


@router.get("/me/organisation/invite", response_model=InviteList)
async def list_my_organisation_invites(
    auth: CurrentAuth,
    service: Annotated[InviteService, Depends(get_service)],
    org_id: str | None = None,
):
    """List invites of the caller's organisation."""
    return _list(service, auth, org_id)


@router.get("/invites/{token}", response_model=InvitePreview)
async def preview_invite(
    token: str,
    service: Annotated[InviteService, Depends(get_service)],
):
    """Show who an invite is for and which organisation it joins (public)."""
    return service.get_invite_preview(token)


@router.delete("/invites/{token}", response_model=SuccessResponse)
async def cancel_invite(
    token: str,
    auth: CurrentAuth,
    service: Annotated[InviteService, Depends(get_service)],
):
    """Cancel an invite that has not been accepted yet."""
    service.cancel_invite(auth.user_id, token)
    return SuccessResponse(message="Invite cancelled successfully")


def _accept(service: InviteService, auth: AuthContext, token: str) -> InviteAccepted:
    membership = service.accept_invite(token, auth.user_id)
    org = membership.organisation
    return InviteAccepted(
        message=f"You have joined {org.name} successfully!",
        organisation=InviteOrganisation(id=org.id, name=org.name, slug=org.slug, type=org.type),
        role=membership.role,
    )


@router.post("/invites/{token}/accept", response_model=InviteAccepted)
async def accept_invite(
    token: str,
    auth: CurrentAuth,
    service: Annotated[InviteService, Depends(get_service)],
):
    """Accept an invite as the signed-in user."""
    return _accept(service, auth, token)


@router.post("/onboarding/join-organisation", response_model=InviteAccepted)
async def join_organisation(
    data: InviteAccept,
    auth: CurrentAuth,
    service: Annotated[InviteService, Depends(get_service)],
):
    """Join an organisation during onboarding with an invite token."""
    return _accept(service, auth, data.invite_token)
