"""API router for organisations and their members."""

from typing import Annotated

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.db.models import OrganisationRole
from app.dependencies import CurrentAuth, get_db
from app.organisations.schemas import (
    MemberList,
    MemberRoleUpdate,
    OrganisationClaim,
    OrganisationCreate,
    OrganisationDetail,
    OrganisationList,
    OwnershipTransfer,
    SuccessResponse,
)
from app.organisations.service import (
    MembershipService,
    OrganisationService,
    organisation_response,
)

router = APIRouter()


def get_org_service(db: Annotated[Session, Depends(get_db)]) -> OrganisationService:
    """Get organisation service dependency."""
    return OrganisationService(db)


def get_membership_service(db: Annotated[Session, Depends(get_db)]) -> MembershipService:
    """Get membership service dependency."""
    return MembershipService(db)


@router.post("", response_model=OrganisationDetail, status_code=status.HTTP_201_CREATED)
async def create_organisation(
    data: OrganisationCreate,
    auth: CurrentAuth,
    service: Annotated[OrganisationService, Depends(get_org_service)],
):
    """Create a brand or supplier organisation. The caller becomes its owner."""
    org = service.create_organisation(auth.user_id, data.type, data.name, data.description)
    return OrganisationDetail(
        organisation=organisation_response(org), user_role=OrganisationRole.OWNER
    )


@router.post("/claim", response_model=OrganisationDetail, status_code=status.HTTP_201_CREATED)
async def claim_profile(
    data: OrganisationClaim,
    auth: CurrentAuth,
    service: Annotated[OrganisationService, Depends(get_org_service)],
):
    """Claim an unclaimed brand or supplier listing."""
    org = service.claim_profile(auth.user_id, data.type, data.profile_id)
    return OrganisationDetail(
        organisation=organisation_response(org), user_role=OrganisationRole.OWNER
    )


@router.get("/mine", response_model=OrganisationList)
async def list_my_organisations(
    auth: CurrentAuth,
    service: Annotated[OrganisationService, Depends(get_org_service)],
):
    """List every organisation the caller belongs to."""
    organisations = service.list_my_organisations(auth.user_id)
    return OrganisationList(organisations=organisations, total=len(organisations))


@router.get("/{org_id}", response_model=OrganisationDetail)
async def get_organisation(
    org_id: str,
    auth: CurrentAuth,
    service: Annotated[OrganisationService, Depends(get_org_service)],
):
    """Get an organisation the caller is a member of."""
    org, role = service.get_organisation(org_id, auth.user_id)
    return OrganisationDetail(organisation=organisation_response(org), user_role=role)


@router.get("/{org_id}/members", response_model=MemberList)
async def list_members(
    org_id: str,
    auth: CurrentAuth,
    service: Annotated[MembershipService, Depends(get_membership_service)],
):
    """List organisation members (any member may view).

    Args:
        org_id: Organisation UUID.
        auth: Caller context.
        service: Membership service.

    Returns:
        MemberList: Members and the caller's role.
    """
    members = service.list_members(org_id, auth.user_id)
    actor = service.get_membership(org_id, auth.user_id)
    return MemberList(members=members, user_role=actor.role)


@router.patch("/{org_id}/members/{user_id}", response_model=SuccessResponse)
async def update_member_role(
    org_id: str,
    user_id: str,
    data: MemberRoleUpdate,
    auth: CurrentAuth,
    service: Annotated[MembershipService, Depends(get_membership_service)],
):
    """Change a member's role between ADMIN and MEMBER."""
    service.update_member_role(org_id, user_id, data.role, auth.user_id)
    return SuccessResponse(message="Member role updated successfully")


@router.delete("/{org_id}/members/{user_id}", response_model=SuccessResponse)
async def remove_member(
    org_id: str,
    user_id: str,
    auth: CurrentAuth,
    service: Annotated[MembershipService, Depends(get_membership_service)],
):
    """Remove a non-owner member (owner or admin only).

    Args:
        org_id: Organisation UUID.
        user_id: Member to remove.
        auth: Caller context.
        service: Membership service.

    Returns:
        SuccessResponse: Acknowledgement.
    """
    service.remove_member(org_id, user_id, auth.user_id)
    return SuccessResponse(message="Member removed successfully")


@router.post("/{org_id}/transfer", response_model=SuccessResponse)
async def transfer_ownership(
    org_id: str,
    data: OwnershipTransfer,
    auth: CurrentAuth,
    service: Annotated[MembershipService, Depends(get_membership_service)],
):
    """Transfer ownership to an admin. The current owner becomes an admin.

    Args:
        org_id: Organisation UUID.
        data: New owner.
        auth: Caller context.
        service: Membership service.

    Returns:
        SuccessResponse: Acknowledgement.
    """
    service.transfer_ownership(org_id, auth.user_id, data.new_owner_id)
    return SuccessResponse(message="Ownership transferred successfully")
