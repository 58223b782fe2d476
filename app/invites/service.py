"""Organisation invite service: issuing, listing and accepting invites."""

import logging
import re
import secrets
from datetime import datetime, timedelta

from email_validator import EmailNotValidError, validate_email
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.config import get_settings
from app.db.models import (
    InviteStatus,
    OrganisationInvite,
    OrganisationMember,
    OrganisationRole,
    User,
    as_utc,
    utcnow,
)
from app.errors import (
    AlreadyAccepted,
    BadRequest,
    Conflict,
    Expired,
    Forbidden,
    NotFound,
)
from app.invites.schemas import InviteOrganisation, InvitePreview, InviteResponse
from app.organisations.policy import OrgAction, can_perform
from app.organisations.service import MembershipService

logger = logging.getLogger(__name__)

# Permissive RFC 5322 style check: plus addressing, subdomains and long TLDs pass
EMAIL_REGEX = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]{2,}$")

INVITABLE_ROLES = {OrganisationRole.ADMIN.value, OrganisationRole.MEMBER.value}


def normalise_email(email: str) -> str:
    """Normalise an address the same way account emails are stored.

    Account emails go through pydantic's ``EmailStr``, which keeps the
    email-validator normalised form (domain lowercased); invites must match it.

    Raises:
        BadRequest: If the address is not a valid email.
    """
    try:
        return validate_email(email, check_deliverability=False).normalized
    except EmailNotValidError as e:
        raise BadRequest("Invalid email format") from e


def generate_invite_token() -> str:
    """Generate an unguessable URL-safe invite token (43 characters)."""
    return secrets.token_urlsafe(32)


def build_invite_url(token: str, existing_user: bool) -> str:
    """Build the shareable link for an invite.

    New people land on signup with the token attached; existing users go
    straight to the join page.

    Args:
        token: Invite token.
        existing_user: Whether the invited email already has an account.

    Returns:
        str: Absolute URL.
    """
    base_url = get_settings().app_base_url.rstrip("/")
    if existing_user:
        return f"{base_url}/invite/{token}"
    return f"{base_url}/signup?invite={token}"


def send_invite_notification(
    to_email: str,
    organisation_name: str,
    inviter_name: str,
    role: str,
    invite_url: str,
) -> None:
    """Email an invite link. Failures are logged and never raised.

    Runs after the invite has been committed; the invite and its URL stand
    whether or not the email goes out.

    Args:
        to_email: Invited address.
        organisation_name: Name of the inviting organisation.
        inviter_name: Name of the person who sent the invite.
        role: Role the invite grants.
        invite_url: Link embedding the token.
    """
    try:
        from app.email.service import get_email_service

        email_service = get_email_service()
        sent = email_service.send_organisation_invite_email(
            to_email=to_email,
            organisation_name=organisation_name,
            inviter_name=inviter_name,
            role=role,
            invite_url=invite_url,
        )
        if not sent:
            logger.warning(f"Invite email to {to_email} was not delivered")
    except Exception as e:
        logger.warning(f"Failed to send invite email to {to_email}: {e}")


class InviteService:
    """Service class for organisation invites."""

    def __init__(self, db: Session):
        """Initialize invite service.

        Args:
            db: Database session.
        """
        self.db = db
        self.memberships = MembershipService(db)

    def to_response(self, invite: OrganisationInvite, now: datetime) -> InviteResponse:
        """Serialise an invite with its status derived at ``now``.

        Args:
            invite: Invite model.
            now: Reference time.

        Returns:
            InviteResponse: API representation.
        """
        return InviteResponse(
            id=invite.id,
            organisation_id=invite.organisation_id,
            email=invite.email,
            role=invite.role,
            status=invite.status_at(now),
            created_at=invite.created_at,
            expires_at=invite.expires_at,
            accepted_at=invite.accepted_at,
            created_by_name=invite.created_by.full_name if invite.created_by else None,
        )

    def _get_by_token(self, token: str) -> OrganisationInvite:
        invite = self.db.query(OrganisationInvite).filter(OrganisationInvite.token == token).first()
        if not invite:
            raise NotFound("Invite not found")
        return invite

    def _check_usable(self, invite: OrganisationInvite, now: datetime) -> None:
        # Expiry wins over acceptance
        if now > as_utc(invite.expires_at):
            raise Expired()
        if invite.accepted_at is not None:
            raise AlreadyAccepted()

    def create_invite(
        self,
        acting_user_id: str,
        email: str,
        role: str = OrganisationRole.MEMBER.value,
        organisation_id: str | None = None,
    ) -> tuple[OrganisationInvite, str]:
        """Create an invite for one email address.

        Args:
            acting_user_id: Owner or admin issuing the invite.
            email: Address to invite.
            role: ADMIN or MEMBER.
            organisation_id: Target organisation; may be omitted only when the
                caller belongs to exactly one organisation.

        Returns:
            tuple: Created invite and its shareable URL.

        Raises:
            BadRequest: Malformed email, invalid role or ambiguous organisation.
            Forbidden: Caller may not issue this invite.
            NotFound: Caller has no organisation, or the organisation is unknown.
            Conflict: Email already a member or already has a live invite.
        """
        email = (email or "").strip()
        if not email:
            raise BadRequest("Email is required")
        if not EMAIL_REGEX.match(email):
            raise BadRequest("Invalid email format")
        email = normalise_email(email)

        if role not in INVITABLE_ROLES:
            raise BadRequest("Invalid role. Can only invite as ADMIN or MEMBER")
        invite_role = OrganisationRole(role)

        actor = self.memberships.resolve_membership(acting_user_id, organisation_id)
        if not can_perform(actor.role, OrgAction.CREATE_INVITE):
            raise Forbidden("Only owners and admins can invite members")
        if not can_perform(actor.role, OrgAction.CREATE_INVITE, invite_role):
            raise Forbidden("Only the owner can invite admins")

        org_id = actor.organisation_id

        existing_user = self.db.query(User).filter(User.email == email).first()
        if existing_user and self.memberships.get_membership(org_id, existing_user.id):
            raise Conflict("This user is already a member of your organisation")

        now = utcnow()
        open_invites = (
            self.db.query(OrganisationInvite)
            .filter(
                OrganisationInvite.organisation_id == org_id,
                OrganisationInvite.email == email,
                OrganisationInvite.accepted_at.is_(None),
            )
            .all()
        )
        if any(inv.status_at(now) == InviteStatus.PENDING for inv in open_invites):
            raise Conflict("An active invite already exists for this email")

        # Clear out expired invites for this address before issuing a new one
        for inv in open_invites:
            self.db.delete(inv)
        self.db.flush()

        settings = get_settings()
        invite = OrganisationInvite(
            organisation_id=org_id,
            email=email,
            token=generate_invite_token(),
            role=invite_role,
            expires_at=now + timedelta(days=settings.invite_expiry_days),
            created_at=now,
            created_by_id=acting_user_id,
        )
        self.db.add(invite)
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            logger.warning(f"Concurrent invite for {email} in organisation {org_id}: {e}")
            raise Conflict("An active invite already exists for this email") from e
        self.db.refresh(invite)

        logger.info(f"User {acting_user_id} invited {email} to {org_id} as {invite_role.value}")
        return invite, build_invite_url(invite.token, existing_user is not None)

    def list_invites(
        self, acting_user_id: str, organisation_id: str | None = None
    ) -> list[InviteResponse]:
        """List all invites of an organisation, newest first.

        Args:
            acting_user_id: Owner or admin.
            organisation_id: Organisation selector (see ``create_invite``).

        Returns:
            list[InviteResponse]: Invites with derived status.
        """
        actor = self.memberships.resolve_membership(acting_user_id, organisation_id)
        if not can_perform(actor.role, OrgAction.VIEW_INVITES):
            raise Forbidden("Only owners and admins can view invites")

        invites = (
            self.db.query(OrganisationInvite)
            .filter(OrganisationInvite.organisation_id == actor.organisation_id)
            .order_by(OrganisationInvite.created_at.desc())
            .all()
        )
        now = utcnow()
        return [self.to_response(inv, now) for inv in invites]

    def cancel_invite(self, acting_user_id: str, token: str) -> None:
        """Delete an unaccepted invite.

        Args:
            acting_user_id: Owner or admin of the invite's organisation.
            token: Invite token.
        """
        invite = self._get_by_token(token)
        actor = self.memberships.get_membership(invite.organisation_id, acting_user_id)
        if not can_perform(actor.role if actor else None, OrgAction.CANCEL_INVITE):
            raise Forbidden("Only owners and admins can cancel invites")
        if invite.accepted_at is not None:
            raise Conflict("This invite has already been accepted")

        self.db.delete(invite)
        self.db.commit()
        logger.info(f"User {acting_user_id} cancelled invite {invite.id}")

    def get_invite_preview(self, token: str) -> InvitePreview:
        """Describe a usable invite for the join page.

        Args:
            token: Invite token.

        Returns:
            InvitePreview: Email, role and organisation of the invite.
        """
        invite = self._get_by_token(token)
        self._check_usable(invite, utcnow())

        org = invite.organisation
        return InvitePreview(
            email=invite.email,
            role=invite.role,
            organisation=InviteOrganisation(id=org.id, name=org.name, slug=org.slug, type=org.type),
            expires_at=invite.expires_at,
        )

    def accept_invite(
        self, token: str, acting_user_id: str, commit: bool = True
    ) -> OrganisationMember:
        """Join the invite's organisation with the invite's role.

        Marking the invite accepted and inserting the membership commit
        together; the accept update only matches an unaccepted row, so a
        token can be consumed once.

        Args:
            token: Invite token.
            acting_user_id: User joining.
            commit: With False the changes are only flushed, leaving the
                caller's transaction open (signup commits the new account
                and the membership together).

        Returns:
            OrganisationMember: The new membership.

        Raises:
            NotFound: Unknown token.
            Expired: Token past its expiry.
            AlreadyAccepted: Token already used.
            Forbidden: Invite addressed to a different email.
            Conflict: User already in the organisation.
        """
        invite = self._get_by_token(token)
        now = utcnow()
        self._check_usable(invite, now)

        user = self.db.query(User).filter(User.id == acting_user_id).first()
        if not user:
            raise NotFound("User not found")

        if get_settings().invite_require_email_match and user.email != invite.email:
            raise Forbidden("This invite is for a different email address")

        if self.memberships.get_membership(invite.organisation_id, acting_user_id):
            raise Conflict("You are already a member of this organisation")

        try:
            claimed = (
                self.db.query(OrganisationInvite)
                .filter(
                    OrganisationInvite.id == invite.id,
                    OrganisationInvite.accepted_at.is_(None),
                )
                .update({OrganisationInvite.accepted_at: now}, synchronize_session=False)
            )
            if claimed != 1:
                self.db.rollback()
                raise AlreadyAccepted()

            membership = OrganisationMember(
                organisation_id=invite.organisation_id,
                user_id=acting_user_id,
                role=invite.role,
                joined_at=now,
            )
            self.db.add(membership)
            if commit:
                self.db.commit()
            else:
                self.db.flush()
        except IntegrityError as e:
            self.db.rollback()
            raise Conflict("You are already a member of this organisation") from e

        if commit:
            self.db.refresh(membership)
        logger.info(
            f"User {acting_user_id} joined organisation {invite.organisation_id} "
            f"as {membership.role.value}"
        )
        return membership


def get_invite_service(db: Session) -> InviteService:
    """Factory function for InviteService.

    Args:
        db: Database session.

    Returns:
        InviteService: Invite service instance.
    """
    return InviteService(db)
