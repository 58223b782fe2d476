"""Organisation and membership service layer."""

import logging
import re

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.db.models import (
    Brand,
    Organisation,
    OrganisationMember,
    OrganisationRole,
    OrganisationType,
    Supplier,
    User,
    utcnow,
)
from app.errors import BadRequest, Conflict, Forbidden, InvalidOperation, NotFound, ServerError
from app.organisations.policy import OrgAction, can_change_role, can_perform
from app.organisations.schemas import (
    BrandProfile,
    MemberResponse,
    MyOrganisationResponse,
    OrganisationResponse,
    SupplierProfile,
)

logger = logging.getLogger(__name__)


def slugify(name: str) -> str:
    """Convert name to URL-friendly slug.

    Args:
        name: Organisation or profile name.

    Returns:
        str: URL-friendly slug.
    """
    slug = name.lower()
    slug = re.sub(r"[^\w\s-]", "", slug)
    slug = re.sub(r"[-\s_]+", "-", slug)
    return slug.strip("-")


def organisation_response(org: Organisation) -> OrganisationResponse:
    """Serialise an organisation with its tagged profile.

    Args:
        org: Organisation model.

    Returns:
        OrganisationResponse: API representation.
    """
    profile_cls = BrandProfile if org.type == OrganisationType.BRAND else SupplierProfile
    return OrganisationResponse(
        id=org.id,
        name=org.name,
        slug=org.slug,
        type=org.type,
        profile=profile_cls.model_validate(org.profile),
        created_at=org.created_at,
    )


class MembershipService:
    """Service class for the organisation membership registry."""

    def __init__(self, db: Session):
        """Initialize membership service.

        Args:
            db: Database session.
        """
        self.db = db

    def get_organisation(self, organisation_id: str) -> Organisation:
        """Get an organisation or fail.

        Args:
            organisation_id: Organisation UUID.

        Returns:
            Organisation: The organisation.

        Raises:
            NotFound: If it does not exist.
        """
        org = self.db.query(Organisation).filter(Organisation.id == organisation_id).first()
        if not org:
            raise NotFound("Organisation not found")
        return org

    def get_membership(self, organisation_id: str, user_id: str) -> OrganisationMember | None:
        """Get a user's membership row in an organisation.

        Args:
            organisation_id: Organisation UUID.
            user_id: User UUID.

        Returns:
            OrganisationMember | None: Membership if the user belongs.
        """
        return (
            self.db.query(OrganisationMember)
            .filter(
                OrganisationMember.organisation_id == organisation_id,
                OrganisationMember.user_id == user_id,
            )
            .first()
        )

    def require_membership(self, organisation_id: str, user_id: str) -> OrganisationMember:
        """Get the caller's membership in a known organisation.

        Raises:
            NotFound: If the organisation does not exist.
            Forbidden: If the user is not a member.
        """
        self.get_organisation(organisation_id)
        membership = self.get_membership(organisation_id, user_id)
        if not membership:
            raise Forbidden("You are not a member of this organisation")
        return membership

    def resolve_membership(
        self, user_id: str, organisation_id: str | None = None
    ) -> OrganisationMember:
        """Work out which organisation a caller is acting for.

        With an explicit ``organisation_id`` the caller must belong to it.
        Without one the caller must belong to exactly one organisation.

        Args:
            user_id: Acting user UUID.
            organisation_id: Optional organisation selector.

        Returns:
            OrganisationMember: The caller's membership.

        Raises:
            NotFound: If the caller has no membership at all.
            Forbidden: If the caller is not in the selected organisation.
            BadRequest: If the caller has several memberships and gave no selector.
        """
        if organisation_id:
            return self.require_membership(organisation_id, user_id)

        memberships = (
            self.db.query(OrganisationMember).filter(OrganisationMember.user_id == user_id).all()
        )
        if not memberships:
            raise NotFound("You are not a member of any organisation")
        if len(memberships) > 1:
            raise BadRequest(
                "You belong to several organisations; specify which one with org_id"
            )
        return memberships[0]

    def list_members(self, organisation_id: str, acting_user_id: str) -> list[MemberResponse]:
        """List every member of an organisation.

        Args:
            organisation_id: Organisation UUID.
            acting_user_id: Caller UUID (must be a member).

        Returns:
            list[MemberResponse]: Members in join order.
        """
        actor = self.require_membership(organisation_id, acting_user_id)
        if not can_perform(actor.role, OrgAction.VIEW_MEMBERS):
            raise Forbidden("You cannot view members of this organisation")

        rows = (
            self.db.query(OrganisationMember, User)
            .join(User, User.id == OrganisationMember.user_id)
            .filter(OrganisationMember.organisation_id == organisation_id)
            .order_by(OrganisationMember.joined_at.asc())
            .all()
        )
        return [
            MemberResponse(
                user_id=user.id,
                role=membership.role,
                joined_at=membership.joined_at,
                full_name=user.full_name,
                email=user.email,
                job_title=user.job_title,
            )
            for membership, user in rows
        ]

    def remove_member(self, organisation_id: str, user_id: str, acting_user_id: str) -> None:
        """Remove a non-owner member from an organisation.

        Records the member created (offers and the like) stay attributed to them.

        Args:
            organisation_id: Organisation UUID.
            user_id: Member to remove.
            acting_user_id: Caller UUID.

        Raises:
            Forbidden: If the caller may not remove this member.
            NotFound: If the member does not exist.
            InvalidOperation: If the target is the owner or the caller themself.
        """
        actor = self.require_membership(organisation_id, acting_user_id)
        if not can_perform(actor.role, OrgAction.REMOVE_MEMBER):
            raise Forbidden("Only owners and admins can remove members")

        target = self.get_membership(organisation_id, user_id)
        if not target:
            raise NotFound("Member not found")

        if target.role == OrganisationRole.OWNER:
            raise InvalidOperation("Cannot remove the owner. Transfer ownership first.")

        if user_id == acting_user_id:
            raise InvalidOperation("You cannot remove yourself. Ask another admin or the owner.")

        if not can_perform(actor.role, OrgAction.REMOVE_MEMBER, target.role):
            raise Forbidden("Only the owner can remove admins")

        self.db.delete(target)
        self.db.commit()
        logger.info(f"User {acting_user_id} removed {user_id} from organisation {organisation_id}")

    def update_member_role(
        self,
        organisation_id: str,
        user_id: str,
        role: OrganisationRole,
        acting_user_id: str,
    ) -> OrganisationMember:
        """Promote or demote a member between ADMIN and MEMBER.

        Args:
            organisation_id: Organisation UUID.
            user_id: Member whose role changes.
            role: New role.
            acting_user_id: Caller UUID.

        Returns:
            OrganisationMember: Updated membership.
        """
        if role == OrganisationRole.OWNER:
            raise BadRequest("Use an ownership transfer to make someone the owner")

        actor = self.require_membership(organisation_id, acting_user_id)
        if not can_perform(actor.role, OrgAction.UPDATE_MEMBER_ROLE):
            raise Forbidden("Only owners and admins can update member roles")

        target = self.get_membership(organisation_id, user_id)
        if not target:
            raise NotFound("Member not found")

        if target.role == OrganisationRole.OWNER:
            raise InvalidOperation("The owner's role changes only through an ownership transfer")

        if not can_change_role(actor.role, target.role, role):
            raise Forbidden("Only the owner can grant admin roles")

        target.role = role
        self.db.commit()
        self.db.refresh(target)
        return target

    def transfer_ownership(
        self, organisation_id: str, acting_user_id: str, new_owner_id: str
    ) -> None:
        """Hand ownership to an admin; the old owner becomes an admin.

        Both role changes happen in one transaction, so an organisation never
        ends up with zero or two owners.

        Args:
            organisation_id: Organisation UUID.
            acting_user_id: Current owner UUID.
            new_owner_id: Admin who becomes owner.

        Raises:
            Forbidden: If the caller is not the owner.
            NotFound: If the new owner is not a member.
            InvalidOperation: If the new owner is the caller or not an admin.
            ServerError: If the database rejects the swap.
        """
        actor = self.require_membership(organisation_id, acting_user_id)
        if not can_perform(actor.role, OrgAction.TRANSFER_OWNERSHIP):
            raise Forbidden("Only the owner can transfer ownership")

        if new_owner_id == acting_user_id:
            raise InvalidOperation("You are already the owner")

        target = self.get_membership(organisation_id, new_owner_id)
        if not target:
            raise NotFound("New owner must be a member of the organisation")

        if not can_perform(actor.role, OrgAction.TRANSFER_OWNERSHIP, target.role):
            raise InvalidOperation("New owner must be an admin. Promote them to admin first.")

        try:
            # Demote first so the single-owner index never sees two owners
            actor.role = OrganisationRole.ADMIN
            self.db.flush()
            target.role = OrganisationRole.OWNER
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception(f"Ownership transfer failed for organisation {organisation_id}")
            raise ServerError("Failed to transfer ownership") from e

        logger.info(
            f"Ownership of organisation {organisation_id} moved "
            f"from {acting_user_id} to {new_owner_id}"
        )


class OrganisationService:
    """Service class for creating and reading organisations."""

    def __init__(self, db: Session):
        """Initialize organisation service.

        Args:
            db: Database session.
        """
        self.db = db
        self.memberships = MembershipService(db)

    def _unique_slug(self, model, name: str) -> str:
        base_slug = slugify(name) or "organisation"
        slug = base_slug
        counter = 1
        while self.db.query(model).filter(model.slug == slug).first():
            slug = f"{base_slug}-{counter}"
            counter += 1
        return slug

    def _add_owner(self, org: Organisation, user_id: str) -> None:
        self.db.add(
            OrganisationMember(
                organisation=org,
                user_id=user_id,
                role=OrganisationRole.OWNER,
                joined_at=utcnow(),
            )
        )

    def create_organisation(
        self,
        user_id: str,
        org_type: OrganisationType,
        name: str,
        description: str | None = None,
    ) -> Organisation:
        """Create a brand or supplier profile, its organisation and the owner membership.

        Args:
            user_id: Creating user, who becomes OWNER.
            org_type: BRAND or SUPPLIER.
            name: Display name.
            description: Optional profile description.

        Returns:
            Organisation: The new organisation.
        """
        profile_model = Brand if org_type == OrganisationType.BRAND else Supplier
        profile = profile_model(
            name=name,
            slug=self._unique_slug(profile_model, name),
            description=description,
        )
        org = Organisation(
            name=name,
            slug=self._unique_slug(Organisation, name),
            type=org_type,
        )
        if org_type == OrganisationType.BRAND:
            org.brand = profile
        else:
            org.supplier = profile

        self.db.add(org)
        self._add_owner(org, user_id)
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            logger.warning(f"Organisation create failed for {name}: {e}")
            raise Conflict("An organisation with that name already exists") from e
        self.db.refresh(org)

        logger.info(f"User {user_id} created {org_type.value} organisation {org.id}")
        return org

    def claim_profile(self, user_id: str, org_type: OrganisationType, profile_id: str) -> Organisation:
        """Claim an existing directory listing by wrapping it in a new organisation.

        Args:
            user_id: Claiming user, who becomes OWNER.
            org_type: Type of listing being claimed.
            profile_id: Brand or supplier UUID.

        Returns:
            Organisation: The new organisation.

        Raises:
            NotFound: If the listing does not exist.
            Conflict: If the listing already belongs to an organisation.
        """
        profile_model = Brand if org_type == OrganisationType.BRAND else Supplier
        profile = self.db.query(profile_model).filter(profile_model.id == profile_id).first()
        if not profile:
            raise NotFound(f"{org_type.value.title()} not found")
        if profile.organisation is not None:
            raise Conflict("This listing has already been claimed")

        org = Organisation(
            name=profile.name,
            slug=self._unique_slug(Organisation, profile.name),
            type=org_type,
        )
        if org_type == OrganisationType.BRAND:
            org.brand = profile
        else:
            org.supplier = profile

        self.db.add(org)
        self._add_owner(org, user_id)
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise Conflict("This listing has already been claimed") from e
        self.db.refresh(org)

        logger.info(f"User {user_id} claimed {org_type.value} {profile_id} as organisation {org.id}")
        return org

    def get_organisation(
        self, organisation_id: str, acting_user_id: str
    ) -> tuple[Organisation, OrganisationRole]:
        """Get an organisation the caller belongs to.

        Args:
            organisation_id: Organisation UUID.
            acting_user_id: Caller UUID.

        Returns:
            tuple: Organisation and the caller's role in it.
        """
        membership = self.memberships.require_membership(organisation_id, acting_user_id)
        return membership.organisation, membership.role

    def list_my_organisations(self, user_id: str) -> list[MyOrganisationResponse]:
        """List every organisation a user belongs to.

        Args:
            user_id: User UUID.

        Returns:
            list[MyOrganisationResponse]: Organisations with the user's role.
        """
        memberships = (
            self.db.query(OrganisationMember)
            .filter(OrganisationMember.user_id == user_id)
            .order_by(OrganisationMember.joined_at.asc())
            .all()
        )
        return [
            MyOrganisationResponse(
                **organisation_response(m.organisation).model_dump(),
                user_role=m.role,
                joined_at=m.joined_at,
            )
            for m in memberships
        ]
