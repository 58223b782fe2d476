"""Role rules for organisation management.

Every service that reads invites or mutates memberships asks ``can_perform``
before touching the database, so the rules live in one place.
"""

import enum

from app.db.models import OrganisationRole

OWNER = OrganisationRole.OWNER
ADMIN = OrganisationRole.ADMIN
MEMBER = OrganisationRole.MEMBER

MANAGERS = frozenset({OWNER, ADMIN})


class OrgAction(str, enum.Enum):
    """Actions a member may attempt inside an organisation."""

    VIEW_MEMBERS = "view_members"
    VIEW_INVITES = "view_invites"
    CREATE_INVITE = "create_invite"
    CANCEL_INVITE = "cancel_invite"
    REMOVE_MEMBER = "remove_member"
    UPDATE_MEMBER_ROLE = "update_member_role"
    TRANSFER_OWNERSHIP = "transfer_ownership"


def can_perform(
    actor_role: OrganisationRole | None,
    action: OrgAction,
    target_role: OrganisationRole | None = None,
) -> bool:
    """Decide whether a member with ``actor_role`` may perform ``action``.

    ``target_role`` depends on the action: the role an invite would grant
    (CREATE_INVITE), the current role of the member being removed
    (REMOVE_MEMBER) or transferred to (TRANSFER_OWNERSHIP). For
    UPDATE_MEMBER_ROLE use ``can_change_role``.

    Args:
        actor_role: Caller's role in the organisation, None if not a member.
        action: Action being attempted.
        target_role: Role of the subject of the action, where relevant.

    Returns:
        bool: True if allowed.
    """
    if actor_role is None:
        return False

    if action == OrgAction.VIEW_MEMBERS:
        return True

    if action in (OrgAction.VIEW_INVITES, OrgAction.CANCEL_INVITE):
        return actor_role in MANAGERS

    if action == OrgAction.CREATE_INVITE:
        if actor_role not in MANAGERS:
            return False
        # Only the owner can bring in another admin
        if target_role == ADMIN:
            return actor_role == OWNER
        return True

    if action == OrgAction.REMOVE_MEMBER:
        if actor_role not in MANAGERS:
            return False
        if target_role == OWNER:
            return False
        if target_role == ADMIN:
            return actor_role == OWNER
        return True

    if action == OrgAction.UPDATE_MEMBER_ROLE:
        return actor_role in MANAGERS

    if action == OrgAction.TRANSFER_OWNERSHIP:
        if actor_role != OWNER:
            return False
        return target_role is None or target_role == ADMIN

    return False


def can_change_role(
    actor_role: OrganisationRole | None,
    current_role: OrganisationRole,
    new_role: OrganisationRole,
) -> bool:
    """Decide whether a member may move someone from ``current_role`` to ``new_role``.

    Ownership only moves through a transfer, so OWNER is never a valid
    source or destination here. Admins may demote other admins but only the
    owner grants ADMIN.
    """
    if not can_perform(actor_role, OrgAction.UPDATE_MEMBER_ROLE):
        return False
    if OWNER in (current_role, new_role):
        return False
    if actor_role == OWNER:
        return True
    return new_role == MEMBER
