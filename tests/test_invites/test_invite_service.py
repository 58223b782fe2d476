"""Tests for issuing, listing, cancelling and accepting organisation invites."""

from datetime import timedelta
from uuid import uuid4

import pytest
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.db.models import (
    InviteStatus,
    Organisation,
    OrganisationInvite,
    OrganisationMember,
    OrganisationRole,
    OrganisationType,
    as_utc,
    utcnow,
)
from app.errors import (
    AlreadyAccepted,
    BadRequest,
    Conflict,
    Expired,
    Forbidden,
    InvalidOperation,
    NotFound,
)
from app.invites.service import InviteService, build_invite_url, generate_invite_token
from app.organisations.service import MembershipService, OrganisationService


@pytest.fixture
def service(db: Session) -> InviteService:
    """Create an InviteService instance."""
    return InviteService(db)


def expire(db: Session, invite: OrganisationInvite) -> None:
    invite.expires_at = utcnow() - timedelta(minutes=1)
    db.commit()


def member_count(db: Session, org_id: str) -> int:
    return (
        db.query(OrganisationMember).filter(OrganisationMember.organisation_id == org_id).count()
    )


class TestTokensAndUrls:
    """Tests for token and URL helpers."""

    def test_token_is_url_safe_and_unique(self):
        """Tokens are 43 URL-safe characters and never repeat."""
        tokens = {generate_invite_token() for _ in range(50)}
        assert len(tokens) == 50
        for token in tokens:
            assert len(token) == 43
            assert "/" not in token and "+" not in token

    def test_url_for_existing_user(self):
        """Existing accounts go to the join page."""
        assert build_invite_url("abc", True) == "https://kindred.test/invite/abc"

    def test_url_for_new_user(self):
        """New people go to signup with the token attached."""
        assert build_invite_url("abc", False) == "https://kindred.test/signup?invite=abc"


class TestCreateInvite:
    """Tests for create_invite."""

    def test_owner_invites_admin(self, db, service, organisation, owner):
        """Owners can invite admins."""
        invite, url = service.create_invite(owner.id, "new.admin@brewco.com", "ADMIN")

        assert invite.role == OrganisationRole.ADMIN
        assert invite.organisation_id == organisation.id
        assert invite.created_by_id == owner.id
        assert invite.accepted_at is None
        assert url.endswith(f"/signup?invite={invite.token}")

        lifetime = invite.expires_at - invite.created_at
        assert lifetime == timedelta(days=7)

    def test_admin_invites_member(self, service, organisation, admin):
        """Admins can invite members."""
        invite, _ = service.create_invite(admin.id, "bartender@brewco.com")
        assert invite.role == OrganisationRole.MEMBER

    def test_admin_cannot_invite_admin(self, db, service, organisation, admin):
        """An admin-level invite from an admin is Forbidden and nothing is stored."""
        with pytest.raises(Forbidden):
            service.create_invite(admin.id, "boss@brewco.com", "ADMIN")
        assert db.query(OrganisationInvite).count() == 0

    def test_member_cannot_invite(self, db, service, organisation, member):
        """Members cannot invite anyone."""
        with pytest.raises(Forbidden):
            service.create_invite(member.id, "friend@example.com")
        assert db.query(OrganisationInvite).count() == 0

    def test_user_without_organisation(self, service, outsider):
        """Callers with no organisation get NotFound."""
        with pytest.raises(NotFound):
            service.create_invite(outsider.id, "friend@example.com")

    @pytest.mark.parametrize("email", ["", "   ", "not-an-email", "a@b", "a b@c.com", "a@b.c"])
    def test_rejects_malformed_email(self, service, organisation, owner, email):
        """Malformed addresses are BadRequest."""
        with pytest.raises(BadRequest):
            service.create_invite(owner.id, email)

    @pytest.mark.parametrize(
        "email", ["first.last+team@mail.example.co.uk", "x@brewco.company"]
    )
    def test_accepts_permissive_email(self, service, organisation, owner, email):
        """Plus addressing, subdomains and long TLDs are fine."""
        invite, _ = service.create_invite(owner.id, email)
        assert invite.email == email

    def test_email_domain_is_normalised(self, service, organisation, owner):
        """Invite emails are stored in the same form as account emails."""
        invite, _ = service.create_invite(owner.id, "Bob@Acme.com")
        assert invite.email == "Bob@acme.com"

    @pytest.mark.parametrize("role", ["OWNER", "owner", "GUEST"])
    def test_rejects_invalid_role(self, service, organisation, owner, role):
        """Only ADMIN and MEMBER can be invited."""
        with pytest.raises(BadRequest):
            service.create_invite(owner.id, "someone@example.com", role)

    def test_existing_member_conflict(self, service, organisation, owner, member):
        """Inviting a current member is a Conflict."""
        with pytest.raises(Conflict):
            service.create_invite(owner.id, member.email)

    def test_existing_account_gets_join_link(self, service, organisation, owner, outsider):
        """Registered users are sent to the join page."""
        invite, url = service.create_invite(owner.id, outsider.email)
        assert url == f"https://kindred.test/invite/{invite.token}"

    def test_live_invite_conflict(self, db, service, organisation, owner):
        """A second invite while the first is live is a Conflict."""
        service.create_invite(owner.id, "dup@example.com")
        with pytest.raises(Conflict):
            service.create_invite(owner.id, "dup@example.com")
        assert db.query(OrganisationInvite).count() == 1

    def test_expired_invite_is_replaced(self, db, service, organisation, owner):
        """An expired invite is cleared and a fresh one issued."""
        old, _ = service.create_invite(owner.id, "late@example.com")
        old_token = old.token
        expire(db, old)

        new, _ = service.create_invite(owner.id, "late@example.com")

        invites = db.query(OrganisationInvite).all()
        assert len(invites) == 1
        assert invites[0].token == new.token != old_token

    def test_open_invite_index(self, db, organisation, owner):
        """The database refuses two open invites for one address."""
        for _ in range(2):
            db.add(
                OrganisationInvite(
                    organisation_id=organisation.id,
                    email="race@example.com",
                    token=generate_invite_token(),
                    role=OrganisationRole.MEMBER,
                    expires_at=utcnow() + timedelta(days=7),
                    created_by_id=owner.id,
                )
            )
        with pytest.raises(IntegrityError):
            db.commit()
        db.rollback()

    def test_ambiguous_organisation(self, db, service, organisation, owner):
        """Owners of several organisations must say which one."""
        second = OrganisationService(db).create_organisation(
            owner.id, OrganisationType.SUPPLIER, "Hop Supply"
        )

        with pytest.raises(BadRequest):
            service.create_invite(owner.id, "who@example.com")

        invite, _ = service.create_invite(
            owner.id, "who@example.com", organisation_id=second.id
        )
        assert invite.organisation_id == second.id

    def test_explicit_foreign_organisation(self, service, organisation, outsider):
        """Naming an organisation you are not in is Forbidden."""
        with pytest.raises(Forbidden):
            service.create_invite(outsider.id, "x@example.com", organisation_id=organisation.id)


class TestListAndCancel:
    """Tests for list_invites and cancel_invite."""

    def test_list_derives_status(self, db, service, organisation, owner, make_user):
        """Each invite reports pending, expired or accepted."""
        pending, _ = service.create_invite(owner.id, "pending@example.com")
        stale, _ = service.create_invite(owner.id, "stale@example.com")
        used, _ = service.create_invite(owner.id, "used@example.com")
        expire(db, stale)
        joiner = make_user("used@example.com")
        service.accept_invite(used.token, joiner.id)

        invites = service.list_invites(owner.id)
        statuses = {inv.email: inv.status for inv in invites}

        assert statuses == {
            "pending@example.com": InviteStatus.PENDING,
            "stale@example.com": InviteStatus.EXPIRED,
            "used@example.com": InviteStatus.ACCEPTED,
        }
        assert all(inv.created_by_name == "Olivia Owner" for inv in invites)

    def test_expiry_boundary(self, service, organisation, owner):
        """An invite is still pending at exactly its expiry time."""
        invite, _ = service.create_invite(owner.id, "edge@example.com")
        expires_at = as_utc(invite.expires_at)

        assert invite.status_at(expires_at) == InviteStatus.PENDING
        assert invite.status_at(expires_at + timedelta(microseconds=1)) == InviteStatus.EXPIRED

    def test_member_cannot_list(self, service, organisation, member):
        """Members cannot see invites."""
        with pytest.raises(Forbidden):
            service.list_invites(member.id)

    def test_admin_cancels(self, db, service, organisation, owner, admin):
        """Admins can cancel pending invites."""
        invite, _ = service.create_invite(owner.id, "gone@example.com")
        service.cancel_invite(admin.id, invite.token)
        assert db.query(OrganisationInvite).count() == 0

    def test_member_cannot_cancel(self, db, service, organisation, owner, member):
        """Members cannot cancel invites."""
        invite, _ = service.create_invite(owner.id, "stay@example.com")
        with pytest.raises(Forbidden):
            service.cancel_invite(member.id, invite.token)
        assert db.query(OrganisationInvite).count() == 1

    def test_cancel_accepted(self, service, organisation, owner, make_user):
        """Accepted invites cannot be cancelled."""
        invite, _ = service.create_invite(owner.id, "in@example.com")
        service.accept_invite(invite.token, make_user("in@example.com").id)
        with pytest.raises(Conflict):
            service.cancel_invite(owner.id, invite.token)

    def test_cancel_unknown(self, service, organisation, owner):
        """Unknown tokens are NotFound."""
        with pytest.raises(NotFound):
            service.cancel_invite(owner.id, "nope")


class TestPreviewAndAccept:
    """Tests for get_invite_preview and accept_invite."""

    def test_preview(self, service, organisation, owner):
        """The preview shows who and where."""
        invite, _ = service.create_invite(owner.id, "guest@example.com", "ADMIN")
        preview = service.get_invite_preview(invite.token)

        assert preview.email == "guest@example.com"
        assert preview.role == OrganisationRole.ADMIN
        assert preview.organisation.name == "Brew Co"
        assert preview.organisation.type == OrganisationType.BRAND

    def test_preview_unknown(self, service):
        """Unknown tokens are NotFound."""
        with pytest.raises(NotFound):
            service.get_invite_preview(str(uuid4()))

    def test_accept_joins_with_invited_role(self, db, service, organisation, owner, make_user):
        """Accepting creates a membership with the invite's role."""
        invite, _ = service.create_invite(owner.id, "newbie@example.com", "ADMIN")
        newbie = make_user("newbie@example.com")

        membership = service.accept_invite(invite.token, newbie.id)

        assert membership.organisation_id == organisation.id
        assert membership.role == OrganisationRole.ADMIN
        db.refresh(invite)
        assert invite.accepted_at is not None
        assert invite.status_at(utcnow()) == InviteStatus.ACCEPTED

    def test_accept_twice(self, db, service, organisation, owner, make_user):
        """The second accept is AlreadyAccepted and adds nobody."""
        invite, _ = service.create_invite(owner.id, "twice@example.com")
        user = make_user("twice@example.com")
        service.accept_invite(invite.token, user.id)
        before = member_count(db, organisation.id)

        with pytest.raises(AlreadyAccepted):
            service.accept_invite(invite.token, user.id)
        assert member_count(db, organisation.id) == before

    def test_accept_expired(self, db, service, organisation, owner, make_user):
        """Expired invites are rejected."""
        invite, _ = service.create_invite(owner.id, "slow@example.com")
        expire(db, invite)
        user = make_user("slow@example.com")

        with pytest.raises(Expired):
            service.accept_invite(invite.token, user.id)
        with pytest.raises(Expired):
            service.get_invite_preview(invite.token)
        assert service.memberships.get_membership(organisation.id, user.id) is None

    def test_expiry_reported_before_acceptance(self, db, service, organisation, owner, make_user):
        """An accepted invite past its expiry reports Expired."""
        invite, _ = service.create_invite(owner.id, "both@example.com")
        service.accept_invite(invite.token, make_user("both@example.com").id)
        expire(db, invite)

        with pytest.raises(Expired):
            service.get_invite_preview(invite.token)

    def test_accept_other_email(self, service, organisation, owner, outsider):
        """Only the invited address may accept."""
        invite, _ = service.create_invite(owner.id, "someone.else@example.com")
        with pytest.raises(Forbidden):
            service.accept_invite(invite.token, outsider.id)

    def test_accept_already_member(self, db, service, organisation, owner, member):
        """A member accepting an invite to their own organisation is a Conflict."""
        invite = OrganisationInvite(
            organisation_id=organisation.id,
            email=member.email,
            token=generate_invite_token(),
            role=OrganisationRole.MEMBER,
            expires_at=utcnow() + timedelta(days=7),
            created_by_id=owner.id,
        )
        db.add(invite)
        db.commit()

        with pytest.raises(Conflict):
            service.accept_invite(invite.token, member.id)


class TestScenarios:
    """End-to-end flows through the services."""

    def test_member_invite_then_transfer_fails(self, db, make_user):
        """A new MEMBER cannot be handed ownership."""
        alice = make_user("alice@acme.com", "Alice", "Founder")
        bob = make_user("bob@acme.com", "Bob", "Joiner")
        org = OrganisationService(db).create_organisation(
            alice.id, OrganisationType.BRAND, "Acme Spirits"
        )
        invites = InviteService(db)

        invite, _ = invites.create_invite(alice.id, "bob@acme.com", "MEMBER")
        invites.accept_invite(invite.token, bob.id)
        assert member_count(db, org.id) == 2

        with pytest.raises(InvalidOperation):
            MembershipService(db).transfer_ownership(org.id, alice.id, bob.id)

    def test_promote_transfer_then_remove_owner_fails(self, db, make_user):
        """After a transfer the old owner cannot remove the new one."""
        alice = make_user("alice@acme.com", "Alice", "Founder")
        bob = make_user("bob@acme.com", "Bob", "Joiner")
        org: Organisation = OrganisationService(db).create_organisation(
            alice.id, OrganisationType.BRAND, "Acme Spirits"
        )
        invites = InviteService(db)
        memberships = MembershipService(db)

        invite, _ = invites.create_invite(alice.id, "bob@acme.com")
        invites.accept_invite(invite.token, bob.id)

        memberships.update_member_role(org.id, bob.id, OrganisationRole.ADMIN, alice.id)
        memberships.transfer_ownership(org.id, alice.id, bob.id)

        assert memberships.get_membership(org.id, alice.id).role == OrganisationRole.ADMIN
        assert memberships.get_membership(org.id, bob.id).role == OrganisationRole.OWNER

        with pytest.raises(InvalidOperation):
            memberships.remove_member(org.id, bob.id, alice.id)
