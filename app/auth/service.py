"""Authentication service layer."""

import logging
from datetime import UTC, datetime

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.auth.schemas import Token, UserLogin, UserRegister, UserResponse
from app.auth.utils import create_access_token, hash_password, verify_password
from app.config import get_settings
from app.db.models import OrganisationMember, User
from app.errors import Conflict, Forbidden, KindredError, Unauthorized
from app.invites.service import InviteService

logger = logging.getLogger(__name__)


class AuthService:
    """Service class for authentication operations."""

    def __init__(self, db: Session):
        """Initialize auth service.

        Args:
            db: Database session.
        """
        self.db = db

    def _issue_token(self, user: User) -> Token:
        return Token(
            access_token=create_access_token(user.id, user.email, user.account_type.value)
        )

    def register(self, data: UserRegister) -> tuple[User, Token, OrganisationMember | None]:
        """Create an account, joining an organisation when an invite token is given.

        The invite is checked before the account is created, and the account
        and membership commit together, so a failed join leaves no account
        behind.

        Args:
            data: Registration data.

        Returns:
            tuple: Created user, access token and the membership gained from
            the invite (None without one).

        Raises:
            Conflict: If the email is already registered.
            NotFound, Expired, AlreadyAccepted, Forbidden: If the invite is unusable.
        """
        if self.db.query(User).filter(User.email == data.email).first():
            raise Conflict("An account with this email already exists")

        invites = InviteService(self.db)
        if data.invite_token:
            preview = invites.get_invite_preview(data.invite_token)
            if get_settings().invite_require_email_match and preview.email != data.email:
                raise Forbidden("This invite is for a different email address")

        user = User(
            email=data.email,
            password_hash=hash_password(data.password),
            first_name=data.first_name,
            last_name=data.last_name,
            job_title=data.job_title,
            account_type=data.account_type,
            is_active=True,
        )
        self.db.add(user)
        membership = None
        try:
            self.db.flush()
            if data.invite_token:
                membership = invites.accept_invite(data.invite_token, user.id, commit=False)
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise Conflict("An account with this email already exists") from e
        except KindredError:
            self.db.rollback()
            raise
        self.db.refresh(user)
        logger.info(f"Registered user {user.id} ({user.account_type.value})")

        return user, self._issue_token(user), membership

    def login(self, data: UserLogin) -> tuple[User, Token]:
        """Authenticate user and return token.

        Args:
            data: Login credentials.

        Returns:
            tuple: User and access token.

        Raises:
            Unauthorized: If the credentials are wrong.
            Forbidden: If the account is disabled.
        """
        user = self.db.query(User).filter(User.email == data.email).first()

        if not user or not verify_password(data.password, user.password_hash):
            raise Unauthorized("Invalid email or password.")

        if not user.is_active:
            raise Forbidden("Your account has been deactivated.")

        user.last_login = datetime.now(UTC)
        self.db.commit()

        return user, self._issue_token(user)

    def get_user_response(self, user: User) -> UserResponse:
        """Build the user response including organisation count.

        Args:
            user: User model.

        Returns:
            UserResponse: User information.
        """
        count = (
            self.db.query(OrganisationMember)
            .filter(OrganisationMember.user_id == user.id)
            .count()
        )
        return UserResponse(
            id=user.id,
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
            full_name=user.full_name,
            job_title=user.job_title,
            account_type=user.account_type,
            is_active=user.is_active,
            created_at=user.created_at,
            last_login=user.last_login,
            organisation_count=count,
        )


def get_auth_service(db: Session) -> AuthService:
    """Factory function for AuthService.

    Args:
        db: Database session.

    Returns:
        AuthService: Auth service instance.
    """
    return AuthService(db)
