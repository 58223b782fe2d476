"""Dependency injection for FastAPI."""

from typing import Annotated

from fastapi import Cookie, Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from app.auth.utils import AuthContext, decode_access_token
from app.db.database import get_db
from app.db.models import User
from app.errors import Forbidden, Unauthorized

security = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    db: Annotated[Session, Depends(get_db)],
    access_token: str | None = Cookie(None),
) -> User:
    """Get the current authenticated user from JWT token or cookie.

    Supports both Bearer token (for API clients) and cookie-based auth (for web UI).

    Args:
        credentials: HTTP Bearer token credentials.
        db: Database session.
        access_token: Access token from cookie.

    Returns:
        User: The authenticated user.

    Raises:
        Unauthorized: If authentication fails.
        Forbidden: If the account is disabled.
    """
    # Try Bearer token first, then fall back to cookie
    token = None
    if credentials is not None:
        token = credentials.credentials
    elif access_token is not None:
        token = access_token

    if token is None:
        raise Unauthorized()

    context = decode_access_token(token)
    if context is None:
        raise Unauthorized("Invalid or expired token")

    user = db.query(User).filter(User.id == context.user_id).first()
    if user is None:
        raise Unauthorized("User not found")

    if not user.is_active:
        raise Forbidden("User account is disabled")

    return user


def get_auth_context(
    current_user: Annotated[User, Depends(get_current_user)],
) -> AuthContext:
    """Build the explicit auth context for the current request.

    Args:
        current_user: The authenticated user.

    Returns:
        AuthContext: Caller identity and claims.
    """
    return AuthContext(
        user_id=current_user.id,
        email=current_user.email,
        claims={"account_type": current_user.account_type.value},
    )


# Type aliases for cleaner dependency injection
DbSession = Annotated[Session, Depends(get_db)]
CurrentUser = Annotated[User, Depends(get_current_user)]
CurrentAuth = Annotated[AuthContext, Depends(get_auth_context)]
