"""Password hashing and access tokens for Kindred accounts."""

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

import bcrypt
from jose import JWTError, jwt

from app.config import get_settings

# bcrypt ignores (newer releases reject) anything past 72 bytes
BCRYPT_MAX_BYTES = 72

TOKEN_TYPE = "access"


@dataclass(frozen=True)
class AuthContext:
    """Authenticated caller, passed explicitly into every service call.

    Attributes:
        user_id: Authenticated user's UUID.
        email: Email the user signed in with.
        claims: Remaining token claims (``account_type``).
    """

    user_id: str
    email: str
    claims: dict = field(default_factory=dict)

    @property
    def account_type(self) -> str | None:
        return self.claims.get("account_type")


def _password_bytes(password: str) -> bytes:
    return password.encode("utf-8")[:BCRYPT_MAX_BYTES]


def hash_password(password: str) -> str:
    """Hash a password for storage in ``users.password_hash``."""
    return bcrypt.hashpw(_password_bytes(password), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Check a login password against the stored hash."""
    return bcrypt.checkpw(_password_bytes(password), password_hash.encode("utf-8"))


def create_access_token(
    user_id: str,
    email: str,
    account_type: str | None = None,
    expires_in: timedelta | None = None,
) -> str:
    """Sign an access token for a user.

    Args:
        user_id: User's UUID, stored as ``sub``.
        email: User's email.
        account_type: MEMBER, BRAND, SUPPLIER or ADMIN.
        expires_in: Lifetime; defaults to ``access_token_expire_minutes``.

    Returns:
        str: Encoded JWT.
    """
    settings = get_settings()
    issued_at = datetime.now(UTC)
    lifetime = expires_in or timedelta(minutes=settings.access_token_expire_minutes)
    claims = {
        "sub": user_id,
        "email": email,
        "account_type": account_type,
        "type": TOKEN_TYPE,
        "iat": issued_at,
        "exp": issued_at + lifetime,
    }
    return jwt.encode(claims, settings.secret_key, algorithm=settings.algorithm)


def decode_access_token(token: str) -> AuthContext | None:
    """Verify a token and turn its claims into an ``AuthContext``.

    Returns None for a bad signature, an expired token or a token that is
    not an access token.
    """
    settings = get_settings()
    try:
        claims = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError:
        return None

    if not claims.get("sub") or claims.get("type") != TOKEN_TYPE:
        return None

    return AuthContext(
        user_id=claims["sub"],
        email=claims.get("email") or "",
        claims={"account_type": claims.get("account_type")},
    )
