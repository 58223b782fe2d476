"""Account registration, login and access tokens."""

from app.auth.utils import (
    AuthContext,
    create_access_token,
    decode_access_token,
    hash_password,
    verify_password,
)

__all__ = [
    "AuthContext",
    "create_access_token",
    "decode_access_token",
    "hash_password",
    "verify_password",
]
