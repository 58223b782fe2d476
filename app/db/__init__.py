"""Database module."""

from app.db.database import SessionLocal, engine, get_db, init_db
from app.db.models import (
    Base,
    Brand,
    Organisation,
    OrganisationInvite,
    OrganisationMember,
    Supplier,
    User,
)

__all__ = [
    "SessionLocal",
    "engine",
    "get_db",
    "init_db",
    "Base",
    "User",
    "Brand",
    "Supplier",
    "Organisation",
    "OrganisationMember",
    "OrganisationInvite",
]
