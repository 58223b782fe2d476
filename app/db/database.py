"""Engine and session wiring for the organisation store."""

from collections.abc import Generator

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker

from app.config import get_settings

settings = get_settings()


def build_engine(database_url: str, echo: bool = False) -> Engine:
    """Create the engine for ``database_url``.

    PostgreSQL is the deployment target: the single-owner and one-open-invite
    rules are partial unique indexes. SQLite works for local runs and tests.
    """
    if database_url.startswith("sqlite"):
        return create_engine(database_url, echo=echo, connect_args={"check_same_thread": False})
    return create_engine(database_url, echo=echo, pool_pre_ping=True)


engine = build_engine(settings.database_url, echo=settings.debug)

# Services flush explicitly where they need generated ids before commit
SessionLocal = sessionmaker(bind=engine, autoflush=False)


def get_db() -> Generator[Session, None, None]:
    """Yield a request-scoped session, closed once the response is sent."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db() -> None:
    """Create missing tables in debug mode.

    Deployed databases are managed by Alembic (``alembic upgrade head``).
    """
    from app.db.models import Base

    if settings.debug:
        Base.metadata.create_all(bind=engine)
