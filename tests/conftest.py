"""Pytest configuration and fixtures."""

import os
from collections.abc import Callable, Generator
from uuid import uuid4

# Set test environment before importing app
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["SECRET_KEY"] = "test-secret-key-for-testing-only"
os.environ["DEBUG"] = "false"
os.environ["APP_BASE_URL"] = "https://kindred.test"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.auth.utils import hash_password
from app.db.models import (
    Base,
    Brand,
    Organisation,
    OrganisationMember,
    OrganisationRole,
    OrganisationType,
    User,
    utcnow,
)

# Use in-memory SQLite for testing
SQLALCHEMY_TEST_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """Create a fresh database for each test."""
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(db: Session) -> Generator[TestClient, None, None]:
    """Create a test client with database override."""
    # Import here to ensure env vars are set
    from app.dependencies import get_db
    from app.main import app

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db: Session) -> Callable[..., User]:
    """Factory creating active users."""

    def _make_user(email: str, first_name: str = "Test", last_name: str = "User") -> User:
        user = User(
            id=str(uuid4()),
            email=email,
            password_hash=hash_password("testpassword123"),
            first_name=first_name,
            last_name=last_name,
            is_active=True,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make_user


@pytest.fixture
def owner(make_user) -> User:
    """Owner of the test organisation."""
    return make_user("owner@brewco.com", "Olivia", "Owner")


@pytest.fixture
def admin(make_user) -> User:
    """Admin of the test organisation."""
    return make_user("admin@brewco.com", "Adam", "Admin")


@pytest.fixture
def member(make_user) -> User:
    """Plain member of the test organisation."""
    return make_user("member@brewco.com", "Mia", "Member")


@pytest.fixture
def outsider(make_user) -> User:
    """User with no organisation."""
    return make_user("outsider@example.com", "Oscar", "Outsider")


@pytest.fixture
def add_member(db: Session) -> Callable[..., OrganisationMember]:
    """Factory inserting membership rows directly."""

    def _add_member(org: Organisation, user: User, role: OrganisationRole) -> OrganisationMember:
        membership = OrganisationMember(
            id=str(uuid4()),
            organisation_id=org.id,
            user_id=user.id,
            role=role,
            joined_at=utcnow(),
        )
        db.add(membership)
        db.commit()
        db.refresh(membership)
        return membership

    return _add_member


@pytest.fixture
def organisation(db: Session, add_member, owner: User, admin: User, member: User) -> Organisation:
    """Brand organisation with an owner, an admin and a member."""
    brand = Brand(id=str(uuid4()), name="Brew Co", slug="brew-co", description="Craft beer")
    org = Organisation(
        id=str(uuid4()),
        name="Brew Co",
        slug="brew-co",
        type=OrganisationType.BRAND,
        brand=brand,
    )
    db.add(org)
    db.commit()
    db.refresh(org)

    add_member(org, owner, OrganisationRole.OWNER)
    add_member(org, admin, OrganisationRole.ADMIN)
    add_member(org, member, OrganisationRole.MEMBER)
    return org


@pytest.fixture
def login_as(client: TestClient) -> Generator[Callable[[User], TestClient], None, None]:
    """Authenticate the test client as a given user."""
    from app.dependencies import get_current_user
    from app.main import app

    def _login_as(user: User) -> TestClient:
        app.dependency_overrides[get_current_user] = lambda: user
        return client

    yield _login_as
    if get_current_user in app.dependency_overrides:
        del app.dependency_overrides[get_current_user]
