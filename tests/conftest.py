"""
Test configuration and fixtures
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SESSION_SECRET", "test-secret")

from typing import AsyncGenerator, Generator

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

import models  # noqa: F401
from db import get_session
from lifecycle import Actor
from main import app
from models import PaymentStatus, Profile, Role, VerificationStatus
from routers.auth import SESSION_COOKIE, create_session_token, hash_password

PASSWORD = "password123"

# Mumbai and surroundings
MUMBAI = (19.0760, 72.8777)
ANDHERI = (19.1136, 72.8697)  # ~4 km from MUMBAI
PUNE = (18.5204, 73.8567)  # ~120 km from MUMBAI


@pytest.fixture
def engine():
    """In-memory SQLite shared across threads"""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session(engine) -> Generator[Session, None, None]:
    with Session(engine) as session:
        yield session


@pytest.fixture
async def client(session: Session) -> AsyncGenerator[AsyncClient, None]:
    """Create test client with database dependency override"""

    def override_get_session():
        yield session

    app.dependency_overrides[get_session] = override_get_session

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac

    app.dependency_overrides.clear()


def make_profile(session: Session, email: str, role: Role = Role.DONOR, coords=None, **fields) -> Profile:
    profile = Profile(
        email=email,
        password_hash=hash_password(PASSWORD),
        role=role,
        full_name=fields.pop("full_name", email.split("@")[0].title()),
        latitude=coords[0] if coords else None,
        longitude=coords[1] if coords else None,
        **fields,
    )
    session.add(profile)
    session.commit()
    session.refresh(profile)
    return profile


def make_ngo(session: Session, email: str, coords=None, active: bool = True, **fields) -> Profile:
    fields.setdefault("organization_name", email.split("@")[0].title() + " Foundation")
    fields.setdefault(
        "verification_status",
        VerificationStatus.VERIFIED if active else VerificationStatus.UNVERIFIED,
    )
    fields.setdefault("payment_status", PaymentStatus.PAID if active else PaymentStatus.UNPAID)
    return make_profile(session, email, Role.NGO, coords=coords, **fields)


def act_as(client: AsyncClient, profile: Profile) -> None:
    """Point the client's session cookie at ``profile``."""
    client.cookies.clear()
    client.cookies.set(SESSION_COOKIE, create_session_token(profile.id, profile.role.value))


@pytest.fixture
def donor(session: Session) -> Profile:
    return make_profile(session, "donor@hopecycle.org", coords=MUMBAI, location="Mumbai")


@pytest.fixture
def ngo(session: Session) -> Profile:
    return make_ngo(session, "helping@hopecycle.org", coords=ANDHERI, location="Andheri")


@pytest.fixture
def other_ngo(session: Session) -> Profile:
    return make_ngo(session, "sharing@hopecycle.org", coords=ANDHERI, location="Andheri")


@pytest.fixture
def far_ngo(session: Session) -> Profile:
    return make_ngo(session, "distant@hopecycle.org", coords=PUNE, location="Pune")


@pytest.fixture
def unverified_ngo(session: Session) -> Profile:
    return make_ngo(session, "newcomer@hopecycle.org", coords=ANDHERI, active=False)


@pytest.fixture
def admin(session: Session) -> Profile:
    return make_profile(session, "admin@hopecycle.org", Role.ADMIN, full_name="Administrator")


@pytest.fixture
def donor_actor(donor: Profile) -> Actor:
    return Actor(profile=donor)


@pytest.fixture
def ngo_actor(ngo: Profile) -> Actor:
    return Actor(profile=ngo)


@pytest.fixture
def other_ngo_actor(other_ngo: Profile) -> Actor:
    return Actor(profile=other_ngo)
