"""
Test configuration and fixtures.

Provides:
- A fresh SQLite database file per test (same engine setup as production)
- A pinned clock so slot and cascade timing is deterministic
- User fixtures for each platform role
- JWT token minting and an HTTPX AsyncClient for router tests
"""
import os
from datetime import datetime, time, timezone
from typing import AsyncGenerator, Callable, Generator

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.orm import Session, sessionmaker

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("RATE_LIMIT_ENABLED", "False")

from app.main import app
from app.core.clock import FixedClock
from app.core.deps import COOKIE_NAME, CSRF_HEADER, CSRF_HEADER_VALUE, get_clock, get_db
from app.core.permissions import Actor
from app.core.security import create_session_token
from app.db.base import Base
from app.db.enums import Role
from app.db.models import User
from app.db.session import create_db_engine
from app.services import user_service


# Monday 2030-01-07 08:00 UTC
NOW = datetime(2030, 1, 7, 8, 0, tzinfo=timezone.utc)


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture(scope="function")
def engine(tmp_path):
    """Engine bound to a throwaway SQLite file with all tables created."""
    db_engine = create_db_engine(f"sqlite:///{tmp_path / 'test.db'}")
    Base.metadata.create_all(db_engine)
    yield db_engine
    db_engine.dispose()


@pytest.fixture(scope="function")
def session_factory(engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db(session_factory) -> Generator[Session, None, None]:
    """Session shared by the test body and (via override) the app."""
    session = session_factory()
    yield session
    session.close()


@pytest.fixture(scope="function")
def clock() -> FixedClock:
    return FixedClock(NOW)


# =============================================================================
# Users
# =============================================================================

@pytest.fixture(scope="function")
def make_user(db: Session) -> Callable[..., User]:
    """Factory: make_user("therapist") or make_user("child", guardian=g)."""
    counter = {"n": 0}

    def _make(*roles: str, guardian: User | None = None, name: str | None = None) -> User:
        counter["n"] += 1
        label = name or f"{'-'.join(roles)}-{counter['n']}"
        return user_service.create_user(
            db,
            email=f"{label}@example.com",
            display_name=label.title(),
            roles=[Role(r) for r in roles],
            guardian_id=guardian.id if guardian else None,
        )

    return _make


@pytest.fixture
def admin(make_user) -> User:
    return make_user("admin", name="admin")


@pytest.fixture
def therapist(make_user) -> User:
    return make_user("therapist", name="therapist")


@pytest.fixture
def other_therapist(make_user) -> User:
    return make_user("therapist", name="other-therapist")


@pytest.fixture
def guardian(make_user) -> User:
    return make_user("guardian", name="guardian")


@pytest.fixture
def child(make_user, guardian) -> User:
    return make_user("child", guardian=guardian, name="child")


@pytest.fixture
def admin_actor(admin) -> Actor:
    return Actor.from_user(admin)


@pytest.fixture
def therapist_actor(therapist) -> Actor:
    return Actor.from_user(therapist)


@pytest.fixture
def guardian_actor(guardian) -> Actor:
    return Actor.from_user(guardian)


@pytest.fixture
def weekday_hours(db, therapist):
    """Therapist available 09:00-17:00 UTC Monday to Friday."""
    from app.services import appointment_service

    return appointment_service.set_availability_rules(
        db,
        therapist.id,
        [
            {"day_of_week": day, "start_time": time(9, 0), "end_time": time(17, 0)}
            for day in range(5)
        ],
        timezone_name="UTC",
    )


# =============================================================================
# Client Fixtures
# =============================================================================

@pytest.fixture(scope="function")
async def client(db: Session, clock: FixedClock) -> AsyncGenerator[AsyncClient, None]:
    """
    AsyncClient wired to the test session and clock, with the CSRF header set.

    Use login(client, user) to attach a session cookie.
    """
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        headers={CSRF_HEADER: CSRF_HEADER_VALUE},
    ) as c:
        yield c

    app.dependency_overrides.clear()


@pytest.fixture
def login() -> Callable[[AsyncClient, User], AsyncClient]:
    """login(client, user) attaches a session cookie for user."""

    def _login(client: AsyncClient, user: User) -> AsyncClient:
        token = create_session_token(
            user_id=user.id,
            roles=[role.value for role in user.roles],
            token_version=user.token_version,
        )
        client.cookies.set(COOKIE_NAME, token)
        return client

    return _login
