"""Shared fixtures.

The database URL must point at a throwaway SQLite file before any ``hhs``
module is imported, since the engine is created at import time.
"""
import os
import tempfile
from datetime import date
from unittest.mock import MagicMock
from uuid import uuid4

_TEST_DB_DIR = tempfile.mkdtemp(prefix="hhs-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TEST_DB_DIR, 'hhs.db')}"
os.environ["ENVIRONMENT"] = "test"
os.environ["NOTIFICATION_PROVIDER"] = "console"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from hhs.lib.db import SessionLocal, drop_db, init_db  # noqa: E402
from hhs.lib.jwt import TokenAuthority, TokenClaims, get_token_authority  # noqa: E402
from hhs.lib.metrics import reset_metrics  # noqa: E402
from hhs.lib.passwords import hash_password  # noqa: E402
from hhs.models import ArtistProfile, Booking, BookingStatus, ConsultationType, Design, User, UserRole  # noqa: E402
from hhs.services.notification_service import NotificationDispatcher  # noqa: E402
from hhs.services.role_guard import AuthorizedIdentity  # noqa: E402


DEFAULT_PASSWORD = "pw12345"


@pytest.fixture(autouse=True)
def _fresh_database():
    """Every test starts with empty tables and zeroed counters."""
    drop_db()
    init_db()
    reset_metrics()
    yield
    drop_db()


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def dispatcher():
    """Stand-in dispatcher that records notify() calls."""
    return MagicMock(spec=NotificationDispatcher)


@pytest.fixture
def authority() -> TokenAuthority:
    return get_token_authority()


class Factory:
    """Creates committed rows for tests."""

    def __init__(self, session):
        self.session = session

    def user(self, email=None, name="Test User", role=UserRole.CLIENT, password=DEFAULT_PASSWORD) -> User:
        user = User(
            email=email or f"user-{uuid4().hex[:8]}@example.com",
            password_hash=hash_password(password),
            name=name,
            role=role,
        )
        self.session.add(user)
        self.session.commit()
        return user

    def artist(self, user: User = None, available=True) -> ArtistProfile:
        user = user or self.user(name="Artist", role=UserRole.ARTIST)
        profile = ArtistProfile(
            user_id=user.id,
            bio="Bridal and festival henna",
            specialties=["bridal"],
            experience=5,
            portfolio=[],
            available=available,
        )
        self.session.add(profile)
        self.session.commit()
        return profile

    def design(self, user: User) -> Design:
        design = Design(user_id=user.id, style_name="Arabic floral")
        self.session.add(design)
        self.session.commit()
        return design

    def booking(
        self,
        user: User,
        artist: ArtistProfile = None,
        status=BookingStatus.PENDING,
        code=None,
    ) -> Booking:
        booking = Booking(
            user_id=user.id,
            artist_id=artist.id if artist else None,
            consultation_type=ConsultationType.VIRTUAL,
            status=status,
            scheduled_date=date(2030, 1, 15),
            scheduled_time="14:00",
            confirmation_code=code or f"HHS-{uuid4().hex[:6].upper()}",
        )
        self.session.add(booking)
        self.session.commit()
        return booking


@pytest.fixture
def factory(db) -> Factory:
    return Factory(db)


def _identity_for(user: User) -> AuthorizedIdentity:
    return AuthorizedIdentity(user_id=user.id, email=user.email, role=user.role)


@pytest.fixture
def identity_for():
    """Build the AuthorizedIdentity a route would hand to a service."""
    return _identity_for


@pytest.fixture
def auth_headers(authority):
    """Bearer header for a session credential issued to user."""
    def _headers(user: User, role: UserRole = None) -> dict:
        claimed = (role or user.role).value
        token = authority.issue(TokenClaims(user_id=str(user.id), email=user.email, role=claimed))
        return {"Authorization": f"Bearer {token}"}
    return _headers


@pytest.fixture
def client(dispatcher):
    """TestClient with notifications captured by the mock dispatcher."""
    from hhs.api.app import app
    from hhs.api.dependencies import get_dispatcher

    app.dependency_overrides[get_dispatcher] = lambda: dispatcher
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
