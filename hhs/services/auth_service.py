"""Authentication service for email/password accounts.

Handles:
1. Registration: create a CLIENT identity, issue credentials, send welcome email
2. Login: verify the bcrypt hash and issue credentials
3. Renewal: exchange a renewal credential for a fresh session credential
4. Profile: read and update the caller's own identity, change password
"""
from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from hhs.api.middleware.error_handler import (
    BadRequestException,
    ConflictException,
    IdentityNotFoundException,
    InvalidCredentialException,
    NotFoundException,
    ValidationException,
)
from hhs.lib.jwt import CredentialError, TokenAuthority, TokenClaims
from hhs.lib.logging import get_logger
from hhs.lib.metrics import get_metrics_collector
from hhs.lib.passwords import hash_password, verify_password
from hhs.lib.settings import settings
from hhs.models.bookings import Booking
from hhs.models.designs import Design
from hhs.models.users import User, UserRole
from hhs.services.notification_service import NotificationDispatcher, welcome_payload


logger = get_logger(__name__)


def clean_name(name: str) -> str:
    """Strip surrounding whitespace; a blank name is rejected."""
    name = name.strip()
    if not name:
        raise ValidationException("Name is required", errors={"name": "empty"})
    return name


@dataclass
class IssuedCredentials:
    """Result of a successful register/login/refresh."""
    user: User
    token: str
    refresh_token: Optional[str] = None


class AuthService:
    """Authentication service for password-based login."""

    def __init__(
        self,
        session: Session,
        authority: TokenAuthority,
        dispatcher: NotificationDispatcher,
    ):
        self.session = session
        self.authority = authority
        self.dispatcher = dispatcher
        self.metrics = get_metrics_collector()

    def _issue(self, user: User, with_renewal: bool = True) -> IssuedCredentials:
        token = self.authority.issue(
            TokenClaims(user_id=str(user.id), email=user.email, role=user.role.value)
        )
        refresh_token = self.authority.issue_renewal(str(user.id)) if with_renewal else None
        return IssuedCredentials(user=user, token=token, refresh_token=refresh_token)

    def register(
        self,
        email: str,
        password: str,
        name: str,
        phone: Optional[str] = None,
    ) -> IssuedCredentials:
        """Create a CLIENT identity and issue credentials.

        Raises:
            ValidationException: Password too short or blank name
            ConflictException: Email already registered
        """
        email = email.strip().lower()
        name = clean_name(name)
        if len(password) < settings.password_min_length:
            raise ValidationException(
                f"Password must be at least {settings.password_min_length} characters",
                errors={"password": "too_short"},
            )

        existing = self.session.execute(
            select(User.id).where(User.email == email)
        ).scalar_one_or_none()
        if existing is not None:
            self.metrics.increment_auth_events("register", "conflict")
            raise ConflictException("Email already registered", details={"email": email})

        user = User(
            email=email,
            password_hash=hash_password(password),
            name=name,
            phone=phone,
            role=UserRole.CLIENT,
        )
        self.session.add(user)
        try:
            self.session.commit()
        except IntegrityError:
            # Lost a race with a concurrent registration for the same email
            self.session.rollback()
            self.metrics.increment_auth_events("register", "conflict")
            raise ConflictException("Email already registered", details={"email": email})
        self.session.refresh(user)

        logger.info("User registered", extra={"user_id": str(user.id)})
        self.metrics.increment_auth_events("register", "success")

        self.dispatcher.notify(user.email, welcome_payload(user.name))
        return self._issue(user)

    def login(self, email: str, password: str) -> IssuedCredentials:
        """Verify the password and issue credentials.

        Raises:
            InvalidCredentialException: Unknown email or wrong password
        """
        email = email.strip().lower()
        user = self.session.execute(
            select(User).where(User.email == email)
        ).scalar_one_or_none()

        if user is None or not verify_password(password, user.password_hash):
            self.metrics.increment_auth_events("login", "failure")
            raise InvalidCredentialException("Invalid credentials")

        self.metrics.increment_auth_events("login", "success")
        return self._issue(user)

    def refresh(self, refresh_token: str) -> IssuedCredentials:
        """Exchange a renewal credential for a new session credential.

        Claims are rebuilt from the persisted identity, so the new session
        credential carries the current role.
        """
        try:
            user_id = UUID(self.authority.verify_renewal(refresh_token))
        except (CredentialError, ValueError) as e:
            self.metrics.increment_auth_events("refresh", "failure")
            raise InvalidCredentialException(str(e))

        user = self.session.get(User, user_id)
        if user is None:
            self.metrics.increment_auth_events("refresh", "failure")
            raise IdentityNotFoundException()

        self.metrics.increment_auth_events("refresh", "success")
        return self._issue(user, with_renewal=False)

    def get_user(self, user_id: UUID) -> User:
        user = self.session.get(User, user_id)
        if user is None:
            raise NotFoundException("User", str(user_id))
        return user

    def get_profile(self, user_id: UUID) -> tuple[User, int, int]:
        """Return the user with their design and booking counts."""
        user = self.get_user(user_id)
        design_count = self.session.execute(
            select(func.count()).select_from(Design).where(Design.user_id == user_id)
        ).scalar_one()
        booking_count = self.session.execute(
            select(func.count()).select_from(Booking).where(Booking.user_id == user_id)
        ).scalar_one()
        return user, design_count, booking_count

    def update_profile(
        self,
        user_id: UUID,
        name: Optional[str] = None,
        phone: Optional[str] = None,
        avatar: Optional[str] = None,
    ) -> User:
        user = self.get_user(user_id)
        if name is not None:
            user.name = clean_name(name)
        if phone:
            user.phone = phone
        if avatar:
            user.avatar = avatar
        self.session.commit()
        self.session.refresh(user)
        return user

    def change_password(self, user_id: UUID, current_password: str, new_password: str) -> None:
        user = self.get_user(user_id)
        if not verify_password(current_password, user.password_hash):
            raise BadRequestException("Current password is incorrect")
        if len(new_password) < settings.password_min_length:
            raise ValidationException(
                f"Password must be at least {settings.password_min_length} characters",
                errors={"new_password": "too_short"},
            )
        user.password_hash = hash_password(new_password)
        self.session.commit()
        logger.info("Password changed", extra={"user_id": str(user_id)})
