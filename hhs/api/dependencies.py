"""
API dependencies for FastAPI dependency injection.

Provides database sessions, credential verification, RoleGuard-backed
authorization, and service factories.
"""
from typing import Callable, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from hhs.api.middleware.error_handler import (
    AuthenticationRequiredException,
    InvalidCredentialException,
)
from hhs.lib.db import get_db as get_db_session
from hhs.lib.jwt import CredentialError, ExpiredCredential, TokenAuthority, TokenClaims, get_token_authority
from hhs.lib.settings import settings
from hhs.models.users import UserRole
from hhs.services.artist_service import ArtistService
from hhs.services.auth_service import AuthService
from hhs.services.booking_service import BookingService
from hhs.services.notification_service import NotificationDispatcher, get_notification_dispatcher
from hhs.services.review_service import ReviewService
from hhs.services.role_guard import AuthorizedIdentity, RoleGuard, SqlRoleStore


# Re-export get_db for convenience
get_db = get_db_session

ALL_ROLES = (UserRole.CLIENT, UserRole.ARTIST, UserRole.ADMIN)

# Bearer header is optional because browsers send the cookie instead
security = HTTPBearer(auto_error=False)


def get_authority() -> TokenAuthority:
    return get_token_authority()


def get_dispatcher() -> NotificationDispatcher:
    return get_notification_dispatcher()


def extract_token(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials],
) -> Optional[str]:
    """Bearer header first, then the httpOnly cookie."""
    if credentials is not None and credentials.credentials:
        return credentials.credentials
    return request.cookies.get(settings.cookie_name)


def get_current_claims(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    authority: TokenAuthority = Depends(get_authority),
) -> TokenClaims:
    """
    Verify the presented credential.

    Raises:
        AuthenticationRequiredException: No credential presented
        InvalidCredentialException: Bad signature, bad structure, or expired
    """
    token = extract_token(request, credentials)
    if not token:
        raise AuthenticationRequiredException()

    try:
        return authority.verify(token)
    except ExpiredCredential:
        raise InvalidCredentialException("Token has expired")
    except CredentialError:
        raise InvalidCredentialException()


def get_role_guard(db: Session = Depends(get_db)) -> RoleGuard:
    """RoleGuard reading roles through the request's pooled session."""
    return RoleGuard(SqlRoleStore(db))


def require_roles(*roles: UserRole) -> Callable[..., AuthorizedIdentity]:
    """
    Dependency factory: authorize the caller against the persisted role.

    Usage:
        @router.patch("/{id}/status")
        def update(actor: AuthorizedIdentity = Depends(require_roles(UserRole.ADMIN))):
            ...
    """
    allowed = tuple(roles) or ALL_ROLES

    def dependency(
        claims: TokenClaims = Depends(get_current_claims),
        guard: RoleGuard = Depends(get_role_guard),
    ) -> AuthorizedIdentity:
        return guard.authorize(claims, allowed)

    return dependency


# Any signed-in identity that still exists, with its persisted role
get_current_identity = require_roles(*ALL_ROLES)


# ===== Service factories =====

def get_auth_service(
    db: Session = Depends(get_db),
    authority: TokenAuthority = Depends(get_authority),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> AuthService:
    return AuthService(db, authority, dispatcher)


def get_booking_service(
    db: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> BookingService:
    return BookingService(db, dispatcher)


def get_review_service(db: Session = Depends(get_db)) -> ReviewService:
    return ReviewService(db)


def get_artist_service(db: Session = Depends(get_db)) -> ArtistService:
    return ArtistService(db)
