"""Server-side role re-verification.

A verified credential proves who the caller is, not what they may do: its role
claim is a snapshot from issue time. RoleGuard re-reads the role from the users
table on every call, so a demotion or promotion takes effect immediately and a
credential minted before the change keeps no stale privileges.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Iterable, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from hhs.api.middleware.error_handler import ForbiddenException, IdentityNotFoundException
from hhs.lib.jwt import TokenClaims
from hhs.lib.logging import get_logger
from hhs.models.users import User, UserRole


logger = get_logger(__name__)


@dataclass(frozen=True)
class AuthorizedIdentity:
    """Caller identity with the role as currently persisted."""
    user_id: UUID
    email: str
    role: UserRole

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


class RoleStore(ABC):
    """System of record for identity roles."""

    @abstractmethod
    def current_role(self, user_id: UUID) -> Optional[tuple[str, UserRole]]:
        """Return (email, role) for the identity, or None if it does not exist."""


class SqlRoleStore(RoleStore):
    """RoleStore backed by a session borrowed from the shared engine pool."""

    def __init__(self, session: Session):
        self.session = session

    def current_role(self, user_id: UUID) -> Optional[tuple[str, UserRole]]:
        row = self.session.execute(
            select(User.email, User.role).where(User.id == user_id)
        ).one_or_none()
        if row is None:
            return None
        return row.email, row.role


class RoleGuard:
    """Authorizes verified claims against the persisted role."""

    def __init__(self, role_store: RoleStore):
        self.role_store = role_store

    def authorize(
        self,
        claims: TokenClaims,
        allowed_roles: Iterable[UserRole],
    ) -> AuthorizedIdentity:
        """
        Re-derive the caller's role and check it against allowed_roles.

        Args:
            claims: Claims from a verified session credential
            allowed_roles: Roles permitted for the operation

        Returns:
            AuthorizedIdentity carrying the persisted role

        Raises:
            IdentityNotFoundException: The identity no longer exists
            ForbiddenException: The persisted role is not allowed
        """
        try:
            user_id = UUID(claims.user_id)
        except ValueError:
            raise IdentityNotFoundException()

        record = self.role_store.current_role(user_id)
        if record is None:
            raise IdentityNotFoundException()

        email, role = record
        allowed = set(allowed_roles)
        if role not in allowed:
            if claims.role != role.value:
                logger.warning(
                    "Credential role is stale",
                    extra={"user_id": str(user_id), "claimed_role": claims.role, "role": role.value},
                )
            raise ForbiddenException("Insufficient permissions")

        return AuthorizedIdentity(user_id=user_id, email=email, role=role)
