"""JWT credential issuance and verification.

Uses HS256 with the secret from settings. Two credential variants share one
signing key:

- session credentials carry ``sub`` (user id), ``email`` and ``role`` and
  live for ``jwt_session_days``;
- renewal credentials carry ``sub`` only and live for ``jwt_renewal_days``.

The ``role`` claim is a snapshot taken at issue time. It is never used for
authorization on its own; see ``hhs.services.role_guard``.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Optional

import jwt
from jwt.exceptions import ExpiredSignatureError, InvalidTokenError

from hhs.lib.settings import settings


SESSION_TOKEN = "session"
RENEWAL_TOKEN = "renewal"


class CredentialError(Exception):
    """Base class for credential verification failures."""


class ExpiredCredential(CredentialError):
    """The credential's expiry has passed."""


class MalformedCredential(CredentialError):
    """Bad signature, bad structure, missing claims or wrong credential type."""


@dataclass(frozen=True)
class TokenClaims:
    """Identity claims embedded in a session credential."""
    user_id: str
    email: str
    role: str


class TokenAuthority:
    """Issues and verifies signed, expiring credentials.

    The signing key and lifetimes are captured once at construction and never
    change for the lifetime of the instance.
    """

    def __init__(
        self,
        secret: str,
        algorithm: str = "HS256",
        session_ttl: timedelta = timedelta(days=7),
        renewal_ttl: timedelta = timedelta(days=30),
    ):
        if not secret:
            raise ValueError("Signing secret must not be empty")
        self._secret = secret
        self._algorithm = algorithm
        self._session_ttl = session_ttl
        self._renewal_ttl = renewal_ttl

    @property
    def session_ttl(self) -> timedelta:
        return self._session_ttl

    def _encode(self, payload: dict, ttl: timedelta, now: Optional[datetime]) -> str:
        now = now or datetime.now(timezone.utc)
        payload = {**payload, "iat": now, "exp": now + ttl}
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def _decode(self, token: str, expected_type: str) -> dict:
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                options={"require": ["exp", "iat", "sub"]},
            )
        except ExpiredSignatureError as e:
            raise ExpiredCredential("Credential has expired") from e
        except InvalidTokenError as e:
            raise MalformedCredential(f"Invalid credential: {e}") from e

        if payload.get("type") != expected_type:
            raise MalformedCredential(f"Expected a {expected_type} credential")
        return payload

    def issue(self, claims: TokenClaims, now: Optional[datetime] = None) -> str:
        """Issue a session credential for the given claims.

        Example:
            >>> token = authority.issue(TokenClaims(user_id, "a@x.com", "CLIENT"))
        """
        payload = {
            "sub": claims.user_id,
            "email": claims.email,
            "role": claims.role,
            "type": SESSION_TOKEN,
        }
        return self._encode(payload, self._session_ttl, now)

    def issue_renewal(self, user_id: str, now: Optional[datetime] = None) -> str:
        """Issue a long-lived renewal credential carrying the user id only."""
        return self._encode({"sub": user_id, "type": RENEWAL_TOKEN}, self._renewal_ttl, now)

    def verify(self, token: str) -> TokenClaims:
        """Verify a session credential and return its claims.

        Raises:
            ExpiredCredential: If the credential is past its expiry
            MalformedCredential: If the signature or structure is invalid
        """
        payload = self._decode(token, SESSION_TOKEN)
        try:
            return TokenClaims(
                user_id=str(payload["sub"]),
                email=str(payload["email"]),
                role=str(payload["role"]),
            )
        except KeyError as e:
            raise MalformedCredential(f"Credential missing claim: {e.args[0]}") from e

    def verify_renewal(self, token: str) -> str:
        """Verify a renewal credential and return the user id it names."""
        payload = self._decode(token, RENEWAL_TOKEN)
        return str(payload["sub"])


@lru_cache(maxsize=1)
def get_token_authority() -> TokenAuthority:
    """Process-wide authority built once from settings."""
    return TokenAuthority(
        secret=settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
        session_ttl=timedelta(days=settings.jwt_session_days),
        renewal_ttl=timedelta(days=settings.jwt_renewal_days),
    )
