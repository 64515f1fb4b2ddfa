"""Signing and verification of HS256 access tokens."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

import jwt

from ..domain.models import AccessClaims

logger = logging.getLogger(__name__)

_MIN_SECRET_BYTES = 32


class TokenSigner:
    """Issues compact signed access tokens and parses them back into claims."""

    def __init__(
        self,
        secret_key: str,
        access_token_expiration_ms: int,
        algorithm: str = "HS256",
    ) -> None:
        if not secret_key:
            raise RuntimeError("JWT_SECRET_KEY is not configured.")
        if len(secret_key.encode("utf-8")) < _MIN_SECRET_BYTES:
            logger.warning(
                "JWT_SECRET_KEY is shorter than %s bytes. Configure a stronger secret in production.",
                _MIN_SECRET_BYTES,
            )
        self._secret_key = secret_key.encode("utf-8")
        self._access_ttl = timedelta(milliseconds=access_token_expiration_ms)
        self._algorithm = algorithm

    @property
    def access_token_ttl(self) -> timedelta:
        return self._access_ttl

    def issue_access_token(self, subject: str, roles: Iterable[str], now: datetime) -> str:
        """
        Create a signed access token.

        Args:
            subject: Email of the token owner
            roles: Role names carried as a claim
            now: Issue time

        Returns:
            Compact JWT string
        """
        payload = {
            "sub": subject,
            "roles": list(roles),
            "iat": now,
            "exp": now + self._access_ttl,
        }
        return jwt.encode(payload, self._secret_key, algorithm=self._algorithm)

    def parse(self, token: str) -> Optional[AccessClaims]:
        """
        Decode a token and check its signature.

        Expiry is left to :meth:`validate` so the caller's clock decides it.
        Returns None for malformed tokens, bad signatures or any other decode
        error; the reason is never exposed.
        """
        try:
            payload = jwt.decode(
                token,
                self._secret_key,
                algorithms=[self._algorithm],
                options={"verify_exp": False, "verify_iat": False, "verify_nbf": False},
            )
        except jwt.InvalidTokenError as exc:
            logger.debug("Rejected access token: %s", exc)
            return None

        roles = payload.get("roles") or []
        if not isinstance(roles, list):
            return None
        return AccessClaims(
            subject=payload.get("sub"),
            roles=[str(role) for role in roles],
            issued_at=_from_timestamp(payload.get("iat")),
            expires_at=_from_timestamp(payload.get("exp")),
        )

    def validate(self, token: str, now: datetime) -> Optional[AccessClaims]:
        """Return claims only for a well-signed, unexpired token with a subject."""
        claims = self.parse(token)
        if claims is None or not claims.subject:
            return None
        if claims.expires_at is None or claims.expires_at <= now:
            return None
        return claims


def _from_timestamp(value: object) -> Optional[datetime]:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    return None
