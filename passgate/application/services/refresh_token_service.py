from __future__ import annotations

import logging
import secrets
from datetime import timedelta

from ...core.clock import Clock
from ...domain.errors import AuthError, AuthErrorKind, RefreshTokenConflictError
from ...domain.models import RefreshToken, User
from ...domain.ports.persistence import PersistenceGateway
from ...services.token_signer import TokenSigner

logger = logging.getLogger(__name__)


class RefreshTokenService:
    """Keeps at most one refresh token per user and trades it for access tokens."""

    def __init__(
        self,
        persistence: PersistenceGateway,
        token_signer: TokenSigner,
        clock: Clock,
        refresh_token_expiration_ms: int,
    ) -> None:
        self._persistence = persistence
        self._signer = token_signer
        self._clock = clock
        self._refresh_ttl = timedelta(milliseconds=refresh_token_expiration_ms)

    def create_refresh_token(self, user: User) -> RefreshToken:
        """Replace the user's refresh token with a fresh one.

        A concurrent insert for the same user surfaces as a uniqueness
        conflict; the delete-then-insert sequence is retried once.
        """
        try:
            return self._replace_token(user)
        except RefreshTokenConflictError:
            logger.info("Refresh token conflict for user id=%s; retrying", user.id)
        return self._replace_token(user)

    def _replace_token(self, user: User) -> RefreshToken:
        with self._persistence.transaction():
            # delete before insert: user_id is unique in storage
            existing = self._persistence.get_refresh_token_for_user(user.id)
            if existing is not None:
                self._persistence.delete_refresh_token(existing)

            refresh_token = RefreshToken(
                user_id=user.id,
                token=secrets.token_urlsafe(32),
                expires_at=self._clock.now() + self._refresh_ttl,
            )
            return self._persistence.save_refresh_token(refresh_token)

    def refresh_access_token(self, token: str) -> str:
        """
        Mint a new access token from a refresh token.

        Expired refresh tokens are deleted before failing.

        Raises:
            AuthError: INVALID_TOKEN if the token is unknown, TOKEN_EXPIRED if
                it has expired
        """
        refresh_token = self._persistence.get_refresh_token(token)
        if refresh_token is None:
            raise AuthError(AuthErrorKind.INVALID_TOKEN, "The refresh token is invalid.")

        now = self._clock.now()
        if refresh_token.is_expired(now):
            self._persistence.delete_refresh_token(refresh_token)
            logger.warning("Purged expired refresh token for user id=%s", refresh_token.user_id)
            raise AuthError(
                AuthErrorKind.TOKEN_EXPIRED,
                "Refresh token has expired. Please log in again.",
            )

        user = self._persistence.get_user_by_id(refresh_token.user_id)
        if user is None:
            raise AuthError(AuthErrorKind.INVALID_TOKEN, "The refresh token is invalid.")

        return self._signer.issue_access_token(user.email, user.role_names, now)

    def revoke_for_user(self, user: User) -> None:
        removed = self._persistence.delete_refresh_tokens_for_user(user.id)
        if removed:
            logger.info("Revoked refresh token for user id=%s", user.id)
