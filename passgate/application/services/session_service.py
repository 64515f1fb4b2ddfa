from __future__ import annotations

import logging

from ...core.clock import Clock
from ...domain.models import AccessClaims, TokenPair, User
from ...services.token_signer import TokenSigner
from .account_service import AccountService
from .refresh_token_service import RefreshTokenService

logger = logging.getLogger(__name__)


class SessionService:
    """Entry point for the register/login/refresh/logout/reset use cases."""

    def __init__(
        self,
        accounts: AccountService,
        refresh_tokens: RefreshTokenService,
        token_signer: TokenSigner,
        clock: Clock,
    ) -> None:
        self._accounts = accounts
        self._refresh_tokens = refresh_tokens
        self._signer = token_signer
        self._clock = clock

    def register(self, email: str, password: str) -> User:
        return self._accounts.register(email, password)

    def verify_email(self, token: str) -> None:
        self._accounts.verify_email(token)

    def login(self, email: str, password: str) -> TokenPair:
        user = self._accounts.authenticate(email, password)
        refresh_token = self._refresh_tokens.create_refresh_token(user)
        access_token = self._signer.issue_access_token(
            user.email, user.role_names, self._clock.now()
        )
        logger.info("User id=%s logged in", user.id)
        return TokenPair(
            access_token=access_token,
            refresh_token=refresh_token.token,
            expires_in=int(self._signer.access_token_ttl.total_seconds()),
        )

    def refresh(self, refresh_token: str) -> str:
        return self._refresh_tokens.refresh_access_token(refresh_token)

    def logout(self, identity: AccessClaims) -> None:
        user = self._accounts.resolve_identity(identity)
        self._refresh_tokens.revoke_for_user(user)
        logger.info("User id=%s logged out", user.id)

    def forgot_password(self, email: str) -> None:
        self._accounts.initiate_password_reset(email)

    def reset_password(self, token: str, new_password: str) -> None:
        self._accounts.finalize_password_reset(token, new_password)

    def current_user(self, identity: AccessClaims) -> User:
        return self._accounts.resolve_identity(identity)
