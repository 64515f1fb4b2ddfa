from __future__ import annotations

from typing import ContextManager, Optional, Protocol

from ..models import RefreshToken, User


class UserRepository(Protocol):
    """Persistence functions related to user accounts.

    ``save_user`` raises ``EmailConflictError`` when another user already has
    the email.
    """

    def get_user_by_email(self, email: str) -> Optional[User]:
        ...

    def user_exists(self, email: str) -> bool:
        ...

    def get_user_by_verification_token(self, token: str) -> Optional[User]:
        ...

    def get_user_by_reset_token(self, token: str) -> Optional[User]:
        ...

    def get_user_by_id(self, user_id: int) -> Optional[User]:
        ...

    def save_user(self, user: User) -> User:
        ...


class RefreshTokenRepository(Protocol):
    """Persistence functions related to refresh tokens.

    ``save_refresh_token`` raises ``RefreshTokenConflictError`` when the user
    already owns a token.
    """

    def get_refresh_token_for_user(self, user_id: int) -> Optional[RefreshToken]:
        ...

    def get_refresh_token(self, token: str) -> Optional[RefreshToken]:
        ...

    def save_refresh_token(self, refresh_token: RefreshToken) -> RefreshToken:
        ...

    def delete_refresh_tokens_for_user(self, user_id: int) -> int:
        ...

    def delete_refresh_token(self, refresh_token: RefreshToken) -> None:
        ...


class TransactionManager(Protocol):
    def transaction(self) -> ContextManager[None]:
        ...


class PersistenceGateway(
    UserRepository,
    RefreshTokenRepository,
    TransactionManager,
    Protocol,
):
    """Composite gateway combining every persistence concern used by the service."""

    pass
