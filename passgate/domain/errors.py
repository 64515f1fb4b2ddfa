"""Caller-visible failure outcomes of the authentication use cases."""

from __future__ import annotations

from enum import Enum


class AuthErrorKind(str, Enum):
    EMAIL_ALREADY_EXISTS = "email_already_exists"
    BAD_CREDENTIALS = "bad_credentials"
    ACCOUNT_NOT_VERIFIED = "account_not_verified"
    INVALID_TOKEN = "invalid_token"
    TOKEN_EXPIRED = "token_expired"


class AuthError(Exception):
    """Recoverable failure tagged with its :class:`AuthErrorKind`."""

    def __init__(self, kind: AuthErrorKind, message: str) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message

    def __repr__(self) -> str:
        return f"AuthError({self.kind.value!r}, {self.message!r})"


class RefreshTokenConflictError(Exception):
    """Storage rejected a refresh token because the user already owns one."""


class EmailConflictError(Exception):
    """Storage rejected a user because the email is already registered."""
