"""User domain model for account authentication."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Iterable, Optional, Set


class Role(str, Enum):
    USER = "USER"
    ADMIN = "ADMIN"


class User:
    """
    User entity owning the credential and the one-time token state.

    Attributes:
        id: Unique identifier, assigned by storage on first save
        email: Normalized email address (unique)
        password_hash: bcrypt hash of the password
        roles: Role tags carried as access-token claims
        is_verified: Whether the email address has been confirmed
        email_verification_token: One-time verification token
        email_verification_expires_at: Expiry paired with the verification token
        consumed_verification_token: Verification token already used, kept so a
            repeated verification link still resolves to this account
        password_reset_token: One-time password reset token
        password_reset_expires_at: Expiry paired with the reset token
        created_at: Set by storage on insert
        updated_at: Set by storage on every save
    """

    def __init__(
        self,
        email: str,
        password_hash: str,
        id: Optional[int] = None,
        roles: Optional[Iterable[Role]] = None,
        is_verified: bool = False,
        email_verification_token: Optional[str] = None,
        email_verification_expires_at: Optional[datetime] = None,
        consumed_verification_token: Optional[str] = None,
        password_reset_token: Optional[str] = None,
        password_reset_expires_at: Optional[datetime] = None,
        created_at: Optional[datetime] = None,
        updated_at: Optional[datetime] = None,
    ):
        self.id = id
        self.email = email
        self.password_hash = password_hash
        self.roles: Set[Role] = set(roles) if roles is not None else {Role.USER}
        self.is_verified = is_verified
        self.email_verification_token = email_verification_token
        self.email_verification_expires_at = email_verification_expires_at
        self.consumed_verification_token = consumed_verification_token
        self.password_reset_token = password_reset_token
        self.password_reset_expires_at = password_reset_expires_at
        self.created_at = created_at
        self.updated_at = updated_at

    @property
    def role_names(self) -> list[str]:
        return sorted(role.value for role in self.roles)

    def set_email_verification(self, token: str, expires_at: datetime) -> None:
        self.email_verification_token = token
        self.email_verification_expires_at = expires_at

    def mark_verified(self) -> None:
        self.is_verified = True
        self.consumed_verification_token = self.email_verification_token
        self.email_verification_token = None
        self.email_verification_expires_at = None

    def set_password_reset(self, token: str, expires_at: datetime) -> None:
        self.password_reset_token = token
        self.password_reset_expires_at = expires_at

    def clear_password_reset(self) -> None:
        self.password_reset_token = None
        self.password_reset_expires_at = None

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email} verified={self.is_verified}>"
