"""Domain models for the Passgate service."""

from .refresh_token import RefreshToken
from .tokens import AccessClaims, TokenPair
from .user import Role, User

__all__ = [
    "AccessClaims",
    "RefreshToken",
    "Role",
    "TokenPair",
    "User",
]
