from typing import List

from pydantic import BaseModel

from ....domain.models import User


class UserResponse(BaseModel):
    """Response schema for user data."""

    id: int
    email: str
    roles: List[str]

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(id=user.id, email=user.email, roles=user.role_names)
