"""Pydantic schemas for authentication endpoints."""

from pydantic import BaseModel, EmailStr, Field, field_validator


class _EmailPayload(BaseModel):
    email: EmailStr

    @field_validator("email", mode="before")
    @classmethod
    def _strip_email(cls, value):
        return value.strip() if isinstance(value, str) else value


class RegisterRequest(_EmailPayload):
    """Request schema for user registration."""

    password: str = Field(min_length=8, max_length=30)


class LoginRequest(_EmailPayload):
    """Request schema for user login."""

    password: str = Field(min_length=1)


class LoginResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int


class TokenRefreshRequest(BaseModel):
    token: str = Field(min_length=1, pattern=r"\S")


class TokenRefreshResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


class PasswordResetRequest(_EmailPayload):
    """Request schema to start a password reset."""


class PasswordResetConsumptionRequest(BaseModel):
    """Request schema to finish a password reset."""

    token: str = Field(min_length=1, pattern=r"\S")
    new_password: str = Field(min_length=8, max_length=30)


class MessageResponse(BaseModel):
    message: str
