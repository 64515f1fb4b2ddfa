"""API router for registration, login and token lifecycle."""

import asyncio
from concurrent.futures import ThreadPoolExecutor

from fastapi import APIRouter, Depends, Query, status

from ....application.services.session_service import SessionService
from ....core.dependencies import get_credential_executor, get_session_service
from ....domain.models import AccessClaims
from ...api.dependencies import require_identity
from ...api.schemas.auth import (
    LoginRequest,
    LoginResponse,
    MessageResponse,
    PasswordResetConsumptionRequest,
    PasswordResetRequest,
    RegisterRequest,
    TokenRefreshRequest,
    TokenRefreshResponse,
)
from ...api.schemas.users import UserResponse

router = APIRouter(prefix="/api/v1/auth", tags=["auth"])


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def register(
    request: RegisterRequest,
    session_service: SessionService = Depends(get_session_service),
    executor: ThreadPoolExecutor = Depends(get_credential_executor),
) -> UserResponse:
    """Register a new user and send the verification email."""
    loop = asyncio.get_running_loop()
    user = await loop.run_in_executor(
        executor, session_service.register, request.email, request.password
    )
    return UserResponse.from_user(user)


@router.get("/verify-email", response_model=MessageResponse)
async def verify_email(
    token: str = Query(min_length=1, pattern=r"\S"),
    session_service: SessionService = Depends(get_session_service),
) -> MessageResponse:
    session_service.verify_email(token)
    return MessageResponse(message="Email verified successfully. You can now log in.")


@router.post("/login", response_model=LoginResponse)
async def login(
    request: LoginRequest,
    session_service: SessionService = Depends(get_session_service),
    executor: ThreadPoolExecutor = Depends(get_credential_executor),
) -> LoginResponse:
    """Login and get an access/refresh token pair."""
    loop = asyncio.get_running_loop()
    pair = await loop.run_in_executor(
        executor, session_service.login, request.email, request.password
    )
    return LoginResponse(
        access_token=pair.access_token,
        refresh_token=pair.refresh_token,
        token_type=pair.token_type,
        expires_in=pair.expires_in,
    )


@router.post("/refresh", response_model=TokenRefreshResponse)
async def refresh(
    request: TokenRefreshRequest,
    session_service: SessionService = Depends(get_session_service),
) -> TokenRefreshResponse:
    return TokenRefreshResponse(access_token=session_service.refresh(request.token))


@router.post("/logout", response_model=MessageResponse)
async def logout(
    identity: AccessClaims = Depends(require_identity),
    session_service: SessionService = Depends(get_session_service),
) -> MessageResponse:
    session_service.logout(identity)
    return MessageResponse(message="Logged out successfully.")


@router.post("/forgot-password", response_model=MessageResponse)
async def forgot_password(
    request: PasswordResetRequest,
    session_service: SessionService = Depends(get_session_service),
) -> MessageResponse:
    session_service.forgot_password(request.email)
    return MessageResponse(
        message="If an account with that email exists, a password reset link has been sent."
    )


@router.post("/reset-password", response_model=MessageResponse)
async def reset_password(
    request: PasswordResetConsumptionRequest,
    session_service: SessionService = Depends(get_session_service),
    executor: ThreadPoolExecutor = Depends(get_credential_executor),
) -> MessageResponse:
    loop = asyncio.get_running_loop()
    await loop.run_in_executor(
        executor, session_service.reset_password, request.token, request.new_password
    )
    return MessageResponse(
        message="Password has been reset successfully. You can now log in with your new password."
    )
