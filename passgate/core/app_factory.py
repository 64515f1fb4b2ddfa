from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .clock import Clock, SystemClock
from .config import Settings
from .container import ApplicationContainer
from .logging import configure_logging
from ..application.services.account_service import AccountService
from ..application.services.refresh_token_service import RefreshTokenService
from ..application.services.session_service import SessionService
from ..infrastructure.persistence.sqlite import SQLitePersistence
from ..presentation.api.errors import register_exception_handlers
from ..presentation.api.routers import auth as auth_router
from ..presentation.api.routers import users as users_router
from ..services.email_service import EmailService
from ..services.password_hasher import PasswordHasher
from ..services.token_signer import TokenSigner

logger = logging.getLogger(__name__)


def create_application(
    settings: Optional[Settings] = None,
    clock: Optional[Clock] = None,
    email_service: Optional[EmailService] = None,
) -> FastAPI:
    settings = settings or Settings()
    clock = clock or SystemClock()

    app = FastAPI(
        title="Passgate",
        lifespan=_create_lifespan(settings, clock, email_service),
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)
    app.include_router(auth_router.router)
    app.include_router(users_router.router)

    @app.get("/health")
    async def health() -> Dict[str, Any]:
        return {"ok": True}

    return app


def build_container(
    settings: Settings,
    clock: Clock,
    email_service: Optional[EmailService] = None,
) -> ApplicationContainer:
    persistence = SQLitePersistence(settings.database_path, clock=clock)
    password_hasher = PasswordHasher(rounds=settings.bcrypt_rounds)
    token_signer = TokenSigner(
        secret_key=settings.jwt_secret_key,
        access_token_expiration_ms=settings.access_token_expiration_ms,
    )
    email_service = email_service or EmailService(
        smtp_host=settings.smtp_host,
        smtp_port=settings.smtp_port,
        smtp_username=settings.smtp_username,
        smtp_password=settings.smtp_password,
        from_email=settings.mail_from_address,
        from_name=settings.mail_from_name,
        verification_url=settings.mail_verification_url,
        password_reset_url=settings.mail_password_reset_url,
        max_workers=settings.mail_workers,
    )
    refresh_token_service = RefreshTokenService(
        persistence,
        token_signer,
        clock,
        refresh_token_expiration_ms=settings.refresh_token_expiration_ms,
    )
    account_service = AccountService(
        persistence,
        password_hasher,
        email_service,
        refresh_token_service,
        clock,
    )
    session_service = SessionService(account_service, refresh_token_service, token_signer, clock)
    credential_executor = ThreadPoolExecutor(
        max_workers=settings.hashing_workers, thread_name_prefix="credential-hash"
    )

    return ApplicationContainer(
        settings=settings,
        clock=clock,
        persistence=persistence,
        password_hasher=password_hasher,
        token_signer=token_signer,
        email_service=email_service,
        account_service=account_service,
        refresh_token_service=refresh_token_service,
        session_service=session_service,
        credential_executor=credential_executor,
    )


def _create_lifespan(
    settings: Settings,
    clock: Clock,
    email_service: Optional[EmailService],
):
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        configure_logging()
        container = build_container(settings, clock, email_service)
        container.account_service.ensure_default_admin(
            settings.admin_default_email, settings.admin_default_password
        )
        app.state.container = container  # type: ignore[attr-defined]
        logger.info("Passgate started with database %s", settings.database_path)

        try:
            yield
        finally:
            container.credential_executor.shutdown(wait=True)
            container.email_service.shutdown()
            container.persistence.close()

    return lifespan
