from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

from ..application.services.account_service import AccountService
from ..application.services.refresh_token_service import RefreshTokenService
from ..application.services.session_service import SessionService
from ..infrastructure.persistence.sqlite import SQLitePersistence
from ..services.email_service import EmailService
from ..services.password_hasher import PasswordHasher
from ..services.token_signer import TokenSigner
from .clock import Clock
from .config import Settings


@dataclass(slots=True)
class ApplicationContainer:
    """Dependency registry shared across the FastAPI application lifecycle."""

    settings: Settings
    clock: Clock
    persistence: SQLitePersistence
    password_hasher: PasswordHasher
    token_signer: TokenSigner
    email_service: EmailService
    account_service: AccountService
    refresh_token_service: RefreshTokenService
    session_service: SessionService
    # bcrypt work runs here, away from Starlette's shared threadpool
    credential_executor: ThreadPoolExecutor
