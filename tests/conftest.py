from datetime import datetime, timedelta, timezone
from typing import List

import pytest
from fastapi.testclient import TestClient

from passgate.application.services.account_service import AccountService
from passgate.application.services.refresh_token_service import RefreshTokenService
from passgate.application.services.session_service import SessionService
from passgate.core.app_factory import create_application
from passgate.core.config import Settings
from passgate.domain.models import User
from passgate.infrastructure.persistence.sqlite import SQLitePersistence
from passgate.services.password_hasher import PasswordHasher
from passgate.services.token_signer import TokenSigner

TEST_SECRET = "test-secret-key-with-enough-entropy-0123456789"
ACCESS_TTL_MS = 15 * 60 * 1000
REFRESH_TTL_MS = 7 * 24 * 60 * 60 * 1000


class FrozenClock:
    """Clock that only moves when told to."""

    def __init__(self, start: datetime) -> None:
        self._now = start

    def now(self) -> datetime:
        return self._now

    def advance(self, **kwargs) -> None:
        self._now = self._now + timedelta(**kwargs)


class RecordingMailDispatcher:
    def __init__(self) -> None:
        self.verification: List[str] = []
        self.password_reset: List[str] = []

    def send_verification_email(self, user: User) -> None:
        self.verification.append(user.email)

    def send_password_reset_email(self, user: User) -> None:
        self.password_reset.append(user.email)

    def shutdown(self) -> None:
        pass


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(datetime(2026, 1, 15, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def mail() -> RecordingMailDispatcher:
    return RecordingMailDispatcher()


@pytest.fixture
def persistence(tmp_path, clock):
    store = SQLitePersistence(tmp_path / "passgate.db", clock=clock)
    yield store
    store.close()


@pytest.fixture
def hasher() -> PasswordHasher:
    return PasswordHasher(rounds=4)


@pytest.fixture
def signer() -> TokenSigner:
    return TokenSigner(secret_key=TEST_SECRET, access_token_expiration_ms=ACCESS_TTL_MS)


@pytest.fixture
def refresh_tokens(persistence, signer, clock) -> RefreshTokenService:
    return RefreshTokenService(
        persistence, signer, clock, refresh_token_expiration_ms=REFRESH_TTL_MS
    )


@pytest.fixture
def accounts(persistence, hasher, mail, refresh_tokens, clock) -> AccountService:
    return AccountService(persistence, hasher, mail, refresh_tokens, clock)


@pytest.fixture
def sessions(accounts, refresh_tokens, signer, clock) -> SessionService:
    return SessionService(accounts, refresh_tokens, signer, clock)


@pytest.fixture
def verified_user(accounts) -> User:
    user = accounts.register("alice@example.com", "Passw0rd1")
    accounts.verify_email(user.email_verification_token)
    return user


@pytest.fixture
def settings(monkeypatch, tmp_path) -> Settings:
    monkeypatch.setenv("JWT_SECRET_KEY", TEST_SECRET)
    monkeypatch.setenv("JWT_ACCESS_TOKEN_EXPIRATION_MS", str(ACCESS_TTL_MS))
    monkeypatch.setenv("JWT_REFRESH_TOKEN_EXPIRATION_MS", str(REFRESH_TTL_MS))
    monkeypatch.setenv("DATABASE_PATH", str(tmp_path / "api.db"))
    monkeypatch.setenv("BCRYPT_ROUNDS", "4")
    monkeypatch.delenv("ADMIN_EMAIL", raising=False)
    monkeypatch.delenv("ADMIN_PASSWORD", raising=False)
    return Settings()


@pytest.fixture
def client(settings, clock, mail):
    app = create_application(settings=settings, clock=clock, email_service=mail)
    with TestClient(app) as test_client:
        yield test_client
