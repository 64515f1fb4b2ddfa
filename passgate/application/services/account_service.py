"""Account lifecycle: registration, verification, credentials and password reset."""

from __future__ import annotations

import logging
import secrets
from datetime import timedelta
from typing import Optional

from ...core.clock import Clock
from ...domain.errors import AuthError, AuthErrorKind, EmailConflictError
from ...domain.models import AccessClaims, Role, User
from ...domain.ports.mail import MailDispatcher
from ...domain.ports.persistence import PersistenceGateway
from ...services.password_hasher import PasswordHasher
from .refresh_token_service import RefreshTokenService

logger = logging.getLogger(__name__)

VERIFICATION_TOKEN_TTL = timedelta(hours=24)
PASSWORD_RESET_TOKEN_TTL = timedelta(hours=1)

_BAD_CREDENTIALS = "Invalid email or password."


def normalize_email(email: str) -> str:
    return email.strip().lower()


def generate_one_time_token() -> str:
    return secrets.token_urlsafe(32)


def _email_taken(email: str) -> AuthError:
    return AuthError(
        AuthErrorKind.EMAIL_ALREADY_EXISTS,
        f"A user with the email '{email}' already exists.",
    )


class AccountService:
    """Owns the verification and password-reset state of user accounts."""

    def __init__(
        self,
        persistence: PersistenceGateway,
        password_hasher: PasswordHasher,
        mail_dispatcher: MailDispatcher,
        refresh_tokens: RefreshTokenService,
        clock: Clock,
    ) -> None:
        self._persistence = persistence
        self._hasher = password_hasher
        self._mail = mail_dispatcher
        self._refresh_tokens = refresh_tokens
        self._clock = clock

    def register(self, email: str, password: str) -> User:
        """
        Register a new, unverified user and send the verification email.

        Raises:
            AuthError: EMAIL_ALREADY_EXISTS if the normalized email is taken
        """
        email_clean = normalize_email(email)
        if self._persistence.user_exists(email_clean):
            raise _email_taken(email_clean)

        user = User(
            email=email_clean,
            password_hash=self._hasher.hash(password),
            roles={Role.USER},
            is_verified=False,
        )
        user.set_email_verification(
            generate_one_time_token(), self._clock.now() + VERIFICATION_TOKEN_TTL
        )
        try:
            with self._persistence.transaction():
                # re-check under the lock; the hash ran unlocked
                if self._persistence.user_exists(email_clean):
                    raise _email_taken(email_clean)
                user = self._persistence.save_user(user)
        except EmailConflictError as exc:
            raise _email_taken(email_clean) from exc
        logger.info("Registered user id=%s", user.id)

        self._mail.send_verification_email(user)
        return user

    def verify_email(self, token: str) -> None:
        """
        Consume an email verification token.

        Verifying an already verified account is a no-op.

        Raises:
            AuthError: INVALID_TOKEN for unknown tokens or a token without
                expiry, TOKEN_EXPIRED once the expiry has passed
        """
        with self._persistence.transaction():
            user = self._persistence.get_user_by_verification_token(token)
            if user is None:
                raise AuthError(AuthErrorKind.INVALID_TOKEN, "The verification token is invalid.")

            if user.is_verified:
                return

            expiry = user.email_verification_expires_at
            if expiry is None:
                raise AuthError(AuthErrorKind.INVALID_TOKEN, "The verification token is invalid.")

            if self._clock.now() > expiry:
                logger.warning("Expired verification token used for user id=%s", user.id)
                raise AuthError(AuthErrorKind.TOKEN_EXPIRED, "The verification token has expired.")

            user.mark_verified()
            self._persistence.save_user(user)
        logger.info("Verified email for user id=%s", user.id)

    def authenticate(self, email: str, password: str) -> User:
        """
        Check credentials for a verified account.

        Raises:
            AuthError: BAD_CREDENTIALS for an unknown email or wrong password,
                ACCOUNT_NOT_VERIFIED for correct credentials on an unverified
                account
        """
        user = self._persistence.get_user_by_email(normalize_email(email))
        if user is None or not self._hasher.matches(password, user.password_hash):
            logger.warning("Rejected credentials")
            raise AuthError(AuthErrorKind.BAD_CREDENTIALS, _BAD_CREDENTIALS)

        if not user.is_verified:
            raise AuthError(
                AuthErrorKind.ACCOUNT_NOT_VERIFIED,
                "Account is not verified. Please check your email.",
            )
        return user

    def initiate_password_reset(self, email: str) -> None:
        """Issue a reset token and email it; unknown emails are silently ignored."""
        with self._persistence.transaction():
            user = self._persistence.get_user_by_email(normalize_email(email))
            if user is None:
                return

            user.set_password_reset(
                generate_one_time_token(), self._clock.now() + PASSWORD_RESET_TOKEN_TTL
            )
            self._persistence.save_user(user)
        logger.info("Password reset requested for user id=%s", user.id)

        self._mail.send_password_reset_email(user)

    def finalize_password_reset(self, token: str, new_password: str) -> None:
        """
        Replace the password using a reset token and revoke every refresh token.

        The token is checked again inside the write transaction, so only one
        of several concurrent consumptions succeeds.

        Raises:
            AuthError: INVALID_TOKEN or TOKEN_EXPIRED, without mutating state
        """
        self._reset_target(token)
        password_hash = self._hasher.hash(new_password)

        with self._persistence.transaction():
            user = self._reset_target(token)
            user.password_hash = password_hash
            user.clear_password_reset()
            self._persistence.save_user(user)
            self._refresh_tokens.revoke_for_user(user)
        logger.info("Password reset completed for user id=%s", user.id)

    def _reset_target(self, token: str) -> User:
        user = self._persistence.get_user_by_reset_token(token)
        if user is None or user.password_reset_expires_at is None:
            raise AuthError(AuthErrorKind.INVALID_TOKEN, "The password reset token is invalid.")

        if self._clock.now() > user.password_reset_expires_at:
            logger.warning("Expired password reset token used for user id=%s", user.id)
            raise AuthError(AuthErrorKind.TOKEN_EXPIRED, "The password reset token has expired.")
        return user

    def ensure_default_admin(self, email: Optional[str], password: Optional[str]) -> Optional[User]:
        """Create a verified administrator account unless one already uses ``email``."""
        if not email or not password:
            return None
        email_clean = normalize_email(email)
        existing = self._persistence.get_user_by_email(email_clean)
        if existing:
            return existing
        logger.info("Creating default administrator account for %s", email_clean)
        admin = User(
            email=email_clean,
            password_hash=self._hasher.hash(password),
            roles={Role.USER, Role.ADMIN},
            is_verified=True,
        )
        return self._persistence.save_user(admin)

    def get_user_by_email(self, email: str) -> Optional[User]:
        return self._persistence.get_user_by_email(normalize_email(email))

    def resolve_identity(self, identity: AccessClaims) -> User:
        """Map validated access-token claims to the stored user."""
        user = self.get_user_by_email(identity.subject or "")
        if user is None:
            raise AuthError(AuthErrorKind.INVALID_TOKEN, "The access token is invalid.")
        return user
