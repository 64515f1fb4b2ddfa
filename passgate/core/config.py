import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


class Settings:
    """Centralised application configuration sourced from environment variables."""

    def __init__(self) -> None:
        load_dotenv()
        self.jwt_secret_key = self._get("JWT_SECRET_KEY")
        self.access_token_expiration_ms = self._get_int(
            "JWT_ACCESS_TOKEN_EXPIRATION_MS", default=15 * 60 * 1000
        )
        self.refresh_token_expiration_ms = self._get_int(
            "JWT_REFRESH_TOKEN_EXPIRATION_MS", default=7 * 24 * 60 * 60 * 1000
        )
        self.database_path = Path(os.getenv("DATABASE_PATH", "data/passgate.db")).resolve()
        self.admin_default_email = os.getenv("ADMIN_EMAIL")
        self.admin_default_password = os.getenv("ADMIN_PASSWORD")
        self.bcrypt_rounds = self._get_int("BCRYPT_ROUNDS", default=12)
        self.hashing_workers = self._get_int("HASHING_WORKERS", default=2)
        self.mail_workers = self._get_int("MAIL_WORKERS", default=2)
        self.smtp_host = os.getenv("SMTP_HOST", "")
        self.smtp_port = self._get_int("SMTP_PORT", default=587)
        self.smtp_username = os.getenv("SMTP_USERNAME", "")
        self.smtp_password = os.getenv("SMTP_PASSWORD", "")
        self.mail_from_address = os.getenv("MAIL_FROM_ADDRESS", "")
        self.mail_from_name = os.getenv("MAIL_FROM_NAME", "Passgate")
        self.mail_verification_url = os.getenv(
            "MAIL_VERIFICATION_URL", "http://localhost:3000/verify-email"
        )
        self.mail_password_reset_url = os.getenv(
            "MAIL_PASSWORD_RESET_URL", "http://localhost:3000/reset-password"
        )
        origins = os.getenv("CORS_ALLOW_ORIGINS")
        if origins:
            self.cors_allow_origins = [item.strip() for item in origins.split(",") if item.strip()]
        else:
            self.cors_allow_origins = ["*"]

    @staticmethod
    def _get(key: str) -> str:
        value = os.getenv(key)
        if not value:
            raise RuntimeError(f"Missing required environment variable: {key}")
        return value

    @staticmethod
    def _get_int(key: str, default: Optional[int] = None) -> int:
        value = os.getenv(key)
        if value is None:
            if default is None:
                raise RuntimeError(f"Missing required environment variable: {key}")
            return default
        try:
            return int(value)
        except ValueError as exc:
            raise RuntimeError(f"Environment variable {key} must be an integer") from exc
