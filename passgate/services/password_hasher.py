"""One-way password hashing backed by bcrypt."""

import logging

import bcrypt

logger = logging.getLogger(__name__)


class PasswordHasher:
    """Hashes and verifies passwords with a salted bcrypt digest."""

    def __init__(self, rounds: int = 12):
        self.rounds = rounds

    def hash(self, password: str) -> str:
        """
        Hash a plaintext password.

        Args:
            password: Plain text password

        Returns:
            bcrypt hash as text
        """
        return bcrypt.hashpw(
            password.encode("utf-8"), bcrypt.gensalt(rounds=self.rounds)
        ).decode("utf-8")

    def matches(self, password: str, password_hash: str) -> bool:
        """
        Verify a plaintext password against a stored hash.

        Raises:
            RuntimeError: If the stored hash is not a valid bcrypt hash
        """
        try:
            return bcrypt.checkpw(
                password.encode("utf-8"), password_hash.encode("utf-8")
            )
        except ValueError as exc:
            logger.error("Stored password hash is malformed.")
            raise RuntimeError("Stored password hash is malformed") from exc
