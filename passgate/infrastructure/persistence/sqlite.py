import json
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterator, Optional, Union

from ...core.clock import Clock, SystemClock
from ...domain.errors import EmailConflictError, RefreshTokenConflictError
from ...domain.models import RefreshToken, Role, User
from ...domain.ports.persistence import PersistenceGateway


class SQLitePersistence(PersistenceGateway):
    """SQLite-backed implementation of the persistence gateway.

    A single connection is shared across threads behind a re-entrant lock.
    Every public method is atomic on its own; :meth:`transaction` groups
    several calls into one commit.
    """

    def __init__(self, path: Union[Path, str], clock: Optional[Clock] = None) -> None:
        if str(path) != ":memory:":
            path = Path(path)
            path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA foreign_keys = ON")
        self._lock = threading.RLock()
        self._depth = 0
        self._clock = clock or SystemClock()
        self._initialize()

    def _initialize(self) -> None:
        with self._conn:
            self._conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS users (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    email TEXT NOT NULL UNIQUE,
                    password_hash TEXT NOT NULL,
                    roles TEXT NOT NULL,
                    is_verified INTEGER NOT NULL DEFAULT 0,
                    email_verification_token TEXT UNIQUE,
                    email_verification_expires_at TEXT,
                    consumed_verification_token TEXT UNIQUE,
                    password_reset_token TEXT UNIQUE,
                    password_reset_expires_at TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS refresh_tokens (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id INTEGER NOT NULL UNIQUE,
                    token TEXT NOT NULL UNIQUE,
                    expires_at TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    FOREIGN KEY(user_id) REFERENCES users(id) ON DELETE CASCADE
                );
                """
            )

    def close(self) -> None:
        self._conn.close()

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Run the enclosed repository calls as one atomic unit."""
        with self._lock:
            if self._depth:
                self._depth += 1
                try:
                    yield
                finally:
                    self._depth -= 1
                return
            self._depth = 1
            try:
                with self._conn:
                    yield
            finally:
                self._depth = 0

    # UserRepository API -----------------------------------------------------
    def get_user_by_email(self, email: str) -> Optional[User]:
        return self._fetch_user("SELECT * FROM users WHERE email = ?", (email,))

    def user_exists(self, email: str) -> bool:
        with self._lock:
            cur = self._conn.execute("SELECT 1 FROM users WHERE email = ?", (email,))
            row = cur.fetchone()
        return row is not None

    def get_user_by_verification_token(self, token: str) -> Optional[User]:
        return self._fetch_user(
            "SELECT * FROM users WHERE email_verification_token = ? "
            "OR consumed_verification_token = ?",
            (token, token),
        )

    def get_user_by_reset_token(self, token: str) -> Optional[User]:
        return self._fetch_user("SELECT * FROM users WHERE password_reset_token = ?", (token,))

    def get_user_by_id(self, user_id: int) -> Optional[User]:
        return self._fetch_user("SELECT * FROM users WHERE id = ?", (user_id,))

    def save_user(self, user: User) -> User:
        now = self._clock.now()
        params = {
            "email": user.email,
            "password_hash": user.password_hash,
            "roles": json.dumps(user.role_names),
            "is_verified": int(user.is_verified),
            "email_verification_token": user.email_verification_token,
            "email_verification_expires_at": _to_iso(user.email_verification_expires_at),
            "consumed_verification_token": user.consumed_verification_token,
            "password_reset_token": user.password_reset_token,
            "password_reset_expires_at": _to_iso(user.password_reset_expires_at),
            "updated_at": now.isoformat(),
        }
        try:
            with self.transaction():
                self._write_user(user, params, now)
        except sqlite3.IntegrityError as exc:
            if "users.email" in str(exc):
                raise EmailConflictError(f"Email {user.email} is already registered") from exc
            raise
        user.updated_at = now
        return user

    def _write_user(self, user: User, params: dict, now: datetime) -> None:
        if user.id is None:
            params["created_at"] = now.isoformat()
            cur = self._conn.execute(
                """
                INSERT INTO users (
                    email, password_hash, roles, is_verified,
                    email_verification_token, email_verification_expires_at,
                    consumed_verification_token,
                    password_reset_token, password_reset_expires_at,
                    created_at, updated_at
                )
                VALUES (
                    :email, :password_hash, :roles, :is_verified,
                    :email_verification_token, :email_verification_expires_at,
                    :consumed_verification_token,
                    :password_reset_token, :password_reset_expires_at,
                    :created_at, :updated_at
                )
                """,
                params,
            )
            user.id = cur.lastrowid
            user.created_at = now
        else:
            params["id"] = user.id
            self._conn.execute(
                """
                UPDATE users
                SET email = :email, password_hash = :password_hash, roles = :roles,
                    is_verified = :is_verified,
                    email_verification_token = :email_verification_token,
                    email_verification_expires_at = :email_verification_expires_at,
                    consumed_verification_token = :consumed_verification_token,
                    password_reset_token = :password_reset_token,
                    password_reset_expires_at = :password_reset_expires_at,
                    updated_at = :updated_at
                WHERE id = :id
                """,
                params,
            )

    # RefreshTokenRepository API ---------------------------------------------
    def get_refresh_token_for_user(self, user_id: int) -> Optional[RefreshToken]:
        return self._fetch_refresh_token(
            "SELECT * FROM refresh_tokens WHERE user_id = ?", (user_id,)
        )

    def get_refresh_token(self, token: str) -> Optional[RefreshToken]:
        return self._fetch_refresh_token("SELECT * FROM refresh_tokens WHERE token = ?", (token,))

    def save_refresh_token(self, refresh_token: RefreshToken) -> RefreshToken:
        now = self._clock.now()
        try:
            with self.transaction():
                cur = self._conn.execute(
                    """
                    INSERT INTO refresh_tokens (user_id, token, expires_at, created_at)
                    VALUES (?, ?, ?, ?)
                    """,
                    (
                        refresh_token.user_id,
                        refresh_token.token,
                        refresh_token.expires_at.isoformat(),
                        now.isoformat(),
                    ),
                )
        except sqlite3.IntegrityError as exc:
            if "refresh_tokens.user_id" in str(exc):
                raise RefreshTokenConflictError(
                    f"User {refresh_token.user_id} already owns a refresh token"
                ) from exc
            raise
        refresh_token.id = cur.lastrowid
        refresh_token.created_at = now
        return refresh_token

    def delete_refresh_tokens_for_user(self, user_id: int) -> int:
        with self.transaction():
            cur = self._conn.execute("DELETE FROM refresh_tokens WHERE user_id = ?", (user_id,))
        return cur.rowcount

    def delete_refresh_token(self, refresh_token: RefreshToken) -> None:
        with self.transaction():
            self._conn.execute("DELETE FROM refresh_tokens WHERE token = ?", (refresh_token.token,))

    # Helpers ----------------------------------------------------------------
    def _fetch_user(self, query: str, params: tuple) -> Optional[User]:
        with self._lock:
            cur = self._conn.execute(query, params)
            row = cur.fetchone()
        if not row:
            return None
        return self._row_to_user(row)

    def _fetch_refresh_token(self, query: str, params: tuple) -> Optional[RefreshToken]:
        with self._lock:
            cur = self._conn.execute(query, params)
            row = cur.fetchone()
        if not row:
            return None
        return RefreshToken(
            id=row["id"],
            user_id=row["user_id"],
            token=row["token"],
            expires_at=datetime.fromisoformat(row["expires_at"]),
            created_at=datetime.fromisoformat(row["created_at"]),
        )

    @staticmethod
    def _row_to_user(row: sqlite3.Row) -> User:
        return User(
            id=row["id"],
            email=row["email"],
            password_hash=row["password_hash"],
            roles={Role(name) for name in json.loads(row["roles"])},
            is_verified=bool(row["is_verified"]),
            email_verification_token=row["email_verification_token"],
            email_verification_expires_at=_from_iso(row["email_verification_expires_at"]),
            consumed_verification_token=row["consumed_verification_token"],
            password_reset_token=row["password_reset_token"],
            password_reset_expires_at=_from_iso(row["password_reset_expires_at"]),
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )


def _to_iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _from_iso(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None
