from __future__ import annotations

from typing import Protocol

from ..models import User


class MailDispatcher(Protocol):
    """Outbound account emails.

    Implementations must not block the caller on delivery and must never raise
    delivery failures back to it.
    """

    def send_verification_email(self, user: User) -> None:
        ...

    def send_password_reset_email(self, user: User) -> None:
        ...
