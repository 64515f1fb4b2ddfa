"""Service for sending account emails."""

import logging
import smtplib
from concurrent.futures import Executor, ThreadPoolExecutor
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional

from ..domain.models import User

logger = logging.getLogger(__name__)


class EmailService:
    """Fire-and-forget SMTP dispatcher for verification and reset emails.

    Messages are rendered on the calling thread from the user's current token
    values and delivered on a private executor. Delivery failures are logged
    here and never reach the caller.
    """

    def __init__(
        self,
        smtp_host: str = "",
        smtp_port: int = 587,
        smtp_username: str = "",
        smtp_password: str = "",
        from_email: str = "",
        from_name: str = "Passgate",
        verification_url: str = "http://localhost:3000/verify-email",
        password_reset_url: str = "http://localhost:3000/reset-password",
        executor: Optional[Executor] = None,
        max_workers: int = 2,
    ):
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.smtp_username = smtp_username
        self.smtp_password = smtp_password
        self.from_email = from_email
        self.from_name = from_name
        self.verification_url = verification_url
        self.password_reset_url = password_reset_url
        self.enabled = bool(self.smtp_host and self.smtp_username and self.from_email)
        self._executor = executor or ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="mail"
        )

    def send_verification_email(self, user: User) -> None:
        """Queue the email verification link for ``user``."""
        verification_link = f"{self.verification_url}?token={user.email_verification_token}"
        subject = "Verify Your Email Address"
        text_body = (
            "Hello,\n\n"
            "Thank you for registering. Please click the link below to verify your email address:\n"
            f"{verification_link}\n\n"
            "This link will expire in 24 hours.\n\n"
            "If you did not register, please ignore this email.\n\n"
            f"Thanks,\n{self.from_name} Team\n"
        )
        html_body = f"""
        <html>
            <body style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">
                <h2 style="color: #1e293b;">Welcome to {self.from_name}!</h2>
                <p style="color: #475569; line-height: 1.6;">
                    Thank you for registering. Please verify your email address:
                </p>
                <p style="text-align: center; margin: 30px 0;">
                    <a href="{verification_link}"
                       style="background-color: #3b82f6; color: white; padding: 15px 30px;
                              text-decoration: none; border-radius: 5px; font-weight: bold;">
                        Verify Email
                    </a>
                </p>
                <p style="color: #64748b; font-size: 14px;">This link will expire in 24 hours.</p>
                <p style="color: #64748b; font-size: 14px;">
                    If you did not register, please ignore this email.
                </p>
            </body>
        </html>
        """
        self._dispatch("verification", user.email, subject, html_body, text_body, verification_link)

    def send_password_reset_email(self, user: User) -> None:
        """Queue the password reset link for ``user``."""
        reset_link = f"{self.password_reset_url}?token={user.password_reset_token}"
        subject = "Password Reset Request"
        text_body = (
            "Hello,\n\n"
            "A password reset was requested for your account. "
            "Please click the link below to reset your password:\n"
            f"{reset_link}\n\n"
            "This link will expire in 1 hour.\n\n"
            "If you did not request a password reset, please ignore this email.\n\n"
            f"Thanks,\n{self.from_name} Team\n"
        )
        html_body = f"""
        <html>
            <body style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">
                <h2 style="color: #1e293b;">Password reset</h2>
                <p style="color: #475569; line-height: 1.6;">
                    A password reset was requested for your account.
                </p>
                <p style="text-align: center; margin: 30px 0;">
                    <a href="{reset_link}"
                       style="background-color: #3b82f6; color: white; padding: 15px 30px;
                              text-decoration: none; border-radius: 5px; font-weight: bold;">
                        Reset Password
                    </a>
                </p>
                <p style="color: #64748b; font-size: 14px;">This link will expire in 1 hour.</p>
                <p style="color: #64748b; font-size: 14px;">
                    If you did not request a password reset, please ignore this email.
                </p>
            </body>
        </html>
        """
        self._dispatch("password reset", user.email, subject, html_body, text_body, reset_link)

    def shutdown(self) -> None:
        self._executor.shutdown(wait=True)

    def _dispatch(
        self,
        kind: str,
        to_email: str,
        subject: str,
        html_body: str,
        text_body: str,
        link: str,
    ) -> None:
        if not self.enabled:
            # No SMTP configured: surface the link for development.
            logger.info("SMTP disabled; %s link for %s: %s", kind, to_email, link)
            return

        try:
            self._executor.submit(
                self._send_email, kind, to_email, subject, html_body, text_body
            )
        except RuntimeError:
            logger.exception("Mail executor unavailable; dropping %s email to %s.", kind, to_email)

    def _send_email(
        self, kind: str, to_email: str, subject: str, html_body: str, text_body: str
    ) -> bool:
        """
        Send an email via SMTP.

        Returns:
            True if sent successfully, False otherwise
        """
        try:
            msg = MIMEMultipart("alternative")
            msg["Subject"] = subject
            msg["From"] = f"{self.from_name} <{self.from_email}>"
            msg["To"] = to_email

            msg.attach(MIMEText(text_body, "plain", "utf-8"))
            msg.attach(MIMEText(html_body, "html", "utf-8"))

            with smtplib.SMTP(self.smtp_host, self.smtp_port) as server:
                server.starttls()
                server.login(self.smtp_username, self.smtp_password)
                server.send_message(msg)

        except (smtplib.SMTPException, OSError):
            logger.exception("Failed to send %s email to %s", kind, to_email)
            return False

        logger.info("%s email sent successfully to %s", kind.capitalize(), to_email)
        return True
