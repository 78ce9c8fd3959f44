"""Outgoing transactional mail.

Only two messages are sent: the email verification link and the password
reset link. Without SMTP configuration the messages are logged instead,
which is what local development uses.
"""

import asyncio
import logging
import smtplib
import ssl
from dataclasses import dataclass
from email.message import EmailMessage
from typing import Protocol

from app.core.config import Settings

logger = logging.getLogger(__name__)


def redact_email(email: str) -> str:
    """Shorten an address for log lines: ada@example.com -> ad***@example.com."""
    if "@" not in email:
        return "redacted"
    local, domain = email.split("@", 1)
    return f"{local[:2]}***@{domain}"


class MailDeliveryError(Exception):
    """Raised when a message could not be handed to the mail server."""


@dataclass(frozen=True)
class MailMessage:
    to: str
    subject: str
    body: str


class Mailer(Protocol):
    async def send(self, message: MailMessage) -> None: ...


def verification_message(to: str, url: str, app_name: str) -> MailMessage:
    return MailMessage(
        to=to,
        subject=f"Confirm your {app_name} email",
        body=(
            f"Welcome to {app_name}!\n\n"
            f"Confirm your email address by opening this link:\n{url}\n\n"
            "If you did not create an account, ignore this message."
        ),
    )


def password_reset_message(to: str, url: str, app_name: str, expire_minutes: int) -> MailMessage:
    return MailMessage(
        to=to,
        subject=f"Reset your {app_name} password",
        body=(
            "Someone asked to reset the password for this address.\n\n"
            f"Choose a new password here (valid for {expire_minutes} minutes):\n{url}\n\n"
            "If it wasn't you, you can ignore this message."
        ),
    )


class LoggingMailer:
    """Writes messages to the log instead of sending them."""

    async def send(self, message: MailMessage) -> None:
        logger.info(
            f"Mail to {redact_email(message.to)} (not sent, SMTP not configured): "
            f"{message.subject}\n{message.body}"
        )


class SmtpMailer:
    """Sends messages over SMTP, optionally upgraded with STARTTLS."""

    def __init__(
        self,
        host: str,
        port: int,
        sender: str,
        username: str | None = None,
        password: str | None = None,
        use_tls: bool = True,
        timeout: float = 10.0,
    ):
        self.host = host
        self.port = port
        self.sender = sender
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.timeout = timeout

    def _build(self, message: MailMessage) -> EmailMessage:
        email = EmailMessage()
        email["From"] = self.sender
        email["To"] = message.to
        email["Subject"] = message.subject
        email.set_content(message.body)
        return email

    def _send_sync(self, message: MailMessage) -> None:
        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
            if self.use_tls:
                smtp.starttls(context=ssl.create_default_context())
            if self.username and self.password:
                smtp.login(self.username, self.password)
            smtp.send_message(self._build(message))

    async def send(self, message: MailMessage) -> None:
        try:
            await asyncio.to_thread(self._send_sync, message)
        except (smtplib.SMTPException, OSError) as e:
            raise MailDeliveryError(
                f"Failed to send mail to {redact_email(message.to)}: {e}"
            ) from e
        logger.info(f"Mail sent to {redact_email(message.to)}: {message.subject}")


def build_mailer(settings: Settings) -> Mailer:
    """SMTP mailer when a host is configured, logging mailer otherwise."""
    if settings.smtp_host:
        return SmtpMailer(
            host=settings.smtp_host,
            port=settings.smtp_port,
            sender=settings.mail_from,
            username=settings.smtp_user,
            password=settings.smtp_password,
            use_tls=settings.smtp_use_tls,
        )
    return LoggingMailer()
