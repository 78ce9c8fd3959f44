"""Tests for outgoing mail."""

import smtplib
from unittest.mock import MagicMock, patch

import pytest

from app.core.config import settings
from app.services.mail import (
    LoggingMailer,
    MailDeliveryError,
    MailMessage,
    SmtpMailer,
    build_mailer,
    password_reset_message,
    verification_message,
)

MESSAGE = MailMessage(to="ada@example.com", subject="Hello", body="Body text")


def test_verification_message_contains_link():
    message = verification_message("ada@example.com", "http://app/verify?token=t", "CrewHub")
    assert message.to == "ada@example.com"
    assert "CrewHub" in message.subject
    assert "http://app/verify?token=t" in message.body


def test_password_reset_message_states_lifetime():
    message = password_reset_message("ada@example.com", "http://app/reset", "CrewHub", 30)
    assert "30 minutes" in message.body
    assert "http://app/reset" in message.body


def test_build_mailer_without_smtp_host_logs():
    assert isinstance(build_mailer(settings.model_copy(update={"smtp_host": None})), LoggingMailer)


def test_build_mailer_with_smtp_host():
    mailer = build_mailer(settings.model_copy(update={"smtp_host": "smtp.example.com"}))
    assert isinstance(mailer, SmtpMailer)
    assert mailer.host == "smtp.example.com"


@pytest.mark.asyncio
async def test_logging_mailer_redacts_address(caplog):
    with caplog.at_level("INFO", logger="app.services.mail"):
        await LoggingMailer().send(MESSAGE)
    assert "ad***@example.com" in caplog.text
    assert "ada@example.com" not in caplog.text


class TestSmtpMailer:
    @pytest.mark.asyncio
    async def test_send_uses_starttls_and_login(self):
        mailer = SmtpMailer(
            host="smtp.example.com",
            port=587,
            sender="no-reply@example.com",
            username="user",
            password="secret",
        )
        smtp = MagicMock()
        with patch("app.services.mail.smtplib.SMTP") as smtp_class:
            smtp_class.return_value.__enter__.return_value = smtp
            await mailer.send(MESSAGE)

        smtp_class.assert_called_once_with("smtp.example.com", 587, timeout=10.0)
        smtp.starttls.assert_called_once()
        smtp.login.assert_called_once_with("user", "secret")
        sent = smtp.send_message.call_args.args[0]
        assert sent["To"] == "ada@example.com"
        assert sent["From"] == "no-reply@example.com"
        assert sent["Subject"] == "Hello"

    @pytest.mark.asyncio
    async def test_send_without_tls_or_credentials(self):
        mailer = SmtpMailer(host="localhost", port=25, sender="x@example.com", use_tls=False)
        smtp = MagicMock()
        with patch("app.services.mail.smtplib.SMTP") as smtp_class:
            smtp_class.return_value.__enter__.return_value = smtp
            await mailer.send(MESSAGE)

        smtp.starttls.assert_not_called()
        smtp.login.assert_not_called()
        smtp.send_message.assert_called_once()

    @pytest.mark.asyncio
    async def test_failure_wrapped(self):
        mailer = SmtpMailer(host="smtp.example.com", port=587, sender="x@example.com")
        with patch(
            "app.services.mail.smtplib.SMTP",
            side_effect=smtplib.SMTPConnectError(421, "unavailable"),
        ):
            with pytest.raises(MailDeliveryError):
                await mailer.send(MESSAGE)

    @pytest.mark.asyncio
    async def test_connection_refused_wrapped(self):
        mailer = SmtpMailer(host="smtp.example.com", port=587, sender="x@example.com")
        with patch("app.services.mail.smtplib.SMTP", side_effect=ConnectionRefusedError()):
            with pytest.raises(MailDeliveryError):
                await mailer.send(MESSAGE)
