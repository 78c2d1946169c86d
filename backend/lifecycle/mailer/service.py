"""Outbound e-mail for the inactivity engine.

Senders report delivery outcome as an EmailResult instead of raising, so the
engine can decide per tier whether a failed send blocks the marker write.
SMTP password may be stored encrypted using Fernet (AES-128-CBC) derived from SECRET_KEY.
"""

import base64
import hashlib
import logging
import smtplib
from dataclasses import dataclass
from email.mime.multipart import MIMEMultipart
from typing import Protocol

from cryptography.fernet import Fernet, InvalidToken

from ..config import settings
from . import messages

logger = logging.getLogger(__name__)


# ── Credential encryption ─────────────────────────────────────────────


def _derive_fernet_key(secret: str) -> bytes:
    """Derive a Fernet key from the app SECRET_KEY using SHA-256."""
    digest = hashlib.sha256(secret.encode()).digest()
    return base64.urlsafe_b64encode(digest)


def encrypt_value(plaintext: str) -> str:
    """Encrypt a string value using the app's SECRET_KEY."""
    f = Fernet(_derive_fernet_key(settings.secret_key))
    return f.encrypt(plaintext.encode()).decode()


def decrypt_value(ciphertext: str) -> str:
    """Decrypt a string value using the app's SECRET_KEY."""
    f = Fernet(_derive_fernet_key(settings.secret_key))
    return f.decrypt(ciphertext.encode()).decode()


# ── Sender interface ──────────────────────────────────────────────────


@dataclass(frozen=True)
class EmailResult:
    success: bool
    message_id: str | None = None
    error: str | None = None


class EmailSender(Protocol):
    """E-mail sender interface consumed by the inactivity engine."""

    def send_inactivity_reminder_15_days(self, email: str, name: str | None = None) -> EmailResult: ...
    def send_inactivity_reminder_25_days(self, email: str, name: str | None = None) -> EmailResult: ...
    def send_inactivity_deactivation_notice(self, email: str, name: str | None = None) -> EmailResult: ...
    def send_account_deletion_warning(
        self, email: str, name: str | None = None, days_until_deletion: int = 30
    ) -> EmailResult: ...


class SmtpEmailSender:
    """SMTP + STARTTLS implementation."""

    def __init__(
        self,
        host: str,
        port: int,
        user: str,
        password: str,
        timeout: int = 15,
    ) -> None:
        self._host = host
        self._port = port
        self._user = user
        self._password = password
        self._timeout = timeout

    @property
    def configured(self) -> bool:
        return bool(self._user and self._password)

    def send_inactivity_reminder_15_days(self, email: str, name: str | None = None) -> EmailResult:
        return self._send(email, messages.reminder_15_days(name))

    def send_inactivity_reminder_25_days(self, email: str, name: str | None = None) -> EmailResult:
        return self._send(email, messages.reminder_25_days(name))

    def send_inactivity_deactivation_notice(self, email: str, name: str | None = None) -> EmailResult:
        return self._send(email, messages.deactivation_notice(name))

    def send_account_deletion_warning(
        self, email: str, name: str | None = None, days_until_deletion: int = 30
    ) -> EmailResult:
        return self._send(email, messages.deletion_warning(name, days_until_deletion))

    def _send(self, to_addr: str, content: messages.MailContent) -> EmailResult:
        if not self.configured:
            logger.warning("SMTP not configured, e-mail to %s not sent (%s)", to_addr, content.subject)
            return EmailResult(success=False, error="SMTP not configured")

        msg = messages.build_message(to_addr, content)
        try:
            self._deliver(msg)
        except (smtplib.SMTPException, OSError, InvalidToken) as exc:
            logger.error("Failed to send e-mail to %s: %s", to_addr, exc)
            return EmailResult(success=False, error=str(exc))

        logger.info("E-mail sent to %s: %s", to_addr, content.subject)
        return EmailResult(success=True, message_id=msg["Message-ID"])

    def _deliver(self, msg: MIMEMultipart) -> None:
        # Decrypt password if it looks encrypted (Fernet tokens start with 'gAAAAA')
        password = self._password
        if password.startswith("gAAAAA"):
            password = decrypt_value(password)

        with smtplib.SMTP(self._host, self._port, timeout=self._timeout) as server:
            server.ehlo()
            server.starttls()
            server.ehlo()
            server.login(self._user, password)
            server.send_message(msg)


def create_email_sender() -> EmailSender:
    """Factory: SMTP sender from settings."""
    sender = SmtpEmailSender(
        settings.smtp_host,
        settings.smtp_port,
        settings.smtp_user,
        settings.smtp_password,
        timeout=settings.smtp_timeout,
    )
    if not sender.configured:
        logger.warning("SMTP_USER/SMTP_PASSWORD not set - reminder e-mails will fail and be retried")
    return sender
