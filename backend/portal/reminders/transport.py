"""Outbound mail transports.

Two implementations share the ``MailTransport`` protocol:

- ``SmtpTransport``: direct SMTP with STARTTLS. The password may be stored
  encrypted with Fernet (key derived from SECRET_KEY).
- ``ResendTransport``: Resend transactional email HTTP API via httpx.

``send`` returns the provider message id and raises ``MailDeliveryError`` on
any failure, so callers decide how to count and log it.
"""

import asyncio
import base64
import hashlib
import logging
import smtplib
from dataclasses import dataclass, field
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr, formatdate, make_msgid
from typing import Protocol

import httpx
from cryptography.fernet import Fernet

from ..config import Settings, settings

logger = logging.getLogger(__name__)


class MailDeliveryError(Exception):
    """The transport could not hand the message to the provider."""


@dataclass
class OutboundEmail:
    to: list[str]
    subject: str
    html: str
    text: str = ""
    tags: dict[str, str] = field(default_factory=dict)


class MailTransport(Protocol):
    """Mail transport interface."""

    name: str

    async def send(self, email: OutboundEmail) -> str: ...


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


# ── SMTP ──────────────────────────────────────────────────────────────


class SmtpTransport:
    name = "smtp"

    def __init__(self, config: Settings) -> None:
        self._config = config

    @property
    def sender(self) -> str:
        return self._config.smtp_from or self._config.smtp_user

    def build_message(self, email: OutboundEmail) -> MIMEMultipart:
        """Build a multipart message with proper anti-spam headers."""
        msg = MIMEMultipart("alternative")
        msg["From"] = formataddr((self._config.smtp_sender_name, self.sender))
        msg["To"] = ", ".join(email.to)
        msg["Reply-To"] = self.sender
        msg["Date"] = formatdate(localtime=True)
        msg["Message-ID"] = make_msgid(domain=self.sender.split("@")[-1] if "@" in self.sender else "local")
        msg["X-Mailer"] = "PortalDokumen/1.0"
        msg["Subject"] = email.subject
        if email.text:
            msg.attach(MIMEText(email.text, "plain", "utf-8"))
        msg.attach(MIMEText(email.html, "html", "utf-8"))
        return msg

    def _password(self) -> str:
        # Fernet tokens start with 'gAAAAA'
        password = self._config.smtp_password
        if password.startswith("gAAAAA"):
            password = decrypt_value(password)
        return password

    def send_sync(self, email: OutboundEmail) -> str:
        if not self._config.smtp_configured:
            raise MailDeliveryError("SMTP not configured")
        if not email.to:
            raise MailDeliveryError("No recipients")

        msg = self.build_message(email)
        try:
            with smtplib.SMTP(self._config.smtp_host, self._config.smtp_port, timeout=self._config.smtp_timeout) as server:
                server.ehlo()
                server.starttls()
                server.ehlo()
                server.login(self._config.smtp_user, self._password())
                refused = server.send_message(msg)
        except (smtplib.SMTPException, OSError) as exc:
            raise MailDeliveryError(f"SMTP send failed: {exc}") from exc

        if refused and len(refused) == len(email.to):
            raise MailDeliveryError(f"All recipients refused: {', '.join(refused)}")
        return msg["Message-ID"]

    async def send(self, email: OutboundEmail) -> str:
        return await asyncio.to_thread(self.send_sync, email)


# ── Resend ────────────────────────────────────────────────────────────


class ResendTransport:
    name = "resend"

    def __init__(self, config: Settings, client: httpx.AsyncClient | None = None) -> None:
        self._config = config
        self._client = client

    def _payload(self, email: OutboundEmail) -> dict:
        payload = {
            "from": self._config.resend_from,
            "to": email.to,
            "subject": email.subject,
            "html": email.html,
        }
        if email.text:
            payload["text"] = email.text
        if email.tags:
            payload["tags"] = [{"name": k, "value": v} for k, v in email.tags.items()]
        return payload

    async def _post(self, client: httpx.AsyncClient, email: OutboundEmail) -> httpx.Response:
        return await client.post(
            f"{self._config.resend_api_url.rstrip('/')}/emails",
            json=self._payload(email),
            headers={"Authorization": f"Bearer {self._config.resend_api_key}"},
        )

    async def send(self, email: OutboundEmail) -> str:
        if not self._config.resend_api_key:
            raise MailDeliveryError("RESEND_API_KEY not configured")
        if not email.to:
            raise MailDeliveryError("No recipients")

        try:
            if self._client is not None:
                resp = await self._post(self._client, email)
            else:
                async with httpx.AsyncClient(timeout=15) as client:
                    resp = await self._post(client, email)
        except httpx.HTTPError as exc:
            raise MailDeliveryError(f"Resend request failed: {exc}") from exc

        if resp.status_code >= 400:
            try:
                detail = resp.json().get("message", resp.text)
            except ValueError:
                detail = resp.text
            raise MailDeliveryError(f"Resend API error {resp.status_code}: {detail}")

        return resp.json().get("id", "")


def create_daily_transport(config: Settings) -> MailTransport:
    """Resend when an API key is configured, SMTP otherwise."""
    if config.resend_api_key:
        return ResendTransport(config)
    logger.warning("RESEND_API_KEY not set, daily reminders will use SMTP")
    return SmtpTransport(config)


def create_smtp_transport(config: Settings) -> MailTransport:
    if not config.smtp_configured:
        logger.warning("SMTP not configured, reminder emails will fail until SMTP_* is set")
    return SmtpTransport(config)
