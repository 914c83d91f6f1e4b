"""SMTP notification sink for sync reports."""

from __future__ import annotations

import os
import re
import smtplib
from dataclasses import dataclass
from email.message import EmailMessage
from email.utils import formataddr
from typing import Any, Protocol

from stocksync.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class NotificationSink(Protocol):
    def send(self, recipient: str, subject: str, body: str) -> None: ...


@dataclass
class SmtpSettings:
    host: str | None = None
    port: int | None = None
    username: str | None = None
    password: str | None = None
    use_tls: bool = True
    use_ssl: bool = False
    timeout: float = 30.0
    from_email: str | None = None
    from_name: str = "Stock Sync"

    @classmethod
    def from_mapping(cls, data: dict[str, Any] | None) -> "SmtpSettings":
        data = data or {}
        port = data.get("port")
        return cls(
            host=data.get("host") or os.environ.get("STOCKSYNC_SMTP_HOST"),
            port=int(port) if port else None,
            username=data.get("username") or os.environ.get("STOCKSYNC_SMTP_USERNAME"),
            password=data.get("password") or os.environ.get("STOCKSYNC_SMTP_PASSWORD"),
            use_tls=bool(data.get("use_tls", True)),
            use_ssl=bool(data.get("use_ssl", False)),
            timeout=float(data.get("timeout", 30.0)),
            from_email=data.get("from_email"),
            from_name=data.get("from_name") or "Stock Sync",
        )

    @property
    def ready(self) -> bool:
        return bool(self.host)


def html_to_text(body_html: str) -> str:
    """Crude plain-text alternative for an HTML body."""
    text = re.sub(r"<(br|/p|/tr|/h\d|/li)\s*/?>", "\n", body_html, flags=re.IGNORECASE)
    text = re.sub(r"<[^>]+>", "", text)
    return re.sub(r"\n{3,}", "\n\n", text).strip()


class SmtpNotificationSink:
    """Sends HTML reports through an SMTP relay.

    ``send`` raises on delivery problems; callers decide whether that matters.
    """

    def __init__(self, settings: SmtpSettings) -> None:
        self._settings = settings

    def send(self, recipient: str, subject: str, body: str) -> None:
        if not self._settings.ready:
            raise RuntimeError("SMTP host is not configured")
        message = self._build_message(subject, recipient, body)
        self._send_sync(message)
        logger.info("Sync report email sent to %s", recipient)

    def _build_message(self, subject: str, recipient: str, body_html: str) -> EmailMessage:
        message = EmailMessage()
        message["Subject"] = subject
        message["From"] = self._formatted_from_address
        message["To"] = recipient
        message.set_content(html_to_text(body_html))
        message.add_alternative(body_html, subtype="html")
        return message

    @property
    def _formatted_from_address(self) -> str:
        from_email = self._settings.from_email or self._settings.username or "stocksync@localhost"
        return formataddr((self._settings.from_name, from_email))

    def _send_sync(self, message: EmailMessage) -> None:
        settings = self._settings
        port = settings.port or (465 if settings.use_ssl else 587)
        if settings.use_ssl:
            smtp = smtplib.SMTP_SSL(host=settings.host, port=port, timeout=settings.timeout)
        else:
            smtp = smtplib.SMTP(host=settings.host, port=port, timeout=settings.timeout)
        try:
            if settings.use_tls and not settings.use_ssl:
                smtp.starttls()
            if settings.username and settings.password:
                smtp.login(settings.username, settings.password)
            smtp.send_message(message)
        finally:
            try:
                smtp.quit()
            except smtplib.SMTPException:
                smtp.close()


__all__ = ["NotificationSink", "SmtpNotificationSink", "SmtpSettings", "html_to_text"]
