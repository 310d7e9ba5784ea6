"""SMTP delivery of report emails."""

from __future__ import annotations

import asyncio
import logging
import smtplib
from email.message import EmailMessage
from typing import Sequence

from truckbot.core.config import SmtpSettings

logger = logging.getLogger(__name__)


class MailDeliveryError(RuntimeError):
    """Raised when the SMTP server refuses or cannot be reached."""


class SmtpMailer:
    """Send plain-text emails with an optional PDF attachment."""

    def __init__(self, settings: SmtpSettings) -> None:
        self._settings = settings

    @property
    def is_configured(self) -> bool:
        return self._settings.enabled

    async def send(
        self,
        *,
        recipients: Sequence[str],
        subject: str,
        body: str,
        attachment: bytes | None = None,
        filename: str | None = None,
    ) -> None:
        if not self.is_configured:
            raise MailDeliveryError("SMTP is not configured.")
        if not recipients:
            raise MailDeliveryError("No recipient address provided.")

        message = EmailMessage()
        message["Subject"] = subject
        message["From"] = self._settings.from_email
        message["To"] = ", ".join(recipients)
        message.set_content(body)
        if attachment is not None:
            message.add_attachment(
                attachment,
                maintype="application",
                subtype="pdf",
                filename=filename or "report.pdf",
            )

        try:
            await asyncio.to_thread(self._deliver, message)
        except (smtplib.SMTPException, OSError) as exc:
            raise MailDeliveryError(str(exc)) from exc
        logger.info("Email sent to %s. Subject: %s", ", ".join(recipients), subject)

    def _deliver(self, message: EmailMessage) -> None:
        settings = self._settings
        if settings.port == 465:
            server: smtplib.SMTP = smtplib.SMTP_SSL(settings.server, settings.port, timeout=30)
        else:
            server = smtplib.SMTP(settings.server, settings.port, timeout=30)
        try:
            if settings.port != 465:
                server.starttls()
            server.login(settings.username, settings.password)
            server.send_message(message)
        finally:
            server.quit()


__all__ = ["MailDeliveryError", "SmtpMailer"]
