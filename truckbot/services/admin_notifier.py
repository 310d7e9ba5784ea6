"""Operator alerts delivered to the configured Telegram admin chat."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional
from zoneinfo import ZoneInfo

from truckbot.clients.telegram import TelegramApiError, TelegramBotClient

logger = logging.getLogger(__name__)


class AdminNotifier:
    """Send timestamped alerts to the admin chat.

    Delivery problems are logged and never propagated; an alert must not turn a
    handled user error into an unhandled one.
    """

    def __init__(
        self,
        client: Optional[TelegramBotClient],
        admin_chat_id: Optional[str],
        *,
        timezone_name: str = "Africa/Nairobi",
    ) -> None:
        self._client = client
        self._admin_chat_id = admin_chat_id
        self._zone = ZoneInfo(timezone_name)

    @property
    def enabled(self) -> bool:
        return bool(self._client and self._admin_chat_id)

    def format_alert(self, message: str, *, now: Optional[datetime] = None) -> str:
        moment = (now or datetime.now(self._zone)).astimezone(self._zone)
        timestamp = moment.strftime("%d/%m/%Y, %H:%M:%S")
        return f"```BOT ALERT ({timestamp})```\n\n{message}"

    async def notify(self, message: str) -> bool:
        if not self.enabled:
            logger.error("Admin notification skipped (no admin chat configured): %s", message)
            return False

        try:
            await self._client.send_message(self._admin_chat_id, self.format_alert(message))
        except TelegramApiError as exc:
            logger.error("Failed to notify admin chat %s: %s", self._admin_chat_id, exc)
            return False

        logger.info("Admin notification sent to %s", self._admin_chat_id)
        return True


__all__ = ["AdminNotifier"]
