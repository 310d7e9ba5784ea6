"""Thin wrapper over the Telegram Bot API methods the bot uses."""

from __future__ import annotations

from typing import Any, Dict

import httpx

from truckbot.utils.http import RetryConfig, request_with_retry

TELEGRAM_API_BASE = "https://api.telegram.org"


class TelegramApiError(RuntimeError):
    """Raised when Telegram rejects or fails a call."""


class TelegramBotClient:
    """Send messages and documents on behalf of the bot."""

    def __init__(
        self,
        bot_token: str,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = f"{TELEGRAM_API_BASE}/bot{bot_token}"
        self._transport = transport

    async def send_message(self, chat_id: int | str, text: str) -> Dict[str, Any]:
        return await self._call(
            "sendMessage",
            data={"chat_id": str(chat_id), "text": text, "parse_mode": "Markdown"},
        )

    async def send_document(
        self,
        chat_id: int | str,
        *,
        filename: str,
        content: bytes,
        caption: str | None = None,
    ) -> Dict[str, Any]:
        data = {"chat_id": str(chat_id), "parse_mode": "Markdown"}
        if caption:
            data["caption"] = caption
        return await self._call(
            "sendDocument",
            data=data,
            files={"document": (filename, content, "application/pdf")},
        )

    async def _call(self, method: str, **kwargs: Any) -> Dict[str, Any]:
        try:
            async with httpx.AsyncClient(timeout=20.0, transport=self._transport) as client:
                response = await request_with_retry(
                    client.post,
                    f"{self._base_url}/{method}",
                    retry_config=RetryConfig(attempts=2),
                    **kwargs,
                )
        except httpx.HTTPError as exc:
            raise TelegramApiError(f"Telegram {method} failed: {exc}") from exc

        payload = response.json()
        if not payload.get("ok"):
            raise TelegramApiError(
                f"Telegram {method} was not OK: {payload.get('description')}"
            )
        return payload.get("result") or {}


__all__ = ["TELEGRAM_API_BASE", "TelegramApiError", "TelegramBotClient"]
