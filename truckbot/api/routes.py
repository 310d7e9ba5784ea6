"""
FastAPI routes for the truck logistics bot.
"""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Annotated, Any, List

from fastapi import APIRouter, Depends, HTTPException, Query

from truckbot.clients import TelegramApiError, TelegramBotClient
from truckbot.dependencies import (
    get_admin_notifier,
    get_app_settings,
    get_message_dispatcher,
    get_message_parser,
    get_telegram_client,
)
from truckbot.schemas import ParseRequest, ParsedRecord, TelegramUpdate
from truckbot.services import (
    AdminNotifier,
    DispatchResult,
    MessageDispatcher,
    MessageParser,
    OutboundDocument,
)
from truckbot.utils.markdown import escape_markdown

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/health", status_code=HTTPStatus.OK)
async def healthcheck() -> dict:
    """Simple health endpoint for monitoring."""
    return {"status": "ok"}


@router.post("/messages/parse", status_code=HTTPStatus.OK)
async def parse_message_text(
    payload: ParseRequest,
    parser: Annotated[MessageParser, Depends(get_message_parser)],
) -> ParsedRecord:
    """Classify a free-text message without acting on it."""
    return parser.parse(payload.text)


@router.post("/integrations/telegram/webhook", status_code=HTTPStatus.OK)
async def telegram_webhook(
    update: TelegramUpdate,
    dispatcher: Annotated[MessageDispatcher, Depends(get_message_dispatcher)],
    telegram: Annotated[TelegramBotClient, Depends(get_telegram_client)],
    notifier: Annotated[AdminNotifier, Depends(get_admin_notifier)],
    settings: Annotated[Any, Depends(get_app_settings)],
    token: str | None = Query(None, description="Webhook secret for verification."),
) -> dict:
    """Handle one incoming Telegram message and answer it."""

    expected_token = settings.telegram.webhook_secret
    if expected_token and token != expected_token:
        raise HTTPException(status_code=HTTPStatus.FORBIDDEN, detail="Invalid token")

    message = update.message
    if not message:
        return {"status": "ignored"}

    chat_id = message.chat.get("id")
    if chat_id is None:
        return {"status": "ignored"}
    text = (message.text or message.caption or "").strip()
    if not text:
        return {"status": "ignored"}

    result = await dispatcher.handle(str(chat_id), text)
    if not result.outbound:
        return {"status": "ignored"}

    # A lone text reply rides on the webhook response itself.
    if len(result.outbound) == 1 and not result.documents:
        return {
            "method": "sendMessage",
            "chat_id": chat_id,
            "text": result.replies[0],
            "parse_mode": "Markdown",
        }

    failures = await _deliver(telegram, chat_id, result)
    if failures:
        # The update has been acted on, so the answer stays 2xx.
        await notifier.notify(
            f"*Reply Delivery Error:*\nChat: {chat_id}\n"
            f"Failed items: {len(failures)} of {len(result.outbound)}\n"
            f"Error: {escape_markdown(failures[0])}"
        )
        return {"status": "partial"}
    return {"status": "sent"}


async def _deliver(
    telegram: TelegramBotClient, chat_id: Any, result: DispatchResult
) -> List[str]:
    """Send every outbound item in order; returns the errors of items that failed."""
    failures: List[str] = []
    for item in result.outbound:
        try:
            if isinstance(item, OutboundDocument):
                await telegram.send_document(
                    chat_id,
                    filename=item.filename,
                    content=item.content,
                    caption=item.caption,
                )
            else:
                await telegram.send_message(chat_id, item)
        except TelegramApiError as exc:
            logger.warning("Failed to deliver reply to chat %s: %s", chat_id, exc)
            failures.append(str(exc))
    return failures


__all__ = ["router"]
