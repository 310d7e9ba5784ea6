"""
Pydantic models for the Telegram webhook payload.
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class TelegramMessage(BaseModel):
    """Subset of Telegram message fields the bot reads."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    message_id: int
    date: int
    text: Optional[str] = None
    caption: Optional[str] = None
    chat: Dict[str, Any]
    from_: Optional[Dict[str, Any]] = Field(None, alias="from")


class TelegramUpdate(BaseModel):
    """Minimal Telegram update payload we care about."""

    update_id: int
    message: Optional[TelegramMessage] = None
    edited_message: Optional[TelegramMessage] = None


__all__ = ["TelegramMessage", "TelegramUpdate"]
