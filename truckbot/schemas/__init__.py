"""Public schema exports."""

from .records import (
    Command,
    Greeting,
    Incomplete,
    ParseError,
    ParseRequest,
    ParsedRecord,
    RepairReport,
    SctEntry,
    SheetCreation,
    SheetEntry,
    StayReport,
    StayReportTruck,
    TransitEntry,
)
from .telegram import TelegramMessage, TelegramUpdate

__all__ = [
    "Command",
    "Greeting",
    "Incomplete",
    "ParseError",
    "ParseRequest",
    "ParsedRecord",
    "RepairReport",
    "SctEntry",
    "SheetCreation",
    "SheetEntry",
    "StayReport",
    "StayReportTruck",
    "TelegramMessage",
    "TelegramUpdate",
    "TransitEntry",
]
