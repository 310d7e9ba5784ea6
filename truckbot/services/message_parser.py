"""Rule-based parser that turns free-text chat messages into structured records.

The parser is a pure function of the message text. Classification runs through
an ordered rule table and the first matching rule produces the record, so
precedence is visible in ``MessageParser.rules`` rather than buried in control
flow. Nothing escapes ``MessageParser.parse``: unexpected failures come back as
``ParseError``.
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from truckbot.schemas.records import (
    Command,
    Greeting,
    Incomplete,
    ParseError,
    ParsedRecord,
    RepairReport,
    SctEntry,
    SheetCreation,
    StayReport,
    StayReportTruck,
    TransitEntry,
)

logger = logging.getLogger(__name__)

COMMAND_PREFIX = "/"
DEFAULT_TEAM = "Eldoret"
DEFAULT_DURATION_HOURS = 24
ALLOWED_DURATION_HOURS = (24, 48)

GREETINGS = frozenset(
    {
        "hi",
        "hello",
        "hey",
        "greetings",
        "good morning",
        "good afternoon",
        "good evening",
        "poa",
        "sasa",
        "mambo",
        "niaje",
    }
)

SHEET_CREATION_MARKER = "create truck:"

# Matched against the lower-cased, whitespace-collapsed line. First match wins.
SHEET_FIELD_LABELS: Tuple[Tuple[str, str], ...] = (
    ("entry:", "entry_number"),
    ("entry note:", "entry_note"),
    ("exit note:", "exit_note"),
    ("consignor:", "consignor"),
    ("consignee:", "consignee"),
    ("destination:", "destination"),
    ("bol:", "bol"),
    ("order:", "loading_order"),
    ("product:", "product"),
    ("comp 1:", "comp1"),
    ("comp 2:", "comp2"),
    ("comp 3:", "comp3"),
    ("comp 4:", "comp4"),
    ("comp 5:", "comp5"),
    ("comp 6:", "comp6"),
    ("permit:", "permit"),
    ("target:", "target_sheet"),
)

SHEET_REQUIRED_FIELDS: Tuple[Tuple[str, str], ...] = (
    ("consignor", "Consignor (e.g., 'Consignor: ABC Ltd')"),
    ("consignee", "Consignee (e.g., 'Consignee: XYZ Ltd')"),
    ("destination", "Destination (e.g., 'Destination: DRC')"),
    ("bol", "BOL Number (e.g., 'Bol: 67890')"),
    ("loading_order", "Loading Order (e.g., 'Order: 50059360')"),
    ("product", "Product (e.g., 'Product: AGO')"),
)

STAY_MARKERS: Tuple[Tuple[str, str], ...] = (
    ("overnight:", "overnight"),
    ("overstay:", "overstay"),
)

REPAIR_LABELS = frozenset({"entry", "hours", "team", "email"})

MISSING_REGISTRATION = "Registration Number (First line)"
MISSING_DRIVER_NAME = "Driver Name (Second line)"
MISSING_MOBILE_NUMBER = "Mobile Number (Third line)"
MISSING_LOCATION = "Location (Fourth line)"
MISSING_EMAIL = "A valid Email Address (anywhere in the message)"

_NON_PRINTABLE_RE = re.compile(r"[^\x20-\x7E\r\n]")
_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_EMAIL_TOKEN_SPLIT_RE = re.compile(r"[\s<>(),;:]+")
_LEADING_FLOAT_RE = re.compile(r"^[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?")
_LEADING_INT_RE = re.compile(r"^[+-]?\d+")
_PHONE_RE = re.compile(r"^\+?[\d\s\-()]{7,}$")


def sanitize_input(text: str | None) -> str:
    """Drop control and non-printable characters, then trim."""
    if not text:
        return ""
    return _NON_PRINTABLE_RE.sub("", text).strip()


def is_valid_email(value: str | None) -> bool:
    """Shape check for local@domain.tld; deliverability is not verified."""
    if not value or not isinstance(value, str):
        return False
    return bool(_EMAIL_RE.match(value.strip()))


def collapse_whitespace(line: str) -> str:
    return " ".join(line.split())


def leading_float(value: str | None) -> float:
    """Parse the numeric prefix of ``value``; anything unparsable or non-finite is 0."""
    if not value:
        return 0.0
    match = _LEADING_FLOAT_RE.match(value.strip())
    if not match:
        return 0.0
    number = float(match.group(0))
    return number if math.isfinite(number) else 0.0


def _label_value(line: str, prefix: str) -> str:
    return collapse_whitespace(line)[len(prefix):].strip()


def _split_label(line: str) -> Tuple[str, str] | None:
    key, sep, value = line.partition(":")
    if not sep:
        return None
    return key.strip().lower(), value.strip()


@dataclass(frozen=True, slots=True)
class _Message:
    text: str
    lines: Tuple[str, ...]


Rule = Tuple[str, Callable[[_Message], bool], Callable[[_Message], ParsedRecord]]


class MessageParser:
    """Classify a chat message and extract the fields of the matching record."""

    def __init__(self, *, default_team: str = DEFAULT_TEAM) -> None:
        self._default_team = default_team
        self._rules: Tuple[Rule, ...] = (
            ("greeting", self._is_greeting, self._greeting),
            ("command", self._is_command, self._command),
            ("empty", self._is_empty, self._empty),
            ("sheet_creation", self._is_sheet_creation, self._parse_sheet_creation),
            ("stay_report", self._is_stay_report, self._parse_stay_report),
            ("repair_report", lambda _: True, self._parse_repair_report),
        )

    @property
    def rules(self) -> Tuple[str, ...]:
        """Rule names in evaluation order."""
        return tuple(name for name, _, _ in self._rules)

    def parse(self, message: str | None) -> ParsedRecord:
        try:
            text = sanitize_input(message)
            lines = tuple(line.strip() for line in text.splitlines() if line.strip())
            parsed = _Message(text=text, lines=lines)
            for name, matches, extract in self._rules:
                if matches(parsed):
                    logger.debug("Message classified by rule %s", name)
                    return extract(parsed)
        except Exception:
            logger.exception("Unexpected error while parsing message")
            return ParseError(reason="Internal error during message parsing.")
        return ParseError(reason="Message could not be classified.")

    # -- classification -------------------------------------------------

    @staticmethod
    def _is_greeting(message: _Message) -> bool:
        return message.text.lower() in GREETINGS

    @staticmethod
    def _greeting(message: _Message) -> ParsedRecord:
        return Greeting(token=message.text.lower())

    @staticmethod
    def _is_command(message: _Message) -> bool:
        return message.text.startswith(COMMAND_PREFIX)

    @staticmethod
    def _command(message: _Message) -> ParsedRecord:
        return Command(raw=message.text)

    @staticmethod
    def _is_empty(message: _Message) -> bool:
        return not message.lines

    @staticmethod
    def _empty(_: _Message) -> ParsedRecord:
        return ParseError(reason="Empty message received.")

    @staticmethod
    def _is_sheet_creation(message: _Message) -> bool:
        return collapse_whitespace(message.lines[0]).lower().startswith(
            SHEET_CREATION_MARKER
        )

    @staticmethod
    def _is_stay_report(message: _Message) -> bool:
        return any(
            line.lower().startswith(marker)
            for line in message.lines
            for marker, _ in STAY_MARKERS
        )

    # -- sheet creation -------------------------------------------------

    def _parse_sheet_creation(self, message: _Message) -> ParsedRecord:
        truck = _label_value(message.lines[0], SHEET_CREATION_MARKER)
        target_sheet = "TRANSIT"
        values: Dict[str, str] = {}

        for line in message.lines[1:]:
            normalized = collapse_whitespace(line).lower()
            for prefix, field_name in SHEET_FIELD_LABELS:
                if not normalized.startswith(prefix):
                    continue
                value = _label_value(line, prefix)
                if field_name == "target_sheet":
                    if value.upper() == "SCT":
                        target_sheet = "SCT"
                else:
                    values[field_name] = value
                break
            else:
                logger.warning("Unrecognized sheet-creation line: %s", line)

        # An "Entry:" line stands in for the entry note on SCT submissions.
        if (
            target_sheet == "SCT"
            and values.get("entry_number")
            and not values.get("entry_note")
        ):
            values["entry_note"] = values.pop("entry_number")

        missing: List[str] = []
        if not truck:
            missing.append("Truck Number (after 'create truck:')")
        if target_sheet == "SCT":
            if not values.get("entry_note"):
                missing.append("Entry Note (e.g., 'Entry Note: EN-123')")
        elif not values.get("entry_number"):
            missing.append("Entry (e.g., 'Entry: 12345')")
        missing.extend(
            label for field_name, label in SHEET_REQUIRED_FIELDS if not values.get(field_name)
        )

        if missing:
            return Incomplete(record_kind="sheet_creation", missing_fields=missing)

        common = {
            "truck": truck,
            **{field_name: values[field_name] for field_name, _ in SHEET_REQUIRED_FIELDS},
            **{f"comp{index}": leading_float(values.get(f"comp{index}")) for index in range(1, 7)},
        }
        if target_sheet == "SCT":
            entry = SctEntry(
                entry_note=values["entry_note"],
                exit_note=values.get("exit_note") or None,
                **common,
            )
        else:
            entry = TransitEntry(
                entry_number=values["entry_number"],
                permit=values.get("permit") or None,
                **common,
            )
        return SheetCreation(entry=entry)

    # -- stay reports ---------------------------------------------------

    @staticmethod
    def _parse_stay_report(message: _Message) -> ParsedRecord:
        report_type = "overstay"
        if any(line.lower().startswith("overnight:") for line in message.lines):
            report_type = "overnight"

        omc_name: Optional[str] = None
        email: Optional[str] = None
        trucks: List[Dict[str, Optional[str]]] = []

        for line in message.lines:
            labelled = _split_label(line)
            if labelled is None:
                continue
            key, value = labelled
            if key == "omc":
                omc_name = value
            elif key == "email":
                if is_valid_email(value):
                    email = value
            elif key == "truck":
                trucks.append({"registration_number": value, "reason": None})
            elif key == "reason" and trucks:
                trucks[-1]["reason"] = value

        missing: List[str] = []
        if not omc_name:
            missing.append('OMC Name (using "omc: [Name]")')
        if not email:
            missing.append('Email Address (using "email: [Address]")')
        if not trucks:
            missing.append('At least one truck (using "truck: [Reg No]")')
        for position, truck in enumerate(trucks, start=1):
            if not truck["registration_number"]:
                missing.append(f"Truck {position} Registration Number")
            if not truck["reason"]:
                missing.append(f"Truck {position} Reason")

        if missing:
            return Incomplete(record_kind=report_type, missing_fields=missing)
        return StayReport(
            report_type=report_type,
            omc_name=omc_name,
            email=email,
            trucks=[StayReportTruck(**truck) for truck in trucks],
        )

    # -- repair reports -------------------------------------------------

    def _parse_repair_report(self, message: _Message) -> ParsedRecord:
        lines = message.lines
        entry_no: Optional[str] = None
        duration = DEFAULT_DURATION_HOURS
        team = self._default_team
        labelled_email: Optional[str] = None

        for line in lines:
            labelled = _split_label(line)
            if labelled is None:
                continue
            key, value = labelled
            if key == "entry":
                entry_no = value or None
            elif key == "hours":
                match = _LEADING_INT_RE.match(value)
                if match and int(match.group(0)) in ALLOWED_DURATION_HOURS:
                    duration = int(match.group(0))
            elif key == "team":
                team = (value or self._default_team).capitalize()
            elif key == "email" and labelled_email is None and is_valid_email(value):
                labelled_email = value

        email = labelled_email or _find_unlabelled_email(lines)

        if len(lines) >= 4:
            reg_no, driver_name, driver_no, location = lines[:4]
        else:
            reg_no, driver_name, driver_no, location = _assign_short_positions(lines)

        missing: List[str] = []
        if not reg_no:
            missing.append(MISSING_REGISTRATION)
        if not driver_name:
            missing.append(MISSING_DRIVER_NAME)
        if not driver_no:
            missing.append(MISSING_MOBILE_NUMBER)
        if not location:
            missing.append(MISSING_LOCATION)
        if not email:
            missing.append(MISSING_EMAIL)

        if missing:
            return Incomplete(record_kind="repair", missing_fields=missing)
        return RepairReport(
            reg_no=reg_no,
            driver_name=driver_name,
            driver_no=driver_no,
            location=location,
            email=email,
            entry_no=entry_no,
            duration_hours=duration,
            team=team,
        )


def _is_repair_label_line(line: str) -> bool:
    labelled = _split_label(line)
    return labelled is not None and labelled[0] in REPAIR_LABELS


def _find_unlabelled_email(lines: Sequence[str]) -> Optional[str]:
    """Return the first valid address found on a line containing '@'."""
    for line in lines:
        if "@" not in line or _is_repair_label_line(line):
            continue
        for token in _EMAIL_TOKEN_SPLIT_RE.split(line):
            if is_valid_email(token):
                return token
    return None


def _assign_short_positions(
    lines: Sequence[str],
) -> Tuple[Optional[str], Optional[str], Optional[str], Optional[str]]:
    """Best-effort slotting for messages with fewer than four lines.

    Registration and driver name stay positional; among the remaining lines a
    phone-shaped value fills the mobile slot and anything else the location,
    so the reply names the slot the user actually left out.
    """
    candidates = [
        line for line in lines if "@" not in line and not _is_repair_label_line(line)
    ]
    reg_no = candidates[0] if candidates else None
    driver_name = candidates[1] if len(candidates) > 1 else None
    driver_no: Optional[str] = None
    location: Optional[str] = None
    for line in candidates[2:]:
        if driver_no is None and _PHONE_RE.match(line):
            driver_no = line
        elif location is None:
            location = line
        elif driver_no is None:
            driver_no = line
    return reg_no, driver_name, driver_no, location


_default_parser = MessageParser()


def parse_message(message: str | None) -> ParsedRecord:
    """Parse ``message`` with the default team configuration."""
    return _default_parser.parse(message)


__all__ = [
    "ALLOWED_DURATION_HOURS",
    "COMMAND_PREFIX",
    "DEFAULT_TEAM",
    "GREETINGS",
    "MessageParser",
    "SHEET_FIELD_LABELS",
    "collapse_whitespace",
    "is_valid_email",
    "leading_float",
    "parse_message",
    "sanitize_input",
]
