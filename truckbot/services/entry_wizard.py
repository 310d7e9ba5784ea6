"""Guided, one-question-at-a-time entry of TRANSIT/SCT truck records.

The wizard is a small interpreter over the declarative ``STEPS`` table. Each
step names the field it fills, how to validate and normalize the answer, and
its successor. Successors are either a fixed step key or a ``Branch`` that
lists every step it can select, so ``step_graph`` can enumerate all edges.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Callable, Dict, Literal, Mapping, Optional, Tuple, Union

from truckbot.schemas.records import SctEntry, SheetEntry, TransitEntry
from truckbot.services.message_parser import sanitize_input
from truckbot.services.wizard_sessions import WizardSession, WizardSessionStore
from truckbot.utils.markdown import escape_markdown

logger = logging.getLogger(__name__)

START_STEP = "start"
CONFIRM_STEP = "confirm"

CANCEL_TOKENS = frozenset({"cancel", "/cancel", "exit", "/exit"})
CONFIRM_TOKENS = frozenset({"confirm", "/confirm", "yes", "submit"})
SKIP_TOKENS = frozenset({"skip", "none", "-"})
TARGET_SHEETS = ("TRANSIT", "SCT")
MAX_COMPARTMENT_VOLUME = 99999

# Session bookkeeping; keys starting with "_" never reach the review or backend.
_RETURN_TO_REVIEW = "_return_to_review"

FIELD_LABELS: Dict[str, str] = {
    "truck": "Truck",
    "target_sheet": "Target Sheet",
    "entry_number": "Entry Number",
    "entry_note": "Entry Note",
    "consignor": "Consignor",
    "consignee": "Consignee",
    "destination": "Destination",
    "bol": "BOL Number",
    "loading_order": "Loading Order",
    "product": "Product",
    "comp1": "Compartment 1",
    "comp2": "Compartment 2",
    "comp3": "Compartment 3",
    "comp4": "Compartment 4",
    "comp5": "Compartment 5",
    "comp6": "Compartment 6",
    "permit": "Permit",
    "exit_note": "Exit Note",
}

# Steps that only exist on one target sheet's path.
SHEET_SPECIFIC_STEPS: Dict[str, str] = {
    "entryTransit": "TRANSIT",
    "permitTransit": "TRANSIT",
    "entryNoteSCT": "SCT",
    "exitNoteSCT": "SCT",
}
_SHEET_SPECIFIC_FIELDS: Dict[str, Tuple[str, ...]] = {
    "TRANSIT": ("entry_number", "permit"),
    "SCT": ("entry_note", "exit_note"),
}

Prompt = Union[str, Callable[[Mapping[str, Any]], str]]
Validator = Callable[[str], Optional[str]]
Transformer = Callable[[str], Any]


class WizardError(RuntimeError):
    """Raised when the step table leads somewhere it should not."""


@dataclass(frozen=True, slots=True)
class Branch:
    """Data-dependent edge; ``targets`` lists every step it may select."""

    selector: Callable[[Mapping[str, Any]], str]
    targets: Tuple[str, ...]

    def select(self, data: Mapping[str, Any]) -> str:
        target = self.selector(data)
        if target not in self.targets:
            raise WizardError(f"Branch selected undeclared step {target!r}")
        return target


@dataclass(frozen=True, slots=True)
class WizardStep:
    key: str
    prompt: Prompt
    field: Optional[str] = None
    next_step: Union[str, Branch, None] = None
    validator: Optional[Validator] = None
    transformer: Optional[Transformer] = None
    optional: bool = False

    def render_prompt(self, data: Mapping[str, Any]) -> str:
        return self.prompt(data) if callable(self.prompt) else self.prompt

    def resolve_next(self, data: Mapping[str, Any]) -> Optional[str]:
        if isinstance(self.next_step, Branch):
            return self.next_step.select(data)
        return self.next_step

    @property
    def successors(self) -> Tuple[str, ...]:
        if isinstance(self.next_step, Branch):
            return self.next_step.targets
        return (self.next_step,) if self.next_step else ()


WizardStatus = Literal[
    "prompt", "invalid", "review", "completed", "cancelled", "failed", "inactive"
]


@dataclass(frozen=True, slots=True)
class WizardReply:
    """What the caller should tell the user, plus any completed entry."""

    text: str
    status: WizardStatus
    entry: Optional[SheetEntry] = None
    error: Optional[str] = None


def is_cancel_token(text: str) -> bool:
    return sanitize_input(text).lower() in CANCEL_TOKENS


def _validate_target_sheet(value: str) -> Optional[str]:
    if value.upper() in TARGET_SHEETS:
        return None
    return "⚠️ Please type `TRANSIT` or `SCT`."


def _validate_volume(value: str) -> Optional[str]:
    try:
        number = float(value)
    except ValueError:
        return "⚠️ Please enter a valid number. Type `cancel` to exit wizard."
    if not math.isfinite(number):
        return "⚠️ Please enter a valid number. Type `cancel` to exit wizard."
    if number < 0 or number > MAX_COMPARTMENT_VOLUME:
        return (
            f"⚠️ Please enter a valid compartment volume (0-{MAX_COMPARTMENT_VOLUME}). "
            "Type `cancel` to exit wizard."
        )
    return None


def _by_target_sheet(transit_step: str, sct_step: str) -> Branch:
    return Branch(
        selector=lambda data: sct_step if data.get("target_sheet") == "SCT" else transit_step,
        targets=(transit_step, sct_step),
    )


def _format_value(value: Any) -> str:
    if isinstance(value, float):
        return f"{value:g}"
    return str(value)


def _review_prompt(data: Mapping[str, Any]) -> str:
    lines = ["*Review Your Entry:*", ""]
    for field_name, label in FIELD_LABELS.items():
        if field_name in data:
            lines.append(f"*{label}:* {escape_markdown(_format_value(data[field_name]))}")
    lines.append("")
    lines.append(
        "Type `confirm` to submit, `edit <field_name>` to change a value "
        "(e.g., `edit truck`), or `cancel` to abort."
    )
    return "\n".join(lines)


def _compartment_step(index: int, next_step: Union[str, Branch]) -> WizardStep:
    return WizardStep(
        key=f"comp{index}",
        prompt=f"Enter *Compartment {index} Volume* (0 if empty):",
        field=f"comp{index}",
        next_step=next_step,
        validator=_validate_volume,
        transformer=float,
    )


STEPS: Dict[str, WizardStep] = {
    step.key: step
    for step in (
        WizardStep(
            key=START_STEP,
            prompt=(
                "Welcome to the New Truck Entry Wizard! 🚚\n\n"
                "First, what is the *Truck Registration Number*? (e.g., KAA123A)"
            ),
            field="truck",
            next_step="targetSheet",
            transformer=str.upper,
        ),
        WizardStep(
            key="targetSheet",
            prompt="Is this for *TRANSIT* or *SCT*?\nType `TRANSIT` or `SCT`.",
            field="target_sheet",
            next_step=_by_target_sheet("entryTransit", "entryNoteSCT"),
            validator=_validate_target_sheet,
            transformer=str.upper,
        ),
        WizardStep(
            key="entryTransit",
            prompt="Enter *Entry Number* for TRANSIT (e.g., 12345):",
            field="entry_number",
            next_step="consignor",
        ),
        WizardStep(
            key="entryNoteSCT",
            prompt="Enter *Entry Note* for SCT (e.g., EN-XYZ789):",
            field="entry_note",
            next_step="consignor",
        ),
        WizardStep(
            key="consignor",
            prompt="Enter *Consignor Name*:",
            field="consignor",
            next_step="consignee",
        ),
        WizardStep(
            key="consignee",
            prompt="Enter *Consignee Name*:",
            field="consignee",
            next_step="destination",
        ),
        WizardStep(
            key="destination",
            prompt="Enter *Destination*:",
            field="destination",
            next_step="bol",
        ),
        WizardStep(
            key="bol", prompt="Enter *BOL Number*:", field="bol", next_step="loadingOrder"
        ),
        WizardStep(
            key="loadingOrder",
            prompt="Enter *Loading Order Number* (e.g., 50059360):",
            field="loading_order",
            next_step="product",
        ),
        WizardStep(
            key="product",
            prompt="Enter *Product Type* (e.g., AGO, PMS, IK, Other):",
            field="product",
            next_step="comp1",
        ),
        _compartment_step(1, "comp2"),
        _compartment_step(2, "comp3"),
        _compartment_step(3, "comp4"),
        _compartment_step(4, "comp5"),
        _compartment_step(5, "comp6"),
        _compartment_step(6, _by_target_sheet("permitTransit", "exitNoteSCT")),
        WizardStep(
            key="permitTransit",
            prompt="Enter *Permit Number* (Optional, for TRANSIT SSD - type 'skip' if none):",
            field="permit",
            next_step=CONFIRM_STEP,
            optional=True,
        ),
        WizardStep(
            key="exitNoteSCT",
            prompt="Enter *Exit Note* (Optional, for SCT - type 'skip' if none):",
            field="exit_note",
            next_step=CONFIRM_STEP,
            optional=True,
        ),
        WizardStep(key=CONFIRM_STEP, prompt=_review_prompt),
    )
}


def step_graph(steps: Mapping[str, WizardStep] = STEPS) -> Dict[str, Tuple[str, ...]]:
    """Adjacency list of the step table, including every branch target."""
    return {key: step.successors for key, step in steps.items()}


def build_sheet_entry(data: Mapping[str, Any]) -> SheetEntry:
    """Turn collected wizard answers into the record for the chosen sheet."""
    payload = {key: value for key, value in data.items() if not key.startswith("_")}
    target_sheet = payload.pop("target_sheet", "TRANSIT")
    for sheet, fields in _SHEET_SPECIFIC_FIELDS.items():
        if sheet != target_sheet:
            for field_name in fields:
                payload.pop(field_name, None)
    if target_sheet == "SCT":
        return SctEntry(**payload)
    return TransitEntry(**payload)


def _edit_aliases(steps: Mapping[str, WizardStep]) -> Dict[str, Tuple[str, ...]]:
    aliases: Dict[str, set] = {}
    for step in steps.values():
        if not step.field:
            continue
        names = {
            step.key.lower(),
            step.field,
            step.field.replace("_", " "),
            FIELD_LABELS.get(step.field, step.field).lower(),
        }
        for name in names:
            aliases.setdefault(name, set()).add(step.key)
    aliases.setdefault("entry", set()).update({"entryTransit", "entryNoteSCT"})
    aliases.setdefault("target", set()).add("targetSheet")
    aliases.setdefault("order", set()).add("loadingOrder")
    return {name: tuple(sorted(keys)) for name, keys in aliases.items()}


class EntryWizard:
    """Advance per-user wizard sessions one message at a time."""

    def __init__(
        self,
        store: WizardSessionStore,
        steps: Mapping[str, WizardStep] = STEPS,
    ) -> None:
        self._store = store
        self._steps = steps
        self._aliases = _edit_aliases(steps)

    def has_session(self, user_id: str) -> bool:
        return self._store.get(user_id) is not None

    def start(self, user_id: str) -> WizardReply:
        """Create (or restart) the user's session at the first step."""
        self._store.create(user_id, step=START_STEP)
        logger.info("Wizard session started for user %s", user_id)
        return WizardReply(
            text=self._steps[START_STEP].render_prompt({}), status="prompt"
        )

    def cancel(self, user_id: str) -> WizardReply:
        if self._store.delete(user_id):
            logger.info("Wizard session cancelled for user %s", user_id)
            return WizardReply(
                text=(
                    "✅ Wizard cancelled. Send `/newtruck` to start again "
                    "or `/help` for other commands."
                ),
                status="cancelled",
            )
        return WizardReply(
            text="No active session to cancel. Send `/help` for available commands.",
            status="inactive",
        )

    def advance(self, user_id: str, message: str) -> WizardReply:
        """Feed one user message into the active session."""
        session = self._store.get(user_id)
        if session is None:
            return WizardReply(
                text="No active wizard. Send `/newtruck` to start a new truck entry.",
                status="inactive",
            )

        user_input = sanitize_input(message)
        if user_input.lower() in CANCEL_TOKENS:
            return self.cancel(user_id)

        try:
            return self._advance(session, user_input)
        except Exception as exc:
            logger.exception(
                "Wizard processing failed for user %s at step %s", user_id, session.step
            )
            self._store.delete(user_id)
            return WizardReply(
                text=(
                    "❌ Error in wizard process. Session cancelled. "
                    "Type `/newtruck` to start over."
                ),
                status="failed",
                error=f"User: {user_id}\nStep: {session.step}\nError: {exc}",
            )

    def _advance(self, session: WizardSession, user_input: str) -> WizardReply:
        step = self._steps.get(session.step)
        if step is None:
            raise WizardError(f"Unknown wizard step {session.step!r}")
        if step.key == CONFIRM_STEP:
            return self._handle_review(session, user_input)

        if step.optional and (not user_input or user_input.lower() in SKIP_TOKENS):
            session.data.pop(step.field, None)
        else:
            error = self._validate(step, user_input)
            if error:
                return WizardReply(
                    text=f"{error}\n\n{step.render_prompt(session.data)}",
                    status="invalid",
                )
            value = step.transformer(user_input) if step.transformer else user_input
            previous = session.data.get(step.field)
            session.data[step.field] = value
            if step.field == "target_sheet" and previous not in (None, value):
                self._drop_sheet_fields(session.data, previous)

        next_key = self._next_step(step, session.data)
        if next_key not in self._steps:
            raise WizardError(f"Step {step.key!r} leads to unknown step {next_key!r}")
        session.step = next_key
        self._store.update(session)

        next_step = self._steps[next_key]
        status: WizardStatus = "review" if next_key == CONFIRM_STEP else "prompt"
        return WizardReply(text=next_step.render_prompt(session.data), status=status)

    def _next_step(self, step: WizardStep, data: Dict[str, Any]) -> Optional[str]:
        # After an edit, go straight back to the review unless the edit re-chose
        # the target sheet, whose branch still has to be walked.
        if data.get(_RETURN_TO_REVIEW) and step.key != "targetSheet":
            data.pop(_RETURN_TO_REVIEW)
            return CONFIRM_STEP
        return step.resolve_next(data)

    @staticmethod
    def _validate(step: WizardStep, user_input: str) -> Optional[str]:
        if not user_input and not step.optional:
            return "⚠️ A value is required here. Type `cancel` to exit wizard."
        if step.validator:
            return step.validator(user_input)
        return None

    @staticmethod
    def _drop_sheet_fields(data: Dict[str, Any], sheet: str) -> None:
        for field_name in _SHEET_SPECIFIC_FIELDS.get(sheet, ()):
            data.pop(field_name, None)

    def _handle_review(self, session: WizardSession, user_input: str) -> WizardReply:
        lowered = user_input.lower()
        if lowered in CONFIRM_TOKENS:
            entry = build_sheet_entry(session.data)
            self._store.delete(session.user_id)
            logger.info(
                "Wizard completed for user %s (%s %s)",
                session.user_id,
                entry.target_sheet,
                entry.truck,
            )
            return WizardReply(
                text=f"📝 Submitting data for *{entry.truck}* to {entry.target_sheet}...",
                status="completed",
                entry=entry,
            )

        command, _, argument = lowered.partition(" ")
        if command in ("edit", "/edit"):
            step_key = self._step_for_field(argument, session.data)
            if step_key is None:
                return WizardReply(
                    text=(
                        f"⚠️ Unknown field {escape_markdown(argument or '?')}. "
                        "Use a name from the review, e.g. `edit consignor`."
                    ),
                    status="invalid",
                )
            session.data[_RETURN_TO_REVIEW] = True
            session.step = step_key
            self._store.update(session)
            return WizardReply(
                text=self._steps[step_key].render_prompt(session.data), status="prompt"
            )

        return WizardReply(text=_review_prompt(session.data), status="review")

    def _step_for_field(self, name: str, data: Mapping[str, Any]) -> Optional[str]:
        normalized = " ".join(name.split())
        sheet = data.get("target_sheet", "TRANSIT")
        for step_key in self._aliases.get(normalized, ()):
            if SHEET_SPECIFIC_STEPS.get(step_key, sheet) == sheet:
                return step_key
        return None


__all__ = [
    "Branch",
    "CANCEL_TOKENS",
    "CONFIRM_STEP",
    "EntryWizard",
    "FIELD_LABELS",
    "START_STEP",
    "STEPS",
    "WizardError",
    "WizardReply",
    "WizardStep",
    "build_sheet_entry",
    "is_cancel_token",
    "step_graph",
]
