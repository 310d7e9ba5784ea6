try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import pytest

from truckbot.schemas import Incomplete, SctEntry, TransitEntry
from truckbot.services.entry_wizard import (
    CONFIRM_STEP,
    START_STEP,
    STEPS,
    Branch,
    EntryWizard,
    WizardError,
    WizardStep,
    build_sheet_entry,
    step_graph,
)
from truckbot.services.message_parser import parse_message

COMMON_ANSWERS = [
    "ABC Ltd",  # consignor
    "XYZ Ltd",  # consignee
    "DRC",  # destination
    "67890",  # bol
    "50059360",  # loading order
    "AGO",  # product
    "10000",
    "5000",
    "0",
    "0",
    "0",
    "2500.5",
]


def _walk(wizard: EntryWizard, user_id: str, answers):
    reply = None
    for answer in answers:
        reply = wizard.advance(user_id, answer)
    return reply


def _step(session_store, user_id: str) -> str:
    return session_store.get(user_id).step


def test_start_prompts_for_truck_and_overwrites_session(wizard, session_store):
    reply = wizard.start("u1")
    assert reply.status == "prompt"
    assert "Truck Registration Number" in reply.text

    _walk(wizard, "u1", ["kaa123a", "TRANSIT"])
    assert _step(session_store, "u1") == "entryTransit"

    wizard.start("u1")
    session = session_store.get("u1")
    assert session.step == START_STEP
    assert session.data == {}


def test_truck_is_uppercased_and_sheet_branch_selected(wizard, session_store):
    wizard.start("u1")
    wizard.advance("u1", "kaa123a")
    reply = wizard.advance("u1", "sct")
    session = session_store.get("u1")
    assert session.data["truck"] == "KAA123A"
    assert session.data["target_sheet"] == "SCT"
    assert session.step == "entryNoteSCT"
    assert "Entry Note" in reply.text


def test_invalid_target_sheet_reprompts(wizard, session_store):
    wizard.start("u1")
    wizard.advance("u1", "KAA123A")
    reply = wizard.advance("u1", "ROAD")
    assert reply.status == "invalid"
    assert _step(session_store, "u1") == "targetSheet"
    assert "target_sheet" not in session_store.get("u1").data


def test_non_numeric_compartment_reprompts_without_storing(wizard, session_store):
    wizard.start("u1")
    _walk(wizard, "u1", ["KAA123A", "TRANSIT", "12345"] + COMMON_ANSWERS[:6])
    assert _step(session_store, "u1") == "comp1"

    reply = wizard.advance("u1", "ten thousand")
    assert reply.status == "invalid"
    assert "valid number" in reply.text
    assert "Compartment 1 Volume" in reply.text
    session = session_store.get("u1")
    assert session.step == "comp1"
    assert "comp1" not in session.data


@pytest.mark.parametrize("value", ["-1", "100000", "nan", "inf"])
def test_compartment_range_is_enforced(wizard, session_store, value):
    wizard.start("u1")
    _walk(wizard, "u1", ["KAA123A", "TRANSIT", "12345"] + COMMON_ANSWERS[:6])
    reply = wizard.advance("u1", value)
    assert reply.status == "invalid"
    assert _step(session_store, "u1") == "comp1"


def test_required_step_rejects_blank_input(wizard, session_store):
    wizard.start("u1")
    reply = wizard.advance("u1", "   ")
    assert reply.status == "invalid"
    assert _step(session_store, "u1") == START_STEP


def test_sct_path_reaches_review_with_exit_note(wizard, session_store):
    wizard.start("u1")
    reply = _walk(
        wizard, "u1", ["KAA123A", "SCT", "EN-XYZ789"] + COMMON_ANSWERS + ["EX-55"]
    )
    assert reply.status == "review"
    session = session_store.get("u1")
    assert session.step == CONFIRM_STEP
    assert session.data["exit_note"] == "EX-55"
    assert session.data["entry_note"] == "EN-XYZ789"
    assert "permit" not in session.data
    assert "entry_number" not in session.data
    assert "*Exit Note:* EX-55" in reply.text
    assert "*Compartment 6:* 2500.5" in reply.text


def test_transit_permit_can_be_skipped_and_confirmed(wizard, session_store):
    wizard.start("u1")
    reply = _walk(wizard, "u1", ["KAA123A", "TRANSIT", "12345"] + COMMON_ANSWERS + ["skip"])
    assert reply.status == "review"
    assert "permit" not in session_store.get("u1").data

    reply = wizard.advance("u1", "CONFIRM")
    assert reply.status == "completed"
    assert isinstance(reply.entry, TransitEntry)
    assert reply.entry.permit is None
    assert reply.entry.comp1 == 10000.0
    assert reply.entry.entry_number == "12345"
    assert session_store.get("u1") is None


def test_review_rerenders_on_unknown_input(wizard):
    wizard.start("u1")
    _walk(wizard, "u1", ["KAA123A", "TRANSIT", "12345"] + COMMON_ANSWERS + ["SSD-1"])
    reply = wizard.advance("u1", "what now?")
    assert reply.status == "review"
    assert "Review Your Entry" in reply.text


def test_edit_returns_to_review(wizard, session_store):
    wizard.start("u1")
    _walk(wizard, "u1", ["KAA123A", "TRANSIT", "12345"] + COMMON_ANSWERS + ["SSD-1"])

    reply = wizard.advance("u1", "edit consignor")
    assert reply.status == "prompt"
    assert _step(session_store, "u1") == "consignor"

    reply = wizard.advance("u1", "New Consignor Ltd")
    assert reply.status == "review"
    assert "*Consignor:* New Consignor Ltd" in reply.text
    assert _step(session_store, "u1") == CONFIRM_STEP


def test_edit_target_sheet_walks_branch_and_drops_other_fields(wizard, session_store):
    wizard.start("u1")
    _walk(wizard, "u1", ["KAA123A", "TRANSIT", "12345"] + COMMON_ANSWERS + ["SSD-1"])

    wizard.advance("u1", "edit target")
    reply = wizard.advance("u1", "SCT")
    assert reply.status == "prompt"
    assert _step(session_store, "u1") == "entryNoteSCT"
    data = session_store.get("u1").data
    assert "entry_number" not in data
    assert "permit" not in data

    reply = wizard.advance("u1", "EN-1")
    assert reply.status == "review"
    reply = wizard.advance("u1", "yes")
    assert isinstance(reply.entry, SctEntry)
    assert reply.entry.entry_note == "EN-1"


def test_edit_unknown_field_is_rejected(wizard, session_store):
    wizard.start("u1")
    _walk(wizard, "u1", ["KAA123A", "TRANSIT", "12345"] + COMMON_ANSWERS + ["SSD-1"])
    reply = wizard.advance("u1", "edit colour")
    assert reply.status == "invalid"
    assert _step(session_store, "u1") == CONFIRM_STEP


@pytest.mark.parametrize("token", ["cancel", "/cancel", "EXIT", "/Exit"])
def test_cancel_from_any_step_destroys_session(wizard, session_store, token):
    wizard.start("u1")
    _walk(wizard, "u1", ["KAA123A", "TRANSIT", "12345", "ABC Ltd"])
    reply = wizard.advance("u1", token)
    assert reply.status == "cancelled"
    assert not wizard.has_session("u1")

    follow_up = "KCC492P\nYUSSUF MAALIM\nHASS PETROLEUM DEPOT"
    assert wizard.advance("u1", follow_up).status == "inactive"
    assert isinstance(parse_message(follow_up), Incomplete)


def test_cancel_without_session(wizard):
    reply = wizard.cancel("nobody")
    assert reply.status == "inactive"
    assert "No active session" in reply.text


def test_internal_failure_destroys_session(session_store):
    broken_steps = dict(STEPS)
    broken_steps[START_STEP] = WizardStep(
        key=START_STEP,
        prompt="Truck?",
        field="truck",
        next_step=Branch(selector=lambda data: "nowhere", targets=("targetSheet",)),
    )
    wizard = EntryWizard(session_store, broken_steps)
    wizard.start("u1")
    reply = wizard.advance("u1", "KAA123A")
    assert reply.status == "failed"
    assert "start over" in reply.text
    assert "nowhere" in reply.error
    assert session_store.get("u1") is None


def test_branch_rejects_undeclared_target():
    branch = Branch(selector=lambda data: "elsewhere", targets=("a", "b"))
    with pytest.raises(WizardError):
        branch.select({})


def test_step_graph_lists_every_branch_target():
    graph = step_graph()
    assert graph["targetSheet"] == ("entryTransit", "entryNoteSCT")
    assert graph["comp6"] == ("permitTransit", "exitNoteSCT")
    assert graph[CONFIRM_STEP] == ()
    reachable = {START_STEP}
    frontier = [START_STEP]
    while frontier:
        for successor in graph[frontier.pop()]:
            if successor not in reachable:
                reachable.add(successor)
                frontier.append(successor)
    assert reachable == set(STEPS)


def test_build_sheet_entry_ignores_bookkeeping_and_other_sheet_fields():
    entry = build_sheet_entry(
        {
            "truck": "KAA123A",
            "target_sheet": "SCT",
            "entry_note": "EN-1",
            "entry_number": "stale",
            "permit": "stale",
            "consignor": "A",
            "consignee": "B",
            "destination": "C",
            "bol": "D",
            "loading_order": "E",
            "product": "F",
            "_return_to_review": True,
        }
    )
    assert isinstance(entry, SctEntry)
    assert entry.comp1 == 0


def test_review_escapes_markdown_in_answers(wizard):
    wizard.start("u1")
    answers = ["kaa_1", "TRANSIT", "12345", "A*B Ltd"] + COMMON_ANSWERS[1:] + ["skip"]
    reply = _walk(wizard, "u1", answers)
    assert reply.status == "review"
    assert "*Truck:* KAA\\_1" in reply.text
    assert "*Consignor:* A\\*B Ltd" in reply.text
