"""Pytest configuration shared across the suite."""

try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import pytest

from truckbot.services.entry_wizard import EntryWizard
from truckbot.services.wizard_sessions import WizardSessionStore


@pytest.fixture
def session_store(tmp_path) -> WizardSessionStore:
    """Fresh SQLite-backed wizard session store per test."""
    return WizardSessionStore(str(tmp_path / "wizard.db"))


@pytest.fixture
def wizard(session_store) -> EntryWizard:
    return EntryWizard(session_store)
