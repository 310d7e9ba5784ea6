"""Service layer exports."""

from .admin_notifier import AdminNotifier
from .entry_wizard import EntryWizard, WizardReply
from .message_dispatch import DispatchResult, MessageDispatcher, MessageStats, OutboundDocument
from .message_parser import MessageParser, parse_message
from .wizard_sessions import WizardSession, WizardSessionStore

__all__ = [
    "AdminNotifier",
    "DispatchResult",
    "EntryWizard",
    "MessageDispatcher",
    "MessageParser",
    "MessageStats",
    "OutboundDocument",
    "WizardReply",
    "WizardSession",
    "WizardSessionStore",
    "parse_message",
]
