"""Expose dependency helpers for FastAPI routers."""

from .clients import (
    get_admin_notifier,
    get_apps_script_client,
    get_entry_wizard,
    get_mailer,
    get_message_dispatcher,
    get_message_parser,
    get_telegram_client,
    get_wizard_session_store,
)
from .config import SettingsDependency, get_app_settings

__all__ = [
    "SettingsDependency",
    "get_admin_notifier",
    "get_app_settings",
    "get_apps_script_client",
    "get_entry_wizard",
    "get_mailer",
    "get_message_dispatcher",
    "get_message_parser",
    "get_telegram_client",
    "get_wizard_session_store",
]
