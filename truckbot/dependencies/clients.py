"""
Factory functions to provide shared clients and services as FastAPI dependencies.
"""

from functools import lru_cache

from truckbot.clients import AppsScriptClient, SmtpMailer, TelegramBotClient
from truckbot.core.config import get_settings
from truckbot.services import (
    AdminNotifier,
    EntryWizard,
    MessageDispatcher,
    MessageParser,
    WizardSessionStore,
)


@lru_cache()
def _settings():
    """Internal helper to cache settings for client factories."""
    return get_settings()


@lru_cache()
def get_message_parser() -> MessageParser:
    """Provide the free-text parser configured with the default repair team."""
    return MessageParser(default_team=_settings().report.default_team)


@lru_cache()
def get_wizard_session_store() -> WizardSessionStore:
    """Provide shared SQLite wizard session store."""
    settings = _settings()
    return WizardSessionStore(
        settings.wizard.session_db_path,
        ttl_seconds=settings.wizard.session_ttl_seconds,
    )


@lru_cache()
def get_entry_wizard() -> EntryWizard:
    return EntryWizard(get_wizard_session_store())


@lru_cache()
def get_apps_script_client() -> AppsScriptClient:
    """Provide the Apps Script backend client."""
    return AppsScriptClient(_settings().apps_script)


@lru_cache()
def get_telegram_client() -> TelegramBotClient:
    """Provide the Telegram Bot API client."""
    return TelegramBotClient(_settings().telegram.bot_token)


@lru_cache()
def get_mailer() -> SmtpMailer:
    return SmtpMailer(_settings().smtp)


@lru_cache()
def get_admin_notifier() -> AdminNotifier:
    """Provide the admin alert sender; it only logs without an admin chat id."""
    settings = _settings()
    return AdminNotifier(
        get_telegram_client(),
        settings.telegram.admin_chat_id,
        timezone_name=settings.report.timezone,
    )


@lru_cache()
def get_message_dispatcher() -> MessageDispatcher:
    """Build the process-wide dispatcher so message stats survive across requests."""
    settings = _settings()
    return MessageDispatcher(
        parser=get_message_parser(),
        wizard=get_entry_wizard(),
        apps_script=get_apps_script_client(),
        mailer=get_mailer(),
        notifier=get_admin_notifier(),
        report_settings=settings.report,
        default_recipients=settings.smtp.recipients,
    )


__all__ = [
    "get_admin_notifier",
    "get_apps_script_client",
    "get_entry_wizard",
    "get_mailer",
    "get_message_dispatcher",
    "get_message_parser",
    "get_telegram_client",
    "get_wizard_session_store",
]
