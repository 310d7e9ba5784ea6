"""Expose constructed client wrappers."""

from .apps_script import AppsScriptClient, AppsScriptError, AppsScriptResult
from .mailer import MailDeliveryError, SmtpMailer
from .telegram import TelegramApiError, TelegramBotClient

__all__ = [
    "AppsScriptClient",
    "AppsScriptError",
    "AppsScriptResult",
    "MailDeliveryError",
    "SmtpMailer",
    "TelegramApiError",
    "TelegramBotClient",
]
