"""
Application configuration models and helpers.

Centralizes settings management so the webhook API, the message dispatcher and
operator scripts share a consistent configuration surface.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

import os

from pydantic import AnyHttpUrl, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _load_env_file(path: str = ".env") -> None:
    """Best-effort load key=value pairs from a .env file without extra deps."""
    env_path = Path(path)
    if not env_path.exists():
        return
    for raw_line in env_path.read_text().splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.partition("=")
        if not sep:
            continue
        key = key.strip()
        if not key or key in os.environ:
            continue
        cleaned = value.strip().strip('"').strip("'")
        os.environ[key] = cleaned


_load_env_file()

_SETTINGS_CONFIG = SettingsConfigDict(extra="ignore")


class TelegramSettings(BaseSettings):
    """Bot credentials and the operator chat used for alerts."""

    model_config = _SETTINGS_CONFIG

    bot_token: str = Field(..., validation_alias="TELEGRAM_BOT_TOKEN")
    admin_chat_id: Optional[str] = Field(
        None,
        validation_alias="TELEGRAM_ADMIN_CHAT_ID",
        description="Chat that receives operational alerts.",
    )
    webhook_secret: Optional[str] = Field(
        None,
        validation_alias="TELEGRAM_WEBHOOK_SECRET",
        description="When set, webhook calls must carry it as the token parameter.",
    )


class AppsScriptSettings(BaseSettings):
    """Spreadsheet backend exposed as a Google Apps Script web app."""

    model_config = _SETTINGS_CONFIG

    script_url: AnyHttpUrl = Field(..., validation_alias="APPS_SCRIPT_URL")
    timeout_seconds: float = Field(30.0, validation_alias="APPS_SCRIPT_TIMEOUT")
    retry_attempts: int = Field(3, validation_alias="APPS_SCRIPT_RETRY_ATTEMPTS")


class SmtpSettings(BaseSettings):
    """Outbound mail configuration for report delivery."""

    model_config = _SETTINGS_CONFIG

    server: Optional[str] = Field(None, validation_alias="SMTP_SERVER")
    port: int = Field(587, validation_alias="SMTP_PORT")
    username: Optional[str] = Field(None, validation_alias="SMTP_USERNAME")
    password: Optional[str] = Field(None, validation_alias="SMTP_PASSWORD")
    from_email: Optional[str] = Field(None, validation_alias="FROM_EMAIL")
    default_recipients: str = Field(
        "",
        validation_alias="DEFAULT_RECIPIENTS",
        description="Comma-separated addresses copied on every report email.",
    )

    @property
    def enabled(self) -> bool:
        return bool(self.server and self.username and self.password and self.from_email)

    @property
    def recipients(self) -> tuple[str, ...]:
        return tuple(
            address.strip()
            for address in self.default_recipients.split(",")
            if address.strip()
        )


class WizardSettings(BaseSettings):
    """Guided entry session storage."""

    model_config = _SETTINGS_CONFIG

    session_db_path: str = Field(
        "data/wizard.db", validation_alias="WIZARD_SESSION_DB_PATH"
    )
    session_ttl_seconds: Optional[int] = Field(
        None,
        validation_alias="WIZARD_SESSION_TTL",
        description="Abandoned sessions are pruned after this many seconds. Unset keeps them.",
    )

    @field_validator("session_ttl_seconds", mode="before")
    @classmethod
    def _blank_ttl_is_none(cls, value: object) -> object:
        """Treat an empty WIZARD_SESSION_TTL as 'never expire'."""
        if isinstance(value, str) and not value.strip():
            return None
        return value


class ReportSettings(BaseSettings):
    """Presentation defaults for generated reports."""

    model_config = _SETTINGS_CONFIG

    company_name: str = Field("Emperor's Bot Service", validation_alias="COMPANY_NAME")
    default_team: str = Field("Eldoret", validation_alias="DEFAULT_TEAM")
    timezone: str = Field("Africa/Nairobi", validation_alias="REPORT_TIMEZONE")


class AppSettings(BaseSettings):
    """Root settings object for the bot service."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    environment: str = Field("development", validation_alias="APP_ENV")
    log_level: str = Field("INFO", validation_alias="APP_LOG_LEVEL")
    telegram: TelegramSettings = Field(default_factory=TelegramSettings)
    apps_script: AppsScriptSettings = Field(default_factory=AppsScriptSettings)
    smtp: SmtpSettings = Field(default_factory=SmtpSettings)
    wizard: WizardSettings = Field(default_factory=WizardSettings)
    report: ReportSettings = Field(default_factory=ReportSettings)


@lru_cache()
def get_settings() -> AppSettings:
    """Return a cached settings object."""
    return AppSettings()  # type: ignore[call-arg]


__all__ = [
    "AppSettings",
    "AppsScriptSettings",
    "ReportSettings",
    "SmtpSettings",
    "TelegramSettings",
    "WizardSettings",
    "get_settings",
]
