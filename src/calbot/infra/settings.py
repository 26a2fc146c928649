"""Runtime configuration loaded from environment variables.

Required:
- LINE_ACCESS_TOKEN: channel access token for the Messaging API
- LINE_CHANNEL_SECRET: channel secret, used to verify webhook signatures
- GOOGLE_AI_API_KEY: API key for the Gemini extraction service
- DATABASE_URL: PostgreSQL DSN
- STORAGE_ROOT: directory backing the object storage
- APP_ENV: local | development | production

Optional:
- FRONTEND_URL: base URL for management deep links (links omitted if unset)
- AI_MODEL: Gemini model name (default: gemini-2.0-flash)
- DEFAULT_TIMEZONE: IANA zone used to resolve relative dates (default: Asia/Taipei)
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

DEFAULT_AI_MODEL = "gemini-2.0-flash"
DEFAULT_TIMEZONE = "Asia/Taipei"

REQUIRED_VARS = (
    "LINE_ACCESS_TOKEN",
    "LINE_CHANNEL_SECRET",
    "GOOGLE_AI_API_KEY",
    "DATABASE_URL",
    "STORAGE_ROOT",
    "APP_ENV",
)

APP_ENVS = ("local", "development", "production")


class ConfigurationError(RuntimeError):
    """Raised when required configuration is missing or invalid."""

    def __init__(self, message: str, missing: tuple[str, ...] = ()):
        super().__init__(message)
        self.missing = missing


@dataclass(frozen=True)
class Settings:
    line_access_token: str
    line_channel_secret: str
    google_ai_api_key: str
    database_url: str
    storage_root: str
    app_env: str
    frontend_url: str | None = None
    ai_model: str = DEFAULT_AI_MODEL
    default_timezone: str = DEFAULT_TIMEZONE


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    """Read settings from the environment.

    Args:
        environ: Mapping to read from. Defaults to os.environ.

    Returns:
        Populated Settings.

    Raises:
        ConfigurationError: If any required variable is missing, APP_ENV is
            unknown, or DEFAULT_TIMEZONE is not a valid IANA zone.
    """
    env = os.environ if environ is None else environ

    missing = tuple(name for name in REQUIRED_VARS if not env.get(name, "").strip())
    if missing:
        raise ConfigurationError(
            f"Missing required environment variables: {', '.join(missing)}",
            missing=missing,
        )

    app_env = env["APP_ENV"].strip().lower()
    if app_env not in APP_ENVS:
        raise ConfigurationError(f"APP_ENV must be one of {', '.join(APP_ENVS)}")

    tz_name = env.get("DEFAULT_TIMEZONE", "").strip() or DEFAULT_TIMEZONE
    try:
        ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        raise ConfigurationError(f"DEFAULT_TIMEZONE is not a valid zone: {tz_name}")

    frontend_url = env.get("FRONTEND_URL", "").strip().rstrip("/") or None

    return Settings(
        line_access_token=env["LINE_ACCESS_TOKEN"].strip(),
        line_channel_secret=env["LINE_CHANNEL_SECRET"].strip(),
        google_ai_api_key=env["GOOGLE_AI_API_KEY"].strip(),
        database_url=env["DATABASE_URL"].strip(),
        storage_root=env["STORAGE_ROOT"].strip(),
        app_env=app_env,
        frontend_url=frontend_url,
        ai_model=env.get("AI_MODEL", "").strip() or DEFAULT_AI_MODEL,
        default_timezone=tz_name,
    )
