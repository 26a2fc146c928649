"""Tests for environment configuration."""

from __future__ import annotations

import pytest

from calbot.infra.settings import (
    DEFAULT_AI_MODEL,
    DEFAULT_TIMEZONE,
    REQUIRED_VARS,
    ConfigurationError,
    load_settings,
)

BASE_ENV = {
    "LINE_ACCESS_TOKEN": "token",
    "LINE_CHANNEL_SECRET": "secret",
    "GOOGLE_AI_API_KEY": "key",
    "DATABASE_URL": "postgresql://u:p@h/db",
    "STORAGE_ROOT": "/var/lib/calbot",
    "APP_ENV": "production",
}


def test_minimal_env_uses_defaults():
    settings = load_settings(BASE_ENV)

    assert settings.line_channel_secret == "secret"
    assert settings.frontend_url is None
    assert settings.ai_model == DEFAULT_AI_MODEL
    assert settings.default_timezone == DEFAULT_TIMEZONE
    assert settings.app_env == "production"


@pytest.mark.parametrize("name", REQUIRED_VARS)
def test_each_required_variable(name):
    env = {k: v for k, v in BASE_ENV.items() if k != name}

    with pytest.raises(ConfigurationError) as excinfo:
        load_settings(env)

    assert excinfo.value.missing == (name,)
    assert name in str(excinfo.value)


def test_blank_counts_as_missing():
    with pytest.raises(ConfigurationError):
        load_settings({**BASE_ENV, "LINE_CHANNEL_SECRET": "   "})


def test_all_missing_reported_together():
    with pytest.raises(ConfigurationError) as excinfo:
        load_settings({})

    assert excinfo.value.missing == REQUIRED_VARS


def test_unknown_app_env():
    with pytest.raises(ConfigurationError, match="APP_ENV"):
        load_settings({**BASE_ENV, "APP_ENV": "staging"})


def test_invalid_timezone():
    with pytest.raises(ConfigurationError, match="DEFAULT_TIMEZONE"):
        load_settings({**BASE_ENV, "DEFAULT_TIMEZONE": "Mars/Olympus"})


def test_frontend_url_trailing_slash_removed():
    settings = load_settings({**BASE_ENV, "FRONTEND_URL": "https://cal.example.com/"})

    assert settings.frontend_url == "https://cal.example.com"


def test_reads_process_environment(monkeypatch):
    for key, value in BASE_ENV.items():
        monkeypatch.setenv(key, value)
    monkeypatch.setenv("AI_MODEL", "gemini-custom")

    assert load_settings().ai_model == "gemini-custom"
