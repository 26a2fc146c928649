"""Shared pytest fixtures for calbot tests."""
import sys
sys.dont_write_bytecode = True

import logging  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from calbot.api.factory import create_app  # noqa: E402
from tests.helpers import SETTINGS_ENV, ListHandler, make_services  # noqa: E402


@pytest.fixture
def settings_env(monkeypatch, tmp_path):
    """Complete, valid configuration in the environment."""
    for key, value in SETTINGS_ENV.items():
        monkeypatch.setenv(key, value)
    monkeypatch.setenv("STORAGE_ROOT", str(tmp_path / "storage"))
    return SETTINGS_ENV


@pytest.fixture
def services():
    """Services backed by in-memory fakes."""
    return make_services()


@pytest.fixture
def client(settings_env, services):
    """TestClient whose requests all share the ``services`` fakes.

    Settings still come from the environment, so configuration errors are
    exercised for real.
    """

    def factory(settings):
        services.settings = settings
        return services

    app = create_app(services_factory=factory)
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client


@pytest.fixture
def capture_logs():
    """Attach a collecting handler to a calbot logger by name.

    calbot loggers do not propagate, so caplog cannot see them.
    """
    attached: list[tuple[logging.Logger, ListHandler]] = []

    def _capture(name: str) -> ListHandler:
        handler = ListHandler()
        logger = logging.getLogger(name)
        logger.addHandler(handler)
        attached.append((logger, handler))
        return handler

    yield _capture
    for logger, handler in attached:
        logger.removeHandler(handler)
