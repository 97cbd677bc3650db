"""Shared fixtures for paramretry tests."""

import pytest
import structlog

from paramretry.config import Settings
from paramretry.parameterized.engine import ParameterSpecResolver
from paramretry.parameterized.notification import RecordingNotifier

OVERRIDE_ENV_VARS = ("PARAMETERS", "RETRY_COUNT", "PARAMS_FLAT", "LOG_LEVEL", "LOG_JSON")


@pytest.fixture(autouse=True)
def mock_env_vars(monkeypatch):
    """Clear the override variables so tests never see the caller's environment."""
    for name in OVERRIDE_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    yield
    structlog.contextvars.clear_contextvars()


@pytest.fixture
def settings():
    """Settings without any override."""
    return Settings(parameters=None, retry_count=None, params_flat=False)


@pytest.fixture
def resolver(settings):
    """Resolver using override-free settings."""
    return ParameterSpecResolver(settings=settings)


@pytest.fixture
def notifier():
    """Sink recording every event."""
    return RecordingNotifier()
