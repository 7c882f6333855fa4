"""Shared fixtures for ad watchdog tests."""

import pytest

from adwatch.config.models import EmailConfig, WatchdogConfig
from adwatch.logging.context import clear_log_context
from adwatch.notifications import NotificationDispatcher
from adwatch.persistence import close_database, init_database
from adwatch.watchdog import WatchdogCoordinator

from tests.helpers import InMemoryUserDirectory, RecordingMailTransport

ENV_VARS = {
    "SMTP_HOST": "smtp.test.com",
    "SMTP_PORT": "587",
    "SMTP_USER": "watchdog@test.com",
    "SMTP_PASS": "testpass",
    "SMTP_SENDER_NAME": "Test Watchdog",
}

OPTIONAL_ENV_VARS = (
    "SMTP_SENDER_EMAIL",
    "LOG_LEVEL",
    "DATABASE_URL",
    "USER_SERVICE_URL",
    "USER_SERVICE_TOKEN",
)


@pytest.fixture
def mock_env_vars(monkeypatch):
    """Minimal valid environment; optional variables unset."""
    for name, value in ENV_VARS.items():
        monkeypatch.setenv(name, value)
    for name in OPTIONAL_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return dict(ENV_VARS)


@pytest.fixture(autouse=True)
def clean_log_context():
    clear_log_context()
    yield
    clear_log_context()


@pytest.fixture
def database():
    """Fresh in-memory database for each test."""
    init_database("sqlite:///:memory:")
    yield
    close_database()


@pytest.fixture
def file_database(tmp_path):
    """File-backed database, for tests that use several threads."""
    init_database(f"sqlite:///{tmp_path / 'adwatch.db'}")
    yield
    close_database()


@pytest.fixture
def user_directory():
    """Directory with VIP "U", VIP "W" and ordinary user "plain"."""
    directory = InMemoryUserDirectory()
    directory.add_vip("U", email="u@example.com")
    directory.add_vip("W", email="w@example.com")
    directory.add_user("plain", email="plain@example.com")
    return directory


@pytest.fixture
def transport():
    return RecordingMailTransport()


@pytest.fixture
def email_config():
    """Retries without delays."""
    return EmailConfig(max_retries=2, retry_initial_delay=0)


@pytest.fixture
def dispatcher(transport, email_config):
    return NotificationDispatcher(transport=transport, email_config=email_config)


@pytest.fixture
def coordinator(database, user_directory, dispatcher):
    return WatchdogCoordinator(
        user_directory=user_directory,
        dispatcher=dispatcher,
        config=WatchdogConfig(),
    )
