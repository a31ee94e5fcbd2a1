"""
Pytest configuration and shared fixtures.

Puts src on the import path, switches logging to a quiet test
configuration with an in-memory metrics backend, and provides fake
streaming connections and credentials.
"""

import os
import sys
from pathlib import Path

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))
sys.path.insert(0, str(Path(__file__).parent))

# Configure test environment
os.environ['ENVIRONMENT'] = 'test'

from config.structs import Credential, WebSocketConfig
from infrastructure.logging.factory import LoggerFactory
from infrastructure.logging.structs import ConsoleBackendConfig, LoggingConfig, MetricsBackendConfig

from helpers.fake_websocket import FakeConnector, auth_responder

TEST_API_KEY = "test-api-key-0001"
TEST_API_SECRET = "test-api-secret-0001"


def quiet_logging_config() -> LoggingConfig:
    return LoggingConfig(
        environment="test",
        console=ConsoleBackendConfig(min_level="WARNING"),
        metrics=MetricsBackendConfig(),
    )


@pytest.fixture(autouse=True)
def setup_test_logging():
    """Fresh logging configuration (and metric totals) for every test."""
    LoggerFactory.configure(quiet_logging_config())
    yield
    LoggerFactory.clear_cache()


@pytest.fixture
def metrics():
    """In-memory metrics backend shared by every logger."""
    return LoggerFactory.get_metrics()


@pytest.fixture
def credential():
    return Credential(key_id=TEST_API_KEY, secret=TEST_API_SECRET)


@pytest.fixture
def ws_config():
    """Fast timings so reconnect scenarios finish within milliseconds."""
    return WebSocketConfig(
        connect_timeout=1.0,
        ping_interval=30.0,
        ping_timeout=5.0,
        close_timeout=0.5,
        reconnect_delay=0.01,
        reconnect_backoff=2.0,
        max_reconnect_delay=0.05,
        reconnect_jitter=0.0,
        stability_threshold=30.0,
    )


@pytest.fixture
def connector():
    """Connection factory producing FakeWebSocket instances."""
    return FakeConnector()


@pytest.fixture
def auth_connector():
    """Connection factory whose sockets accept every auth handshake."""
    return FakeConnector(responder=auth_responder(success=True))
