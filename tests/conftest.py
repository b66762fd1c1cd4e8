"""
Pytest configuration and shared fixtures for the SAML handoff tests.

This module provides common fixtures used across all test files:
- A fake broker standing in for SSOReady
- An app factory wired to the fake broker
- Test client setup
"""

import os
import sys
from unittest.mock import MagicMock, patch

import pytest

# Environment setup before any imports
os.environ["ENVIRONMENT"] = "development"
os.environ["LOG_LEVEL"] = "WARNING"
# A syntactically valid key satisfies config validation; broker calls are faked
os.environ["SSOREADY_API_KEY"] = "ssoready_sk_test_key_for_unit_tests"
os.environ.pop("SENTRY_DSN", None)
os.environ.pop("SESSION_SECRET_KEY", None)

# Ensure project root and tests directory are in path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))
sys.path.insert(0, os.path.abspath(os.path.dirname(__file__)))

from fakes import FakeBroker, make_settings  # noqa: E402


@pytest.fixture
def fake_broker():
    """Broker double that knows the code 'abc123' for john.doe@example.com."""
    return FakeBroker()


@pytest.fixture
def app_factory(fake_broker):
    """Build apps wired to the fake broker."""
    from server import create_app

    def factory(settings=None, **kwargs):
        kwargs.setdefault("broker", fake_broker)
        return create_app(settings=settings or make_settings(), **kwargs)

    return factory


@pytest.fixture
def client(app_factory):
    """FastAPI test client fixture."""
    from fastapi.testclient import TestClient

    return TestClient(app_factory())


@pytest.fixture
def mock_sentry():
    """Mock Sentry SDK."""
    with patch("sentry_sdk.capture_exception") as capture_mock, \
         patch("sentry_sdk.get_client") as client_mock:
        mock_client = MagicMock()
        mock_client.is_active.return_value = True
        client_mock.return_value = mock_client
        yield {"capture": capture_mock, "client": client_mock}


# Test environment cleanup
@pytest.fixture(autouse=True)
def reset_environment():
    """Reset environment variables after each test."""
    original_env = os.environ.copy()
    yield
    os.environ.clear()
    os.environ.update(original_env)
