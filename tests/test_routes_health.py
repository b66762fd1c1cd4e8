"""
Tests for the /health endpoint.
"""

import os
import sys
import unittest

# Set environment before imports
os.environ.setdefault("SSOREADY_API_KEY", "ssoready_sk_test_key_for_unit_tests")
os.environ["ENVIRONMENT"] = "development"

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))
sys.path.insert(0, os.path.abspath(os.path.dirname(__file__)))

from fastapi.testclient import TestClient

from fakes import FakeBroker, make_settings


class TestHealthEndpoint(unittest.TestCase):
    """Tests for the main /health endpoint."""

    def setUp(self):
        """Set up test client."""
        from server import create_app

        self.broker = FakeBroker()
        self.client = TestClient(create_app(settings=make_settings(), broker=self.broker))

    def test_health_returns_200(self):
        """Health endpoint should return 200 status code."""
        response = self.client.get("/health")
        self.assertEqual(response.status_code, 200)

    def test_health_returns_required_fields(self):
        """Health response should contain required fields."""
        data = self.client.get("/health").json()

        self.assertEqual(data["status"], "healthy")
        self.assertEqual(data["service"], "saml-handoff")
        self.assertEqual(data["environment"], "development")
        self.assertIn("timestamp", data)
        self.assertIn("version", data)
        self.assertTrue(data["broker"]["configured"])
        self.assertEqual(data["broker"]["base_url"], "https://api.ssoready.com")

    def test_sentry_unconfigured(self):
        """Sentry should report unconfigured without a DSN."""
        data = self.client.get("/health").json()
        self.assertEqual(data["sentry"]["status"], "unconfigured")

    def test_health_does_not_call_broker(self):
        """Health checks must not touch the broker."""
        self.client.get("/health")
        self.assertEqual(self.broker.redirect_calls, [])
        self.assertEqual(self.broker.redeem_calls, [])


class TestModuleLevelApp(unittest.TestCase):
    """The module-level app is built from the environment."""

    def test_health_on_default_app(self):
        from server import app

        client = TestClient(app)
        response = client.get("/health")

        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.json()["broker"]["configured"])


if __name__ == "__main__":
    unittest.main()
