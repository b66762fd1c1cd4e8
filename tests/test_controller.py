"""
Tests for the login handoff controller.

Covers the handoff state machine end to end against an in-memory broker:
initiation, callback redemption, single-use codes and logout.
"""

import os
import sys
import unittest

import httpx

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))
sys.path.insert(0, os.path.abspath(os.path.dirname(__file__)))

from starlette.requests import Request

from fakes import IDP_REDIRECT_URL, FakeBroker
from handoff.broker import BrokerRequestError, BrokerUnavailableError, SSOReadyBrokerClient
from handoff.controller import HandoffState, LoginHandoffController
from handoff.exceptions import (
    CodeRedemptionError,
    HandoffInitiationError,
    InvalidOrganizationInput,
    MissingAccessCode,
)
from handoff.organizations import EmailDomainResolver
from handoff.sessions import CookieSessionStore, SignedSessionCodec


def request_with_cookie(cookie_header: str = "") -> Request:
    headers = [(b"cookie", cookie_header.encode())] if cookie_header else []
    return Request({"type": "http", "method": "GET", "path": "/", "headers": headers})


def session_cookie(response) -> str:
    """Extract the raw Set-Cookie header for the session cookie."""
    return response.headers.get("set-cookie", "")


class ControllerTestCase(unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        self.broker = FakeBroker()
        self.controller = LoginHandoffController(
            broker=self.broker,
            resolver=EmailDomainResolver(),
            sessions=CookieSessionStore(),
        )


class TestInitiateHandoff(ControllerTestCase):

    async def test_valid_email_redirects_to_broker_url(self):
        response = await self.controller.initiate_handoff("john.doe@example.com")

        self.assertEqual(response.status_code, 302)
        self.assertEqual(response.headers["location"], IDP_REDIRECT_URL)
        self.assertEqual(self.broker.redirect_calls, ["example.com"])

    async def test_initiation_sets_no_session(self):
        response = await self.controller.initiate_handoff("john.doe@example.com")

        self.assertNotIn("set-cookie", response.headers)

    async def test_invalid_input_makes_no_broker_call(self):
        for value in (None, "", "not-an-email", "john.doe@"):
            with self.subTest(value=value):
                with self.assertRaises(InvalidOrganizationInput):
                    await self.controller.initiate_handoff(value)

        self.assertEqual(self.broker.redirect_calls, [])

    async def test_broker_rejection_is_initiation_error(self):
        self.broker.redirect_error = BrokerRequestError("organization not found", status_code=404)

        with self.assertRaises(HandoffInitiationError) as ctx:
            await self.controller.initiate_handoff("john.doe@unknown.test")

        self.assertEqual(ctx.exception.status_code, 502)
        self.assertEqual(ctx.exception.details["organization"], "unknown.test")
        self.assertIs(ctx.exception.original_error, self.broker.redirect_error)

    async def test_broker_outage_is_initiation_error(self):
        self.broker.redirect_error = BrokerUnavailableError("Broker request timed out")

        with self.assertRaises(HandoffInitiationError):
            await self.controller.initiate_handoff("john.doe@example.com")

        self.assertEqual(len(self.broker.redirect_calls), 1)

    async def test_non_http_redirect_url_is_initiation_error(self):
        self.broker.redirect_url = "javascript:alert(1)"

        with self.assertRaises(HandoffInitiationError):
            await self.controller.initiate_handoff("john.doe@example.com")


class TestCompleteHandoff(ControllerTestCase):

    async def test_valid_code_sets_session_and_redirects_home(self):
        response = await self.controller.complete_handoff("abc123")

        self.assertEqual(response.status_code, 302)
        self.assertEqual(response.headers["location"], "/")
        self.assertIn("john.doe@example.com", session_cookie(response))
        self.assertEqual(self.broker.redeem_calls, ["abc123"])

    async def test_missing_code_makes_no_broker_call(self):
        for value in (None, "", "  "):
            with self.subTest(value=value):
                with self.assertRaises(MissingAccessCode) as ctx:
                    await self.controller.complete_handoff(value)
                self.assertEqual(ctx.exception.status_code, 400)

        self.assertEqual(self.broker.redeem_calls, [])

    async def test_code_is_single_use(self):
        first = await self.controller.complete_handoff("abc123")
        self.assertIn("john.doe@example.com", session_cookie(first))

        with self.assertRaises(CodeRedemptionError) as ctx:
            await self.controller.complete_handoff("abc123")

        self.assertEqual(ctx.exception.status_code, 401)
        self.assertEqual(self.broker.redeem_calls, ["abc123", "abc123"])

    async def test_unknown_code_is_redemption_error(self):
        with self.assertRaises(CodeRedemptionError):
            await self.controller.complete_handoff("forged-code")

    async def test_broker_outage_is_redemption_error_without_retry(self):
        self.broker.redeem_error = BrokerUnavailableError("Broker returned HTTP 503", status_code=503)

        with self.assertRaises(CodeRedemptionError) as ctx:
            await self.controller.complete_handoff("abc123")

        self.assertIsInstance(ctx.exception.original_error, BrokerUnavailableError)
        self.assertEqual(self.broker.redeem_calls, ["abc123"])

    async def test_redeem_returns_identity(self):
        identity = await self.controller.redeem("abc123")

        self.assertEqual(identity.email, "john.doe@example.com")
        self.assertEqual(identity.organization_external_id, "example.com")


class TestLogout(ControllerTestCase):

    async def test_logout_clears_session(self):
        response = self.controller.logout(request_with_cookie("email=john.doe@example.com"))

        self.assertEqual(response.status_code, 302)
        self.assertEqual(response.headers["location"], "/")
        self.assertIn("Max-Age=0", session_cookie(response))

    async def test_logout_is_idempotent(self):
        first = self.controller.logout(request_with_cookie())
        second = self.controller.logout(request_with_cookie())

        for response in (first, second):
            self.assertEqual(response.status_code, 302)
            self.assertIn("Max-Age=0", session_cookie(response))

    async def test_logout_without_request(self):
        response = self.controller.logout()
        self.assertEqual(response.status_code, 302)

    async def test_logout_with_undecodable_signed_cookie(self):
        controller = LoginHandoffController(
            broker=self.broker,
            sessions=CookieSessionStore(codec=SignedSessionCodec("k" * 40)),
        )
        request = Request({
            "type": "http",
            "method": "GET",
            "path": "/logout",
            "headers": [(b"cookie", b"email=YWJj.\xe9")],
        })

        response = controller.logout(request)

        self.assertEqual(response.status_code, 302)
        self.assertIn("Max-Age=0", session_cookie(response))


class TestMalformedRedemption(unittest.IsolatedAsyncioTestCase):
    """Broker answers that cannot be turned into an identity."""

    async def asyncSetUp(self):
        self.http_client = httpx.AsyncClient(transport=httpx.MockTransport(
            lambda request: httpx.Response(200, json={"email": "a@b.c", "attributes": ["x"]})
        ))
        self.controller = LoginHandoffController(
            broker=SSOReadyBrokerClient(
                api_key="ssoready_sk_test_key_for_unit_tests",
                base_url="https://api.ssoready.test",
                http_client=self.http_client,
            ),
        )

    async def asyncTearDown(self):
        await self.http_client.aclose()

    async def test_malformed_identity_is_a_redemption_failure(self):
        with self.assertRaises(CodeRedemptionError):
            await self.controller.complete_handoff("abc123")


class TestCurrentIdentity(ControllerTestCase):

    async def test_anonymous_without_cookie(self):
        self.assertIsNone(self.controller.current_identity(request_with_cookie()))

    async def test_identity_from_cookie(self):
        request = request_with_cookie("email=john.doe@example.com")
        self.assertEqual(self.controller.current_identity(request), "john.doe@example.com")


class TestHandoffState(unittest.TestCase):

    def test_states(self):
        self.assertEqual(
            [s.value for s in HandoffState],
            ["anonymous", "awaiting_idp_redirect", "awaiting_callback", "authenticated", "failed"],
        )


class TestDefaults(unittest.TestCase):

    def test_default_collaborators(self):
        controller = LoginHandoffController(FakeBroker())
        self.assertIsInstance(controller.resolver, EmailDomainResolver)
        self.assertIsInstance(controller.sessions, CookieSessionStore)
        self.assertEqual(controller.landing_path, "/")


if __name__ == "__main__":
    unittest.main()
