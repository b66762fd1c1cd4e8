"""
Login handoff controller.

Drives a browser through SAML single sign-on via the broker:

    Anonymous
      │ initiate_handoff(email)          resolve organization, ask broker for IdP URL
      ▼
    AwaitingIdPRedirect ── 302 to IdP ──► (browser ↔ IdP ↔ broker, outside this service)
      ▼
    AwaitingCallback
      │ complete_handoff(code)           redeem one-time code with broker
      ▼
    Authenticated ── logout() ──► Anonymous

Any broker failure or malformed callback ends the request in Failed and is
raised as a HandoffError. Each operation commits its redirect or session
write only after the broker call has succeeded, so a failed request leaves
the browser exactly as it was.

The controller holds no per-request state; the broker client, organization
resolver and session store are injected at construction.
"""

import logging
from enum import Enum
from typing import Optional
from urllib.parse import urlparse

from starlette import status
from starlette.requests import Request
from starlette.responses import RedirectResponse

from handoff.broker import BrokerClient, BrokerError, RedeemedIdentity
from handoff.exceptions import (
    CodeRedemptionError,
    HandoffInitiationError,
    MissingAccessCode,
)
from handoff.organizations import EmailDomainResolver, OrganizationResolver
from handoff.sessions import CookieSessionStore

logger = logging.getLogger(__name__)


class HandoffState(str, Enum):
    """States of a single browser's login handoff."""

    ANONYMOUS = "anonymous"
    AWAITING_IDP_REDIRECT = "awaiting_idp_redirect"
    AWAITING_CALLBACK = "awaiting_callback"
    AUTHENTICATED = "authenticated"
    FAILED = "failed"


def _log_transition(from_state: HandoffState, to_state: HandoffState, **extra) -> None:
    level = logging.WARNING if to_state == HandoffState.FAILED else logging.INFO
    logger.log(
        level,
        f"Handoff {from_state.value} -> {to_state.value}",
        extra={"event": "handoff_transition", "from_state": from_state.value,
               "to_state": to_state.value, **extra},
    )


class LoginHandoffController:
    """Orchestrates the redirect-out / redirect-back SAML login cycle."""

    def __init__(
        self,
        broker: BrokerClient,
        resolver: Optional[OrganizationResolver] = None,
        sessions: Optional[CookieSessionStore] = None,
        landing_path: str = "/",
    ):
        self.broker = broker
        self.resolver = resolver or EmailDomainResolver()
        self.sessions = sessions or CookieSessionStore()
        self.landing_path = landing_path

    def current_identity(self, request: Request) -> Optional[str]:
        """Identity of the browser making this request, or None if anonymous."""
        return self.sessions.load(request)

    async def initiate_handoff(
        self,
        user_input: Optional[str],
        state: Optional[str] = None,
    ) -> RedirectResponse:
        """
        Start a SAML login for the organization the user input belongs to.

        Args:
            user_input: Raw identifier submitted by the user (an email address)
            state: Optional opaque value the broker echoes back on redemption

        Returns:
            A 302 redirect to the broker-resolved IdP URL

        Raises:
            InvalidOrganizationInput: No organization could be resolved
            HandoffInitiationError: The broker could not produce a redirect URL
        """
        organization = self.resolver.resolve(user_input)

        try:
            redirect_url = await self.broker.resolve_redirect_url(organization, state=state)
        except BrokerError as e:
            _log_transition(
                HandoffState.ANONYMOUS,
                HandoffState.FAILED,
                organization=organization,
                broker_error=e.error_code,
            )
            raise HandoffInitiationError(
                organization=organization,
                internal_message=e.message,
                original_error=e,
            ) from e

        parsed = urlparse(redirect_url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            _log_transition(
                HandoffState.ANONYMOUS,
                HandoffState.FAILED,
                organization=organization,
                broker_error="INVALID_REDIRECT_URL",
            )
            raise HandoffInitiationError(
                organization=organization,
                internal_message="Broker returned a redirect URL that is not absolute http(s)",
            )

        _log_transition(
            HandoffState.ANONYMOUS,
            HandoffState.AWAITING_IDP_REDIRECT,
            organization=organization,
        )
        return RedirectResponse(url=redirect_url, status_code=status.HTTP_302_FOUND)

    async def redeem(self, code: Optional[str]) -> RedeemedIdentity:
        """
        Redeem a one-time access code exactly once.

        Raises:
            MissingAccessCode: The code is absent or empty
            CodeRedemptionError: The broker refused the code or is unavailable
        """
        if not code or not code.strip():
            _log_transition(
                HandoffState.AWAITING_CALLBACK,
                HandoffState.FAILED,
                reason="missing_access_code",
            )
            raise MissingAccessCode()

        try:
            identity = await self.broker.redeem_access_code(code)
        except BrokerError as e:
            _log_transition(
                HandoffState.AWAITING_CALLBACK,
                HandoffState.FAILED,
                broker_error=e.error_code,
            )
            raise CodeRedemptionError(
                internal_message=e.message,
                original_error=e,
            ) from e

        return identity

    async def complete_handoff(self, code: Optional[str]) -> RedirectResponse:
        """
        Finish a SAML login from the broker callback.

        Returns:
            A 302 redirect to the landing page carrying the new session cookie

        Raises:
            MissingAccessCode: The callback carried no access code
            CodeRedemptionError: Redemption failed; no session is established
        """
        identity = await self.redeem(code)

        response = RedirectResponse(url=self.landing_path, status_code=status.HTTP_302_FOUND)
        self.sessions.establish(response, identity.email)

        _log_transition(
            HandoffState.AWAITING_CALLBACK,
            HandoffState.AUTHENTICATED,
            identity=identity.email,
            organization=identity.organization_external_id,
            saml_flow_id=identity.saml_flow_id,
        )
        return response

    def logout(self, request: Optional[Request] = None) -> RedirectResponse:
        """
        Destroy the session and return to the landing page.

        Always succeeds, including for browsers that are already anonymous
        or carry a cookie that no longer decodes.
        """
        had_session = request is not None and self.sessions.has_session(request)

        response = RedirectResponse(url=self.landing_path, status_code=status.HTTP_302_FOUND)
        self.sessions.destroy(response)

        if had_session:
            _log_transition(HandoffState.AUTHENTICATED, HandoffState.ANONYMOUS)
        else:
            logger.debug("Logout requested without an active session")
        return response
