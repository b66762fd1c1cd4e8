"""
SAML login handoff.

Takes an anonymous browser through identity verification at its
organization's IdP (brokered by SSOReady) and back into a local session.

Usage:
    from handoff import LoginHandoffController, SSOReadyBrokerClient

    broker = SSOReadyBrokerClient(api_key="ssoready_sk_...")
    controller = LoginHandoffController(broker)

    response = await controller.initiate_handoff("john.doe@example.com")
"""

from handoff.broker import (
    BrokerClient,
    BrokerError,
    BrokerRequestError,
    BrokerResponseError,
    BrokerUnavailableError,
    RedeemedIdentity,
    SSOReadyBrokerClient,
)
from handoff.controller import HandoffState, LoginHandoffController
from handoff.exceptions import (
    CodeRedemptionError,
    ErrorCode,
    HandoffError,
    HandoffInitiationError,
    InvalidOrganizationInput,
    MissingAccessCode,
)
from handoff.organizations import EmailDomainResolver, OrganizationResolver
from handoff.sessions import (
    CookieSessionStore,
    PlaintextSessionCodec,
    SessionCodec,
    SignedSessionCodec,
)

__all__ = [
    # Controller
    "LoginHandoffController",
    "HandoffState",
    # Broker
    "BrokerClient",
    "SSOReadyBrokerClient",
    "RedeemedIdentity",
    "BrokerError",
    "BrokerRequestError",
    "BrokerUnavailableError",
    "BrokerResponseError",
    # Organizations
    "OrganizationResolver",
    "EmailDomainResolver",
    # Sessions
    "CookieSessionStore",
    "SessionCodec",
    "PlaintextSessionCodec",
    "SignedSessionCodec",
    # Errors
    "ErrorCode",
    "HandoffError",
    "InvalidOrganizationInput",
    "HandoffInitiationError",
    "MissingAccessCode",
    "CodeRedemptionError",
]
