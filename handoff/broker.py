"""
SSO broker client.

The broker (SSOReady) sits between this service and each customer's identity
provider. The handoff only needs two operations from it:

- resolve_redirect_url: organization -> IdP login URL the browser is sent to
- redeem_access_code: one-time SAML access code -> verified identity

BrokerClient is the contract the login handoff controller depends on.
SSOReadyBrokerClient implements it against the SSOReady REST API with httpx.
Any other implementation (a test double, another broker) can be injected.

Security Considerations:
- Access codes are single use; the broker is the source of truth for that
- Access codes are never logged, stored or retried by this client
- The API key is sent as a bearer token and never logged
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import httpx
from pydantic import BaseModel, Field, ValidationError

from handoff.config import BrokerSettings
from handoff.utils.logging import Timer

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.ssoready.com"


# =============================================================================
# Models
# =============================================================================


class RedeemedIdentity(BaseModel):
    """Verified end-user identity returned by a successful code redemption."""

    email: str = Field(..., min_length=1, description="Verified user email")
    state: Optional[str] = Field(
        default=None, description="Relay state passed when the handoff was initiated"
    )
    attributes: Dict[str, str] = Field(
        default_factory=dict, description="SAML attributes asserted by the IdP"
    )
    organization_id: Optional[str] = Field(
        default=None, description="Broker-side organization ID"
    )
    organization_external_id: Optional[str] = Field(
        default=None, description="Organization identifier this service resolved"
    )
    saml_flow_id: Optional[str] = Field(
        default=None, description="Broker-side ID of the SAML login flow"
    )


# =============================================================================
# Errors
# =============================================================================


class BrokerError(Exception):
    """Base class for broker call failures."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or "BROKER_ERROR"
        self.status_code = status_code
        self.details = details or {}


class BrokerRequestError(BrokerError):
    """The broker rejected the request (unknown organization, invalid or used code)."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, "BROKER_REQUEST_REJECTED", status_code, details)


class BrokerUnavailableError(BrokerError):
    """The broker could not be reached or failed on its side."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, "BROKER_UNAVAILABLE", status_code, details)


class BrokerResponseError(BrokerError):
    """The broker answered with a body this client cannot use."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "BROKER_BAD_RESPONSE", None, details)


# =============================================================================
# Contract
# =============================================================================


class BrokerClient(ABC):
    """The two broker operations the login handoff depends on."""

    @abstractmethod
    async def resolve_redirect_url(
        self,
        organization_external_id: str,
        state: Optional[str] = None,
    ) -> str:
        """
        Get the URL that starts a SAML login at the organization's IdP.

        Args:
            organization_external_id: Organization identifier resolved from user input
            state: Optional opaque value echoed back on redemption

        Returns:
            Absolute IdP redirect URL

        Raises:
            BrokerError: If the broker cannot produce a redirect URL
        """

    @abstractmethod
    async def redeem_access_code(self, code: str) -> RedeemedIdentity:
        """
        Exchange a one-time SAML access code for the verified identity.

        Raises:
            BrokerError: If the code is invalid, expired, already used,
                or the broker is unavailable
        """

    async def close(self) -> None:
        """Release any held resources."""


# =============================================================================
# SSOReady implementation
# =============================================================================


class SSOReadyBrokerClient(BrokerClient):
    """
    BrokerClient backed by the SSOReady REST API.

    Each operation is a single POST with no retries; failures propagate
    immediately as BrokerError subclasses.
    """

    REDIRECT_PATH = "/v1/saml/redirect"
    REDEEM_PATH = "/v1/saml/redeem"

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 10.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        if not api_key:
            raise ValueError("SSOReady API key is required")

        self.base_url = base_url.rstrip("/")
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=timeout)
        self._headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    @classmethod
    def from_settings(
        cls,
        settings: BrokerSettings,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> "SSOReadyBrokerClient":
        api_key = settings.ssoready_api_key.get_secret_value() if settings.ssoready_api_key else ""
        return cls(
            api_key=api_key,
            base_url=settings.ssoready_base_url,
            timeout=settings.broker_timeout_seconds,
            http_client=http_client,
        )

    async def resolve_redirect_url(
        self,
        organization_external_id: str,
        state: Optional[str] = None,
    ) -> str:
        payload: Dict[str, Any] = {"organizationExternalId": organization_external_id}
        if state:
            payload["state"] = state

        with Timer("broker.resolve_redirect_url", logger):
            data = await self._post(self.REDIRECT_PATH, payload)

        redirect_url = data.get("redirectUrl")
        if not isinstance(redirect_url, str) or not redirect_url:
            raise BrokerResponseError(
                "Broker response did not include a redirect URL",
                details={"organization_external_id": organization_external_id},
            )
        return redirect_url

    async def redeem_access_code(self, code: str) -> RedeemedIdentity:
        with Timer("broker.redeem_access_code", logger):
            data = await self._post(self.REDEEM_PATH, {"samlAccessCode": code})

        email = data.get("email")
        if not isinstance(email, str) or not email:
            raise BrokerResponseError("Broker response did not include a verified email")

        attributes = data.get("attributes") or {}
        if not isinstance(attributes, dict):
            raise BrokerResponseError("Broker response carried malformed SAML attributes")

        try:
            return RedeemedIdentity(
                email=email,
                state=data.get("state") or None,
                attributes={str(k): str(v) for k, v in attributes.items()},
                organization_id=data.get("organizationId"),
                organization_external_id=data.get("organizationExternalId"),
                saml_flow_id=data.get("samlFlowId"),
            )
        except ValidationError as e:
            fields = sorted({str(err["loc"][0]) for err in e.errors() if err.get("loc")})
            raise BrokerResponseError(
                "Broker response did not match the expected identity shape",
                details={"fields": fields},
            ) from e

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _post(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"

        try:
            response = await self._client.post(url, json=payload, headers=self._headers)
        except httpx.TimeoutException as e:
            raise BrokerUnavailableError(
                f"Broker request timed out: {type(e).__name__}",
                details={"path": path},
            ) from e
        except httpx.HTTPError as e:
            raise BrokerUnavailableError(
                f"Broker request failed: {type(e).__name__}",
                details={"path": path},
            ) from e

        if response.status_code >= 500:
            raise BrokerUnavailableError(
                f"Broker returned HTTP {response.status_code}",
                status_code=response.status_code,
                details={"path": path},
            )

        if response.status_code >= 400:
            raise BrokerRequestError(
                self._error_message(response),
                status_code=response.status_code,
                details={"path": path},
            )

        try:
            data = response.json()
        except ValueError as e:
            raise BrokerResponseError(
                "Broker returned a non-JSON response", details={"path": path}
            ) from e

        if not isinstance(data, dict):
            raise BrokerResponseError(
                "Broker returned an unexpected JSON document", details={"path": path}
            )
        return data

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            body = None

        if isinstance(body, dict) and isinstance(body.get("message"), str):
            return f"Broker rejected request (HTTP {response.status_code}): {body['message']}"
        return f"Broker rejected request (HTTP {response.status_code})"
