"""
Exception classes for the SAML login handoff.

Every failure of a handoff operation is a HandoffError carrying the HTTP
status code and machine-readable error code the web layer should answer with.
The web layer never completes a redirect or writes a session once one of these
has been raised.

Exception Hierarchy:
    HandoffError (base, 500)
    ├── InvalidOrganizationInput (400)
    ├── MissingAccessCode (400)
    ├── HandoffInitiationError (502)
    └── CodeRedemptionError (401)
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(str, Enum):
    """Standardized error codes for handoff failure responses."""

    INTERNAL_ERROR = "INTERNAL_ERROR"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"

    INVALID_ORGANIZATION_INPUT = "INVALID_ORGANIZATION_INPUT"
    MISSING_ACCESS_CODE = "MISSING_ACCESS_CODE"
    HANDOFF_INITIATION_FAILED = "HANDOFF_INITIATION_FAILED"
    CODE_REDEMPTION_FAILED = "CODE_REDEMPTION_FAILED"


class HandoffError(Exception):
    """
    Base exception class for all handoff errors.

    Attributes:
        message: Human-readable error message (safe for external display).
        error_code: Machine-readable error code from ErrorCode enum.
        status_code: HTTP status code to return.
        details: Additional context about the error (optional).
        internal_message: Detailed message for logging (not exposed to clients).
    """

    status_code: int = 500
    default_error_code: ErrorCode = ErrorCode.INTERNAL_ERROR
    default_message: str = "An unexpected error occurred"

    def __init__(
        self,
        message: Optional[str] = None,
        error_code: Optional[ErrorCode] = None,
        details: Optional[Dict[str, Any]] = None,
        internal_message: Optional[str] = None,
    ):
        self.message = message or self.default_message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        self.internal_message = internal_message
        super().__init__(self.message)

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code.value!r}, "
            f"status_code={self.status_code})"
        )


# =============================================================================
# Initiation Errors
# =============================================================================

class InvalidOrganizationInput(HandoffError):
    """
    Raised when no organization can be resolved from the user's input.

    No broker call is made and no redirect is issued.
    """

    status_code = 400
    default_error_code = ErrorCode.INVALID_ORGANIZATION_INPUT
    default_message = "Enter an email address that includes your organization's domain"

    def __init__(
        self,
        message: Optional[str] = None,
        field: Optional[str] = None,
        value: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        internal_message: Optional[str] = None,
    ):
        details = details or {}
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = value[:100] + "..." if len(value) > 100 else value

        super().__init__(
            message=message,
            details=details,
            internal_message=internal_message,
        )


class HandoffInitiationError(HandoffError):
    """
    Raised when the broker cannot produce an IdP redirect URL.

    Covers broker outages, unknown organizations and broker-side
    misconfiguration. The browser is not redirected anywhere.
    """

    status_code = 502
    default_error_code = ErrorCode.HANDOFF_INITIATION_FAILED
    default_message = "Single sign-on could not be started for this organization"

    def __init__(
        self,
        message: Optional[str] = None,
        organization: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        internal_message: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        details = details or {}
        if organization:
            details["organization"] = organization
        details.setdefault("service", "ssoready")

        self.original_error = original_error

        super().__init__(
            message=message,
            details=details,
            internal_message=internal_message or (str(original_error) if original_error else None),
        )


# =============================================================================
# Callback Errors
# =============================================================================

class MissingAccessCode(HandoffError):
    """Raised when the broker callback arrives without a SAML access code."""

    status_code = 400
    default_error_code = ErrorCode.MISSING_ACCESS_CODE
    default_message = "The sign-in callback did not include an access code"

    def __init__(
        self,
        message: Optional[str] = None,
        field: str = "saml_access_code",
        internal_message: Optional[str] = None,
    ):
        super().__init__(
            message=message,
            details={"field": field},
            internal_message=internal_message,
        )


class CodeRedemptionError(HandoffError):
    """
    Raised when a SAML access code cannot be redeemed.

    Covers expired, invalid and already-used codes as well as broker
    outages. No session is established.
    """

    status_code = 401
    default_error_code = ErrorCode.CODE_REDEMPTION_FAILED
    default_message = "Sign-in could not be completed. Please try logging in again"

    def __init__(
        self,
        message: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        internal_message: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        details = details or {}
        details.setdefault("service", "ssoready")

        self.original_error = original_error

        super().__init__(
            message=message,
            details=details,
            internal_message=internal_message or (str(original_error) if original_error else None),
        )
