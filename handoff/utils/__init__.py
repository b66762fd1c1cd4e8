"""Utility modules for the SAML handoff service."""

from .logging import (
    DevelopmentFormatter,
    JSONFormatter,
    RequestContextFilter,
    SensitiveDataFilter,
    Timer,
    clear_request_context,
    redact_sensitive_data,
    set_request_context,
    setup_logging,
)

__all__ = [
    "setup_logging",
    "set_request_context",
    "clear_request_context",
    "Timer",
    "JSONFormatter",
    "DevelopmentFormatter",
    "RequestContextFilter",
    "SensitiveDataFilter",
    "redact_sensitive_data",
]
