"""
FastAPI exception handlers for the SAML handoff application.

This module provides centralized exception handling that:
- Maps HandoffError subclasses to their HTTP status codes
- Answers browsers with a small HTML page and everything else with JSON
- Reports unexpected exceptions and 5xx errors to Sentry
- Prevents sensitive information (access codes, keys) from leaking

JSON error responses follow the format:
{
    "success": false,
    "error": "Human-readable message",
    "error_code": "MACHINE_READABLE_CODE",
    "details": {}  # Optional additional context
}
"""

import logging
import re
import uuid
from typing import Any, Dict, List, Optional

import sentry_sdk
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import HTMLResponse, JSONResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.templates import render_error
from handoff.exceptions import ErrorCode, HandoffError
from handoff.utils.logging import redact_sensitive_data

logger = logging.getLogger(__name__)

# Patterns that indicate sensitive information
SENSITIVE_PATTERNS = [
    r"api[_-]?key",
    r"ssoready_sk_",
    r"secret",
    r"password",
    r"token",
    r"credential",
    r"private",
    r"bearer",
    r"cookie",
    # File paths that might be sensitive
    r"/home/",
    r"/Users/",
    r"/var/",
    r"/etc/",
]

SENSITIVE_REGEX = re.compile("|".join(SENSITIVE_PATTERNS), re.IGNORECASE)

SAFE_DETAIL_KEYS = frozenset({
    "field",
    "value",
    "organization",
    "service",
    "errors",
    "error_reference",
    "sentry_event_id",
})


def sanitize_error_message(message: str) -> str:
    """
    Remove potentially sensitive information from error messages.

    Args:
        message: The error message to sanitize.

    Returns:
        Sanitized message with sensitive data redacted.
    """
    if not message:
        return message

    if SENSITIVE_REGEX.search(message):
        return "An error occurred while processing your request"

    # Remove any file paths
    message = re.sub(r'[/\\][\w./\\-]+\.\w+', '[path]', message)

    # Remove IP addresses
    message = re.sub(r'\b\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3}\b', '[ip]', message)

    if len(message) > 500:
        message = message[:500] + "..."

    return message


def _sanitize_value(value: Any) -> Any:
    if isinstance(value, str):
        return sanitize_error_message(value)
    if isinstance(value, (int, float, bool)):
        return value
    if isinstance(value, dict):
        return {
            str(k): _sanitize_value(v)
            for k, v in value.items()
            if isinstance(v, (str, int, float, bool))
        }
    return None


def sanitize_details(details: Dict[str, Any]) -> Dict[str, Any]:
    """
    Sanitize error details to remove sensitive information.

    Only allow-listed keys survive; nested structures are flattened to
    primitive values.
    """
    if not details:
        return {}

    sanitized = {}
    for key, value in details.items():
        if key not in SAFE_DETAIL_KEYS or value is None:
            continue

        if isinstance(value, list):
            items = [_sanitize_value(v) for v in value][:10]
            sanitized[key] = [v for v in items if v is not None]
        else:
            clean = _sanitize_value(value)
            if clean is not None:
                sanitized[key] = clean

    return sanitized


def format_validation_errors(errors: List[Dict[str, Any]]) -> List[Dict[str, str]]:
    """Format request validation errors into field/message pairs."""
    formatted = []
    for error in errors:
        loc = error.get("loc", [])
        field_parts = [str(p) for p in loc if p not in ("query", "body")]
        field = ".".join(field_parts) if field_parts else "request"

        if error.get("type") == "missing":
            msg = f"Field '{field}' is required"
        else:
            msg = sanitize_error_message(error.get("msg", "Invalid value"))

        formatted.append({"field": field, "message": msg})

    return formatted[:10]


def wants_html(request: Request) -> bool:
    """Check whether the client asked for an HTML page."""
    return "text/html" in request.headers.get("accept", "").lower()


def create_error_response(
    request: Request,
    status_code: int,
    error: str,
    error_code: str,
    details: Optional[Dict[str, Any]] = None,
) -> Response:
    """
    Create a standardized error response.

    Browsers that accept text/html get a rendered error page; other clients
    get the JSON error document.
    """
    message = sanitize_error_message(error)

    if wants_html(request):
        return HTMLResponse(
            content=render_error(status_code, message, error_code),
            status_code=status_code,
        )

    content: Dict[str, Any] = {
        "success": False,
        "error": message,
        "error_code": error_code,
    }

    if details:
        sanitized_details = sanitize_details(details)
        if sanitized_details:
            content["details"] = sanitized_details

    return JSONResponse(status_code=status_code, content=content)


def report_to_sentry(
    exc: Exception,
    request: Optional[Request] = None,
    extra_context: Optional[Dict[str, Any]] = None,
) -> Optional[str]:
    """
    Report an exception to Sentry with context.

    Returns:
        Sentry event ID if reported, None otherwise.
    """
    try:
        client = sentry_sdk.get_client()
        if not client.is_active():
            return None

        with sentry_sdk.new_scope() as scope:
            if request:
                # Query strings can carry one-time access codes
                scope.set_context("request", {
                    "method": request.method,
                    "path": request.url.path,
                    "query": redact_sensitive_data(request.url.query),
                })

                request_id = getattr(request.state, "request_id", None)
                if request_id:
                    scope.set_tag("request_id", request_id)

            if extra_context:
                scope.set_context("extra", extra_context)

            return sentry_sdk.capture_exception(exc)

    except Exception as e:
        logger.warning(f"Failed to report exception to Sentry: {e}")
        return None


# =============================================================================
# Exception Handlers
# =============================================================================

async def handoff_exception_handler(request: Request, exc: HandoffError) -> Response:
    """
    Handle HandoffError and subclasses.

    Logs the internal details and answers with the exception's status code.
    No redirect and no session cookie is ever part of this response.
    """
    log_message = f"{exc.__class__.__name__}: {exc.message}"
    if exc.internal_message:
        log_message += f" | Internal: {exc.internal_message}"

    if exc.status_code >= 500:
        logger.error(log_message)
        report_to_sentry(exc, request)
    else:
        logger.warning(log_message)

    return create_error_response(
        request,
        status_code=exc.status_code,
        error=exc.message,
        error_code=exc.error_code.value,
        details=exc.details,
    )


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> Response:
    """Handle FastAPI request validation errors."""
    errors = format_validation_errors(exc.errors())

    logger.warning(
        f"Validation error on {request.method} {request.url.path}: "
        f"{len(errors)} error(s)"
    )

    if len(errors) == 1:
        error_message = errors[0]["message"]
    else:
        error_message = f"Validation failed with {len(errors)} error(s)"

    return create_error_response(
        request,
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        error=error_message,
        error_code=ErrorCode.VALIDATION_ERROR.value,
        details={"errors": errors},
    )


async def http_exception_handler(
    request: Request,
    exc: StarletteHTTPException,
) -> Response:
    """Handle Starlette/FastAPI HTTPException (unknown routes, wrong methods)."""
    status_code_mapping = {
        400: ErrorCode.VALIDATION_ERROR,
        404: ErrorCode.RESOURCE_NOT_FOUND,
        405: ErrorCode.VALIDATION_ERROR,
        422: ErrorCode.VALIDATION_ERROR,
        500: ErrorCode.INTERNAL_ERROR,
    }
    error_code = status_code_mapping.get(exc.status_code, ErrorCode.UNKNOWN_ERROR)

    detail = exc.detail if isinstance(exc.detail, str) else str(exc.detail)

    if exc.status_code >= 500:
        logger.error(f"HTTP {exc.status_code}: {detail}")
    elif exc.status_code >= 400:
        logger.warning(f"HTTP {exc.status_code}: {detail}")

    return create_error_response(
        request,
        status_code=exc.status_code,
        error=detail,
        error_code=error_code.value,
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> Response:
    """
    Handle any unhandled exceptions.

    Logs the full traceback, reports to Sentry and returns a generic message
    with a short reference for support.
    """
    error_reference = str(uuid.uuid4())[:8]

    logger.error(
        f"Unhandled exception [ref:{error_reference}] on "
        f"{request.method} {request.url.path}: {type(exc).__name__}",
        exc_info=True,
    )

    event_id = report_to_sentry(
        exc,
        request,
        extra_context={"error_reference": error_reference},
    )

    details = {"error_reference": error_reference}
    if event_id:
        details["sentry_event_id"] = event_id

    return create_error_response(
        request,
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        error="An unexpected error occurred. Please try again later.",
        error_code=ErrorCode.INTERNAL_ERROR.value,
        details=details,
    )


# =============================================================================
# Handler Registration
# =============================================================================

def register_exception_handlers(app: FastAPI) -> None:
    """
    Register all exception handlers with the FastAPI application.

    Args:
        app: The FastAPI application instance.
    """
    app.add_exception_handler(HandoffError, handoff_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    logger.info("Exception handlers registered successfully")
