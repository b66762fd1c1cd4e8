"""
Request logging middleware for the SAML handoff service.

Every request gets a request ID (reused from an upstream proxy when present)
that is bound to the logging context, echoed in X-Request-ID and attached to
one structured log line per request. Query strings are redacted before they
are logged because the broker callback carries a one-time access code.
"""

import logging
import time
import uuid
from typing import Any, Callable, Dict, FrozenSet, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from handoff.utils.logging import (
    clear_request_context,
    redact_sensitive_data,
    set_request_context,
)

logger = logging.getLogger(__name__)

# Documentation and browser noise; never logged
SILENT_PATHS: FrozenSet[str] = frozenset({
    "/docs",
    "/openapi.json",
    "/redoc",
    "/favicon.ico",
})

# Polled by load balancers; logged only when they fail
QUIET_PATHS: FrozenSet[str] = frozenset({
    "/health",
})


def _status_level(status_code: int) -> int:
    if status_code >= 500:
        return logging.ERROR
    if status_code >= 400:
        return logging.WARNING
    return logging.INFO


def _client_ip(request: Request) -> str:
    """First hop from X-Forwarded-For or X-Real-IP, else the socket peer."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip.strip()

    return request.client.host if request.client else "unknown"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Structured per-request logging with request and correlation IDs.

    Adds X-Request-ID and X-Response-Time (and X-Correlation-ID when the
    caller sent one) to every response.
    """

    def __init__(
        self,
        app,
        silent_paths: Optional[FrozenSet[str]] = None,
        quiet_paths: Optional[FrozenSet[str]] = None,
    ):
        super().__init__(app)
        self.silent_paths = silent_paths if silent_paths is not None else SILENT_PATHS
        self.quiet_paths = quiet_paths if quiet_paths is not None else QUIET_PATHS

    def _should_log(self, path: str, status_code: int) -> bool:
        if path in self.silent_paths:
            return False
        if path in self.quiet_paths:
            return status_code >= 400
        return True

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = (
            request.headers.get("X-Request-ID")
            or request.headers.get("X-Amzn-Trace-Id")
            or str(uuid.uuid4())
        )
        correlation_id = request.headers.get("X-Correlation-ID")

        set_request_context(request_id=request_id, correlation_id=correlation_id)
        request.state.request_id = request_id

        method = request.method
        path = request.url.path
        fields: Dict[str, Any] = {
            "http_method": method,
            "http_path": path,
            "http_query": redact_sensitive_data(request.url.query),
            "client_ip": _client_ip(request),
        }

        start_time = time.perf_counter()
        try:
            try:
                response = await call_next(request)
            except Exception as exc:
                duration_ms = (time.perf_counter() - start_time) * 1000
                logger.error(
                    f"{method} {path} FAILED ({duration_ms:.2f}ms): {type(exc).__name__}",
                    extra={
                        "event": "http_request_error",
                        "duration_ms": round(duration_ms, 2),
                        "error_type": type(exc).__name__,
                        **fields,
                    },
                    exc_info=True,
                )
                raise

            duration_ms = (time.perf_counter() - start_time) * 1000
            response.headers["X-Request-ID"] = request_id
            response.headers["X-Response-Time"] = f"{duration_ms:.2f}ms"
            if correlation_id:
                response.headers["X-Correlation-ID"] = correlation_id

            if self._should_log(path, response.status_code):
                logger.log(
                    _status_level(response.status_code),
                    f"{method} {path} {response.status_code} ({duration_ms:.2f}ms)",
                    extra={
                        "event": "http_request",
                        "http_status": response.status_code,
                        "duration_ms": round(duration_ms, 2),
                        "user_agent": request.headers.get("User-Agent", "-"),
                        **fields,
                    },
                )

            return response
        finally:
            clear_request_context()
