"""
SAML login handoff server.

A minimal web app that signs users in with SAML through SSOReady: the user
enters a work email, is redirected to their organization's identity provider,
and comes back with a one-time access code that is redeemed for a session.

This is the main entry point that assembles the handoff controller and the
modular components from the app package.
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import Optional

import sentry_sdk
import uvicorn
from fastapi import FastAPI
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.starlette import StarletteIntegration

# Configure structured logging FIRST, before other imports that use logging
from handoff.utils.logging import setup_logging

logger = setup_logging(service_name="saml-handoff")

from handoff.broker import BrokerClient, SSOReadyBrokerClient
from handoff.config import Settings, get_settings
from handoff.config_validator import (
    ConfigurationError,
    log_config_summary,
    validate_config,
)
from handoff.controller import LoginHandoffController
from handoff.organizations import EmailDomainResolver, OrganizationResolver
from handoff.sessions import CookieSessionStore, SessionCodec

from app.error_handlers import register_exception_handlers
from app.middleware import RequestLoggingMiddleware
from app.routes import health_router, pages_router, sso_router

# =============================================================================
# Sentry Error Tracking Configuration
# =============================================================================

SENSITIVE_BREADCRUMB_KEYS = [
    "saml_access_code", "samlaccesscode", "api_key", "apikey", "api-key",
    "secret", "token", "authorization", "bearer", "cookie", "credential",
]


def filter_sensitive_breadcrumbs(crumb, hint):
    """
    Filter sensitive data from Sentry breadcrumbs.

    Removes or sanitizes breadcrumbs that may contain:
    - One-time SAML access codes in callback URLs
    - The broker API key in Authorization headers
    - Session cookies
    """
    import re

    if crumb.get("category") in ("http", "httplib"):
        if "data" in crumb and isinstance(crumb["data"], dict):
            data = crumb["data"]
            if "headers" in data and isinstance(data["headers"], dict):
                for key in list(data["headers"].keys()):
                    if any(s in key.lower() for s in SENSITIVE_BREADCRUMB_KEYS):
                        data["headers"][key] = "[FILTERED]"
            for field in ("url", "http.query"):
                value = data.get(field)
                if not isinstance(value, str):
                    continue
                for key in SENSITIVE_BREADCRUMB_KEYS:
                    if f"{key}=" in value.lower():
                        pattern = re.compile(f"({re.escape(key)}=)[^&]*", re.IGNORECASE)
                        value = pattern.sub(r"\1[FILTERED]", value)
                data[field] = value

    if crumb.get("category") in ("console", "log"):
        if "message" in crumb:
            message = str(crumb["message"]).lower()
            for key in SENSITIVE_BREADCRUMB_KEYS:
                if key in message:
                    crumb["message"] = "[FILTERED - may contain sensitive data]"
                    break

    return crumb


def init_sentry(settings: Settings) -> bool:
    """Initialize Sentry when a DSN is configured. Returns True if initialized."""
    if not settings.is_sentry_configured:
        logger.info("Sentry DSN not configured, error tracking disabled")
        return False

    sentry_settings = settings.sentry
    sentry_sdk.init(
        dsn=sentry_settings.sentry_dsn,
        environment=sentry_settings.sentry_environment,
        sample_rate=1.0,
        traces_sample_rate=sentry_settings.sentry_traces_sample_rate,
        integrations=[
            StarletteIntegration(transaction_style="endpoint"),
            FastApiIntegration(transaction_style="endpoint"),
        ],
        before_breadcrumb=filter_sensitive_breadcrumbs,
        send_default_pii=False,
        attach_stacktrace=True,
        server_name=sentry_settings.server_name,
        release=sentry_settings.sentry_release,
    )
    logger.info(f"Sentry initialized for environment: {sentry_settings.sentry_environment}")
    return True


# =============================================================================
# Application Factory
# =============================================================================


def create_app(
    settings: Optional[Settings] = None,
    broker: Optional[BrokerClient] = None,
    resolver: Optional[OrganizationResolver] = None,
    session_codec: Optional[SessionCodec] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Settings to use (defaults to get_settings())
        broker: Broker client to use (defaults to SSOReady built from settings)
        resolver: Organization resolver (defaults to the email-domain resolver)
        session_codec: Session cookie codec (defaults to plaintext, or signed
            when SESSION_SECRET_KEY is set)

    Raises:
        ConfigurationError: If the settings fail validation
    """
    settings = settings or get_settings()
    validate_config(settings, fail_on_error=True)

    owns_broker = broker is None
    if broker is None:
        broker = SSOReadyBrokerClient.from_settings(settings.broker)

    if resolver is None:
        resolver = EmailDomainResolver(settings.organizations.allowed_domains_list)

    controller = LoginHandoffController(
        broker=broker,
        resolver=resolver,
        sessions=CookieSessionStore.from_settings(settings.session, codec=session_codec),
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Handle startup/shutdown for shared resources."""
        logger.info(f"Listening on {settings.app.public_base_url}")
        yield
        if owns_broker:
            try:
                await broker.close()
            except Exception as e:
                logger.warning("Failed to close broker client: %s", e)

    app = FastAPI(
        title="SAML Demo App using SSOReady",
        description="Sign in with SAML through SSOReady and keep the verified email in a session cookie.",
        version="1.0.0",
        lifespan=lifespan,
        openapi_tags=[
            {"name": "pages", "description": "Landing page and sign-out"},
            {"name": "sso", "description": "SAML login handoff through SSOReady"},
            {"name": "health", "description": "Health checks"},
        ],
    )

    app.state.settings = settings
    app.state.controller = controller

    register_exception_handlers(app)

    if settings.logging.request_logging_enabled:
        app.add_middleware(RequestLoggingMiddleware)
        logger.info("Request logging middleware enabled")

    app.include_router(pages_router)
    app.include_router(sso_router)
    app.include_router(health_router)

    return app


# =============================================================================
# Module-level application
# =============================================================================

try:
    settings: Settings = get_settings()
    app = create_app(settings)
    log_config_summary(settings)
except ConfigurationError as e:
    logger.critical(f"Configuration validation failed: {e}")
    if e.missing_vars:
        logger.critical(f"Missing environment variables: {', '.join(e.missing_vars)}")
    logger.critical("Application cannot start due to configuration errors.")
    sys.exit(1)

init_sentry(settings)


def main() -> None:
    uvicorn.run(
        app,
        host=settings.app.host,
        port=settings.app.port,
        log_config=None,
    )


if __name__ == "__main__":
    main()
