"""
Configuration validation for service startup.

Missing broker credentials and other unrecoverable settings are fatal at
startup rather than surfacing as per-request failures.

Usage:
    from handoff.config_validator import validate_config, ConfigurationError

    try:
        validate_config()
    except ConfigurationError as e:
        logger.critical(f"Configuration error: {e}")
        sys.exit(1)
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional
from urllib.parse import urlparse

from handoff.config import Settings, get_settings

logger = logging.getLogger(__name__)


# =============================================================================
# Custom Exceptions
# =============================================================================


class ConfigurationError(Exception):
    """
    Raised when critical configuration is missing or invalid.

    This exception should cause the application to fail fast at startup.
    """

    def __init__(self, message: str, missing_vars: Optional[List[str]] = None):
        super().__init__(message)
        self.missing_vars = missing_vars or []


# =============================================================================
# Validation Result
# =============================================================================


@dataclass
class ValidationResult:
    """Result of configuration validation."""

    is_valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    info: List[str] = field(default_factory=list)
    missing_vars: List[str] = field(default_factory=list)

    def add_error(self, message: str, missing_var: Optional[str] = None) -> None:
        """Add a critical error."""
        self.errors.append(message)
        self.is_valid = False
        if missing_var:
            self.missing_vars.append(missing_var)

    def add_warning(self, message: str) -> None:
        """Add a non-critical warning."""
        self.warnings.append(message)

    def add_info(self, message: str) -> None:
        """Add an informational message."""
        self.info.append(message)


# =============================================================================
# Validation Functions
# =============================================================================


def _is_http_url(value: str) -> bool:
    parsed = urlparse(value)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def validate_broker_config(settings: Settings, result: ValidationResult) -> None:
    """Validate SSOReady broker configuration."""
    broker = settings.broker

    if not broker.is_configured:
        result.add_error(
            "SSOREADY_API_KEY is not configured. The broker cannot resolve "
            "redirect URLs or redeem SAML access codes without it.",
            missing_var="SSOREADY_API_KEY",
        )
    else:
        api_key = broker.ssoready_api_key.get_secret_value()
        if not api_key.startswith("ssoready_sk_"):
            result.add_warning(
                "SSOREADY_API_KEY does not look like an SSOReady secret key "
                "(expected prefix 'ssoready_sk_')."
            )

    if not _is_http_url(broker.ssoready_base_url):
        result.add_error(
            f"SSOREADY_BASE_URL '{broker.ssoready_base_url}' is not a valid http(s) URL."
        )
    elif settings.is_production and not broker.ssoready_base_url.startswith("https://"):
        result.add_error("SSOREADY_BASE_URL must use https in production.")
    else:
        result.add_info(f"Broker endpoint: {broker.ssoready_base_url}")


def validate_session_config(settings: Settings, result: ValidationResult) -> None:
    """Validate session cookie configuration."""
    session = settings.session

    if settings.is_production:
        if not session.is_signed:
            result.add_error(
                "SESSION_SECRET_KEY is required in production. Unsigned identity "
                "cookies can be forged by any client.",
                missing_var="SESSION_SECRET_KEY",
            )
        if not session.session_cookie_secure:
            result.add_warning(
                "SESSION_COOKIE_SECURE is false in production. "
                "The session cookie will also be sent over plain HTTP."
            )
    elif not session.is_signed:
        result.add_warning(
            "SESSION_SECRET_KEY not configured. The session cookie holds the "
            "verified email in cleartext and unsigned (demo mode)."
        )
    else:
        result.add_info("Session cookies are HMAC-signed")

    if session.is_signed and len(session.session_secret_key.get_secret_value()) < 32:
        result.add_warning(
            "SESSION_SECRET_KEY is shorter than 32 characters. "
            "Use a longer random value."
        )


def validate_app_config(settings: Settings, result: ValidationResult) -> None:
    """Validate application URL configuration."""
    app_settings = settings.app

    if not _is_http_url(app_settings.public_base_url):
        result.add_error(
            f"PUBLIC_BASE_URL '{app_settings.public_base_url}' is not a valid http(s) URL."
        )
        return

    if settings.is_production:
        if "localhost" in app_settings.public_base_url or "127.0.0.1" in app_settings.public_base_url:
            result.add_warning(
                f"Development URL '{app_settings.public_base_url}' configured in production."
            )

    result.add_info(
        f"Broker callback URL: {app_settings.public_base_url.rstrip('/')}/ssoready-callback"
    )


def validate_sentry_config(settings: Settings, result: ValidationResult) -> None:
    """Validate Sentry configuration."""
    sentry = settings.sentry

    if not sentry.is_configured:
        if settings.is_production:
            result.add_warning(
                "SENTRY_DSN not configured in production. "
                "Error tracking is recommended for production deployments."
            )
        else:
            result.add_info("Sentry not configured. Error tracking disabled.")
    else:
        result.add_info(
            f"Sentry configured for environment: {sentry.sentry_environment}"
        )


# =============================================================================
# Main Validation Function
# =============================================================================


def validate_config(
    settings: Optional[Settings] = None,
    fail_on_error: bool = True,
) -> ValidationResult:
    """
    Validate the application configuration.

    Args:
        settings: Settings instance to validate (uses get_settings() if None)
        fail_on_error: If True, raises ConfigurationError on critical errors

    Returns:
        ValidationResult with validation status and messages

    Raises:
        ConfigurationError: If fail_on_error is True and critical errors found
    """
    if settings is None:
        try:
            settings = get_settings()
        except Exception as e:
            logger.critical(f"Failed to load configuration: {e}")
            if fail_on_error:
                raise ConfigurationError(f"Failed to load configuration: {e}") from e
            result = ValidationResult(is_valid=False)
            result.add_error(f"Failed to load configuration: {e}")
            return result

    result = ValidationResult(is_valid=True)

    validate_broker_config(settings, result)
    validate_session_config(settings, result)
    validate_app_config(settings, result)
    validate_sentry_config(settings, result)

    for info in result.info:
        logger.info(f"[CONFIG] {info}")

    for warning in result.warnings:
        logger.warning(f"[CONFIG] {warning}")

    for error in result.errors:
        logger.error(f"[CONFIG] {error}")

    if fail_on_error and not result.is_valid:
        raise ConfigurationError(
            f"Configuration validation failed with {len(result.errors)} error(s). "
            "See logs for details.",
            missing_vars=result.missing_vars,
        )

    return result


def log_config_summary(settings: Optional[Settings] = None) -> None:
    """Log a summary of the current configuration."""
    if settings is None:
        settings = get_settings()

    summary = settings.get_config_summary()

    logger.info("=" * 60)
    logger.info("SAML Handoff Configuration Summary")
    logger.info("=" * 60)
    logger.info(f"Environment: {summary['environment']}")
    logger.info(f"Public URL: {summary['public_base_url']}")
    logger.info(f"Log Level: {summary['log_level']}")
    logger.info("-" * 60)
    logger.info(f"  Broker: {summary['broker_base_url']} "
                f"({'configured' if summary['broker_configured'] else 'NOT configured'}, "
                f"timeout {summary['broker_timeout_seconds']}s)")
    logger.info(f"  Session Cookie: {summary['session_cookie_name']} "
                f"({'signed' if summary['session_signed'] else 'unsigned'})")
    logger.info(f"  Allowed Domains: {', '.join(summary['allowed_email_domains']) or 'any'}")
    logger.info(f"  Sentry Monitoring: {'Enabled' if summary['sentry_configured'] else 'Disabled'}")
    logger.info("=" * 60)
