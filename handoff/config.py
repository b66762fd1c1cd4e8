"""
Centralized configuration management for the SAML handoff service.

This module provides a Pydantic Settings-based configuration system that:
- Validates environment variables at startup
- Provides type coercion (strings to ints, bools, etc.)
- Groups related settings for better organization
- Supports .env file loading

Usage:
    from handoff.config import get_settings, Settings

    settings = get_settings()
    if settings.is_sentry_configured:
        ...
"""

from functools import lru_cache
from typing import List, Literal, Optional

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# =============================================================================
# Broker Settings (SSOReady)
# =============================================================================


class BrokerSettings(BaseSettings):
    """Configuration for the SSOReady broker client."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    ssoready_api_key: Optional[SecretStr] = Field(
        default=None,
        description="SSOReady secret API key (ssoready_sk_...)",
    )
    ssoready_base_url: str = Field(
        default="https://api.ssoready.com",
        description="Base URL of the SSOReady API",
    )
    broker_timeout_seconds: float = Field(
        default=10.0,
        ge=1,
        le=120,
        description="Timeout in seconds for each broker request",
    )

    @field_validator("ssoready_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @property
    def is_configured(self) -> bool:
        """Check if broker credentials are present."""
        return bool(self.ssoready_api_key and self.ssoready_api_key.get_secret_value())


# =============================================================================
# Session Settings
# =============================================================================


class SessionSettings(BaseSettings):
    """Configuration for the browser session cookie."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    session_cookie_name: str = Field(
        default="email",
        min_length=1,
        description="Name of the cookie carrying the verified identity",
    )
    session_secret_key: Optional[SecretStr] = Field(
        default=None,
        description="HMAC key for signing the session cookie (unsigned if unset)",
    )
    session_cookie_secure: bool = Field(
        default=False,
        description="Mark the session cookie Secure (HTTPS only)",
    )
    session_max_age_seconds: Optional[int] = Field(
        default=None,
        ge=1,
        description="Session cookie lifetime; browser-session cookie if unset",
    )

    @property
    def is_signed(self) -> bool:
        """Check if session cookies will be signed."""
        return bool(self.session_secret_key and self.session_secret_key.get_secret_value())


# =============================================================================
# Organization Resolution Settings
# =============================================================================


class OrganizationSettings(BaseSettings):
    """Configuration for mapping user input to an organization."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    allowed_email_domains: str = Field(
        default="",
        description="Comma-separated allow-list of email domains (empty allows any)",
    )

    @property
    def allowed_domains_list(self) -> List[str]:
        """Get parsed, lower-cased list of allowed domains."""
        return [
            domain.strip().lower()
            for domain in self.allowed_email_domains.split(",")
            if domain.strip()
        ]


# =============================================================================
# Application Settings
# =============================================================================


class AppSettings(BaseSettings):
    """Configuration for the web application itself."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    environment: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Deployment environment",
    )
    host: str = Field(
        default="localhost",
        description="Interface to bind the HTTP server to",
    )
    port: int = Field(
        default=8080,
        ge=1,
        le=65535,
        description="Port to bind the HTTP server to",
    )
    public_base_url: str = Field(
        default="http://localhost:8080",
        description="Externally visible base URL (the broker callback lives under it)",
    )

    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment == "production"


# =============================================================================
# Logging Settings
# =============================================================================


class LoggingSettings(BaseSettings):
    """Configuration for logging."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )
    log_format_json: bool = Field(
        default=False,
        description="Force JSON log format in development",
    )
    request_logging_enabled: bool = Field(
        default=True,
        description="Enable request logging middleware",
    )


# =============================================================================
# Monitoring Settings (Sentry)
# =============================================================================


class SentrySettings(BaseSettings):
    """Configuration for Sentry error tracking."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    sentry_dsn: Optional[str] = Field(
        default=None,
        description="Sentry DSN for error tracking",
    )
    sentry_environment: str = Field(
        default="development",
        description="Sentry environment name",
    )
    sentry_traces_sample_rate: float = Field(
        default=0.1,
        ge=0.0,
        le=1.0,
        description="Sentry transaction sample rate (0.0 to 1.0)",
    )
    sentry_release: Optional[str] = Field(
        default="saml-handoff@1.0.0",
        description="Sentry release version",
    )
    server_name: str = Field(
        default="saml-handoff",
        description="Server name for Sentry",
    )

    @property
    def is_configured(self) -> bool:
        """Check if Sentry is configured."""
        return bool(self.sentry_dsn)


# =============================================================================
# Main Settings Class
# =============================================================================


class Settings(BaseSettings):
    """
    Main settings class that aggregates all configuration groups.

    This class provides a single entry point for all application configuration
    with validation, type coercion, and feature detection.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    broker: BrokerSettings = Field(default_factory=BrokerSettings)
    session: SessionSettings = Field(default_factory=SessionSettings)
    organizations: OrganizationSettings = Field(default_factory=OrganizationSettings)
    app: AppSettings = Field(default_factory=AppSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    sentry: SentrySettings = Field(default_factory=SentrySettings)

    @property
    def is_broker_configured(self) -> bool:
        """Check if the SSOReady broker can be called."""
        return self.broker.is_configured

    @property
    def is_sentry_configured(self) -> bool:
        """Check if Sentry error tracking is available."""
        return self.sentry.is_configured

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.app.is_production

    def get_config_summary(self) -> dict:
        """
        Get a summary of configuration status for logging.

        This method returns a dictionary with configuration status
        WITHOUT exposing any secrets.
        """
        return {
            "environment": self.app.environment,
            "public_base_url": self.app.public_base_url,
            "broker_base_url": self.broker.ssoready_base_url,
            "broker_configured": self.is_broker_configured,
            "broker_timeout_seconds": self.broker.broker_timeout_seconds,
            "session_cookie_name": self.session.session_cookie_name,
            "session_signed": self.session.is_signed,
            "allowed_email_domains": self.organizations.allowed_domains_list,
            "sentry_configured": self.is_sentry_configured,
            "log_level": self.logging.log_level,
        }


# =============================================================================
# Settings Singleton
# =============================================================================


@lru_cache()
def get_settings() -> Settings:
    """
    Get the application settings singleton.

    Uses lru_cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload settings.
    """
    return Settings()


def reload_settings() -> Settings:
    """
    Reload settings from environment.

    This clears the cache and returns fresh settings.
    Useful for testing or after environment changes.
    """
    get_settings.cache_clear()
    return get_settings()
