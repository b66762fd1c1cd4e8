"""
FastAPI dependencies for the SAML handoff application.

Usage:
    from app.dependencies import get_controller, get_current_identity
"""

from app.dependencies.controller import (
    get_app_settings,
    get_controller,
    get_current_identity,
)

__all__ = [
    "get_app_settings",
    "get_controller",
    "get_current_identity",
]
