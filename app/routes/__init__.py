"""API routes for the SAML handoff application."""

from .health import router as health_router
from .pages import router as pages_router
from .sso import router as sso_router

__all__ = [
    "health_router",
    "pages_router",
    "sso_router",
]
