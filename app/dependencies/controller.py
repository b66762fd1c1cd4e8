"""
Dependencies that hand the login handoff collaborators to route handlers.

The controller is built once in server.create_app() and stored on
app.state, so tests can swap the broker (or the whole controller) through
create_app() arguments or app.dependency_overrides.
"""

from typing import Optional

from fastapi import Depends, Request

from handoff.config import Settings, get_settings
from handoff.controller import LoginHandoffController


def get_app_settings(request: Request) -> Settings:
    """Get the settings the running app was built with."""
    settings = getattr(request.app.state, "settings", None)
    return settings if settings is not None else get_settings()


def get_controller(request: Request) -> LoginHandoffController:
    """Get the login handoff controller for this app."""
    controller = getattr(request.app.state, "controller", None)
    if controller is None:
        raise RuntimeError("Login handoff controller is not configured on app.state")
    return controller


def get_current_identity(
    request: Request,
    controller: LoginHandoffController = Depends(get_controller),
) -> Optional[str]:
    """Get the verified identity of the requesting browser, or None if anonymous."""
    return controller.current_identity(request)
