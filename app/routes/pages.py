"""
Browser-facing pages: the landing page and sign-out.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse, RedirectResponse

from app.dependencies import get_controller, get_current_identity
from app.templates import render_index
from handoff.controller import LoginHandoffController

logger = logging.getLogger(__name__)

router = APIRouter(tags=["pages"])


@router.get(
    "/",
    response_class=HTMLResponse,
    summary="Landing page",
    description="Greets the signed-in identity (or a logged-out user) and offers the SAML login form.",
)
async def index(identity: Optional[str] = Depends(get_current_identity)) -> HTMLResponse:
    return HTMLResponse(content=render_index(identity))


@router.get(
    "/logout",
    response_class=RedirectResponse,
    status_code=302,
    summary="Sign out",
)
async def logout(
    request: Request,
    controller: LoginHandoffController = Depends(get_controller),
) -> RedirectResponse:
    """
    Clear the session cookie and return to the landing page.

    Succeeds whether or not the browser was signed in.
    """
    return controller.logout(request)
