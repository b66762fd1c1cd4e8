"""
SAML login handoff endpoints.

- GET /saml-redirect: start a login for the organization behind an email
- GET /ssoready-callback: finish a login from the broker's one-time access code

Security Considerations:
- The access code arrives in the query string and is single use; it is
  never logged and never retried
- A failed broker call never produces the IdP redirect or the session cookie
- Failures are raised as HandoffError and rendered by the registered handlers
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import RedirectResponse

from app.dependencies import get_controller
from handoff.controller import LoginHandoffController

logger = logging.getLogger(__name__)

router = APIRouter(tags=["sso"])


@router.get(
    "/saml-redirect",
    response_class=RedirectResponse,
    status_code=302,
    summary="Initiate SAML login",
    responses={
        302: {"description": "Redirect to the organization's identity provider"},
        400: {"description": "No organization could be resolved from the email"},
        502: {"description": "The broker could not start the login"},
    },
)
async def saml_redirect(
    email: Optional[str] = Query(default=None, description="Work email address of the user"),
    controller: LoginHandoffController = Depends(get_controller),
) -> RedirectResponse:
    """
    Initiate a SAML login.

    "john.doe@example.com" identifies the organization "example.com"; the
    browser is redirected to that organization's IdP as resolved by the broker.
    """
    return await controller.initiate_handoff(email)


@router.get(
    "/ssoready-callback",
    response_class=RedirectResponse,
    status_code=302,
    summary="Complete SAML login",
    responses={
        302: {"description": "Session established, redirect to the landing page"},
        400: {"description": "The callback carried no access code"},
        401: {"description": "The access code could not be redeemed"},
    },
)
async def ssoready_callback(
    saml_access_code: Optional[str] = Query(
        default=None, description="One-time SAML access code issued by the broker"
    ),
    controller: LoginHandoffController = Depends(get_controller),
) -> RedirectResponse:
    """
    Complete a SAML login.

    Redeems the one-time access code for the verified email, binds it to the
    browser's session cookie and redirects to the landing page.
    """
    return await controller.complete_handoff(saml_access_code)
