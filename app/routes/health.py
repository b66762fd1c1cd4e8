"""
Health check endpoint.
"""

import logging
from datetime import datetime
from typing import Any, Dict

import sentry_sdk
from fastapi import APIRouter, Depends

from app.dependencies import get_app_settings
from handoff.config import Settings

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])

SERVICE_NAME = "saml-handoff"


def get_sentry_status(settings: Settings) -> Dict[str, Any]:
    """
    Get the current Sentry configuration status.

    Returns information about whether Sentry is configured and active.
    """
    try:
        client = sentry_sdk.get_client()
        configured = settings.is_sentry_configured
        return {
            "configured": configured,
            "active": client.is_active() if configured else False,
            "environment": settings.sentry.sentry_environment if configured else None,
        }
    except Exception as e:
        logger.warning(f"Sentry status check failed: {e}")
        return {
            "configured": False,
            "active": False,
            "environment": None,
            "error": str(e)[:100],
        }


@router.get(
    "/health",
    summary="Service health check",
    description="""
Liveness endpoint for monitoring and load balancers.

The broker is not called; `broker.configured` only reports whether an
SSOReady API key is present.
    """,
    responses={
        200: {
            "description": "Health status retrieved",
            "content": {
                "application/json": {
                    "example": {
                        "status": "healthy",
                        "service": "saml-handoff",
                        "timestamp": "2024-01-24T12:00:00",
                        "version": "saml-handoff@1.0.0",
                        "environment": "production",
                        "broker": {"configured": True, "base_url": "https://api.ssoready.com"},
                        "sentry": {"status": "up"},
                    }
                }
            },
        }
    },
)
async def health_check(settings: Settings = Depends(get_app_settings)) -> Dict[str, Any]:
    sentry_status = get_sentry_status(settings)

    return {
        "status": "healthy" if settings.is_broker_configured else "degraded",
        "service": SERVICE_NAME,
        "timestamp": datetime.now().isoformat(),
        "version": settings.sentry.sentry_release or "1.0.0",
        "environment": settings.app.environment,
        "broker": {
            "configured": settings.is_broker_configured,
            "base_url": settings.broker.ssoready_base_url,
        },
        "sentry": {
            "status": "up" if sentry_status.get("active") else (
                "unconfigured" if not sentry_status.get("configured") else "down"
            ),
        },
    }
