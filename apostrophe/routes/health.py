"""
Apostrophe Backend — Health Check Route
=========================================

What:  Health check endpoint polled by the desktop shell before showing the UI.
How:   Pings the database and reports which AI providers have a credential.
       Providers are never called from here; a health check must not spend
       quota or wait on a slow model.

    Status levels:
    - healthy:   Database reachable (HTTP 200)
    - degraded:  Database unreachable (HTTP 200, the editor shows a banner)
"""

import logging
import time

from fastapi import APIRouter, Request

from apostrophe import __version__
from apostrophe.schemas.note import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

# Track when the service started for uptime reporting
_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
)
async def health_check(request: Request) -> HealthResponse:
    db_status = "connected"
    overall = "healthy"

    try:
        await request.app.state.database.ping()
    except Exception as e:
        db_status = "disconnected"
        overall = "degraded"
        logger.warning("Health check: database unreachable: %s", str(e))

    status = request.app.state.ai_service.provider_status()
    providers = {
        "gemini": "configured" if status.gemini else "not_configured",
        "huggingface": "configured" if status.huggingface else "not_configured",
        "ollama": "local",
    }

    return HealthResponse(
        status=overall,
        version=__version__,
        database=db_status,
        providers=providers,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
