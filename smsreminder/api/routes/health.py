"""
Health check endpoints.
"""

import time

from fastapi import APIRouter, Depends

from smsreminder import __version__
from smsreminder.api.dependencies import ServiceContainer, get_container
from smsreminder.application.dto.responses import HealthResponse

router = APIRouter(prefix="/api/health", tags=["health"])

# Track startup time
_start_time = time.time()


@router.get("", response_model=HealthResponse)
async def health_check(
    container: ServiceContainer = Depends(get_container),
) -> HealthResponse:
    """
    Basic health check.

    Returns service status, uptime and which integrations are live.
    """
    return HealthResponse(
        status="healthy",
        version=__version__,
        uptime_seconds=time.time() - _start_time,
        sms_enabled=container.settings.sms.enabled,
        rate_limiter_enabled=getattr(container.rate_limiter, "enabled", False),
        signature_verification=container.signature_verifier.enabled,
    )
