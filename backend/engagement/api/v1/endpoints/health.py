"""
Health Check Endpoint
Provides health status for Docker health checks and monitoring
"""
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Depends, status

from engagement.api.v1.dependencies import get_container
from engagement.core.container import Container

router = APIRouter(tags=["health"])


@router.get("/health", status_code=status.HTTP_200_OK)
async def health_check(container: Container = Depends(get_container)) -> Dict[str, Any]:
    """
    Health check endpoint for Docker and monitoring systems.

    Returns:
        Dict with status, timestamp and the armed job types
    """
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "service": "lead-engagement",
        "storage": container.settings.storage_backend,
        "armed_jobs": sorted(j.value for j in container.scheduler.active_timers),
    }
