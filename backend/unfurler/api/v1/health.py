"""Operational endpoints: liveness and Prometheus scrape target."""

import time

from fastapi import APIRouter
from fastapi.responses import Response

from unfurler.config import settings
from unfurler.core.metrics import get_metrics, get_metrics_content_type

router = APIRouter()

_started_at = time.monotonic()


@router.get(
    "/health",
    summary="Liveness check",
    description="Returns HTTP 200 while the process is up. The service keeps no state and has no backing stores, so liveness is also readiness.",
)
async def liveness():
    return {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "uptime_seconds": round(time.monotonic() - _started_at, 1),
    }


@router.get(
    "/metrics",
    summary="Prometheus metrics",
    description="Unfurl outcomes, provider counts, image-size lookups, proxy-policy rejections and per-route HTTP latencies in Prometheus exposition format. Returns HTTP 404 when METRICS_ENABLED is off.",
)
async def metrics():
    if not settings.METRICS_ENABLED:
        return Response(content="Metrics disabled", status_code=404)

    return Response(
        content=get_metrics(),
        media_type=get_metrics_content_type(),
    )
