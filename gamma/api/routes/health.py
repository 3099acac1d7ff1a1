"""Liveness and metrics endpoints."""

from fastapi import APIRouter, Request, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

router = APIRouter()
metrics_router = APIRouter()


@router.get("/healthz")
async def healthz(request: Request) -> dict[str, str]:
    """Liveness check; reports the running version."""
    request.app.state.logger.debug("health check")
    return {"status": "ok", "version": request.app.version}


@metrics_router.get("")
async def get_metrics() -> Response:
    """Prometheus metrics in text exposition format."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
