"""API route registration."""

from fastapi import FastAPI

from gamma.api.routes.health import metrics_router, router as health_router
from gamma.config.settings import Settings


def register_routes(app: FastAPI, settings: Settings) -> None:
    """Register all routers with the application."""
    app.include_router(health_router, tags=["Health"])
    if settings.observability.metrics.enabled:
        app.include_router(metrics_router, prefix=settings.observability.metrics.path)


__all__ = ["register_routes"]
