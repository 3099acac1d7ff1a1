"""FastAPI application factory.

Creates the application with the trace middleware, exception handlers that
log through ErrorLogger, and the liveness/metrics routes.
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from gamma.api.models.errors import ErrorBody, ErrorCode, ErrorResponse, error_code_for_status
from gamma.api.routes import register_routes
from gamma.config import get_settings
from gamma.config.settings import Settings
from gamma.observability.errors import ErrorLogger
from gamma.observability.factory import create_logger, logger_config_from_settings
from gamma.observability.logging import Logger
from gamma.observability.middleware import TraceContextMiddleware


def create_app(settings: Settings | None = None, logger: Logger | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Settings to use; loaded from config/ when omitted
        logger: Root logger; built from ``settings`` when omitted

    Returns:
        Configured FastAPI application
    """
    settings = settings or get_settings()
    logger = logger or create_logger(logger_config_from_settings(settings))

    app = FastAPI(title=settings.app_name, version=settings.version, debug=settings.debug)
    app.state.settings = settings
    app.state.logger = logger
    app.state.error_logger = ErrorLogger(logger)

    tracing = settings.observability.tracing
    if tracing.enabled:
        app.add_middleware(
            TraceContextMiddleware,
            logger=logger.child({"component": "http"}),
            path_pattern=tracing.path_pattern,
            enable_logging=tracing.log_requests,
            include_response_headers=tracing.response_headers,
        )

    _register_exception_handlers(app)
    register_routes(app, settings)

    logger.info(
        "app created",
        tracing=tracing.enabled,
        metrics=settings.observability.metrics.enabled,
    )
    return app


def _request_id(request: Request) -> str | None:
    context = getattr(request.state, "context", None)
    return context.request_id if context is not None else None


def _register_exception_handlers(app: FastAPI) -> None:
    """Register global exception handlers."""

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        """Log HTTP errors raised by handlers and render the error body."""
        app.state.error_logger.log_http_error(exc, exc.status_code, request.url.path)

        body = ErrorBody(
            code=error_code_for_status(exc.status_code),
            message=str(exc.detail),
            request_id=_request_id(request),
        )
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(error=body).model_dump(mode="json", by_alias=True),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Render unexpected exceptions.

        Errors already logged by the trace middleware are not logged twice.
        """
        if not getattr(request.state, "error_logged", False):
            app.state.error_logger.log_unhandled_error(exc, {"path": request.url.path})

        body = ErrorBody(
            code=ErrorCode.INTERNAL_ERROR,
            message="An unexpected error occurred",
            request_id=_request_id(request),
        )
        return JSONResponse(
            status_code=500,
            content=ErrorResponse(error=body).model_dump(mode="json", by_alias=True),
        )
