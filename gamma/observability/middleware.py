"""Request entrypoint middleware for trace propagation.

Creates the RequestContext from the inbound ``traceparent`` header for the
duration of each request, logs request start/completion, propagates a child
``traceparent`` and ``x-request-id`` on the response and always clears the
ambient context when the request ends.
"""

import re
import time
from collections.abc import Awaitable, Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from gamma.observability.errors import ErrorLogger
from gamma.observability.factory import create_default_logger
from gamma.observability.logging import Logger
from gamma.observability.metrics import REQUEST_LATENCY
from gamma.observability.tracing import (
    TRACEPARENT_HEADER,
    clear_request_context,
    create_request_context,
    propagation_headers,
)

REQUEST_ID_HEADER = "x-request-id"


class TraceContextMiddleware(BaseHTTPMiddleware):
    """Middleware that owns the request context lifecycle.

    Headers:
        traceparent: W3C trace context of the caller (optional; a new trace
            is started when absent or malformed)

    Response headers:
        traceparent: Child span of this request, same trace id
        x-request-id: Request id used in this request's log records
    """

    def __init__(
        self,
        app: ASGIApp,
        logger: Logger | None = None,
        path_pattern: str = ".*",
        enable_logging: bool = True,
        include_response_headers: bool = True,
    ) -> None:
        super().__init__(app)
        self.logger = logger or create_default_logger()
        self.error_logger = ErrorLogger(self.logger)
        self.path_pattern = re.compile(path_pattern)
        self.enable_logging = enable_logging
        self.include_response_headers = include_response_headers

    async def dispatch(  # type: ignore[override]
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        """Process request within a fresh request context."""
        if not self.path_pattern.search(request.url.path):
            return await call_next(request)

        context = create_request_context(request.headers.get(TRACEPARENT_HEADER))
        request.state.context = context
        started = time.perf_counter()

        try:
            if self.enable_logging:
                self.logger.info(
                    "request started",
                    method=request.method,
                    url=str(request.url),
                    userAgent=request.headers.get("user-agent"),
                    ip=self._client_ip(request),
                )

            response = await call_next(request)

            if self.include_response_headers:
                response.headers.update(propagation_headers(context))
                response.headers[REQUEST_ID_HEADER] = context.request_id

            elapsed = time.perf_counter() - started
            REQUEST_LATENCY.labels(
                method=request.method, status=str(response.status_code)
            ).observe(elapsed)

            if self.enable_logging:
                self.logger.info(
                    "request completed",
                    method=request.method,
                    url=str(request.url),
                    status=response.status_code,
                    duration=round(elapsed * 1000, 3),
                )

            return response

        except Exception as exc:
            REQUEST_LATENCY.labels(method=request.method, status="500").observe(
                time.perf_counter() - started
            )
            if self.enable_logging:
                self.error_logger.log_unhandled_error(
                    exc,
                    {"method": request.method, "url": str(request.url)},
                )
                request.state.error_logged = True
            raise

        finally:
            clear_request_context()

    @staticmethod
    def _client_ip(request: Request) -> str | None:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            return forwarded.split(",")[0].strip()
        return request.client.host if request.client else None
