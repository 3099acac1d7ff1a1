"""Tests for TraceContextMiddleware."""

from typing import Any
from unittest.mock import MagicMock

import pytest
from fastapi import FastAPI, Request
from fastapi.testclient import TestClient
from starlette.responses import Response

from gamma.observability.logging import TraceContextLogger
from gamma.observability.middleware import REQUEST_ID_HEADER, TraceContextMiddleware
from gamma.observability.testing import MemoryLogger
from gamma.observability.tracing import (
    get_current_request_context,
    get_log_context,
    parse_traceparent,
)

TRACE_ID = "4bf92f3577b34da6a3ce929d0e0e4736"
PARENT_ID = "00f067aa0ba902b7"
SAMPLE_HEADER = f"00-{TRACE_ID}-{PARENT_ID}-01"


def make_request(path: str = "/images", headers: dict[str, str] | None = None) -> Request:
    scope: dict[str, Any] = {
        "type": "http",
        "method": "GET",
        "path": path,
        "root_path": "",
        "scheme": "http",
        "query_string": b"",
        "server": ("testserver", 80),
        "client": ("10.0.0.1", 50000),
        "headers": [
            (key.lower().encode(), value.encode()) for key, value in (headers or {}).items()
        ],
    }
    return Request(scope)


@pytest.fixture
def memory() -> MemoryLogger:
    return MemoryLogger()


@pytest.fixture
def app(memory: MemoryLogger) -> FastAPI:
    """FastAPI app whose endpoints report the ambient context."""
    app = FastAPI()
    app.add_middleware(TraceContextMiddleware, logger=TraceContextLogger(memory))

    @app.get("/images")
    async def list_images() -> dict[str, Any]:
        return get_log_context()

    @app.get("/healthz")
    async def healthz() -> dict[str, Any]:
        return {"context": get_log_context()}

    return app


class TestTraceContextMiddlewareHttp:
    """End-to-end behaviour through a test client."""

    def test_continues_inbound_trace(self, app: FastAPI) -> None:
        """Should continue the trace of an inbound traceparent."""
        response = TestClient(app).get("/images", headers={"traceparent": SAMPLE_HEADER})

        body = response.json()
        assert body["traceId"] == TRACE_ID
        assert body["spanId"] != PARENT_ID
        assert body["requestId"] == response.headers[REQUEST_ID_HEADER]

    def test_response_traceparent_is_child_span(self, app: FastAPI) -> None:
        """Should return a traceparent for this request's span."""
        response = TestClient(app).get("/images", headers={"traceparent": SAMPLE_HEADER})

        body = response.json()
        version, trace_id, span_id, flags = response.headers["traceparent"].split("-")
        assert (version, trace_id, flags) == ("00", TRACE_ID, "01")
        assert span_id not in (body["spanId"], PARENT_ID)
        # A downstream service parsing it continues the same trace
        downstream = parse_traceparent(response.headers["traceparent"])
        assert downstream.trace_id == TRACE_ID
        assert downstream.parent_id == span_id

    def test_starts_new_trace_without_header(self, app: FastAPI) -> None:
        """Should start a new trace when no header is sent."""
        body = TestClient(app).get("/images").json()
        assert len(body["traceId"]) == 32
        assert body["traceId"] != TRACE_ID

    def test_malformed_header_starts_new_trace(self, app: FastAPI) -> None:
        """Should start a new trace for a malformed header."""
        response = TestClient(app).get("/images", headers={"traceparent": "garbage"})
        assert response.status_code == 200
        assert len(response.json()["traceId"]) == 32

    def test_logs_start_and_completion_with_trace(
        self, app: FastAPI, memory: MemoryLogger
    ) -> None:
        """Should log request start and completion with trace ids."""
        TestClient(app).get(
            "/images", headers={"traceparent": SAMPLE_HEADER, "user-agent": "pytest"}
        )

        started, completed = memory.entries
        assert started.msg == "request started"
        assert started.fields["method"] == "GET"
        assert started.fields["userAgent"] == "pytest"
        assert started.fields["traceId"] == TRACE_ID
        assert completed.msg == "request completed"
        assert completed.fields["status"] == 200
        assert completed.fields["duration"] >= 0
        assert completed.fields["requestId"] == started.fields["requestId"]

    def test_path_pattern_skips_other_paths(self, memory: MemoryLogger) -> None:
        """Should pass through paths outside the pattern."""
        app = FastAPI()
        app.add_middleware(TraceContextMiddleware, logger=memory, path_pattern=r"^/api/")

        @app.get("/healthz")
        async def healthz() -> dict[str, Any]:
            return get_log_context()

        response = TestClient(app).get("/healthz")
        assert response.json() == {}
        assert "traceparent" not in response.headers
        assert memory.entries == []

    def test_logging_and_headers_can_be_disabled(self, memory: MemoryLogger) -> None:
        """Request logs and response headers can be turned off."""
        app = FastAPI()
        app.add_middleware(
            TraceContextMiddleware,
            logger=memory,
            enable_logging=False,
            include_response_headers=False,
        )

        @app.get("/images")
        async def list_images() -> dict[str, Any]:
            return get_log_context()

        response = TestClient(app).get("/images")
        assert response.json()["traceId"]
        assert REQUEST_ID_HEADER not in response.headers
        assert memory.entries == []


class TestTraceContextMiddlewareDispatch:
    """Context lifecycle around a single dispatch."""

    @pytest.fixture
    def middleware(self, memory: MemoryLogger) -> TraceContextMiddleware:
        return TraceContextMiddleware(MagicMock(), logger=memory)

    async def test_context_current_during_and_cleared_after(
        self, middleware: TraceContextMiddleware
    ) -> None:
        """Should publish the context for the handler and clear it afterwards."""
        seen = []

        async def call_next(request: Request) -> Response:
            seen.append(get_current_request_context())
            return Response(status_code=204)

        request = make_request(headers={"traceparent": SAMPLE_HEADER})
        response = await middleware.dispatch(request, call_next)

        assert response.status_code == 204
        assert seen[0] is not None
        assert seen[0].trace_info.trace_id == TRACE_ID
        assert seen[0] is request.state.context
        assert get_current_request_context() is None

    async def test_context_cleared_when_handler_raises(
        self, middleware: TraceContextMiddleware, memory: MemoryLogger
    ) -> None:
        """Should clear the context even when the handler raises."""
        async def call_next(request: Request) -> Response:
            raise RuntimeError("handler exploded")

        request = make_request()
        with pytest.raises(RuntimeError, match="handler exploded"):
            await middleware.dispatch(request, call_next)

        assert get_current_request_context() is None
        assert request.state.error_logged is True
        error = memory.by_level("error")[0]
        assert error.msg == "unhandled error"
        assert error.fields["err"]["name"] == "RuntimeError"

    async def test_client_ip_prefers_forwarded_for(
        self, middleware: TraceContextMiddleware, memory: MemoryLogger
    ) -> None:
        """Should prefer the first X-Forwarded-For address."""
        async def call_next(request: Request) -> Response:
            return Response()

        await middleware.dispatch(
            make_request(headers={"x-forwarded-for": "203.0.113.5, 10.0.0.1"}), call_next
        )
        assert memory.entries[0].fields["ip"] == "203.0.113.5"

    async def test_client_ip_falls_back_to_peer(
        self, middleware: TraceContextMiddleware, memory: MemoryLogger
    ) -> None:
        """Should fall back to the peer address."""
        async def call_next(request: Request) -> Response:
            return Response()

        await middleware.dispatch(make_request(), call_next)
        assert memory.entries[0].fields["ip"] == "10.0.0.1"
