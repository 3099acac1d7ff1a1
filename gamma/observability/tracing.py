"""W3C trace-context propagation and the ambient request context.

Parses and emits ``traceparent`` headers of the form
``00-<trace-id>-<parent-id>-<trace-flags>``, mints trace/span/request ids and
keeps one "current" RequestContext per execution context.

Ambient context contract:
    The current RequestContext lives in a ContextVar. Each asyncio task and
    each thread sees its own value, so one request handled per task is safe.
    Work handed to another thread or executor without copying the context
    (``contextvars.copy_context``) does NOT see the value; such code must
    pass the RequestContext explicitly and use the ``*_from_context``
    helpers or ``propagation_headers(ctx)``.

Usage:
    ctx = create_request_context(request.headers.get("traceparent"))
    try:
        ...
        headers = propagation_headers()
    finally:
        clear_request_context()
"""

import secrets
import uuid
from collections.abc import Callable, Iterator, Mapping
from contextlib import contextmanager
from contextvars import ContextVar
from typing import TypeVar

from opentelemetry import trace
from opentelemetry.context import Context
from opentelemetry.trace import NonRecordingSpan, SpanContext, TraceFlags
from opentelemetry.trace.propagation.tracecontext import TraceContextTextMapPropagator

from gamma.observability.metrics import TRACE_FALLBACKS
from gamma.observability.models import (
    INVALID_SPAN_ID,
    INVALID_TRACE_ID,
    LogContext,
    RequestContext,
    TraceInfo,
)

T = TypeVar("T")

TRACEPARENT_HEADER = "traceparent"
TRACEPARENT_VERSION = "00"
DEFAULT_FLAGS = "01"  # sampled; no sampling policy yet

# W3C Trace Context propagator
_propagator = TraceContextTextMapPropagator()

_request_context: ContextVar[RequestContext | None] = ContextVar(
    "gamma_request_context", default=None
)


def generate_trace_id() -> str:
    """Return 32 random lowercase hex characters (never all zeros)."""
    trace_id = secrets.token_hex(16)
    while trace_id == INVALID_TRACE_ID:
        trace_id = secrets.token_hex(16)
    return trace_id


def generate_span_id(exclude: str | None = None) -> str:
    """Return 16 random lowercase hex characters, never equal to ``exclude``."""
    span_id = secrets.token_hex(8)
    while span_id in (exclude, INVALID_SPAN_ID):
        span_id = secrets.token_hex(8)
    return span_id


def generate_request_id() -> str:
    """Return a random UUID4 string for human log correlation."""
    return str(uuid.uuid4())


def new_trace() -> TraceInfo:
    """Mint a brand-new root trace."""
    return TraceInfo(
        trace_id=generate_trace_id(),
        span_id=generate_span_id(),
        flags=DEFAULT_FLAGS,
    )


def extract_context(headers: Mapping[str, str]) -> Context:
    """Extract W3C trace context from HTTP headers.

    Args:
        headers: HTTP headers dict

    Returns:
        OpenTelemetry Context carrying the remote span, if any was valid
    """
    return _propagator.extract(carrier=dict(headers))


def inject_context(headers: dict[str, str], context: Context) -> None:
    """Inject the span of ``context`` into ``headers`` as traceparent."""
    _propagator.inject(carrier=headers, context=context)


def _to_span_context(info: TraceInfo) -> SpanContext:
    return SpanContext(
        trace_id=int(info.trace_id, 16),
        span_id=int(info.span_id, 16),
        is_remote=False,
        trace_flags=TraceFlags(int(info.flags, 16)),
    )


def parse_traceparent(header: str | None = None) -> TraceInfo:
    """Parse an inbound traceparent header.

    A valid header continues the caller's trace: ``trace_id`` and ``flags``
    are kept, the inbound span id becomes ``parent_id`` and a fresh
    ``span_id`` is minted for this unit of work. Only version ``00`` is
    accepted, on top of the propagator's own checks (lowercase hex, field
    lengths, all-zero ids).

    Missing or malformed input never raises; a new root trace is returned
    instead so request handling is never blocked by bad propagation data.

    Args:
        header: Raw header value, or None when absent

    Returns:
        TraceInfo for the current unit of work
    """
    if not header:
        return new_trace()

    header = header.strip()
    remote = trace.get_current_span(
        extract_context({TRACEPARENT_HEADER: header})
    ).get_span_context()

    if not remote.is_valid:
        TRACE_FALLBACKS.labels(reason="malformed").inc()
        return new_trace()
    if not header.startswith(f"{TRACEPARENT_VERSION}-"):
        TRACE_FALLBACKS.labels(reason="version").inc()
        return new_trace()

    parent_id = trace.format_span_id(remote.span_id)
    return TraceInfo(
        trace_id=trace.format_trace_id(remote.trace_id),
        span_id=generate_span_id(exclude=parent_id),
        parent_id=parent_id,
        flags=format(remote.trace_flags, "02x"),
    )


def generate_traceparent(info: TraceInfo) -> str:
    """Format ``info`` as a traceparent header value."""
    headers: dict[str, str] = {}
    span = NonRecordingSpan(_to_span_context(info))
    inject_context(headers, trace.set_span_in_context(span, Context()))
    return headers[TRACEPARENT_HEADER]


def generate_child_span(parent: TraceInfo) -> TraceInfo:
    """Derive a child span of ``parent`` within the same trace."""
    return TraceInfo(
        trace_id=parent.trace_id,
        span_id=generate_span_id(exclude=parent.span_id),
        parent_id=parent.span_id,
        flags=parent.flags,
    )


def set_request_context(context: RequestContext | None) -> None:
    """Publish ``context`` as the current request context."""
    _request_context.set(context)


def create_request_context(header: str | None = None) -> RequestContext:
    """Create the RequestContext for a new unit of work and make it current.

    The owning entrypoint must call ``clear_request_context()`` when the
    unit of work ends, on the error path too. Only valid when the host runs
    one unit of work per execution context at a time (see module docstring).

    Args:
        header: Inbound traceparent header value, if any

    Returns:
        The newly published RequestContext
    """
    context = RequestContext(
        request_id=generate_request_id(),
        trace_info=parse_traceparent(header),
    )
    set_request_context(context)
    return context


def get_current_request_context() -> RequestContext | None:
    """Return the current request context, or None outside a request."""
    return _request_context.get()


def clear_request_context() -> None:
    """Tear down the current request context."""
    _request_context.set(None)


@contextmanager
def use_request_context(context: RequestContext) -> Iterator[RequestContext]:
    """Make ``context`` current for the duration of the block.

    The previous value is restored on exit, including when the block raises.
    """
    token = _request_context.set(context)
    try:
        yield context
    finally:
        _request_context.reset(token)


def run_with_context(context: RequestContext, fn: Callable[[], T]) -> T:
    """Call ``fn`` with ``context`` as the current request context."""
    with use_request_context(context):
        return fn()


def create_child_span_from_context(context: RequestContext) -> TraceInfo:
    """Derive a child span of an explicitly passed request context."""
    return generate_child_span(context.trace_info)


def create_child_span_from_current() -> TraceInfo | None:
    """Derive a child span of the current request context, if any."""
    context = get_current_request_context()
    if context is None:
        return None
    return create_child_span_from_context(context)


def get_log_context() -> LogContext:
    """Return the correlation fields of the current request for log records.

    Returns:
        ``{"requestId", "traceId", "spanId"}`` or an empty dict when no
        request context is current
    """
    context = get_current_request_context()
    if context is None:
        return {}
    return {
        "requestId": context.request_id,
        "traceId": context.trace_info.trace_id,
        "spanId": context.trace_info.span_id,
    }


def propagation_headers(context: RequestContext | None = None) -> dict[str, str]:
    """Build outbound propagation headers for a downstream call.

    A child span of ``context`` (or of the current request context) is
    minted so the downstream service continues the same trace.

    Returns:
        ``{"traceparent": ...}``, or an empty dict when there is no context
    """
    if context is None:
        context = get_current_request_context()
    if context is None:
        return {}
    child = create_child_span_from_context(context)
    return {TRACEPARENT_HEADER: generate_traceparent(child)}
