"""Observability: trace-context propagation, structured logging, metrics.

Provides W3C traceparent handling with an ambient per-request context,
structlog-based pretty and line-JSON loggers, field redaction, error
normalization and Prometheus counters.
"""

from gamma.observability.errors import ErrorLogger, serialize_error
from gamma.observability.factory import (
    create_default_logger,
    create_logger,
    logger_config_from_env,
)
from gamma.observability.logging import (
    JsonLineLogger,
    Logger,
    PrettyLogger,
    TraceContextLogger,
)
from gamma.observability.models import LoggerConfig, LogLevel, RequestContext, TraceInfo
from gamma.observability.redaction import DEFAULT_REDACT_PATHS, REDACTED, redact
from gamma.observability.tracing import (
    clear_request_context,
    create_child_span_from_context,
    create_child_span_from_current,
    create_request_context,
    generate_child_span,
    generate_request_id,
    generate_span_id,
    generate_trace_id,
    generate_traceparent,
    get_current_request_context,
    get_log_context,
    parse_traceparent,
    propagation_headers,
    use_request_context,
)

__all__ = [
    # Models
    "LoggerConfig",
    "LogLevel",
    "RequestContext",
    "TraceInfo",
    # Tracing
    "clear_request_context",
    "create_child_span_from_context",
    "create_child_span_from_current",
    "create_request_context",
    "generate_child_span",
    "generate_request_id",
    "generate_span_id",
    "generate_trace_id",
    "generate_traceparent",
    "get_current_request_context",
    "get_log_context",
    "parse_traceparent",
    "propagation_headers",
    "use_request_context",
    # Redaction
    "DEFAULT_REDACT_PATHS",
    "REDACTED",
    "redact",
    # Logging
    "Logger",
    "JsonLineLogger",
    "PrettyLogger",
    "TraceContextLogger",
    "create_logger",
    "create_default_logger",
    "logger_config_from_env",
    # Errors
    "ErrorLogger",
    "serialize_error",
]
