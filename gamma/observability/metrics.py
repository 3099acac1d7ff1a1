"""Prometheus metrics for gamma.

Counters for emitted log records and trace-propagation fallbacks, and a
latency histogram for requests handled by the trace middleware.
"""

from prometheus_client import Counter, Histogram

# Logging metrics
LOG_RECORDS = Counter(
    "gamma_log_records_total",
    "Total number of log records emitted",
    labelnames=["level"],
)

LOG_EMIT_FAILURES = Counter(
    "gamma_log_emit_failures_total",
    "Total number of log records that fell back to the minimal error line",
)

# Propagation metrics
TRACE_FALLBACKS = Counter(
    "gamma_trace_fallbacks_total",
    "Inbound traceparent headers that were present but rejected",
    labelnames=["reason"],
)

# Request metrics
REQUEST_LATENCY = Histogram(
    "gamma_request_latency_seconds",
    "Request latency in seconds",
    labelnames=["method", "status"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)
