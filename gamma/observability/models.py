"""Data models shared by trace propagation and structured logging."""

from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

LogLevel = Literal["debug", "info", "warn", "error"]

# Open string-keyed map; reserved keys are listed in RESERVED_LOG_KEYS.
LogContext = dict[str, Any]

RESERVED_LOG_KEYS: frozenset[str] = frozenset({
    "requestId",
    "traceId",
    "spanId",
    "service",
    "env",
    "version",
    "userId",
    "err",
})

LEVEL_ORDER: dict[str, int] = {
    "debug": 10,
    "info": 20,
    "warn": 30,
    "error": 40,
}

DEFAULT_LEVEL: LogLevel = "info"
DEFAULT_SERVICE = "template-gamma"
DEFAULT_ENV = "development"
DEFAULT_VERSION = "0.0.0"

TRACE_ID_PATTERN = r"^[0-9a-f]{32}$"
SPAN_ID_PATTERN = r"^[0-9a-f]{16}$"
FLAGS_PATTERN = r"^[0-9a-f]{2}$"

SAMPLED_FLAG = 0x01

# All-zero ids are invalid in W3C trace context
INVALID_TRACE_ID = "0" * 32
INVALID_SPAN_ID = "0" * 16


class TraceInfo(BaseModel):
    """Identifiers of one span within a trace.

    All spans belonging to one logical request chain share ``trace_id``;
    ``span_id`` identifies this unit of work and ``parent_id`` the span that
    caused it.
    """

    model_config = ConfigDict(frozen=True)

    trace_id: str = Field(pattern=TRACE_ID_PATTERN, description="32 lowercase hex chars")
    span_id: str = Field(pattern=SPAN_ID_PATTERN, description="16 lowercase hex chars")
    parent_id: str | None = Field(
        default=None,
        pattern=SPAN_ID_PATTERN,
        description="Span id of the caller, if any",
    )
    flags: str = Field(default="01", pattern=FLAGS_PATTERN, description="Trace flags byte")

    @model_validator(mode="after")
    def _valid_ids(self) -> "TraceInfo":
        if self.trace_id == INVALID_TRACE_ID or self.span_id == INVALID_SPAN_ID:
            raise ValueError("all-zero trace_id or span_id is invalid")
        if self.parent_id is not None and self.parent_id == self.span_id:
            raise ValueError("span_id must differ from parent_id")
        return self

    @property
    def sampled(self) -> bool:
        """Whether bit 0 of the flags byte is set."""
        return bool(int(self.flags, 16) & SAMPLED_FLAG)


class RequestContext(BaseModel):
    """Lifecycle window of one inbound unit of work."""

    model_config = ConfigDict(frozen=True)

    request_id: str
    trace_info: TraceInfo
    start_time: datetime = Field(default_factory=lambda: datetime.now(UTC))

    def elapsed_ms(self) -> float:
        """Milliseconds since the unit of work started."""
        return (datetime.now(UTC) - self.start_time).total_seconds() * 1000


class LoggerConfig(BaseModel):
    """Process-wide logger configuration.

    ``redact_paths`` of ``None`` means the default denylist applies; a list
    replaces it.
    """

    level: LogLevel = DEFAULT_LEVEL
    service: str = DEFAULT_SERVICE
    env: str = DEFAULT_ENV
    version: str = DEFAULT_VERSION
    pretty: bool = False
    redact_paths: list[str] | None = None

    @field_validator("level", mode="before")
    @classmethod
    def _normalize_level(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip().lower()
            if value == "warning":
                return "warn"
        return value
