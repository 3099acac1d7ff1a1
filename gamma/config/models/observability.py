"""Observability configuration models."""

from typing import Literal

from pydantic import BaseModel, Field, field_validator

LogLevel = Literal["debug", "info", "warn", "error"]


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: LogLevel = Field(default="info", description="Minimum level emitted")
    pretty: bool = Field(
        default=False,
        description="Human-readable console output instead of line JSON",
    )
    redact_paths: list[str] | None = Field(
        default=None,
        description="Top-level field names to mask; unset keeps the default denylist",
    )

    @field_validator("level", mode="before")
    @classmethod
    def _lowercase_level(cls, value: object) -> object:
        if isinstance(value, str):
            value = value.lower()
            return "warn" if value == "warning" else value
        return value


class TracingConfig(BaseModel):
    """Trace propagation configuration."""

    enabled: bool = Field(default=True, description="Install the trace middleware")
    path_pattern: str = Field(
        default=".*",
        description="Regex of request paths that get a request context",
    )
    log_requests: bool = Field(default=True, description="Log request start/completion")
    response_headers: bool = Field(
        default=True,
        description="Echo traceparent and x-request-id on responses",
    )


class MetricsConfig(BaseModel):
    """Metrics configuration."""

    enabled: bool = Field(default=True, description="Expose the metrics endpoint")
    path: str = Field(default="/metrics", description="Metrics endpoint path")


class ObservabilityConfig(BaseModel):
    """Observability configuration."""

    logging: LoggingConfig = Field(
        default_factory=LoggingConfig,
        description="Logging settings",
    )
    tracing: TracingConfig = Field(
        default_factory=TracingConfig,
        description="Tracing settings",
    )
    metrics: MetricsConfig = Field(
        default_factory=MetricsConfig,
        description="Metrics settings",
    )
