"""Configuration model exports.

    from gamma.config.models import LoggingConfig, ObservabilityConfig
"""

from gamma.config.models.observability import (
    LoggingConfig,
    MetricsConfig,
    ObservabilityConfig,
    TracingConfig,
)

__all__ = [
    "LoggingConfig",
    "MetricsConfig",
    "ObservabilityConfig",
    "TracingConfig",
]
