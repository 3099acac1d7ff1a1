"""gamma: trace-context propagation and structured logging for the web template."""

__version__ = "0.1.0"
