"""Logger factory.

Backend selection is explicit: ``LoggerConfig.pretty`` picks PrettyLogger,
otherwise JsonLineLogger. Every logger handed out is wrapped in
TraceContextLogger so records pick up the current request's correlation ids
without callers passing them.

Usage:
    from gamma.observability.factory import create_default_logger

    logger = create_default_logger()
    logger.info("image uploaded", imageId=image_id)
"""

import os
from collections.abc import Mapping
from typing import IO, TYPE_CHECKING, Any

from pydantic import ValidationError

from gamma.observability.logging import (
    JsonLineLogger,
    Logger,
    PrettyLogger,
    StructlogLogger,
    TraceContextLogger,
)
from gamma.observability.models import (
    DEFAULT_ENV,
    DEFAULT_LEVEL,
    DEFAULT_SERVICE,
    DEFAULT_VERSION,
    LoggerConfig,
)

if TYPE_CHECKING:
    from gamma.config.settings import Settings

DEVELOPMENT_ENV = "development"
TEST_ENV = "test"

# Process environment variables and the LoggerConfig field each one sets.
# The settings loader reads the same variables (see gamma.config.loader).
LOGGER_ENV_VARIABLES: dict[str, str] = {
    "LOG_LEVEL": "level",
    "SERVICE_NAME": "service",
    "APP_ENV": "env",
    "APP_VERSION": "version",
    "LOG_REDACT_PATHS": "redact_paths",
}


def create_logger(
    config: LoggerConfig,
    stdout: IO[str] | None = None,
    stderr: IO[str] | None = None,
) -> Logger:
    """Create a logger for ``config``.

    Args:
        config: Logger configuration fixed at process start
        stdout: Stream for non-error records (defaults to sys.stdout)
        stderr: Stream for error records (defaults to sys.stderr)

    Returns:
        Trace-context aware Logger
    """
    backend: StructlogLogger
    if config.pretty:
        backend = PrettyLogger(config, stdout=stdout, stderr=stderr)
    else:
        backend = JsonLineLogger(config, stdout=stdout, stderr=stderr)
    return TraceContextLogger(backend)


def parse_redact_paths(raw: str | None) -> list[str] | None:
    """Split a comma separated field list; blank input means "use defaults"."""
    if not raw:
        return None
    paths = [part.strip() for part in raw.split(",")]
    return [path for path in paths if path] or None


def logger_env_values(env: Mapping[str, str]) -> dict[str, Any]:
    """Return the LoggerConfig fields set by non-empty variables in ``env``.

    Values are validated the same way ``logger_config_from_env`` validates
    them, so an invalid ``LOG_LEVEL`` yields ``info``.
    """
    values: dict[str, Any] = {}
    for variable, field in LOGGER_ENV_VARIABLES.items():
        raw = env.get(variable)
        if not raw:
            continue
        if field == "redact_paths":
            paths = parse_redact_paths(raw)
            if paths is not None:
                values[field] = paths
        else:
            values[field] = raw

    if "level" in values:
        try:
            values["level"] = LoggerConfig(level=values["level"]).level
        except ValidationError:
            values["level"] = DEFAULT_LEVEL
    return values


def logger_config_from_env(env: Mapping[str, str] | None = None) -> LoggerConfig:
    """Derive a LoggerConfig from environment variables.

    Variables (defaults in parentheses):
        LOG_LEVEL (info), SERVICE_NAME (template-gamma),
        APP_ENV (development), APP_VERSION (0.0.0),
        LOG_REDACT_PATHS (comma separated, default denylist when unset)

    Pretty output is enabled only for APP_ENV=development, and never while
    running under pytest (PYTEST_CURRENT_TEST) or with APP_ENV=test.

    Args:
        env: Variable mapping; defaults to ``os.environ``
    """
    if env is None:
        env = os.environ

    values = logger_env_values(env)
    app_env = values.get("env", DEFAULT_ENV)
    is_test = app_env == TEST_ENV or "PYTEST_CURRENT_TEST" in env

    return LoggerConfig(
        level=values.get("level", DEFAULT_LEVEL),
        service=values.get("service", DEFAULT_SERVICE),
        env=app_env,
        version=values.get("version", DEFAULT_VERSION),
        pretty=app_env == DEVELOPMENT_ENV and not is_test,
        redact_paths=values.get("redact_paths"),
    )


def create_default_logger(env: Mapping[str, str] | None = None) -> Logger:
    """Create a logger configured from environment variables."""
    return create_logger(logger_config_from_env(env))


def logger_config_from_settings(settings: "Settings") -> LoggerConfig:
    """Map application settings onto a LoggerConfig."""
    logging = settings.observability.logging
    return LoggerConfig(
        level=logging.level,
        service=settings.app_name,
        env=settings.environment,
        version=settings.version,
        pretty=logging.pretty,
        redact_paths=logging.redact_paths,
    )
