"""Configuration loading for gamma.

Precedence, lowest to highest: model defaults, ``config/default.toml``,
``config/{APP_ENV}.toml``, the plain logger variables (``SERVICE_NAME``,
``APP_VERSION``, ``APP_ENV``, ``LOG_LEVEL``, ``LOG_REDACT_PATHS``) and
finally ``GAMMA_*`` variables.

Usage:
    from gamma.config import get_settings

    settings = get_settings()
    level = settings.observability.logging.level
"""

from functools import lru_cache

from gamma.config.loader import load_config
from gamma.config.settings import Settings


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get the singleton settings instance.

    The result is cached for the lifetime of the process.
    Call `get_settings.cache_clear()` to reload configuration.
    """
    return Settings(**load_config())


def reload_settings() -> Settings:
    """Clear the settings cache and reload configuration."""
    get_settings.cache_clear()
    return get_settings()


__all__ = ["get_settings", "reload_settings", "Settings"]
