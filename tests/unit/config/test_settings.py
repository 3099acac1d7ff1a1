"""Unit tests for Settings class and get_settings function."""

from collections.abc import Callable
from pathlib import Path

import pytest

from gamma.config import get_settings, reload_settings
from gamma.config.settings import Settings
from gamma.observability.factory import LOGGER_ENV_VARIABLES, logger_config_from_settings


@pytest.fixture
def config_env(
    test_config_dir: Path,
    mock_toml_files: Callable[[dict[str, str]], None],
    monkeypatch: pytest.MonkeyPatch,
) -> Callable[[str], None]:
    """Point the loader at a temporary default.toml with the given content."""
    for variable in LOGGER_ENV_VARIABLES:
        monkeypatch.delenv(variable, raising=False)

    def _write(default_toml: str) -> None:
        mock_toml_files({"default.toml": default_toml})
        monkeypatch.setenv("GAMMA_CONFIG_DIR", str(test_config_dir))

    return _write


class TestSettings:
    """Tests for Settings model."""

    def test_default_values(self) -> None:
        """Settings has sensible defaults."""
        settings = Settings()
        assert settings.app_name == "template-gamma"
        assert settings.version == "0.0.0"
        assert settings.debug is False

    def test_observability_defaults(self) -> None:
        """Observability sections default to enabled JSON logging."""
        settings = Settings()
        assert settings.observability.logging.level == "info"
        assert settings.observability.logging.pretty is False
        assert settings.observability.logging.redact_paths is None
        assert settings.observability.tracing.enabled is True
        assert settings.observability.metrics.path == "/metrics"


class TestGetSettings:
    """Tests for get_settings function."""

    def test_reads_toml(self, config_env: Callable[[str], None]) -> None:
        """Should build Settings from default.toml."""
        config_env("app_name = 'images'\nversion = '2.0.0'")

        settings = get_settings()
        assert isinstance(settings, Settings)
        assert settings.app_name == "images"
        assert settings.version == "2.0.0"
        assert settings.environment == "development"

    def test_settings_cached(self, config_env: Callable[[str], None]) -> None:
        """Should return the same instance until the cache is cleared."""
        config_env("app_name = 'cached'")
        assert get_settings() is get_settings()

    def test_reload_settings_clears_cache(
        self, config_env: Callable[[str], None], test_config_dir: Path
    ) -> None:
        """Should pick up file changes after reload_settings."""
        config_env("app_name = 'original'")
        assert get_settings().app_name == "original"

        (test_config_dir / "default.toml").write_text("app_name = 'updated'")
        assert reload_settings().app_name == "updated"

    def test_version_defaults_when_files_omit_it(
        self, config_env: Callable[[str], None]
    ) -> None:
        """Should fall back to the shared 0.0.0 default version."""
        config_env("app_name = 'images'")
        assert get_settings().version == "0.0.0"


class TestEnvironmentVariableOverrides:
    """Tests for environment variable configuration overrides."""

    def test_top_level_override(
        self, config_env: Callable[[str], None], monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """GAMMA_* variables override TOML values."""
        config_env("debug = false")
        monkeypatch.setenv("GAMMA_DEBUG", "true")
        assert get_settings().debug is True

    def test_nested_override(
        self, config_env: Callable[[str], None], monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Nested GAMMA_ variables override one key and keep its siblings."""
        config_env("[observability.logging]\nlevel = 'info'\npretty = true")
        monkeypatch.setenv("GAMMA_OBSERVABILITY__LOGGING__LEVEL", "WARNING")

        logging = get_settings().observability.logging
        assert logging.level == "warn"
        assert logging.pretty is True

    def test_plain_logger_variables_override_toml(
        self, config_env: Callable[[str], None], monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """SERVICE_NAME, APP_VERSION and LOG_LEVEL beat the TOML files."""
        config_env("app_name = 'from-file'\n[observability.logging]\nlevel = 'info'")
        monkeypatch.setenv("SERVICE_NAME", "from-env")
        monkeypatch.setenv("APP_VERSION", "9.9.9")
        monkeypatch.setenv("LOG_LEVEL", "error")

        settings = get_settings()
        assert settings.app_name == "from-env"
        assert settings.version == "9.9.9"
        assert settings.observability.logging.level == "error"

    def test_prefixed_variables_beat_plain_ones(
        self, config_env: Callable[[str], None], monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """GAMMA_APP_NAME wins over SERVICE_NAME when both are set."""
        config_env("app_name = 'from-file'")
        monkeypatch.setenv("SERVICE_NAME", "plain")
        monkeypatch.setenv("GAMMA_APP_NAME", "prefixed")

        assert get_settings().app_name == "prefixed"

    def test_app_env_selects_overlay_and_environment(
        self,
        config_env: Callable[[str], None],
        mock_toml_files: Callable[[dict[str, str]], None],
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """APP_ENV picks the overlay file and sets Settings.environment."""
        config_env("debug = false")
        mock_toml_files({"staging.toml": "debug = true"})
        monkeypatch.setenv("APP_ENV", "staging")

        settings = get_settings()
        assert settings.environment == "staging"
        assert settings.debug is True


class TestLoggerConfigFromSettings:
    """Tests for mapping settings onto a LoggerConfig."""

    def test_identity_and_logging_fields(self, config_env: Callable[[str], None]) -> None:
        """Should copy identity and logging fields onto LoggerConfig."""
        config_env(
            "app_name = 'images'\n"
            "version = '3.1.0'\n"
            "environment = 'production'\n"
            "[observability.logging]\n"
            "level = 'error'\n"
            "redact_paths = ['email']\n"
        )

        config = logger_config_from_settings(get_settings())
        assert config.service == "images"
        assert config.version == "3.1.0"
        assert config.env == "production"
        assert config.level == "error"
        assert config.pretty is False
        assert config.redact_paths == ["email"]
