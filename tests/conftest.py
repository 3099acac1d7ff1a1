"""Shared test fixtures for the gamma test suite."""

from collections.abc import Callable, Generator
from pathlib import Path
from typing import Any

import pytest

from gamma.observability.factory import create_logger
from gamma.observability.logging import Logger
from gamma.observability.models import LoggerConfig
from gamma.observability.testing import CapturedStreams
from gamma.observability.tracing import clear_request_context


@pytest.fixture
def test_config_dir(tmp_path: Path) -> Path:
    """Create a temporary config directory for testing."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    return config_dir


@pytest.fixture
def mock_toml_files(test_config_dir: Path) -> Callable[[dict[str, str]], None]:
    """Factory fixture to create TOML files in the test config directory.

    Usage:
        def test_something(mock_toml_files):
            mock_toml_files({
                "default.toml": "app_name = 'test'",
                "development.toml": "debug = true",
            })
    """

    def _create_toml_files(files: dict[str, str]) -> None:
        for filename, content in files.items():
            toml_file = test_config_dir / filename
            toml_file.write_text(content)

    return _create_toml_files


@pytest.fixture(autouse=True)
def clear_settings_cache() -> Generator[None, None, None]:
    """Clear the cached settings before and after each test."""
    from gamma.config import get_settings

    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture(autouse=True)
def reset_request_context() -> Generator[None, None, None]:
    """Ensure no request context leaks between tests."""
    clear_request_context()
    yield
    clear_request_context()


@pytest.fixture
def streams() -> CapturedStreams:
    """Capture buffers for logger output."""
    return CapturedStreams()


@pytest.fixture
def make_json_logger(streams: CapturedStreams) -> Callable[..., Logger]:
    """Factory for line-JSON loggers writing into ``streams``.

    Usage:
        logger = make_json_logger(level="debug", redact_paths=["password"])
    """

    def _make(**overrides: Any) -> Logger:
        values: dict[str, Any] = {
            "level": "info",
            "service": "test-service",
            "env": "test",
            "version": "1.2.3",
            "pretty": False,
        }
        values.update(overrides)
        return create_logger(
            LoggerConfig(**values),
            stdout=streams.stdout,
            stderr=streams.stderr,
        )

    return _make
