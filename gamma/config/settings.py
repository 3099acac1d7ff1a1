"""Root settings model for gamma configuration."""

from pydantic import Field
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from gamma.config.models.observability import ObservabilityConfig
from gamma.observability.models import DEFAULT_ENV, DEFAULT_SERVICE, DEFAULT_VERSION


class Settings(BaseSettings):
    """Root configuration object.

    Constructor arguments carry the file and process-variable layers built
    by ``gamma.config.loader.load_config``. ``GAMMA_*`` variables (nested
    with ``__``) override them.
    """

    model_config = SettingsConfigDict(
        env_prefix="GAMMA_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    app_name: str = Field(
        default=DEFAULT_SERVICE,
        description="Service name stamped on every log record",
    )
    version: str = Field(default=DEFAULT_VERSION, description="Application version")
    environment: str = Field(default=DEFAULT_ENV, description="Deployment environment")
    debug: bool = Field(default=False, description="Enable debug mode")

    observability: ObservabilityConfig = Field(
        default_factory=ObservabilityConfig,
        description="Observability configuration",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],  # noqa: ARG003
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,  # noqa: ARG003
        file_secret_settings: PydanticBaseSettingsSource,  # noqa: ARG003
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Put GAMMA_* variables above constructor arguments.

        Priority order (highest to lowest):
        1. env_settings (GAMMA_* environment variables)
        2. init_settings (merged TOML files and plain process variables)
        3. (defaults from model)
        """
        return (env_settings, init_settings)
