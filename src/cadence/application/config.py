from pathlib import Path
from typing import Any, Literal

from pydantic import Field, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from cadence.domain.constants import (
    DEFAULT_HISTORY_DAYS,
    DEFAULT_MAX_INTERVAL,
    DEFAULT_RECENT_DAYS,
    DEFAULT_STORE_TIMEOUT,
)

from .scheduling import SchedulingPolicy


def config_files() -> list[Path]:
    return [
        Path.home() / ".config/cadence/config.toml",
        Path.home() / ".cadence.toml",
    ]


class AppConfig(BaseSettings):
    """
    Configuration model for cadence.
    Supports loading from:
    1. Environment variables (CADENCE_*)
    2. Config file (~/.config/cadence/config.toml)
    3. Manual overrides (CLI)
    """

    model_config = SettingsConfigDict(
        env_prefix="CADENCE_",
        extra="ignore",
    )

    # Storage
    store: Literal["memory", "sqlite"] = "sqlite"
    database_path: Path = Field(default_factory=lambda: Path.home() / ".local/share/cadence/progress.db")
    store_timeout: float = DEFAULT_STORE_TIMEOUT
    catalog_path: Path | None = None

    # Scheduling
    relearn_minutes: int | None = None
    max_interval_days: int = DEFAULT_MAX_INTERVAL

    # Study & stats
    default_queue_limit: int | None = None
    history_days: int = DEFAULT_HISTORY_DAYS
    recent_days: int = DEFAULT_RECENT_DAYS

    # Server
    host: str = "127.0.0.1"
    port: int = 8777

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        from pydantic_settings import TomlConfigSettingsSource

        # Find the first existing file
        toml_file = None
        for f in config_files():
            if f.exists():
                toml_file = f
                break

        # Earlier sources win: overrides, then env, then the file
        if toml_file:
            return (
                init_settings,
                env_settings,
                TomlConfigSettingsSource(settings_cls, toml_file=toml_file),
            )
        return (init_settings, env_settings)

    @field_validator("database_path", "catalog_path", mode="before")
    @classmethod
    def resolve_path(cls, v: Any) -> Path | None:
        if v is None or v == "":
            return None
        return Path(v).expanduser().resolve()

    @field_validator("relearn_minutes", "default_queue_limit", mode="before")
    @classmethod
    def empty_as_none(cls, v: Any) -> Any:
        if v == "":
            return None
        return v

    @field_validator("max_interval_days", "history_days", "recent_days", "store_timeout")
    @classmethod
    def must_be_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("must be positive")
        return v

    @field_validator("relearn_minutes", "default_queue_limit")
    @classmethod
    def optional_positive(cls, v: int | None) -> int | None:
        if v is not None and v <= 0:
            raise ValueError("must be positive")
        return v

    def scheduling_policy(self) -> SchedulingPolicy:
        return SchedulingPolicy(
            relearn_minutes=self.relearn_minutes,
            max_interval_days=self.max_interval_days,
        )


def resolve_config(cli_overrides: dict[str, Any] | None = None) -> AppConfig:
    """
    Multi-layered configuration resolution.
    1. Defaults in AppConfig
    2. ~/.config/cadence/config.toml (if exists)
    3. Environment variables (CADENCE_*)
    4. cli_overrides (passed from Typer), None values ignored
    """
    overrides = {k: v for k, v in (cli_overrides or {}).items() if v is not None}
    return AppConfig(**overrides)
