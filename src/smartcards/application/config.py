from pathlib import Path
from typing import Any, Literal

from pydantic import Field, ValidationInfo, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from smartcards.application.scheduler.weights import WeightPolicy
from smartcards.domain import constants as c


def config_files() -> list[Path]:
    return [
        Path.home() / ".config/smartcards/config.toml",
        Path.home() / ".smartcards.toml",
    ]


class AppConfig(BaseSettings):
    """
    Configuration model for smartcards.
    Supports loading from:
    1. Environment variables (SMARTCARDS_*)
    2. Config file (~/.config/smartcards/config.toml or ~/.smartcards.toml)
    3. Manual overrides (CLI)
    """

    model_config = SettingsConfigDict(
        env_prefix="SMARTCARDS_",
        extra="ignore",
    )

    # Card store
    store_backend: Literal["memory", "rest"] = "memory"
    store_url: str | None = None
    store_api_key: str | None = None

    # Content generation
    generator_url: str = c.DEFAULT_GENERATOR_URL
    generator_api_key: str | None = None
    generator_model: str = c.DEFAULT_GENERATOR_MODEL

    # Scheduling policy
    seed: int | None = None
    weight_floor: float = Field(default=c.WEIGHT_FLOOR, gt=0)
    recency_min: float = Field(default=c.RECENCY_MIN, gt=0)
    recency_max: float = Field(default=c.RECENCY_MAX, gt=0)
    recency_unseen: float = Field(default=c.RECENCY_UNSEEN, gt=0)

    # Paths / output
    log_dir: Path = Field(default_factory=lambda: Path.home() / ".config/smartcards/logs")
    verbose: int = 1

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

        # First existing file wins
        toml_file = next((f for f in config_files() if f.exists()), None)

        # Earlier sources take priority: CLI overrides, then env, then TOML
        if toml_file:
            return (
                init_settings,
                env_settings,
                TomlConfigSettingsSource(settings_cls, toml_file=toml_file),
            )
        return (init_settings, env_settings)

    @field_validator("store_url", "generator_url", mode="before")
    @classmethod
    def strip_trailing_slash(cls, v: Any) -> str | None:
        if v is None:
            return None
        return str(v).rstrip("/")

    @field_validator("recency_max")
    @classmethod
    def check_recency_bounds(cls, v: float, info: ValidationInfo) -> float:
        lower = info.data.get("recency_min")
        if lower is not None and v < lower:
            raise ValueError("recency_max must be >= recency_min")
        return v

    def weight_policy(self) -> WeightPolicy:
        return WeightPolicy(
            weight_floor=self.weight_floor,
            recency_unseen=self.recency_unseen,
            recency_min=self.recency_min,
            recency_max=self.recency_max,
        )


def resolve_config(cli_overrides: dict[str, Any] | None = None) -> AppConfig:
    """
    Multi-layered configuration resolution.
    1. Defaults in AppConfig
    2. ~/.config/smartcards/config.toml (if exists)
    3. Environment variables (SMARTCARDS_*)
    4. cli_overrides (passed from Typer)
    """
    overrides = {k: v for k, v in (cli_overrides or {}).items() if v is not None}
    config = AppConfig(**overrides)

    if config.store_backend == "rest" and not config.store_url:
        raise ValueError("store_backend 'rest' requires store_url")

    return config
