from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from cadence.domain.constants import (
    BREAKER_FAILURE_THRESHOLD,
    BREAKER_RESET_SECONDS,
    DEFAULT_DESIRED_RETENTION,
    DEFAULT_FUZZ_SEED,
    DEFAULT_LEARNING_STEPS,
    DEFAULT_MAX_WRITE_ATTEMPTS,
    DEFAULT_MAXIMUM_INTERVAL,
    DEFAULT_RELEARNING_STEPS,
    DEFAULT_REMOTE_TABLE,
    DEFAULT_RETRY_BASE_DELAY,
    MIN_REVIEW_INTERVAL,
    MINUTES_PER_DAY,
)


def config_files() -> list[Path]:
    return [
        Path.home() / ".config/cadence/config.toml",
        Path.home() / ".cadence.toml",
    ]


class SchedulerParameters(BaseModel):
    """
    Tunable scheduler parameters.

    Learning and relearning ladders are in minutes and must stay below one
    day so short-term cards resurface within the same day.
    """

    model_config = ConfigDict(frozen=True)

    learning_steps: tuple[int, ...] = DEFAULT_LEARNING_STEPS
    relearning_steps: tuple[int, ...] = DEFAULT_RELEARNING_STEPS
    desired_retention: float = DEFAULT_DESIRED_RETENTION
    maximum_interval: int = DEFAULT_MAXIMUM_INTERVAL
    enable_fuzz: bool = True
    fuzz_seed: int = DEFAULT_FUZZ_SEED

    @field_validator("learning_steps", "relearning_steps")
    @classmethod
    def check_steps(cls, v: tuple[int, ...]) -> tuple[int, ...]:
        if not v:
            raise ValueError("at least one step is required")
        for minutes in v:
            if minutes <= 0 or minutes >= MINUTES_PER_DAY:
                raise ValueError(
                    f"step of {minutes} minutes must be positive and shorter than one day"
                )
        return v

    @field_validator("desired_retention")
    @classmethod
    def check_retention(cls, v: float) -> float:
        if not 0 < v < 1:
            raise ValueError("desired_retention must be between 0 and 1 (exclusive)")
        return v

    @field_validator("maximum_interval")
    @classmethod
    def check_maximum_interval(cls, v: int) -> int:
        if v < MIN_REVIEW_INTERVAL:
            raise ValueError(f"maximum_interval must be at least {MIN_REVIEW_INTERVAL} day")
        return v


class AppConfig(BaseSettings):
    """
    Configuration for cadence.
    Supports loading from:
    1. Environment variables (CADENCE_*)
    2. Config file (~/.config/cadence/config.toml)
    3. Manual overrides (CLI)
    """

    model_config = SettingsConfigDict(
        env_prefix="CADENCE_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    # Storage
    data_file: Path = Field(
        default_factory=lambda: Path.home() / ".local/share/cadence/cards.json"
    )
    remote_url: str | None = None
    remote_api_key: str | None = None
    remote_table: str = DEFAULT_REMOTE_TABLE
    access_token: str | None = None

    # Write discipline
    max_write_attempts: int = Field(default=DEFAULT_MAX_WRITE_ATTEMPTS, ge=1)
    retry_base_delay: float = Field(default=DEFAULT_RETRY_BASE_DELAY, ge=0)
    breaker_failure_threshold: int = Field(default=BREAKER_FAILURE_THRESHOLD, ge=1)
    breaker_reset_seconds: float = Field(default=BREAKER_RESET_SECONDS, ge=0)

    scheduler: SchedulerParameters = Field(default_factory=SchedulerParameters)
    verbose: int = 1

    @property
    def is_authenticated(self) -> bool:
        return bool(self.access_token)

    @property
    def has_remote(self) -> bool:
        return bool(self.remote_url and self.remote_api_key)

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

        # Later sources lose: CLI overrides beat env, env beats the file
        if toml_file:
            return (
                init_settings,
                env_settings,
                TomlConfigSettingsSource(settings_cls, toml_file=toml_file),
            )
        return (init_settings, env_settings)

    @field_validator("data_file", mode="before")
    @classmethod
    def resolve_path(cls, v: Any) -> Path:
        return Path(v).expanduser()


def resolve_config(cli_overrides: dict[str, Any] | None = None) -> AppConfig:
    """
    Multi-layered configuration resolution.
    1. Defaults in AppConfig
    2. ~/.config/cadence/config.toml (if exists)
    3. Environment variables (CADENCE_*)
    4. cli_overrides (passed from Typer)
    """
    overrides = {k: v for k, v in (cli_overrides or {}).items() if v is not None}
    return AppConfig(**overrides)
