"""Configuration models for the record synchronizer."""

from typing import Literal

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class SyncConfig(BaseModel):
    """Configuration for full and delta synchronization passes."""

    key_field: str = Field(
        default="name", min_length=1, description="Business key used for lookups and upserts"
    )
    id_field: str = Field(
        default="_id", description="Store-internal identifier never copied into the target"
    )
    batch_size: int = Field(default=100, ge=1, description="Records per page during a safe sync")
    poll_interval: float = Field(
        default=10.0, gt=0, description="Seconds between delta sync ticks"
    )
    full_sync_mode: Literal["safe", "naive"] = Field(
        default="safe",
        description="'safe' paginates the first full sync, 'naive' copies in one query",
    )
    max_concurrency: int = Field(
        default=1, ge=1, description="Upserts allowed in flight within one pass"
    )

    @field_validator("key_field")
    @classmethod
    def key_field_is_plain(cls, v: str) -> str:
        """Reject operator-style field names."""
        if v.startswith("$"):
            raise ValueError("key_field must not start with '$'")
        return v


class RetryConfig(BaseModel):
    """Configuration for exponential backoff on transient store errors."""

    max_retries: int = Field(default=3, ge=0, description="Retries after the first attempt")
    base_delay: float = Field(default=0.5, ge=0.0, description="Initial delay in seconds")
    max_delay: float = Field(default=30.0, gt=0.0, description="Upper bound for a single delay")


class LoggingConfig(BaseModel):
    """Configuration for logging."""

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    json_logs: bool = Field(
        default=True,
        description="If True, output JSON logs. If False, use console format.",
    )
    log_file: str | None = Field(
        default=None,
        description="Optional path to log file. If None, logs only to stdout.",
    )

    @field_validator("log_level")
    @classmethod
    def normalize_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"unknown log level: {v}")
        return level


class AppConfig(BaseSettings):
    """Main application configuration.

    Values can be supplied from a YAML file (see ConfigLoader) or from
    environment variables with the RECORDSYNC_ prefix, e.g.
    RECORDSYNC_SYNC__BATCH_SIZE=50.
    """

    model_config = SettingsConfigDict(
        env_prefix="RECORDSYNC_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    sync: SyncConfig = Field(default_factory=SyncConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
