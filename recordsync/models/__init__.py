"""Configuration models for the record synchronizer."""

from recordsync.models.config import AppConfig, LoggingConfig, RetryConfig, SyncConfig

__all__ = [
    "AppConfig",
    "LoggingConfig",
    "RetryConfig",
    "SyncConfig",
]
