"""Shared utilities for configuration, logging, and retries"""

from recordsync.utils.retry import retry_async, retry_with_config

__all__ = ["retry_async", "retry_with_config"]
