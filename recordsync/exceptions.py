"""Error taxonomy for synchronization passes."""

from typing import Any


class RecordSyncError(Exception):
    """Base class for all synchronization errors."""


class TransientStoreError(RecordSyncError):
    """A store call failed in a way that may succeed on retry (timeout, dropped connection)."""


class PermanentRecordError(RecordSyncError):
    """The target rejected a record; retrying the same write will not help."""

    def __init__(self, message: str, key: Any = None):
        super().__init__(message)
        self.key = key


class DuplicateKeyError(PermanentRecordError):
    """A unique index in the store was violated."""


class ConfigurationError(RecordSyncError):
    """Raised when configuration is invalid or missing."""


class SyncInProgressError(RecordSyncError):
    """Raised when a pass is requested while another pass of the same kind is running."""


# Exception types retried with backoff before a record or page is reported as failed
TRANSIENT_ERRORS: tuple[type[Exception], ...] = (
    TransientStoreError,
    TimeoutError,
    ConnectionError,
)
