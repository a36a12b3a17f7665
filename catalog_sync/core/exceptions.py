from typing import Optional


class BaseServiceError(Exception):
    """Base exception for all service-related errors."""
    pass

class CatalogSyncError(BaseServiceError):
    """Base exception for catalog synchronization errors."""
    pass

class TransportError(CatalogSyncError):
    """
    Raised when a feed cannot be acquired from a supplier.

    ``kind`` is one of 'timeout', 'auth', 'not_found'. Only timeouts are retried.
    """

    def __init__(self, message: str, kind: str = "timeout"):
        super().__init__(message)
        self.kind = kind

    @property
    def is_transient(self) -> bool:
        return self.kind == "timeout"

class MappingError(CatalogSyncError):
    """Raised when a single feed row cannot be mapped to a canonical record."""

    def __init__(self, reason: str, detail: Optional[str] = None):
        super().__init__(f"{reason}: {detail}" if detail else reason)
        self.reason = reason
        self.detail = detail

class ConfigurationError(CatalogSyncError):
    """Raised when supplier, mapping or priority configuration is missing or invalid. Aborts the run."""
    pass

class StuckRunError(CatalogSyncError):
    """Describes an in_progress run that outlived the staleness threshold."""

    def __init__(self, run_id: int, started_at):
        super().__init__(f"Sync run {run_id} stuck in progress since {started_at}")
        self.run_id = run_id
        self.started_at = started_at

class SyncRunConflictError(CatalogSyncError):
    """Raised when a fresh run for the same supplier/feed type is already in progress."""
    pass

class InvalidTransitionError(CatalogSyncError):
    """Raised on an illegal sync run status transition."""
    pass

class FeedFormatError(CatalogSyncError):
    """Raised when a feed cannot be read as a table at all."""
    pass

class PriorityValidationError(CatalogSyncError):
    """Raised when a priority assignment would break the per-vertical ranking."""
    pass

class DatabaseError(Exception):
    """Exception raised for database-related errors."""
    pass
