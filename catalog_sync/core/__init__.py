"""
Core module exports.
"""
from .enums import (
    FeedType,
    SyncStatus,
    ProductStatus,
    ResolutionAction,
    TransportErrorKind,
)

from .exceptions import (
    BaseServiceError,
    CatalogSyncError,
    TransportError,
    MappingError,
    ConfigurationError,
    StuckRunError,
    SyncRunConflictError,
    InvalidTransitionError,
    FeedFormatError,
    PriorityValidationError,
    DatabaseError,
)
