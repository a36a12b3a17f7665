"""
Shared enums and constants used across the application.
"""

from enum import Enum


class FeedType(str, Enum):
    CATALOG = "catalog"
    INVENTORY = "inventory"


class FeedFormat(str, Enum):
    CSV = "csv"
    JSON = "json"
    XML = "xml"


class TransportKind(str, Enum):
    FTP = "ftp"
    HTTP = "http"


class TransportErrorKind(str, Enum):
    TIMEOUT = "timeout"
    AUTH = "auth"
    NOT_FOUND = "not_found"


class SyncStatus(str, Enum):
    """Sync run lifecycle states"""
    IDLE = "idle"
    IN_PROGRESS = "in_progress"
    SUCCESS = "success"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (SyncStatus.SUCCESS, SyncStatus.ERROR)


class ProductStatus(str, Enum):
    """Master product status. Sync never deletes, it only deactivates."""
    ACTIVE = "active"
    ARCHIVED = "archived"


class ResolutionAction(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    SKIP = "skip"


class ResolutionReason(str, Enum):
    NEW_PRODUCT = "new_product"
    HIGHER_PRIORITY = "higher_priority"
    OWNER_REFRESH = "owner_refresh"
    LOWER_OR_EQUAL_PRIORITY = "lower_or_equal_priority"
    NO_CHANGE = "no_change"
    MANUAL_OVERRIDE = "manual_override"


class MappingStatus(str, Enum):
    DRAFT = "draft"
    APPROVED = "approved"
    ACTIVE = "active"
    RETIRED = "retired"


class ScheduleFrequency(str, Enum):
    DAILY = "daily"
    WEEKDAYS = "weekdays"
    WEEKLY = "weekly"


# Rank given to a stored owner that has no rank in the vertical (legacy or manual sources).
UNRANKED_PRIORITY = 999
