from .base import CatalogStore
from .sql import SqlCatalogStore

__all__ = ["CatalogStore", "SqlCatalogStore"]
