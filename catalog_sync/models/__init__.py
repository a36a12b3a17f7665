from .master_product import MasterProduct, IDENTIFICATION_FIELDS
from .supplier import Supplier, RetailVertical, SupplierVerticalPriority
from .sku_mapping import SupplierSkuMapping
from .sync_run import SyncRun
from .feed_snapshot import SupplierFeedSnapshot
from .field_mapping import SupplierFieldMapping

# This ensures all models are registered with SQLAlchemy
__all__ = [
    'MasterProduct',
    'IDENTIFICATION_FIELDS',
    'Supplier',
    'RetailVertical',
    'SupplierVerticalPriority',
    'SupplierSkuMapping',
    'SyncRun',
    'SupplierFeedSnapshot',
    'SupplierFieldMapping',
]
