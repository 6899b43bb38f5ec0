"""Database models — re-exported for convenience.

Import from here:  from app.models import InventorySyncLog, ...
"""

from .base import Base  # noqa: F401

# Sync
from .sync import InventorySyncLog, VendorInventoryLevel, VendorVariant  # noqa: F401

# Catalog
from .catalog import CatalogVariant  # noqa: F401
