"""Sync models — vendor variants, inventory levels, and sync run audit log."""

from datetime import datetime, timezone

from sqlalchemy import JSON, BigInteger, Column, Index, Integer, String

from .base import Base, UTCDateTime


def _now():
    return datetime.now(timezone.utc)


class VendorVariant(Base):
    """A sellable variant. inventory_item_id is NULL when the vendor doesn't track it."""

    __tablename__ = "vendor_product_variants"
    id = Column(Integer, primary_key=True)
    product_id = Column(BigInteger, nullable=False, index=True)
    variant_id = Column(BigInteger, nullable=False, unique=True)
    inventory_item_id = Column(BigInteger, index=True)
    sku = Column(String(255))
    created_at = Column(UTCDateTime, default=_now)


class VendorInventoryLevel(Base):
    """Current stock for one (inventory item, location). Last writer wins."""

    __tablename__ = "vendor_inventory_levels"
    id = Column(Integer, primary_key=True)
    inventory_item_id = Column(BigInteger, nullable=False)
    location_id = Column(BigInteger, nullable=False)
    available = Column(Integer, nullable=False, default=0)
    previous_available = Column(Integer)  # value this row held before the last write
    last_change_at = Column(UTCDateTime)
    sync_batch_id = Column(Integer, index=True)
    updated_at = Column(UTCDateTime, default=_now)

    __table_args__ = (
        Index("ix_inv_level_item_location", "inventory_item_id", "location_id", unique=True),
    )


class InventorySyncLog(Base):
    """One reconciliation run."""

    __tablename__ = "inventory_sync_log"
    id = Column(Integer, primary_key=True)
    sync_type = Column(String(20), nullable=False)  # manual | scheduled
    triggered_by = Column(String(100))
    status = Column(String(20), nullable=False, default="running")  # running | completed | failed
    products_synced = Column(Integer, nullable=False, default=0)
    variants_processed = Column(Integer, nullable=False, default=0)
    progress_pct = Column(Integer, nullable=False, default=0)
    errors_count = Column(Integer, nullable=False, default=0)
    error_details = Column(JSON)
    started_at = Column(UTCDateTime, nullable=False, default=_now)
    completed_at = Column(UTCDateTime)
    updated_at = Column(UTCDateTime, default=_now)

    __table_args__ = (Index("ix_sync_type_started", "sync_type", "started_at"),)
