"""Catalog models — storefront variants that carry a copy of vendor stock."""

from sqlalchemy import BigInteger, Column, Integer, String

from .base import Base, UTCDateTime


class CatalogVariant(Base):
    """Storefront variant imported from the vendor catalog.

    vendor_inventory_item_id links it to vendor_inventory_levels; the
    stock columns are overwritten after every inventory write.
    """

    __tablename__ = "enhanced_product_variants"
    id = Column(Integer, primary_key=True)
    product_id = Column(BigInteger, index=True)
    sku = Column(String(255))
    vendor_inventory_item_id = Column(BigInteger, index=True)
    inventory_quantity = Column(Integer, nullable=False, default=0)
    available_quantity = Column(Integer, nullable=False, default=0)
    stock_status = Column(String(20))  # in_stock | out_of_stock
    last_inventory_update = Column(UTCDateTime)
