"""
schemas/inventory.py — Inventory reconciliation data shapes

InventoryItemRef and InventoryLevel travel between the vendor client,
the store gateway and the orchestrator. RunResult is what a refresh
returns to its caller. Wire names are camelCase; Python names snake_case.

Called by: connectors/shopify_inventory.py, services/*, routers/inventory.py
Depends on: pydantic
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ── Store / vendor records ──────────────────────────────────────────


class InventoryItemRef(BaseModel):
    """A variant the vendor tracks stock for. Immutable for a run."""

    model_config = ConfigDict(frozen=True)

    inventory_item_id: int
    product_id: int
    variant_id: int | None = None
    sku: str | None = None


class InventoryLevel(BaseModel):
    inventory_item_id: int
    location_id: int
    available: int = 0
    previous_available: int | None = None
    last_change_at: datetime | None = None
    sync_batch_id: int | None = None
    updated_at: datetime | None = None

    def to_row(self) -> dict:
        """JSON-ready row for the record store."""
        return {
            "inventory_item_id": self.inventory_item_id,
            "location_id": self.location_id,
            "available": self.available,
            "previous_available": self.previous_available,
            "last_change_at": self.last_change_at.isoformat() if self.last_change_at else None,
            "sync_batch_id": self.sync_batch_id,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


# ── Run results ─────────────────────────────────────────────────────


class BatchError(_CamelModel):
    batch_index: int  # 1-based
    code: str
    error: str
    inventory_item_ids: list[int] = Field(default_factory=list)


class RunResult(_CamelModel):
    sync_log_id: int
    total_products: int = 0
    successful_products: int = 0
    failed_products: int = 0
    total_variants_processed: int = 0
    inventory_updates: int = 0
    errors: list[BatchError] = Field(default_factory=list)
    processing_time: float = 0.0

    def to_response(self) -> dict:
        return self.model_dump(by_alias=True)


# ── API payloads ────────────────────────────────────────────────────


class RefreshRequest(_CamelModel):
    product_ids: list[int] | None = None
    mode: str | None = "batch"


class RefreshResponse(BaseModel):
    data: RunResult
