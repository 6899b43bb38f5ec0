"""
store_gateway.py — Reconciliation Store Gateway

Resolves product ids to vendor inventory items and persists fetched
inventory levels. Two interchangeable backends share one contract:
  - RestStoreGateway: Supabase / PostgREST over HTTP
  - SqlStoreGateway: local SQLAlchemy database

Business Rules:
- Variants with a NULL inventory_item_id are not tracked by the vendor
  and never resolve (silently excluded)
- Upsert is keyed by (inventory_item_id, location_id), last writer wins
- Every written row is stamped with sync_batch_id and updated_at, and
  keeps the value it replaced in previous_available (NULL for new rows)
- After a successful write, catalog variants linked by
  vendor_inventory_item_id get the new quantity and stock_status.
  This mirror is best-effort: failures are logged, the batch still counts
- Empty upsert is a no-op returning 0
- Resolve failures raise ResolutionError; write failures raise PersistenceError
- REST reads are paged and product id filters are chunked, so large
  catalogs are never cut off at the server's row limit

Called by: services/inventory_refresh.py, services/sync_status.py, scheduler.py
Depends on: connectors/supabase_rest.py, models/sync.py, models/catalog.py
"""

from abc import ABC, abstractmethod
from typing import Iterable, Sequence

import httpx
from loguru import logger
from sqlalchemy.orm import Session

from ..connectors.supabase_rest import SupabaseRest, SupabaseRestError
from ..exceptions import PersistenceError, ResolutionError
from ..models import CatalogVariant, VendorInventoryLevel, VendorVariant
from ..schemas.inventory import InventoryItemRef, InventoryLevel
from ..utils import safe_int, utcnow
from ..utils.batching import split

VARIANTS_TABLE = "vendor_product_variants"
LEVELS_TABLE = "vendor_inventory_levels"
CATALOG_TABLE = "enhanced_product_variants"
LEVEL_CONFLICT_KEY = ("inventory_item_id", "location_id")
ID_CHUNK_SIZE = 200  # ids per in.(...) filter


def catalog_stock_values(level: InventoryLevel) -> dict:
    """Columns copied onto catalog variants for one written level."""
    return {
        "inventory_quantity": level.available,
        "available_quantity": level.available,
        "stock_status": "in_stock" if level.available > 0 else "out_of_stock",
        "last_inventory_update": level.last_change_at,
    }


class StoreGateway(ABC):
    async def resolve_inventory_items(self, product_ids: Iterable[int]) -> list[InventoryItemRef]:
        ids = sorted(set(product_ids))
        if not ids:
            return []
        try:
            rows = await self._fetch_variants(ids)
        except Exception as e:
            raise ResolutionError(f"Failed to resolve inventory items: {e}") from e

        wanted = set(ids)
        refs: list[InventoryItemRef] = []
        seen: set[int] = set()
        for row in rows:
            item_id = safe_int(row.get("inventory_item_id"))
            product_id = safe_int(row.get("product_id"))
            if item_id is None or product_id not in wanted or item_id in seen:
                continue
            seen.add(item_id)
            refs.append(
                InventoryItemRef(
                    inventory_item_id=item_id,
                    product_id=product_id,
                    variant_id=safe_int(row.get("variant_id")),
                    sku=row.get("sku"),
                )
            )
        logger.debug("Resolved {} inventory items for {} products", len(refs), len(ids))
        return refs

    async def upsert_levels(self, levels: Sequence[InventoryLevel], sync_batch_id: int) -> int:
        if not levels:
            return 0

        now = utcnow()
        previous = await self._previous_available({level.inventory_item_id for level in levels})
        # one row per conflict key; a later level in the list wins
        merged: dict[tuple[int, int], InventoryLevel] = {}
        for level in levels:
            key = (level.inventory_item_id, level.location_id)
            merged[key] = level.model_copy(
                update={
                    "previous_available": previous.get(key),
                    "sync_batch_id": sync_batch_id,
                    "updated_at": now,
                    "last_change_at": level.last_change_at or now,
                }
            )
        rows = list(merged.values())
        try:
            written = await self._write_levels(rows)
        except Exception as e:
            raise PersistenceError(f"Failed to update inventory levels: {e}") from e

        await self._mirror_to_catalog(rows)
        return written

    async def list_tracked_product_ids(self) -> list[int]:
        """Every product with at least one vendor-tracked variant."""
        rows = await self._fetch_tracked()
        return sorted({pid for pid in (safe_int(r.get("product_id")) for r in rows) if pid is not None})

    async def list_levels(self) -> list[dict]:
        """All stored levels as {available, last_change_at} dicts."""
        return await self._fetch_levels()

    async def _previous_available(self, item_ids: set[int]) -> dict[tuple[int, int], int | None]:
        try:
            rows = await self._fetch_current(sorted(item_ids))
        except Exception as e:
            logger.warning(
                "Could not read current levels for {} items, previous_available left empty: {}",
                len(item_ids), e,
            )
            return {}
        current: dict[tuple[int, int], int | None] = {}
        for row in rows:
            item_id = safe_int(row.get("inventory_item_id"))
            location_id = safe_int(row.get("location_id"))
            if item_id is not None and location_id is not None:
                current[(item_id, location_id)] = safe_int(row.get("available"))
        return current

    async def _mirror_to_catalog(self, levels: list[InventoryLevel]) -> None:
        # one catalog update per item; with several locations the last one in the batch wins
        latest = {level.inventory_item_id: level for level in levels}
        try:
            updated = await self._write_catalog(list(latest.values()))
        except Exception as e:
            logger.warning("Catalog stock mirror failed for {} items: {}", len(latest), e)
            return
        logger.debug("Mirrored {} inventory items onto {} catalog variants", len(latest), updated)

    @abstractmethod
    async def _fetch_variants(self, product_ids: list[int]) -> list[dict]:
        ...

    @abstractmethod
    async def _fetch_current(self, item_ids: list[int]) -> list[dict]:
        ...

    @abstractmethod
    async def _write_levels(self, levels: list[InventoryLevel]) -> int:
        ...

    @abstractmethod
    async def _write_catalog(self, levels: list[InventoryLevel]) -> int:
        ...

    @abstractmethod
    async def _fetch_tracked(self) -> list[dict]:
        ...

    @abstractmethod
    async def _fetch_levels(self) -> list[dict]:
        ...


class RestStoreGateway(StoreGateway):
    """Record store reached over Supabase REST."""

    def __init__(self, rest: SupabaseRest, chunk_size: int = ID_CHUNK_SIZE):
        self.rest = rest
        self.chunk_size = chunk_size

    @staticmethod
    def _in(ids: list[int]) -> str:
        return f"in.({','.join(str(i) for i in ids)})"

    async def _fetch_variants(self, product_ids: list[int]) -> list[dict]:
        rows: list[dict] = []
        for chunk in split(product_ids, self.chunk_size):
            rows.extend(
                await self.rest.select_all(
                    VARIANTS_TABLE,
                    {
                        "select": "product_id,variant_id,inventory_item_id,sku",
                        "product_id": self._in(chunk),
                        "inventory_item_id": "not.is.null",
                        "order": "product_id.asc,variant_id.asc",
                    },
                )
            )
        return rows

    async def _fetch_current(self, item_ids: list[int]) -> list[dict]:
        rows: list[dict] = []
        for chunk in split(item_ids, self.chunk_size):
            rows.extend(
                await self.rest.select_all(
                    LEVELS_TABLE,
                    {
                        "select": "inventory_item_id,location_id,available",
                        "inventory_item_id": self._in(chunk),
                        "order": "id.asc",
                    },
                )
            )
        return rows

    async def _write_levels(self, levels: list[InventoryLevel]) -> int:
        rows = [level.to_row() for level in levels]
        return await self.rest.upsert(LEVELS_TABLE, rows, on_conflict=",".join(LEVEL_CONFLICT_KEY))

    async def _write_catalog(self, levels: list[InventoryLevel]) -> int:
        patched = 0
        for level in levels:
            values = catalog_stock_values(level)
            values["last_inventory_update"] = level.last_change_at.isoformat() if level.last_change_at else None
            try:
                await self.rest.update(
                    CATALOG_TABLE,
                    {"vendor_inventory_item_id": f"eq.{level.inventory_item_id}"},
                    values,
                )
            except (SupabaseRestError, httpx.HTTPError) as e:
                logger.warning("Catalog stock update failed for inventory item {}: {}", level.inventory_item_id, e)
                continue
            patched += 1
        return patched

    async def _fetch_tracked(self) -> list[dict]:
        return await self.rest.select_all(
            VARIANTS_TABLE,
            {"select": "product_id", "inventory_item_id": "not.is.null", "order": "id.asc"},
        )

    async def _fetch_levels(self) -> list[dict]:
        return await self.rest.select_all(LEVELS_TABLE, {"select": "available,last_change_at", "order": "id.asc"})


class SqlStoreGateway(StoreGateway):
    """Record store in a local SQLAlchemy database."""

    def __init__(self, db: Session):
        self.db = db

    async def _fetch_variants(self, product_ids: list[int]) -> list[dict]:
        variants = (
            self.db.query(VendorVariant)
            .filter(
                VendorVariant.product_id.in_(product_ids),
                VendorVariant.inventory_item_id.isnot(None),
            )
            .order_by(VendorVariant.product_id, VendorVariant.variant_id)
            .all()
        )
        return [
            {
                "product_id": v.product_id,
                "variant_id": v.variant_id,
                "inventory_item_id": v.inventory_item_id,
                "sku": v.sku,
            }
            for v in variants
        ]

    async def _fetch_current(self, item_ids: list[int]) -> list[dict]:
        try:
            rows = (
                self.db.query(
                    VendorInventoryLevel.inventory_item_id,
                    VendorInventoryLevel.location_id,
                    VendorInventoryLevel.available,
                )
                .filter(VendorInventoryLevel.inventory_item_id.in_(item_ids))
                .all()
            )
        except Exception:
            self.db.rollback()
            raise
        return [{"inventory_item_id": r[0], "location_id": r[1], "available": r[2]} for r in rows]

    async def _write_levels(self, levels: list[InventoryLevel]) -> int:
        rows = [level.model_dump() for level in levels]
        dialect = self.db.get_bind().dialect.name
        try:
            if dialect == "postgresql":
                from sqlalchemy.dialects.postgresql import insert
            elif dialect == "sqlite":
                from sqlalchemy.dialects.sqlite import insert
            else:
                self._merge_rows(rows)
                self.db.commit()
                return len(rows)

            stmt = insert(VendorInventoryLevel.__table__).values(rows)
            stmt = stmt.on_conflict_do_update(
                index_elements=list(LEVEL_CONFLICT_KEY),
                set_={
                    col: stmt.excluded[col]
                    for col in ("available", "previous_available", "last_change_at", "sync_batch_id", "updated_at")
                },
            )
            self.db.execute(stmt)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        return len(rows)

    def _merge_rows(self, rows: list[dict]) -> None:
        for row in rows:
            existing = (
                self.db.query(VendorInventoryLevel)
                .filter_by(inventory_item_id=row["inventory_item_id"], location_id=row["location_id"])
                .first()
            )
            if existing:
                for key, value in row.items():
                    setattr(existing, key, value)
            else:
                self.db.add(VendorInventoryLevel(**row))

    async def _write_catalog(self, levels: list[InventoryLevel]) -> int:
        updated = 0
        try:
            for level in levels:
                updated += (
                    self.db.query(CatalogVariant)
                    .filter(CatalogVariant.vendor_inventory_item_id == level.inventory_item_id)
                    .update(catalog_stock_values(level), synchronize_session=False)
                )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        return updated

    async def _fetch_tracked(self) -> list[dict]:
        rows = (
            self.db.query(VendorVariant.product_id)
            .filter(VendorVariant.inventory_item_id.isnot(None))
            .distinct()
            .all()
        )
        return [{"product_id": r[0]} for r in rows]

    async def _fetch_levels(self) -> list[dict]:
        rows = self.db.query(VendorInventoryLevel.available, VendorInventoryLevel.last_change_at).all()
        return [{"available": r[0], "last_change_at": r[1]} for r in rows]
