"""
inventory_refresh.py — Inventory Refresh Orchestrator

Drives one reconciliation run through explicit phases:

    INIT → RESOLVING → BATCHING → (FETCHING → UPDATING)* → AGGREGATING → DONE
                   ↘ FAILED (no items / resolve error / unexpected error)

Business Rules:
- productIds must be a non-empty list of ints; checked before any SyncRun exists
- Zero resolved inventory items is a hard failure (ResolutionError)
- Batches of 50 run strictly one after another, with a fixed 2s pause
  between them (none before the first)
- A failed batch (vendor or persistence) is recorded and the run goes on
- Runs that reach AGGREGATING finish as "completed", even with batch errors
- finish() is called exactly once per started run

Called by: routers/inventory.py, scheduler.py
Depends on: connectors/shopify_inventory.py, services/store_gateway.py,
            services/sync_tracker.py, utils/batching.py
"""

import asyncio
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Protocol, Sequence

from loguru import logger

from ..exceptions import PersistenceError, ResolutionError, ValidationError, VendorError
from ..schemas.inventory import BatchError, InventoryItemRef, InventoryLevel, RunResult
from ..utils.batching import DEFAULT_BATCH_SIZE, split
from .store_gateway import StoreGateway
from .sync_tracker import STATUS_COMPLETED, STATUS_FAILED, SyncRunTracker

INTER_BATCH_DELAY = 2.0  # seconds


class VendorInventoryReader(Protocol):
    async def fetch_levels(self, inventory_item_ids: Sequence[int]) -> list[InventoryLevel]:
        ...


class RunPhase(str, Enum):
    INIT = "init"
    RESOLVING = "resolving"
    BATCHING = "batching"
    FETCHING = "fetching"
    UPDATING = "updating"
    AGGREGATING = "aggregating"
    DONE = "done"
    FAILED = "failed"


@dataclass
class RunState:
    phase: RunPhase = RunPhase.INIT
    history: list[RunPhase] = field(default_factory=lambda: [RunPhase.INIT])
    run_id: int | None = None
    product_ids: list[int] = field(default_factory=list)
    items: list[InventoryItemRef] = field(default_factory=list)
    batches: list[list[InventoryItemRef]] = field(default_factory=list)
    batches_done: int = 0
    successful_product_ids: set[int] = field(default_factory=set)
    variants_processed: int = 0
    inventory_updates: int = 0
    errors: list[BatchError] = field(default_factory=list)

    def advance(self, phase: RunPhase) -> None:
        self.phase = phase
        self.history.append(phase)

    @property
    def progress_pct(self) -> int:
        if not self.batches:
            return 0
        return round(self.batches_done / len(self.batches) * 100)


def validate_product_ids(product_ids) -> list[int]:
    """Non-empty list of integer ids, de-duplicated in order."""
    if not product_ids or not isinstance(product_ids, (list, tuple)):
        raise ValidationError("productIds must be a non-empty array of product ids")
    ids: list[int] = []
    seen: set[int] = set()
    for pid in product_ids:
        if isinstance(pid, bool) or not isinstance(pid, int):
            raise ValidationError(f"Invalid product id: {pid!r}")
        if pid not in seen:
            seen.add(pid)
            ids.append(pid)
    return ids


class InventoryRefreshOrchestrator:
    def __init__(
        self,
        vendor: VendorInventoryReader,
        gateway: StoreGateway,
        tracker: SyncRunTracker,
        *,
        batch_size: int = DEFAULT_BATCH_SIZE,
        inter_batch_delay: float = INTER_BATCH_DELAY,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.vendor = vendor
        self.gateway = gateway
        self.tracker = tracker
        self.batch_size = batch_size
        self.inter_batch_delay = inter_batch_delay
        self._sleep = sleep
        self._clock = clock
        self.state = RunState()

    async def run(
        self,
        product_ids,
        *,
        sync_type: str = "manual",
        triggered_by: str = "admin",
        mode: str | None = "batch",
    ) -> RunResult:
        started = self._clock()
        state = self.state = RunState()

        state.product_ids = validate_product_ids(product_ids)
        state.run_id = await self.tracker.start(sync_type, triggered_by)
        logger.info(
            "Inventory refresh #{} ({}, mode={}): {} products",
            state.run_id, sync_type, mode, len(state.product_ids),
        )

        await self._resolve(state)

        state.advance(RunPhase.BATCHING)
        state.batches = split(state.items, self.batch_size)
        logger.info(
            "Sync run #{}: {} inventory items in {} batches",
            state.run_id, len(state.items), len(state.batches),
        )

        try:
            for index, batch in enumerate(state.batches, start=1):
                if index > 1:
                    await self._sleep(self.inter_batch_delay)
                await self._process_batch(state, index, batch)
                await self.tracker.progress(
                    state.run_id,
                    products_synced=len(state.successful_product_ids),
                    variants_processed=state.variants_processed,
                    progress_pct=state.progress_pct,
                )
        except Exception as e:
            state.advance(RunPhase.FAILED)
            logger.exception("Sync run #{} aborted in batch {}", state.run_id, state.batches_done + 1)
            details = [err.model_dump(by_alias=True) for err in state.errors]
            details.append({"code": "REFRESH_FAILED", "error": str(e)})
            await self.tracker.finish(
                state.run_id,
                status=STATUS_FAILED,
                products_synced=len(state.successful_product_ids),
                errors_count=len(details),
                error_details=details,
            )
            raise

        state.advance(RunPhase.AGGREGATING)
        result = self._aggregate(state, started)

        await self.tracker.finish(
            state.run_id,
            status=STATUS_COMPLETED,
            products_synced=result.successful_products,
            errors_count=len(result.errors),
            error_details=[err.model_dump(by_alias=True) for err in result.errors],
        )
        state.advance(RunPhase.DONE)
        logger.info(
            "Sync run #{} done in {:.1f}s: {}/{} products, {} updates, {} batch errors",
            state.run_id, result.processing_time, result.successful_products,
            result.total_products, result.inventory_updates, len(result.errors),
        )
        return result

    async def _resolve(self, state: RunState) -> None:
        state.advance(RunPhase.RESOLVING)
        try:
            items = await self.gateway.resolve_inventory_items(state.product_ids)
            if not items:
                raise ResolutionError(
                    f"No vendor-tracked inventory items found for products {state.product_ids}"
                )
        except ResolutionError as e:
            state.advance(RunPhase.FAILED)
            logger.error("Sync run #{} aborted: {}", state.run_id, e.message)
            await self.tracker.finish(
                state.run_id,
                status=STATUS_FAILED,
                products_synced=0,
                errors_count=1,
                error_details=[{"code": e.code, "error": e.message}],
            )
            raise
        state.items = items

    async def _process_batch(self, state: RunState, index: int, batch: list[InventoryItemRef]) -> None:
        item_ids = [ref.inventory_item_id for ref in batch]
        try:
            state.advance(RunPhase.FETCHING)
            levels = await self.vendor.fetch_levels(item_ids)
            state.advance(RunPhase.UPDATING)
            written = await self.gateway.upsert_levels(levels, sync_batch_id=state.run_id)
        except (VendorError, PersistenceError) as e:
            state.errors.append(
                BatchError(batch_index=index, code=e.code, error=e.message, inventory_item_ids=item_ids)
            )
            logger.warning(
                "Sync run #{} batch {}/{} failed ({}): {}",
                state.run_id, index, len(state.batches), e.code, e.message,
            )
        else:
            state.inventory_updates += written
            state.variants_processed += len(batch)
            state.successful_product_ids.update(ref.product_id for ref in batch)
            logger.info(
                "Sync run #{} batch {}/{}: {} items, {} levels written",
                state.run_id, index, len(state.batches), len(batch), written,
            )
        finally:
            state.batches_done += 1

    def _aggregate(self, state: RunState, started: float) -> RunResult:
        total = len(state.product_ids)
        successful = len(state.successful_product_ids & set(state.product_ids))
        return RunResult(
            sync_log_id=state.run_id,
            total_products=total,
            successful_products=successful,
            failed_products=total - successful,
            total_variants_processed=state.variants_processed,
            inventory_updates=state.inventory_updates,
            errors=list(state.errors),
            processing_time=round(self._clock() - started, 3),
        )
