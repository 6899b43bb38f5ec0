"""Background scheduler — automated inventory reconciliation.

Runs on a 5-minute tick loop. Each tick checks whether the next scheduled
slot (Tuesday / Friday 06:00 UTC) has passed; if so it fires a
"scheduled" run over every product with a vendor-tracked variant.
"""

import asyncio
import logging
from datetime import datetime
from typing import Awaitable, Callable

from .exceptions import ReconcileError
from .schemas.inventory import RunResult
from .services.sync_status import next_scheduled_sync
from .utils import utcnow

log = logging.getLogger(__name__)

TICK_SECONDS = 300


async def run_scheduled_sync() -> RunResult | None:
    """One scheduled run. Returns None when there is nothing to sync."""
    from .database import SessionLocal
    from .dependencies import (
        build_orchestrator,
        build_store_gateway,
        build_sync_tracker,
        build_vendor_client,
    )

    db = SessionLocal()
    try:
        vendor = build_vendor_client()
        gateway = build_store_gateway(db)
        tracker = build_sync_tracker(db)

        product_ids = await gateway.list_tracked_product_ids()
        if not product_ids:
            log.info("Scheduled sync: no vendor-tracked products, skipping")
            return None

        orchestrator = build_orchestrator(vendor, gateway, tracker)
        return await orchestrator.run(product_ids, sync_type="scheduled", triggered_by="system")
    finally:
        db.close()


class ScheduledSync:
    """Tracks the next slot and fires the runner when it is due."""

    def __init__(
        self,
        runner: Callable[[], Awaitable[RunResult | None]] = run_scheduled_sync,
        now: datetime | None = None,
    ):
        self.runner = runner
        self.next_run = next_scheduled_sync(now or utcnow())

    async def tick(self, now: datetime | None = None) -> bool:
        now = now or utcnow()
        if now < self.next_run:
            return False

        log.info(f"Scheduled inventory sync due ({self.next_run.isoformat()})")
        # Move the slot first so a failing run is not retried every tick
        self.next_run = next_scheduled_sync(now)
        try:
            result = await self.runner()
            if result:
                log.info(
                    f"Scheduled sync #{result.sync_log_id}: {result.successful_products}/"
                    f"{result.total_products} products, {len(result.errors)} batch errors"
                )
        except ReconcileError as e:
            log.error(f"Scheduled sync failed: {e.code} {e.message}")
        except Exception:
            log.exception("Scheduled sync crashed")
        return True


async def scheduler_loop(interval: int = TICK_SECONDS):
    schedule = ScheduledSync()
    log.info(f"Inventory scheduler started — next run {schedule.next_run.isoformat()}")
    while True:
        await asyncio.sleep(interval)
        await schedule.tick()
