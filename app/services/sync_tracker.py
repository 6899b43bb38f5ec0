"""
sync_tracker.py — Sync Run Tracker (audit log of reconciliation runs)

One inventory_sync_log row per run: created in start(), patched by
progress() after each batch, closed by finish().

Business Rules:
- start() must succeed: without a run id nothing can be traced
- progress() is best-effort: failures are logged and swallowed
- finish() stamps completed_at; failures are logged, the run result stands
- A run is terminal once status leaves "running"

Called by: services/inventory_refresh.py, services/sync_status.py
Depends on: connectors/supabase_rest.py, models/sync.py
"""

from abc import ABC, abstractmethod

from loguru import logger
from sqlalchemy.orm import Session

from ..connectors.supabase_rest import SupabaseRest
from ..exceptions import TrackerError
from ..models import InventorySyncLog
from ..utils import utcnow

SYNC_LOG_TABLE = "inventory_sync_log"

STATUS_RUNNING = "running"
STATUS_COMPLETED = "completed"
STATUS_FAILED = "failed"


class SyncRunTracker(ABC):
    async def start(self, sync_type: str, triggered_by: str) -> int:
        row = {
            "sync_type": sync_type,
            "triggered_by": triggered_by,
            "status": STATUS_RUNNING,
            "products_synced": 0,
            "variants_processed": 0,
            "progress_pct": 0,
            "errors_count": 0,
            "started_at": utcnow(),
        }
        try:
            run_id = await self._insert(row)
        except Exception as e:
            raise TrackerError(f"Failed to create sync log entry: {e}") from e
        logger.info("Sync run #{} started ({}, by {})", run_id, sync_type, triggered_by)
        return run_id

    async def progress(
        self,
        run_id: int,
        *,
        products_synced: int,
        variants_processed: int,
        progress_pct: int,
    ) -> bool:
        try:
            await self._patch(
                run_id,
                {
                    "products_synced": products_synced,
                    "variants_processed": variants_processed,
                    "progress_pct": progress_pct,
                    "updated_at": utcnow(),
                },
            )
        except Exception as e:
            logger.warning("Progress update for sync run #{} failed: {}", run_id, e)
            return False
        return True

    async def finish(
        self,
        run_id: int,
        *,
        status: str,
        products_synced: int,
        errors_count: int,
        error_details: list[dict] | None = None,
    ) -> bool:
        now = utcnow()
        values = {
            "status": status,
            "products_synced": products_synced,
            "errors_count": errors_count,
            "error_details": error_details or None,
            "completed_at": now,
            "updated_at": now,
        }
        if status == STATUS_COMPLETED:
            values["progress_pct"] = 100
        try:
            await self._patch(run_id, values)
        except Exception:
            logger.exception("Failed to finalize sync run #{}", run_id)
            return False
        logger.info("Sync run #{} {}: {} products, {} errors", run_id, status, products_synced, errors_count)
        return True

    async def get_run(self, run_id: int) -> dict | None:
        return await self._get(run_id)

    async def recent_runs(self, limit: int = 20, sync_type: str | None = None) -> list[dict]:
        """Most recent runs first."""
        return await self._recent(limit, sync_type)

    @abstractmethod
    async def _insert(self, row: dict) -> int:
        ...

    @abstractmethod
    async def _patch(self, run_id: int, values: dict) -> None:
        ...

    @abstractmethod
    async def _get(self, run_id: int) -> dict | None:
        ...

    @abstractmethod
    async def _recent(self, limit: int, sync_type: str | None) -> list[dict]:
        ...


def _jsonable(values: dict) -> dict:
    return {k: (v.isoformat() if hasattr(v, "isoformat") else v) for k, v in values.items()}


class RestSyncTracker(SyncRunTracker):
    def __init__(self, rest: SupabaseRest):
        self.rest = rest

    async def _insert(self, row: dict) -> int:
        stored = await self.rest.insert(SYNC_LOG_TABLE, _jsonable(row))
        return int(stored["id"])

    async def _patch(self, run_id: int, values: dict) -> None:
        await self.rest.update(SYNC_LOG_TABLE, {"id": f"eq.{run_id}"}, _jsonable(values))

    async def _get(self, run_id: int) -> dict | None:
        rows = await self.rest.select(SYNC_LOG_TABLE, {"id": f"eq.{run_id}", "limit": "1"})
        return rows[0] if rows else None

    async def _recent(self, limit: int, sync_type: str | None) -> list[dict]:
        params = {"order": "started_at.desc", "limit": str(limit)}
        if sync_type:
            params["sync_type"] = f"eq.{sync_type}"
        return await self.rest.select(SYNC_LOG_TABLE, params)


class SqlSyncTracker(SyncRunTracker):
    def __init__(self, db: Session):
        self.db = db

    @staticmethod
    def _to_dict(run: InventorySyncLog) -> dict:
        return _jsonable(
            {col: getattr(run, col) for col in InventorySyncLog.__table__.columns.keys()}
        )

    async def _insert(self, row: dict) -> int:
        run = InventorySyncLog(**row, updated_at=row["started_at"])
        self.db.add(run)
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        return run.id

    async def _patch(self, run_id: int, values: dict) -> None:
        run = self.db.get(InventorySyncLog, run_id)
        if run is None:
            raise LookupError(f"sync run #{run_id} not found")
        for key, value in values.items():
            setattr(run, key, value)
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

    async def _get(self, run_id: int) -> dict | None:
        run = self.db.get(InventorySyncLog, run_id)
        return self._to_dict(run) if run else None

    async def _recent(self, limit: int, sync_type: str | None) -> list[dict]:
        q = self.db.query(InventorySyncLog)
        if sync_type:
            q = q.filter(InventorySyncLog.sync_type == sync_type)
        runs = q.order_by(InventorySyncLog.started_at.desc(), InventorySyncLog.id.desc()).limit(limit).all()
        return [self._to_dict(r) for r in runs]
