"""
sync_status.py — Sync status report, manual refresh cooldown, schedule

Business Rules:
- Scheduled syncs run Tuesdays and Fridays at 06:00 UTC
- A manual refresh is refused while the latest manual run started within
  the cooldown window: "running" → SYNC_IN_PROGRESS, otherwise RATE_LIMITED
- Stock health buckets: inStock > 5, lowStock 1..5, outOfStock == 0
- Statistics cover runs started in the last 30 days

Called by: routers/inventory.py, scheduler.py
Depends on: services/sync_tracker.py, services/store_gateway.py
"""

from datetime import datetime, timedelta

from ..exceptions import SyncCooldownError
from ..utils import parse_iso, utcnow
from .store_gateway import StoreGateway
from .sync_tracker import STATUS_COMPLETED, STATUS_FAILED, STATUS_RUNNING, SyncRunTracker

SCHEDULE_WEEKDAYS = (1, 4)  # Tuesday, Friday
SCHEDULE_HOUR = 6
LOW_STOCK_THRESHOLD = 5
STATS_WINDOW = timedelta(days=30)
HISTORY_FETCH = 20
HISTORY_SHOWN = 10


def next_scheduled_sync(now: datetime) -> datetime:
    """Next Tuesday/Friday 06:00 UTC strictly after the current 06:00 slot."""
    candidate = now.replace(hour=SCHEDULE_HOUR, minute=0, second=0, microsecond=0)
    if now.hour >= SCHEDULE_HOUR:
        candidate += timedelta(days=1)
    while candidate.weekday() not in SCHEDULE_WEEKDAYS:
        candidate += timedelta(days=1)
    return candidate


def _duration(run: dict) -> int | None:
    start, end = parse_iso(run.get("started_at")), parse_iso(run.get("completed_at"))
    if not start or not end:
        return None
    return round((end - start).total_seconds())


async def manual_refresh_availability(
    tracker: SyncRunTracker, cooldown_seconds: int, now: datetime | None = None
) -> dict:
    if cooldown_seconds <= 0:
        return {"allowed": True, "reason": None, "cooldownEndsAt": None}

    now = now or utcnow()
    recent = await tracker.recent_runs(limit=1, sync_type="manual")
    if recent:
        last = recent[0]
        started = parse_iso(last.get("started_at"))
        window = timedelta(seconds=cooldown_seconds)
        if started and now - started < window:
            if last.get("status") == STATUS_RUNNING:
                return {"allowed": False, "reason": "sync_in_progress", "cooldownEndsAt": None}
            return {
                "allowed": False,
                "reason": "rate_limited",
                "cooldownEndsAt": (started + window).isoformat(),
            }
    return {"allowed": True, "reason": None, "cooldownEndsAt": None}


async def ensure_manual_refresh_allowed(
    tracker: SyncRunTracker, cooldown_seconds: int, now: datetime | None = None
) -> None:
    availability = await manual_refresh_availability(tracker, cooldown_seconds, now)
    if availability["allowed"]:
        return
    if availability["reason"] == "sync_in_progress":
        raise SyncCooldownError(
            "An inventory sync is already in progress. Please wait for it to complete.",
            code="SYNC_IN_PROGRESS",
        )
    minutes = max(1, round(cooldown_seconds / 60))
    raise SyncCooldownError(
        f"Manual refresh is limited to once every {minutes} minutes. Please try again later.",
        code="RATE_LIMITED",
        next_allowed_time=availability["cooldownEndsAt"],
    )


def inventory_health(levels: list[dict]) -> dict:
    available = [lvl.get("available") or 0 for lvl in levels]
    changed = [d for d in (parse_iso(lvl.get("last_change_at")) for lvl in levels) if d]
    return {
        "totalItems": len(levels),
        "inStock": sum(1 for a in available if a > LOW_STOCK_THRESHOLD),
        "lowStock": sum(1 for a in available if 0 < a <= LOW_STOCK_THRESHOLD),
        "outOfStock": sum(1 for a in available if a == 0),
        "lastUpdated": max(changed).isoformat() if changed else None,
    }


def run_statistics(runs: list[dict], now: datetime) -> dict:
    since = now - STATS_WINDOW
    recent = [r for r in runs if (parse_iso(r.get("started_at")) or now) >= since]
    durations = [d for d in (_duration(r) for r in recent) if d is not None]
    return {
        "totalSyncs": len(recent),
        "successfulSyncs": sum(1 for r in recent if r.get("status") == STATUS_COMPLETED),
        "failedSyncs": sum(1 for r in recent if r.get("status") == STATUS_FAILED),
        "scheduledSyncs": sum(1 for r in recent if r.get("sync_type") == "scheduled"),
        "manualSyncs": sum(1 for r in recent if r.get("sync_type") == "manual"),
        "totalProductsSynced": sum(r.get("products_synced") or 0 for r in recent),
        "averageSyncDuration": round(sum(durations) / len(durations)) if durations else None,
    }


def _run_summary(run: dict) -> dict:
    return {
        "id": run.get("id"),
        "type": run.get("sync_type"),
        "status": run.get("status"),
        "startedAt": run.get("started_at"),
        "completedAt": run.get("completed_at"),
        "productsProcessed": run.get("products_synced") or 0,
        "errorsCount": run.get("errors_count") or 0,
        "progress": run.get("progress_pct") or 0,
        "triggeredBy": run.get("triggered_by"),
        "duration": _duration(run),
    }


async def build_status_report(
    tracker: SyncRunTracker,
    gateway: StoreGateway,
    cooldown_seconds: int,
    now: datetime | None = None,
) -> dict:
    now = now or utcnow()
    history = await tracker.recent_runs(limit=HISTORY_FETCH)
    running = next((r for r in history if r.get("status") == STATUS_RUNNING), None)
    completed = next((r for r in history if r.get("status") == STATUS_COMPLETED), None)
    failed = next((r for r in history if r.get("status") == STATUS_FAILED), None)
    availability = await manual_refresh_availability(tracker, cooldown_seconds, now)
    levels = await gateway.list_levels()

    return {
        "currentStatus": {
            "isRunning": running is not None,
            "runningSync": _run_summary(running) if running else None,
        },
        "lastSync": {
            "completed": _run_summary(completed) if completed else None,
            "failed": _run_summary(failed) if failed else None,
        },
        "scheduling": {
            "nextScheduledSync": next_scheduled_sync(now).isoformat(),
            "canManualRefresh": availability["allowed"],
            "manualRefreshCooldown": availability["cooldownEndsAt"],
        },
        "statistics": run_statistics(history, now),
        "inventoryHealth": inventory_health(levels),
        "syncHistory": [_run_summary(r) for r in history[:HISTORY_SHOWN]],
    }
