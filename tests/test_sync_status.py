"""
test_sync_status.py — Tests for app/services/sync_status.py

Covers: next scheduled slot math, manual refresh cooldown decisions,
inventory health buckets, and 30-day run statistics.

Called by: pytest
Depends on: app/services/sync_status.py
"""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.orm import Session

from app.exceptions import SyncCooldownError
from app.models import InventorySyncLog
from app.services.store_gateway import SqlStoreGateway
from app.services.sync_status import (
    build_status_report,
    ensure_manual_refresh_allowed,
    inventory_health,
    manual_refresh_availability,
    next_scheduled_sync,
    run_statistics,
)
from app.services.sync_tracker import SqlSyncTracker

UTC = timezone.utc


# ── next_scheduled_sync ──────────────────────────────────────────────


@pytest.mark.parametrize(
    "now, expected",
    [
        # Monday → Tuesday 06:00
        (datetime(2026, 10, 19, 9, 30, tzinfo=UTC), datetime(2026, 10, 20, 6, 0, tzinfo=UTC)),
        # Tuesday before 06:00 → same day
        (datetime(2026, 10, 20, 5, 59, tzinfo=UTC), datetime(2026, 10, 20, 6, 0, tzinfo=UTC)),
        # Tuesday at 06:00 → Friday
        (datetime(2026, 10, 20, 6, 0, tzinfo=UTC), datetime(2026, 10, 23, 6, 0, tzinfo=UTC)),
        # Friday afternoon → next Tuesday
        (datetime(2026, 10, 23, 15, 0, tzinfo=UTC), datetime(2026, 10, 27, 6, 0, tzinfo=UTC)),
        # Sunday → Tuesday
        (datetime(2026, 10, 25, 23, 0, tzinfo=UTC), datetime(2026, 10, 27, 6, 0, tzinfo=UTC)),
    ],
)
def test_next_scheduled_sync(now, expected):
    assert next_scheduled_sync(now) == expected


def test_next_scheduled_sync_is_tuesday_or_friday():
    start = datetime(2026, 1, 1, tzinfo=UTC)
    for hours in range(0, 24 * 14, 5):
        slot = next_scheduled_sync(start + timedelta(hours=hours))
        assert slot.weekday() in (1, 4)
        assert (slot.hour, slot.minute) == (6, 0)
        assert slot > start + timedelta(hours=hours)


# ── Cooldown ─────────────────────────────────────────────────────────


def _add_run(db: Session, *, sync_type="manual", status="completed", started_at, completed_at=None, products=0):
    run = InventorySyncLog(
        sync_type=sync_type,
        triggered_by="admin" if sync_type == "manual" else "system",
        status=status,
        products_synced=products,
        started_at=started_at,
        completed_at=completed_at,
    )
    db.add(run)
    db.commit()
    return run


class TestCooldown:
    NOW = datetime(2026, 10, 19, 12, 0, tzinfo=UTC)

    @pytest.mark.asyncio
    async def test_no_previous_run_allowed(self, db_session: Session):
        result = await manual_refresh_availability(SqlSyncTracker(db_session), 300, self.NOW)
        assert result["allowed"] is True

    @pytest.mark.asyncio
    async def test_recent_completed_run_rate_limited(self, db_session: Session):
        _add_run(db_session, started_at=self.NOW - timedelta(minutes=2))
        tracker = SqlSyncTracker(db_session)

        result = await manual_refresh_availability(tracker, 300, self.NOW)
        assert result["allowed"] is False
        assert result["reason"] == "rate_limited"
        assert result["cooldownEndsAt"] == (self.NOW + timedelta(minutes=3)).isoformat()

        with pytest.raises(SyncCooldownError) as exc:
            await ensure_manual_refresh_allowed(tracker, 300, self.NOW)
        assert exc.value.code == "RATE_LIMITED"
        assert exc.value.http_status == 429
        assert exc.value.to_dict()["nextAllowedTime"] == result["cooldownEndsAt"]

    @pytest.mark.asyncio
    async def test_running_run_in_progress(self, db_session: Session):
        _add_run(db_session, status="running", started_at=self.NOW - timedelta(seconds=30))
        with pytest.raises(SyncCooldownError) as exc:
            await ensure_manual_refresh_allowed(SqlSyncTracker(db_session), 300, self.NOW)
        assert exc.value.code == "SYNC_IN_PROGRESS"

    @pytest.mark.asyncio
    async def test_scheduled_runs_do_not_block_manual(self, db_session: Session):
        _add_run(db_session, sync_type="scheduled", status="running", started_at=self.NOW - timedelta(seconds=10))
        await ensure_manual_refresh_allowed(SqlSyncTracker(db_session), 300, self.NOW)

    @pytest.mark.asyncio
    async def test_expired_window_allowed(self, db_session: Session):
        _add_run(db_session, started_at=self.NOW - timedelta(minutes=6))
        await ensure_manual_refresh_allowed(SqlSyncTracker(db_session), 300, self.NOW)

    @pytest.mark.asyncio
    async def test_zero_cooldown_disables_check(self, db_session: Session):
        _add_run(db_session, status="running", started_at=self.NOW)
        await ensure_manual_refresh_allowed(SqlSyncTracker(db_session), 0, self.NOW)


# ── Health & statistics ──────────────────────────────────────────────


def test_inventory_health_buckets():
    levels = [
        {"available": 0, "last_change_at": "2026-10-01T00:00:00+00:00"},
        {"available": None, "last_change_at": None},
        {"available": 1, "last_change_at": "2026-10-03T00:00:00Z"},
        {"available": 5, "last_change_at": None},
        {"available": 6, "last_change_at": "2026-10-02T00:00:00+00:00"},
    ]
    health = inventory_health(levels)
    assert health == {
        "totalItems": 5,
        "inStock": 1,
        "lowStock": 2,
        "outOfStock": 2,
        "lastUpdated": "2026-10-03T00:00:00+00:00",
    }


def test_inventory_health_empty():
    assert inventory_health([])["lastUpdated"] is None


def test_run_statistics_window_and_duration():
    now = datetime(2026, 10, 19, tzinfo=UTC)
    runs = [
        {
            "sync_type": "manual",
            "status": "completed",
            "products_synced": 3,
            "started_at": "2026-10-18T10:00:00+00:00",
            "completed_at": "2026-10-18T10:01:00+00:00",
        },
        {
            "sync_type": "scheduled",
            "status": "failed",
            "products_synced": 0,
            "started_at": "2026-10-17T06:00:00+00:00",
            "completed_at": "2026-10-17T06:00:20+00:00",
        },
        {
            "sync_type": "scheduled",
            "status": "completed",
            "products_synced": 50,
            "started_at": "2026-08-01T06:00:00+00:00",  # outside 30 days
            "completed_at": "2026-08-01T06:10:00+00:00",
        },
    ]
    stats = run_statistics(runs, now)
    assert stats == {
        "totalSyncs": 2,
        "successfulSyncs": 1,
        "failedSyncs": 1,
        "scheduledSyncs": 1,
        "manualSyncs": 1,
        "totalProductsSynced": 3,
        "averageSyncDuration": 40,
    }


@pytest.mark.asyncio
async def test_status_report_shows_running_and_last_failed(db_session: Session):
    now = datetime(2026, 10, 19, 12, 0, tzinfo=UTC)
    _add_run(
        db_session,
        sync_type="scheduled",
        status="failed",
        started_at=now - timedelta(days=1),
        completed_at=now - timedelta(days=1) + timedelta(seconds=5),
    )
    running = _add_run(db_session, status="running", started_at=now - timedelta(seconds=20))

    report = await build_status_report(SqlSyncTracker(db_session), SqlStoreGateway(db_session), 300, now)

    assert report["currentStatus"]["isRunning"] is True
    assert report["currentStatus"]["runningSync"]["id"] == running.id
    assert report["lastSync"]["failed"]["duration"] == 5
    assert report["lastSync"]["completed"] is None
    assert report["scheduling"]["nextScheduledSync"] == "2026-10-20T06:00:00+00:00"
    assert report["scheduling"]["canManualRefresh"] is False
    assert [r["id"] for r in report["syncHistory"]][0] == running.id
    assert report["inventoryHealth"]["totalItems"] == 0
