"""Inventory API — manual refresh, sync status, and run lookup."""

from fastapi import APIRouter, Depends, HTTPException
from loguru import logger

from ..config import settings
from ..dependencies import get_orchestrator, get_store_gateway, get_sync_tracker
from ..schemas.errors import ErrorResponse
from ..schemas.inventory import RefreshRequest, RefreshResponse
from ..services.inventory_refresh import InventoryRefreshOrchestrator, validate_product_ids
from ..services.store_gateway import StoreGateway
from ..services.sync_status import build_status_report, ensure_manual_refresh_allowed
from ..services.sync_tracker import SyncRunTracker

router = APIRouter(prefix="/api/inventory", tags=["inventory"])


@router.post(
    "/refresh",
    response_model=RefreshResponse,
    responses={400: {"model": ErrorResponse}, 429: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def refresh_inventory(
    body: RefreshRequest,
    orchestrator: InventoryRefreshOrchestrator = Depends(get_orchestrator),
    tracker: SyncRunTracker = Depends(get_sync_tracker),
):
    """Manual refresh: reconcile current vendor stock for the given products."""
    product_ids = validate_product_ids(body.product_ids)
    await ensure_manual_refresh_allowed(tracker, settings.manual_refresh_cooldown_seconds)

    logger.info("Manual inventory refresh requested for {} products", len(product_ids))
    result = await orchestrator.run(
        product_ids, sync_type="manual", triggered_by="admin", mode=body.mode
    )
    return RefreshResponse(data=result)


@router.get("/sync-status")
async def sync_status(
    tracker: SyncRunTracker = Depends(get_sync_tracker),
    gateway: StoreGateway = Depends(get_store_gateway),
):
    """Current/last runs, schedule, 30-day stats, and stock health."""
    report = await build_status_report(tracker, gateway, settings.manual_refresh_cooldown_seconds)
    return {"data": report}


@router.get("/sync-runs/{run_id}")
async def get_sync_run(run_id: int, tracker: SyncRunTracker = Depends(get_sync_tracker)):
    run = await tracker.get_run(run_id)
    if not run:
        raise HTTPException(404, "Sync run not found")
    return {"data": run}
