"""
dependencies.py — Component wiring for routes and background jobs

Builds the vendor client, store gateway and sync tracker from settings.
Route handlers get them through FastAPI Depends; the scheduler calls the
build_* functions directly.

Business Rules:
- Missing vendor credentials → ConfigurationError (HTTP 400) before any side effect
- store_backend "rest" needs SUPABASE_URL + SUPABASE_SERVICE_ROLE_KEY
- store_backend "sql" uses the request's SQLAlchemy session

Called by: routers/inventory.py, scheduler.py
Depends on: config, database, connectors, services
"""

from fastapi import Depends
from sqlalchemy.orm import Session

from .config import settings
from .connectors.shopify_inventory import ShopifyInventoryClient
from .connectors.supabase_rest import SupabaseRest
from .database import get_db
from .exceptions import ConfigurationError
from .services.inventory_refresh import InventoryRefreshOrchestrator
from .services.store_gateway import RestStoreGateway, SqlStoreGateway, StoreGateway
from .services.sync_tracker import RestSyncTracker, SqlSyncTracker, SyncRunTracker
from .utils.backoff import BackoffPolicy, RetryPolicy


def _missing(names: list[str]) -> ConfigurationError:
    return ConfigurationError(f"Missing required configuration: {', '.join(names)}")


def build_vendor_client() -> ShopifyInventoryClient:
    missing = settings.missing_vendor_config()
    if missing:
        raise _missing(missing)
    retry = RetryPolicy(
        max_attempts=settings.vendor_max_attempts,
        backoff=BackoffPolicy(
            base=settings.backoff_base_seconds,
            cap=settings.backoff_max_seconds,
            jitter=settings.backoff_jitter_seconds,
        ),
        max_retry_after=settings.vendor_max_retry_after_seconds,
    )
    return ShopifyInventoryClient(
        settings.shopify_store_domain,
        settings.shopify_admin_token,
        settings.shopify_api_version,
        settings.shopify_location_id or None,
        retry=retry,
        page_limit=settings.vendor_page_limit,
        timeout=settings.vendor_timeout_seconds,
    )


def _build_rest() -> SupabaseRest:
    missing = settings.missing_store_config()
    if missing:
        raise _missing(missing)
    return SupabaseRest(settings.supabase_url, settings.supabase_service_role_key)


def build_store_gateway(db: Session | None) -> StoreGateway:
    if settings.uses_rest_store:
        return RestStoreGateway(_build_rest())
    return SqlStoreGateway(db)


def build_sync_tracker(db: Session | None) -> SyncRunTracker:
    if settings.uses_rest_store:
        return RestSyncTracker(_build_rest())
    return SqlSyncTracker(db)


def build_orchestrator(
    vendor: ShopifyInventoryClient, gateway: StoreGateway, tracker: SyncRunTracker
) -> InventoryRefreshOrchestrator:
    return InventoryRefreshOrchestrator(
        vendor,
        gateway,
        tracker,
        batch_size=settings.sync_batch_size,
        inter_batch_delay=settings.inter_batch_delay_seconds,
    )


# ── FastAPI dependencies ─────────────────────────────────────────────


def get_vendor_client() -> ShopifyInventoryClient:
    return build_vendor_client()


def get_store_gateway(db: Session = Depends(get_db)) -> StoreGateway:
    return build_store_gateway(db)


def get_sync_tracker(db: Session = Depends(get_db)) -> SyncRunTracker:
    return build_sync_tracker(db)


def get_orchestrator(
    vendor: ShopifyInventoryClient = Depends(get_vendor_client),
    gateway: StoreGateway = Depends(get_store_gateway),
    tracker: SyncRunTracker = Depends(get_sync_tracker),
) -> InventoryRefreshOrchestrator:
    return build_orchestrator(vendor, gateway, tracker)
