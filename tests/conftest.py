"""
conftest.py — Shared Test Fixtures for the inventory reconciler

Provides an in-memory SQLite record store, a scripted vendor client,
and a FastAPI TestClient wired to both.

Business Rules:
- All tests run against an isolated in-memory DB (no real store)
- The vendor is never called over the network; FakeVendor scripts replies
- Each test function gets fresh tables

Called by: all test files via pytest autodiscovery
Depends on: app.models (Base), app.database (get_db), app.dependencies
"""

import os
os.environ["TESTING"] = "1"  # Must be set before importing app modules
os.environ["STORE_BACKEND"] = "sql"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("SHOPIFY_STORE_DOMAIN", "test-shop.myshopify.com")
os.environ.setdefault("SHOPIFY_ADMIN_TOKEN", "shpat_test")

from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.exceptions import VendorError
from app.models import Base, VendorVariant
from app.schemas.inventory import InventoryLevel

# ── In-memory SQLite engine ──────────────────────────────────────────

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


# ── Fakes ────────────────────────────────────────────────────────────


class FakeVendor:
    """Vendor client stand-in. Echoes one level per requested item.

    fail_batches: 1-based call numbers that raise VendorError instead.
    """

    def __init__(self, available: int = 7, location_id: int = 1001, fail_batches=()):
        self.available = available
        self.location_id = location_id
        self.fail_batches = set(fail_batches)
        self.calls: list[list[int]] = []

    async def fetch_levels(self, inventory_item_ids):
        self.calls.append(list(inventory_item_ids))
        if len(self.calls) in self.fail_batches:
            raise VendorError("Shopify rate limit still active after 5 attempts", kind=VendorError.RATE_LIMIT_EXHAUSTED)
        return [
            InventoryLevel(
                inventory_item_id=item_id,
                location_id=self.location_id,
                available=self.available,
                last_change_at=datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc),
            )
            for item_id in inventory_item_ids
        ]


def add_variants(db: Session, product_id: int, count: int, *, item_base: int | None = None, tracked: bool = True):
    """Insert `count` variants for a product; item ids start at item_base."""
    item_base = item_base if item_base is not None else product_id * 1000
    for i in range(count):
        db.add(
            VendorVariant(
                product_id=product_id,
                variant_id=product_id * 100000 + i,
                inventory_item_id=(item_base + i) if tracked else None,
                sku=f"SKU-{product_id}-{i}",
            )
        )
    db.commit()


# ── Fixtures ─────────────────────────────────────────────────────────


@pytest.fixture(autouse=True)
def db_session():
    """Create all tables, yield a session, then tear down."""
    Base.metadata.create_all(bind=engine)
    session = TestSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def fake_vendor() -> FakeVendor:
    return FakeVendor()


@pytest.fixture()
def client(db_session: Session, fake_vendor: FakeVendor) -> TestClient:
    """FastAPI TestClient backed by the test DB and the fake vendor.

    Inter-batch delay is zeroed so multi-batch requests return immediately.
    """
    from app.config import settings
    from app.database import get_db
    from app.dependencies import get_vendor_client
    from app.main import app

    def _override_db():
        yield db_session

    original_delay = settings.inter_batch_delay_seconds
    settings.inter_batch_delay_seconds = 0
    app.dependency_overrides[get_db] = _override_db
    app.dependency_overrides[get_vendor_client] = lambda: fake_vendor
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
        settings.inter_batch_delay_seconds = original_delay
