"""inventory sync schema - variants, levels, sync run log

Revision ID: 001_inventory_sync
Revises: None
Create Date: 2026-10-19

vendor_inventory_levels is unique on (inventory_item_id, location_id);
the upsert in services/store_gateway.py conflicts on that index.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "001_inventory_sync"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "vendor_product_variants",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("product_id", sa.BigInteger(), nullable=False),
        sa.Column("variant_id", sa.BigInteger(), nullable=False, unique=True),
        sa.Column("inventory_item_id", sa.BigInteger(), nullable=True),
        sa.Column("sku", sa.String(255)),
        sa.Column("created_at", sa.DateTime(timezone=True)),
    )
    op.create_index("ix_vendor_product_variants_product_id", "vendor_product_variants", ["product_id"])
    op.create_index(
        "ix_vendor_product_variants_inventory_item_id", "vendor_product_variants", ["inventory_item_id"]
    )

    op.create_table(
        "vendor_inventory_levels",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("inventory_item_id", sa.BigInteger(), nullable=False),
        sa.Column("location_id", sa.BigInteger(), nullable=False),
        sa.Column("available", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_change_at", sa.DateTime(timezone=True)),
        sa.Column("sync_batch_id", sa.Integer()),
        sa.Column("updated_at", sa.DateTime(timezone=True)),
    )
    op.create_index(
        "ix_inv_level_item_location",
        "vendor_inventory_levels",
        ["inventory_item_id", "location_id"],
        unique=True,
    )
    op.create_index("ix_vendor_inventory_levels_sync_batch_id", "vendor_inventory_levels", ["sync_batch_id"])

    op.create_table(
        "inventory_sync_log",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("sync_type", sa.String(20), nullable=False),
        sa.Column("triggered_by", sa.String(100)),
        sa.Column("status", sa.String(20), nullable=False, server_default="running"),
        sa.Column("products_synced", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("variants_processed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("progress_pct", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("errors_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("error_details", sa.JSON()),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True)),
        sa.Column("updated_at", sa.DateTime(timezone=True)),
    )
    op.create_index("ix_sync_type_started", "inventory_sync_log", ["sync_type", "started_at"])


def downgrade() -> None:
    """Drop all tables. ⚠️ DESTRUCTIVE — only for dev/test environments."""
    op.drop_table("inventory_sync_log")
    op.drop_table("vendor_inventory_levels")
    op.drop_table("vendor_product_variants")
