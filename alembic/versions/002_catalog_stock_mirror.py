"""catalog stock mirror - previous_available on levels, enhanced_product_variants

Revision ID: 002_catalog_stock_mirror
Revises: 001_inventory_sync
Create Date: 2026-10-19

services/store_gateway.py writes the replaced quantity into
vendor_inventory_levels.previous_available and copies every new level
onto enhanced_product_variants rows matched by vendor_inventory_item_id.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "002_catalog_stock_mirror"
down_revision: Union[str, None] = "001_inventory_sync"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.add_column("vendor_inventory_levels", sa.Column("previous_available", sa.Integer(), nullable=True))

    op.create_table(
        "enhanced_product_variants",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("product_id", sa.BigInteger()),
        sa.Column("sku", sa.String(255)),
        sa.Column("vendor_inventory_item_id", sa.BigInteger()),
        sa.Column("inventory_quantity", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("available_quantity", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("stock_status", sa.String(20)),
        sa.Column("last_inventory_update", sa.DateTime(timezone=True)),
    )
    op.create_index("ix_enhanced_product_variants_product_id", "enhanced_product_variants", ["product_id"])
    op.create_index(
        "ix_enhanced_product_variants_vendor_inventory_item_id",
        "enhanced_product_variants",
        ["vendor_inventory_item_id"],
    )


def downgrade() -> None:
    op.drop_table("enhanced_product_variants")
    with op.batch_alter_table("vendor_inventory_levels") as batch_op:
        batch_op.drop_column("previous_available")
