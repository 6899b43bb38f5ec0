"""
env.py — Alembic Migration Environment for the inventory reconciler

Loads DATABASE_URL from app config and imports the ORM models so
autogenerate sees vendor_product_variants, vendor_inventory_levels,
inventory_sync_log and enhanced_product_variants.

Business Rules:
- Transaction per migration
- Only the "sql" store backend is migrated here; a Supabase project
  applies the same DDL through its own migration tooling

Called by: alembic CLI
Depends on: app.models (Base + all tables), app.config (Settings)
"""

from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool

from app.config import Settings
from app.models import Base  # noqa: F401  registers all tables on Base.metadata

config = context.config

# sqlalchemy.url comes from app settings, not alembic.ini
config.set_main_option("sqlalchemy.url", Settings().database_url)

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def run_migrations_offline() -> None:
    """Emit SQL without connecting."""
    context.configure(
        url=config.get_main_option("sqlalchemy.url"),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            render_as_batch=connection.dialect.name == "sqlite",
        )
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
