"""
startup.py — Database Startup Migrations (Idempotent)

Only used with the "sql" store backend. Tables and indexes are defined in
the ORM models (models/sync.py) and created via
Base.metadata.create_all(checkfirst=True); alembic/ carries the same DDL
as a versioned migration. This file adds the PostgreSQL-only CHECK
constraints the ORM doesn't express.

Called by: main.py lifespan
Depends on: database.py (engine), models (Base)
"""

import logging
import os

from sqlalchemy import text as sqltext

from .database import engine

log = logging.getLogger(__name__)


def run_startup_migrations() -> None:
    """Execute all idempotent startup operations. Safe to call on every app boot."""
    if os.environ.get("TESTING"):
        log.info("TESTING mode — skipping startup migrations")
        return

    from .models import Base

    Base.metadata.create_all(bind=engine, checkfirst=True)
    log.info("ORM schema sync complete (create_all checkfirst=True)")

    if engine.dialect.name != "postgresql":
        return
    with engine.connect() as conn:
        _add_check_constraints(conn)
    log.info("Startup migrations complete")


def _exec(conn, stmt: str) -> None:
    """Execute a single DDL statement with rollback on failure."""
    try:
        conn.execute(sqltext(stmt))
        conn.commit()
    except Exception as e:
        log.warning("DDL failed: %s", e)
        conn.rollback()


def _add_check_constraints(conn) -> None:
    """Status and progress bounds on the sync run log (PostgreSQL only)."""
    _exec(conn, """
        DO $$ BEGIN
            ALTER TABLE inventory_sync_log ADD CONSTRAINT chk_sync_status
                CHECK (status IN ('running', 'completed', 'failed'));
        EXCEPTION WHEN duplicate_object THEN NULL;
        END $$
    """)
    _exec(conn, """
        DO $$ BEGIN
            ALTER TABLE inventory_sync_log ADD CONSTRAINT chk_sync_progress
                CHECK (progress_pct BETWEEN 0 AND 100);
        EXCEPTION WHEN duplicate_object THEN NULL;
        END $$
    """)
    _exec(conn, """
        DO $$ BEGIN
            ALTER TABLE inventory_sync_log ADD CONSTRAINT chk_sync_counts
                CHECK (products_synced >= 0 AND errors_count >= 0);
        EXCEPTION WHEN duplicate_object THEN NULL;
        END $$
    """)
