"""
startup.py — Database Startup Migrations (Idempotent)

Tables and indexes are defined in the ORM models and created via
Base.metadata.create_all(checkfirst=True). Alembic owns real schema
changes; this only guarantees a fresh database can serve on first boot.

Called by: main.py lifespan
Depends on: models (Base)
"""

import logging
import os

from sqlalchemy.engine import Engine

from .models import Base

log = logging.getLogger(__name__)


def run_startup_migrations(engine: Engine) -> None:
    """Create any missing tables. Safe to call on every app boot."""
    if os.environ.get("TESTING"):
        log.info("TESTING mode, skipping startup migrations")
        return

    Base.metadata.create_all(bind=engine, checkfirst=True)
    log.info("ORM schema sync complete (create_all checkfirst=True)")
