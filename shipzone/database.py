"""Database engine factory.

All naive datetimes loaded from the store are tagged as UTC by UTCDateTime
to prevent naive-vs-aware comparison errors.
"""

from datetime import timezone

from sqlalchemy import DateTime, TypeDecorator, create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool

from .config import Settings, settings as default_settings


class UTCDateTime(TypeDecorator):
    """DateTime type that ensures UTC timezone on load."""
    impl = DateTime
    cache_ok = True

    def process_result_value(self, value, dialect):
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


def build_engine(cfg: Settings | None = None) -> Engine:
    """Create the pooled engine shared by the zone cache and the inquiry pipeline.

    Pool exhaustion queues callers for at most ``db_pool_timeout_seconds`` and
    then raises, so a stuck store can never deadlock request threads.
    """
    cfg = cfg or default_settings
    url = cfg.database_url

    if url.startswith("sqlite"):
        # In-memory SQLite must share one connection across threads
        return create_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )

    engine = create_engine(
        url,
        pool_size=cfg.db_pool_size,
        max_overflow=cfg.db_max_overflow,
        pool_timeout=cfg.db_pool_timeout_seconds,
        pool_pre_ping=True,
        pool_recycle=3600,
        connect_args={"connect_timeout": cfg.db_connect_timeout_seconds},
    )

    if engine.dialect.name == "postgresql":
        event.listen(engine, "connect", _set_timezone)
    return engine


def _set_timezone(dbapi_conn, connection_record):
    cursor = dbapi_conn.cursor()
    cursor.execute("SET timezone = 'UTC'")
    cursor.close()
