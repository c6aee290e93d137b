"""Resilient data-store access — parameterized statements with retry/backoff.

Every statement handed to DataStore is a SQLAlchemy construct (select/insert/
update, or text() with bound parameters). Plain strings are refused, so user
values can never be spliced into query text.

Failures are classified once, here, into TransientStoreError (retried with
bounded exponential backoff) and PermanentStoreError (raised immediately).

Usage:
    store = DataStore(engine)
    rows = store.fetch_all(select(Zone.__table__))
    new_id = store.insert(insert(Inquiry.__table__).values(...))
"""

import logging
import sqlite3
import time
from typing import Any, Callable

from sqlalchemy import exc as sa_exc
from sqlalchemy import text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.sql.base import Executable

from .exceptions import PermanentStoreError, StoreError, TransientStoreError

log = logging.getLogger("shipzone.datastore")

_TRANSIENT_DB_ERRORS = (
    sa_exc.OperationalError,
    sa_exc.InterfaceError,
    sa_exc.DisconnectionError,
    sa_exc.TimeoutError,  # pool exhausted past pool_timeout
)

# SQLite raises OperationalError for schema and statement errors as well
# ("no such table", "no such column"). Only lock and I/O failures are transient.
_SQLITE_TRANSIENT_MARKERS = ("locked", "busy", "disk i/o", "unable to open")


def _is_sqlite_statement_error(err: Exception) -> bool:
    if not isinstance(err, sa_exc.OperationalError) or not isinstance(err.orig, sqlite3.Error):
        return False
    message = str(err.orig).lower()
    return not any(marker in message for marker in _SQLITE_TRANSIENT_MARKERS)


def classify_error(err: Exception) -> StoreError:
    """Map a raw driver/SQLAlchemy exception onto the typed store errors."""
    if isinstance(err, StoreError):
        return err
    if _is_sqlite_statement_error(err):
        return PermanentStoreError(str(err))
    if isinstance(err, _TRANSIENT_DB_ERRORS):
        return TransientStoreError(str(err))
    if isinstance(err, sa_exc.DBAPIError) and err.connection_invalidated:
        return TransientStoreError(str(err))
    if isinstance(err, (ConnectionError, TimeoutError)):
        return TransientStoreError(str(err))
    return PermanentStoreError(str(err))


class DataStore:
    """Executes parameterized statements against the relational store."""

    def __init__(
        self,
        engine: Engine,
        attempts: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 5.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.engine = engine
        self.attempts = max(1, attempts)
        self.base_delay = base_delay
        self.max_delay = max_delay
        self._sleep = sleep

    # ── Public API ──────────────────────────────────────────────────

    def fetch_all(self, statement: Executable, params: dict | None = None) -> list[dict]:
        def _op(conn: Connection):
            return [dict(r) for r in _exec(conn, statement, params).mappings().all()]

        return self._run(statement, _op)

    def fetch_one(self, statement: Executable, params: dict | None = None) -> dict | None:
        def _op(conn: Connection):
            row = _exec(conn, statement, params).mappings().first()
            return dict(row) if row is not None else None

        return self._run(statement, _op)

    def insert(self, statement: Executable, params: dict | None = None) -> Any:
        """Run an INSERT and return the new row's primary key."""
        def _op(conn: Connection):
            result = _exec(conn, statement, params)
            pk = result.inserted_primary_key
            return pk[0] if pk else None

        return self._run(statement, _op)

    def execute(self, statement: Executable, params: dict | None = None) -> int:
        """Run an UPDATE/DELETE and return the affected row count."""
        def _op(conn: Connection):
            return _exec(conn, statement, params).rowcount

        return self._run(statement, _op)

    def ping(self) -> tuple[bool, str]:
        """Health check. Single attempt, never raises."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True, "Database connection successful"
        except Exception as e:
            return False, str(e)

    # ── Internal retry logic ────────────────────────────────────────

    def backoff_delay(self, attempt: int) -> float:
        """Delay before retry number ``attempt + 1`` (attempt is 0-based)."""
        return min(self.base_delay * (2 ** attempt), self.max_delay)

    def _run(self, statement, op: Callable[[Connection], Any]) -> Any:
        if isinstance(statement, str) or not isinstance(statement, Executable):
            raise TypeError("DataStore only accepts SQLAlchemy statement objects")

        for attempt in range(self.attempts):
            try:
                with self.engine.begin() as conn:
                    return op(conn)
            except Exception as raw:
                err = classify_error(raw)
                if isinstance(err, PermanentStoreError):
                    log.error("Store statement failed (permanent): %s", _short(raw))
                    raise err from raw
                if attempt < self.attempts - 1:
                    delay = self.backoff_delay(attempt)
                    log.warning(
                        "Store statement failed (attempt %d/%d), retrying in %.2fs: %s",
                        attempt + 1, self.attempts, delay, _short(raw),
                    )
                    self._sleep(delay)
                    continue
                log.error(
                    "Store statement failed after %d attempts: %s", self.attempts, _short(raw)
                )
                raise err from raw


def _exec(conn: Connection, statement, params: dict | None):
    if params:
        return conn.execute(statement, params)
    return conn.execute(statement)


def _short(err: Exception) -> str:
    return str(err).splitlines()[0][:200] if str(err) else type(err).__name__
