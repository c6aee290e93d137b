"""
test_datastore.py — Tests for shipzone/datastore.py

Covers statement execution, transient/permanent classification, and the
bounded exponential backoff. Backoff delays are captured by the ``sleeps``
fixture instead of being slept.

Called by: pytest
Depends on: shipzone.datastore, conftest (store, sleeps)
"""

import sqlite3
from unittest.mock import MagicMock

import pytest
from sqlalchemy import exc as sa_exc
from sqlalchemy import insert, select, text, update

from conftest import engine
from shipzone.datastore import DataStore, classify_error
from shipzone.exceptions import PermanentStoreError, TransientStoreError
from shipzone.models import Inquiry, Warehouse


def _operational():
    return sa_exc.OperationalError("SELECT 1", {}, Exception("connection refused"))


def _flaky_engine(failures: int):
    """Engine whose begin() raises a connection error ``failures`` times."""
    calls = {"n": 0}

    def begin():
        calls["n"] += 1
        if calls["n"] <= failures:
            raise _operational()
        return engine.begin()

    flaky = MagicMock()
    flaky.begin.side_effect = begin
    return flaky, calls


# ── Execution ────────────────────────────────────────────────────────


def test_insert_returns_primary_key_and_fetch_returns_dicts(store):
    wid = store.insert(insert(Warehouse.__table__).values(name="Sydney DC", status="active"))
    assert isinstance(wid, int)

    rows = store.fetch_all(select(Warehouse.__table__))
    assert len(rows) == 1 and isinstance(rows[0], dict)
    assert rows[0]["name"] == "Sydney DC"

    one = store.fetch_one(select(Warehouse.__table__).where(Warehouse.id == wid))
    assert one["id"] == wid


def test_fetch_one_returns_none_when_empty(store):
    assert store.fetch_one(select(Warehouse.__table__)) is None


def test_execute_returns_rowcount(store):
    store.insert(insert(Warehouse.__table__).values(name="A", status="active"))
    store.insert(insert(Warehouse.__table__).values(name="B", status="active"))
    n = store.execute(update(Warehouse.__table__).values(status="inactive"))
    assert n == 2


def test_text_statement_with_bound_params(store):
    store.insert(insert(Warehouse.__table__).values(name="Perth DC", status="active"))
    row = store.fetch_one(text("SELECT name FROM warehouses WHERE name = :n"), {"n": "Perth DC"})
    assert row == {"name": "Perth DC"}


def test_plain_string_statement_refused(store):
    with pytest.raises(TypeError):
        store.fetch_all("SELECT * FROM warehouses")


# ── Retry / classification ───────────────────────────────────────────


def test_transient_failure_retried_with_backoff(sleeps):
    flaky, calls = _flaky_engine(failures=2)
    store = DataStore(flaky, attempts=3, base_delay=1.0, max_delay=5.0, sleep=sleeps.append)

    assert store.fetch_all(select(Warehouse.__table__)) == []
    assert calls["n"] == 3
    assert sleeps == [1.0, 2.0]


def test_transient_failure_exhausts_attempts(sleeps):
    flaky, calls = _flaky_engine(failures=10)
    store = DataStore(flaky, attempts=3, sleep=sleeps.append)

    with pytest.raises(TransientStoreError):
        store.fetch_all(select(Warehouse.__table__))
    assert calls["n"] == 3
    assert len(sleeps) == 2


def test_permanent_failure_not_retried(store, sleeps):
    # NOT NULL violation on inquiries.status
    with pytest.raises(PermanentStoreError):
        store.insert(insert(Inquiry.__table__).values(postcode="4000", status=None))
    assert sleeps == []


def test_missing_table_not_retried(store, sleeps):
    with pytest.raises(PermanentStoreError):
        store.fetch_all(text("SELECT * FROM no_such_table"))
    assert sleeps == []


@pytest.mark.parametrize(
    "table, values",
    [
        (Warehouse.__table__, {"name": "Old DC", "status": "archived"}),
        (Inquiry.__table__, {"postcode": "4000", "status": "pending"}),
    ],
)
def test_unknown_status_rejected(store, sleeps, table, values):
    with pytest.raises(PermanentStoreError):
        store.insert(insert(table).values(**values))
    assert sleeps == []


def test_backoff_is_capped():
    store = DataStore(engine, base_delay=1.0, max_delay=5.0)
    assert [store.backoff_delay(a) for a in range(5)] == [1.0, 2.0, 4.0, 5.0, 5.0]


@pytest.mark.parametrize(
    "err",
    [
        _operational(),
        sa_exc.TimeoutError("QueuePool limit reached"),
        sa_exc.DBAPIError("SELECT 1", {}, Exception("gone"), connection_invalidated=True),
        ConnectionResetError("reset by peer"),
        TimeoutError("timed out"),
        sa_exc.OperationalError("INSERT", {}, sqlite3.OperationalError("database is locked")),
    ],
)
def test_classify_transient(err):
    assert isinstance(classify_error(err), TransientStoreError)


@pytest.mark.parametrize(
    "err",
    [
        sa_exc.IntegrityError("INSERT", {}, Exception("unique")),
        sa_exc.ProgrammingError("SELEC", {}, Exception("syntax")),
        ValueError("bad"),
        sa_exc.OperationalError("SELECT", {}, sqlite3.OperationalError("no such table: zones")),
    ],
)
def test_classify_permanent(err):
    assert isinstance(classify_error(err), PermanentStoreError)


def test_ping(store):
    ok, detail = store.ping()
    assert ok is True
    assert detail


def test_ping_reports_failure():
    broken = MagicMock()
    broken.connect.side_effect = _operational()
    ok, detail = DataStore(broken).ping()
    assert ok is False
    assert "connection refused" in detail
