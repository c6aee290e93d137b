"""
conftest.py — Shared Test Fixtures for ShipZone

Provides an in-memory SQLite database, a retrying DataStore that never
sleeps, a fake order gateway, factory fixtures for warehouses and zones,
and a FastAPI TestClient wired to injected services.

Business Rules:
- All tests run against an isolated in-memory DB (no prod data risk)
- Schema is created before and dropped after every test
- No test talks to Shopify: the gateway is always FakeGateway or MockTransport

Called by: all test files via pytest autodiscovery
Depends on: shipzone.models (Base), shipzone.datastore, shipzone.dependencies
"""

import os

os.environ["TESTING"] = "1"  # Must be set before importing shipzone modules
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from shipzone.config import Settings
from shipzone.connectors.shopify import INQUIRY_TAGS, ExternalOrderGateway
from shipzone.datastore import DataStore
from shipzone.dependencies import build_services
from shipzone.models import Base, Warehouse, Zone

# ── In-memory SQLite engine ──────────────────────────────────────────

TEST_DB_URL = "sqlite://"

engine = create_engine(
    TEST_DB_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@event.listens_for(engine, "connect")
def _enable_fk(dbapi_conn, _):
    """SQLite ignores FKs by default — turn them on."""
    dbapi_conn.execute("PRAGMA foreign_keys=ON")


# ── Fakes ────────────────────────────────────────────────────────────


class FakeGateway(ExternalOrderGateway):
    """Records every call. Returns ``order_id`` or raises ``error``."""

    def __init__(self, order_id: str = "1001", error: Exception | None = None):
        self.order_id = order_id
        self.error = error
        self.calls = []
        self.closed = False

    def create_negotiable_order(self, customer, shipping_address, line_items, note,
                                tags=INQUIRY_TAGS) -> str:
        self.calls.append(
            {
                "customer": customer,
                "shipping_address": shipping_address,
                "line_items": line_items,
                "note": note,
                "tags": tags,
            }
        )
        if self.error is not None:
            raise self.error
        return self.order_id

    def close(self) -> None:
        self.closed = True


def rate_payload(postal_code="3000", email="jane@example.com", **destination):
    """A carrier-rate payload shaped like the checkout platform's."""
    dest = {
        "country": "AU",
        "postal_code": postal_code,
        "province": "VIC",
        "city": "Melbourne",
        "name": "Jane Citizen",
        "address1": "1 Collins St",
        "phone": "0400000000",
        "email": email,
    }
    dest.update(destination)
    return {
        "rate": {
            "origin": {"country": "AU", "postal_code": "3000"},
            "destination": dest,
            "items": [
                {"name": "Widget", "title": "Widget", "quantity": 2, "price": 1250, "grams": 500},
            ],
            "currency": "AUD",
        }
    }


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
def sleeps() -> list:
    return []


@pytest.fixture()
def store(sleeps) -> DataStore:
    """DataStore on the test engine. Backoff delays are recorded, not slept."""
    return DataStore(engine, attempts=3, base_delay=1.0, max_delay=5.0, sleep=sleeps.append)


@pytest.fixture()
def make_warehouse(db_session: Session):
    def _make(name="Melbourne DC", status="active", **kw) -> Warehouse:
        wh = Warehouse(name=name, status=status, **kw)
        db_session.add(wh)
        db_session.commit()
        db_session.refresh(wh)
        return wh

    return _make


@pytest.fixture()
def make_zone(db_session: Session):
    def _make(warehouse: Warehouse, postcode: str, prefix: bool = False, **kw) -> Zone:
        zone = Zone(warehouse_id=warehouse.id, postcode=postcode, prefix=prefix, **kw)
        db_session.add(zone)
        db_session.commit()
        db_session.refresh(zone)
        return zone

    return _make


@pytest.fixture()
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture()
def test_settings() -> Settings:
    return Settings(
        database_url=TEST_DB_URL,
        admin_api_key="test-admin-key",
        store_retry_base_delay_seconds=0,
        store_retry_max_delay_seconds=0,
        zone_cache_cold_start_wait_seconds=2.0,
        inquiry_workers=2,
    )


@pytest.fixture()
def services(test_settings, gateway):
    svc = build_services(test_settings, engine=engine, gateway=gateway)
    yield svc
    svc.dispatcher.stop(timeout=5)
    svc.zone_cache.close()


@pytest.fixture()
def client(services):
    """TestClient running the real lifespan against injected services."""
    from shipzone.main import app

    app.state.services = services
    try:
        with TestClient(app) as c:
            yield c
    finally:
        del app.state.services
