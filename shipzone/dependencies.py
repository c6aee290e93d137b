"""
dependencies.py — Service Container and Shared FastAPI Dependencies

Builds the long-lived objects the routes share (engine, DataStore, zone
cache, order gateway, inquiry dispatcher, rate engine) and exposes them to
routers through app.state.

Business Rules:
- One Services instance per process, built in main.py's lifespan
  unless a test has already placed one on app.state
- require_admin_key raises 404 when admin_api_key is unset (hook disabled)
  and 403 when the X-Admin-Key header does not match
- Key comparison is constant-time

Called by: main.py (build_services), all routers (accessors)
Depends on: config, database, datastore, cache/zone_cache, connectors/shopify,
            services/*
"""

import hmac
from dataclasses import dataclass

from fastapi import HTTPException, Request
from sqlalchemy.engine import Engine

from .cache.zone_cache import ZoneCache
from .config import Settings, get_settings
from .connectors.shopify import ExternalOrderGateway, build_gateway
from .database import build_engine
from .datastore import DataStore
from .services.inquiry_pipeline import InquiryDispatcher, OrderInquiryPipeline
from .services.inquiry_service import InquiryDeduplicator
from .services.rate_service import RateDecisionEngine


@dataclass
class Services:
    settings: Settings
    engine: Engine
    store: DataStore
    zone_cache: ZoneCache
    gateway: ExternalOrderGateway
    dispatcher: InquiryDispatcher
    rates: RateDecisionEngine


def build_services(
    cfg: Settings | None = None,
    engine: Engine | None = None,
    gateway: ExternalOrderGateway | None = None,
) -> Services:
    """Wire every component from settings. ``engine``/``gateway`` override for tests."""
    cfg = cfg or get_settings()
    engine = engine or build_engine(cfg)
    store = DataStore(
        engine,
        attempts=cfg.store_retry_attempts,
        base_delay=cfg.store_retry_base_delay_seconds,
        max_delay=cfg.store_retry_max_delay_seconds,
    )
    zone_cache = ZoneCache(
        store,
        ttl_seconds=cfg.zone_cache_ttl_seconds,
        retry_seconds=cfg.zone_cache_retry_seconds,
    )
    gateway = gateway or build_gateway(cfg)
    pipeline = OrderInquiryPipeline(
        store,
        gateway,
        InquiryDeduplicator(
            store,
            window_minutes=cfg.inquiry_dedup_window_minutes,
            phone_fallback=cfg.inquiry_dedup_phone_fallback,
        ),
    )
    dispatcher = InquiryDispatcher(
        pipeline, workers=cfg.inquiry_workers, queue_limit=cfg.inquiry_queue_limit
    )
    rates = RateDecisionEngine(
        zone_cache,
        dispatcher,
        flat_rate_cents=cfg.flat_rate_cents,
        default_currency=cfg.default_currency,
        default_country=cfg.default_country,
        flat_rate_service_name=cfg.flat_rate_service_name,
        inquiry_service_name=cfg.inquiry_service_name,
        cold_start_wait_seconds=cfg.zone_cache_cold_start_wait_seconds,
    )
    return Services(
        settings=cfg,
        engine=engine,
        store=store,
        zone_cache=zone_cache,
        gateway=gateway,
        dispatcher=dispatcher,
        rates=rates,
    )


# ── Accessors ────────────────────────────────────────────────────────


def get_services(request: Request) -> Services:
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise HTTPException(503, "Service not ready")
    return services


def get_rate_engine(request: Request) -> RateDecisionEngine:
    return get_services(request).rates


def get_zone_cache(request: Request) -> ZoneCache:
    return get_services(request).zone_cache


# ── Admin hook auth ──────────────────────────────────────────────────


def require_admin_key(request: Request) -> None:
    """Dependency: the admin tool's shared key in X-Admin-Key."""
    expected = get_services(request).settings.admin_api_key
    if not expected:
        raise HTTPException(404, "Not found")
    supplied = request.headers.get("x-admin-key", "")
    if not hmac.compare_digest(supplied.encode("utf-8"), expected.encode("utf-8")):
        raise HTTPException(403, "Invalid admin key")
