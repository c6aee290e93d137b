"""Zone cache — in-memory snapshot of every active zone→warehouse mapping.

The rate endpoint never touches the store. It reads an immutable
ZoneSnapshot through a single reference that reloads replace atomically.

Refresh policy:
  - ensure_fresh() schedules a reload when there is no snapshot, the
    snapshot is older than the TTL, or invalidate() was called since it
    was built. It never blocks; readers keep using the previous snapshot.
  - Reloads are single-flight: one dedicated worker thread, and every
    caller that sees staleness while a reload runs gets the same future.
  - A failed reload keeps the previous snapshot. With no previous snapshot
    the cache switches to an explicit empty snapshot (ever_loaded=False in
    status()). Either way no further reload is tried for retry_seconds.

Matching is two-pass: exact zones first (first hit wins, prefix zones are
not examined), then prefix zones, longest prefix first, ties to the lowest
zone id.

Called by: services/rate_service.py (match), main.py (lifecycle),
           routers/admin.py (invalidate), routers/health.py (status)
Depends on: datastore.py, models (Warehouse, Zone), utils/postcode.py
"""

import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable

from loguru import logger
from sqlalchemy import select

from ..datastore import DataStore
from ..exceptions import InvalidPostcode, StoreError
from ..models import Warehouse, Zone
from ..utils.postcode import normalize_postcode, prefix_pattern


@dataclass(frozen=True)
class CachedZone:
    id: int
    warehouse_id: int
    warehouse_name: str
    pattern: str  # canonical: 4 digits (exact) or digit prefix
    is_prefix: bool
    note: str | None = None


@dataclass(frozen=True)
class ZoneMatch:
    zone_id: int
    warehouse_id: int
    warehouse_name: str
    match_type: str  # "exact" | "prefix"


@dataclass(frozen=True)
class ZoneSnapshot:
    """Immutable, complete set of active zones (or deliberately empty)."""

    zones: tuple[CachedZone, ...]
    created_at: datetime
    created_mono: float
    generation: int
    from_store: bool = True
    _exact: dict = field(default_factory=dict, repr=False, compare=False)
    _prefixes: tuple = field(default=(), repr=False, compare=False)

    @classmethod
    def build(cls, zones, generation: int, from_store: bool = True) -> "ZoneSnapshot":
        ordered = tuple(sorted(zones, key=lambda z: z.id))
        exact: dict[str, CachedZone] = {}
        for z in ordered:
            if not z.is_prefix:
                exact.setdefault(z.pattern, z)
        prefixes = tuple(
            sorted((z for z in ordered if z.is_prefix), key=lambda z: (-len(z.pattern), z.id))
        )
        return cls(
            zones=ordered,
            created_at=datetime.now(timezone.utc),
            created_mono=time.monotonic(),
            generation=generation,
            from_store=from_store,
            _exact=exact,
            _prefixes=prefixes,
        )

    def match(self, postcode: str) -> ZoneMatch | None:
        hit = self._exact.get(postcode)
        if hit is not None:
            return ZoneMatch(hit.id, hit.warehouse_id, hit.warehouse_name, "exact")
        for z in self._prefixes:
            if postcode.startswith(z.pattern):
                return ZoneMatch(z.id, z.warehouse_id, z.warehouse_name, "prefix")
        return None


def load_active_zones(store: DataStore) -> list[CachedZone]:
    """Read every zone whose warehouse is active. Raises StoreError."""
    stmt = (
        select(
            Zone.id,
            Zone.warehouse_id,
            Zone.postcode,
            Zone.prefix,
            Zone.note,
            Warehouse.name.label("warehouse_name"),
        )
        .join(Warehouse, Zone.warehouse_id == Warehouse.id)
        .where(Warehouse.status == "active")
        .order_by(Zone.id)
    )
    zones = []
    for row in store.fetch_all(stmt):
        cz = _to_cached_zone(row)
        if cz is not None:
            zones.append(cz)
    return zones


def _to_cached_zone(row: dict) -> CachedZone | None:
    is_prefix = bool(row["prefix"])
    if is_prefix:
        pattern = prefix_pattern(row["postcode"])
        if not pattern:
            logger.warning("Skipping zone {}: empty prefix pattern {!r}", row["id"], row["postcode"])
            return None
    else:
        try:
            pattern = normalize_postcode(row["postcode"])
        except InvalidPostcode:
            logger.warning("Skipping zone {}: invalid postcode {!r}", row["id"], row["postcode"])
            return None
    return CachedZone(
        id=row["id"],
        warehouse_id=row["warehouse_id"],
        warehouse_name=row["warehouse_name"],
        pattern=pattern,
        is_prefix=is_prefix,
        note=row.get("note"),
    )


class ZoneCache:
    """Owns the snapshot reference and its replacement. One per process."""

    def __init__(
        self,
        store: DataStore,
        ttl_seconds: float = 300,
        retry_seconds: float = 30,
        loader: Callable[[DataStore], list[CachedZone]] = load_active_zones,
    ):
        self.store = store
        self.ttl_seconds = ttl_seconds
        self.retry_seconds = retry_seconds
        self._loader = loader
        self._snapshot: ZoneSnapshot | None = None
        self._ever_loaded = False
        self._generation = 0
        self._retry_after = 0.0
        self._last_error: str | None = None
        self._inflight: Future | None = None
        self._lock = threading.Lock()
        self._first_load = threading.Event()
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="zone-cache")
        self._closed = False

    # ── Lifecycle ───────────────────────────────────────────────────

    def start(self) -> ZoneSnapshot:
        """Blocking initial load. Call once at process start."""
        fut = self.ensure_fresh()
        if fut is not None:
            fut.result()
        return self.snapshot

    def invalidate(self) -> None:
        """Force a reload on the next ensure_fresh(), regardless of TTL."""
        with self._lock:
            self._generation += 1
            self._retry_after = 0.0
        logger.info("Zone cache invalidated (generation {})", self._generation)

    def close(self) -> None:
        with self._lock:
            self._closed = True
        self._executor.shutdown(wait=False, cancel_futures=True)

    # ── Read path ───────────────────────────────────────────────────

    @property
    def snapshot(self) -> ZoneSnapshot:
        snap = self._snapshot
        if snap is None:
            return ZoneSnapshot.build((), generation=-1, from_store=False)
        return snap

    def match(self, postcode: str) -> ZoneMatch | None:
        """Look up an already-normalized 4-digit postcode."""
        return self.snapshot.match(postcode)

    def is_stale(self) -> bool:
        snap = self._snapshot
        if snap is None or not snap.from_store:
            return True
        if snap.generation != self._generation:
            return True
        return time.monotonic() - snap.created_mono > self.ttl_seconds

    def ensure_fresh(self) -> Future | None:
        """Schedule a reload if stale. Returns the in-flight future, or None."""
        if not self.is_stale():
            return None
        with self._lock:
            if self._inflight is not None:
                return self._inflight
            if self._closed or time.monotonic() < self._retry_after:
                return None
            # A reload may have finished since the unlocked check
            if not self.is_stale():
                return None
            self._inflight = self._executor.submit(self._reload)
            return self._inflight

    def wait_for_first_load(self, timeout: float) -> bool:
        """Block up to ``timeout`` for the first-ever reload attempt to finish."""
        if self._first_load.is_set():
            return True
        fut = self.ensure_fresh()
        if fut is None:
            return self._first_load.is_set()
        try:
            fut.result(timeout=timeout)
        except FutureTimeout:
            return False
        return True

    def status(self) -> dict:
        snap = self._snapshot
        return {
            "loaded": snap is not None and snap.from_store,
            "ever_loaded": self._ever_loaded,
            "zone_count": len(snap.zones) if snap else 0,
            "age_seconds": round(time.monotonic() - snap.created_mono, 1) if snap else None,
            "loaded_at": snap.created_at.isoformat() if snap else None,
            "reload_in_flight": self._inflight is not None,
            "last_error": self._last_error,
            "generation": self._generation,
        }

    # ── Reload (runs on the cache's own thread) ─────────────────────

    def _reload(self) -> None:
        with self._lock:
            generation = self._generation
        started = time.monotonic()
        try:
            zones = self._loader(self.store)
        except StoreError as e:
            self._on_reload_failed(e, generation)
        except Exception as e:
            logger.exception("Unexpected error reloading zone cache")
            self._on_reload_failed(e, generation)
        else:
            self._snapshot = ZoneSnapshot.build(zones, generation)
            self._ever_loaded = True
            self._last_error = None
            logger.info(
                "Loaded {} zones into cache in {:.0f}ms",
                len(zones), (time.monotonic() - started) * 1000,
            )
        finally:
            self._first_load.set()
            with self._lock:
                self._inflight = None

    def _on_reload_failed(self, err: Exception, generation: int) -> None:
        self._last_error = str(err)[:200]
        self._retry_after = time.monotonic() + self.retry_seconds
        if self._snapshot is not None:
            logger.warning(
                "Zone cache reload failed; keeping previous snapshot ({} zones), retry in {}s: {}",
                len(self._snapshot.zones), self.retry_seconds, self._last_error,
            )
            return
        self._snapshot = ZoneSnapshot.build((), generation, from_store=False)
        logger.error(
            "Zone cache reload failed with no previous snapshot; every postcode will get "
            "the inquiry rate until a reload succeeds: {}",
            self._last_error,
        )
