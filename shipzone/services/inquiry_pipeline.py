"""Inquiry pipeline — detached lead capture for unmatched destinations.

The rate endpoint hands an InquiryRequest to InquiryDispatcher.submit() and
returns immediately. A worker thread then runs OrderInquiryPipeline:

  1. Dedup: find a status=new lead for the same customer inside the window.
  2. Found → refresh its address/postcode/products. No external order.
  3. Not found → try to open a negotiable order via the gateway. Failure is
     logged and does not stop step 4.
  4. Persist a new lead, with the external order id when step 3 worked.

Nothing is retried automatically and nothing reaches the original caller.
A failure ends that one run and is visible in the logs and in stats().

Dispatch: each worker owns a bounded queue. Requests with the same dedup
key always go to the same worker, so two runs for one customer can never
race each other inside this process.

Called by: services/rate_service.py (submit), main.py (start/stop),
           routers/health.py (stats)
Depends on: services/inquiry_service.py, connectors/shopify.py, datastore.py
"""

import itertools
import queue
import threading
import zlib
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable

from loguru import logger

from ..connectors.shopify import INQUIRY_TAGS, ExternalOrderGateway
from ..datastore import DataStore
from ..exceptions import GatewayError
from .inquiry_service import (
    InquiryDeduplicator,
    InquiryRequest,
    create_inquiry,
    refresh_pending_inquiry,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class InquiryOutcome:
    action: str  # "created" | "updated"
    inquiry_id: int
    external_order_id: str | None = None


class OrderInquiryPipeline:
    def __init__(
        self,
        store: DataStore,
        gateway: ExternalOrderGateway,
        deduplicator: InquiryDeduplicator,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.store = store
        self.gateway = gateway
        self.deduplicator = deduplicator
        self._clock = clock

    def run(self, req: InquiryRequest) -> InquiryOutcome:
        """One pipeline execution. Store errors propagate to the worker."""
        now = self._clock()

        existing = self.deduplicator.find_pending(req, now)
        if existing is not None:
            if refresh_pending_inquiry(self.store, existing["id"], req, now):
                logger.info(
                    "Inquiry {} refreshed for repeat request (postcode {})",
                    existing["id"], req.postcode,
                )
                return InquiryOutcome("updated", existing["id"], existing.get("external_order_id"))
            # Admin moved it on between lookup and update: treat as a new lead
            logger.info("Inquiry {} no longer pending, creating a new one", existing["id"])

        order_id = self._open_order(req)
        try:
            inquiry_id = create_inquiry(self.store, req, order_id, now)
        except Exception:
            if order_id:
                logger.error(
                    "Draft order {} created but inquiry not saved (postcode {}, email {})",
                    order_id, req.postcode, req.email,
                )
            raise
        logger.info(
            "Inquiry {} created for postcode {} (draft order: {})",
            inquiry_id, req.postcode, order_id or "none",
        )
        return InquiryOutcome("created", inquiry_id, order_id)

    def _open_order(self, req: InquiryRequest) -> str | None:
        try:
            return self.gateway.create_negotiable_order(
                req.order_customer(),
                req.shipping_address(),
                list(req.items),
                req.order_note(),
                INQUIRY_TAGS,
            )
        except GatewayError as e:
            logger.warning("Draft order not created (continuing with inquiry): {}", e)
        except Exception:
            logger.exception("Unexpected error creating draft order (continuing with inquiry)")
        return None


_STOP = object()


class InquiryDispatcher:
    """Bounded worker pool for pipeline runs."""

    def __init__(self, pipeline: OrderInquiryPipeline, workers: int = 2, queue_limit: int = 200):
        self.pipeline = pipeline
        self.workers = max(1, workers)
        per_worker = max(1, queue_limit // self.workers)
        self._queues = [queue.Queue(maxsize=per_worker) for _ in range(self.workers)]
        self._threads: list[threading.Thread] = []
        self._round_robin = itertools.count()
        self._counts = {"submitted": 0, "processed": 0, "failed": 0, "dropped": 0}
        self._counts_lock = threading.Lock()

    # ── Lifecycle ───────────────────────────────────────────────────

    def start(self) -> None:
        if self._threads:
            return
        for idx, q in enumerate(self._queues):
            t = threading.Thread(
                target=self._worker, args=(q,), name=f"inquiry-worker-{idx}", daemon=True
            )
            t.start()
            self._threads.append(t)
        logger.info("Inquiry dispatcher started ({} workers)", self.workers)

    def stop(self, timeout: float = 5.0) -> None:
        """Finish queued work, then stop the workers."""
        if not self._threads:
            return
        for q in self._queues:
            q.put(_STOP)
        for t in self._threads:
            t.join(timeout=timeout)
            if t.is_alive():
                logger.warning("Inquiry worker {} still busy at shutdown", t.name)
        self._threads = []

    def join(self) -> None:
        """Block until every queued request has been processed."""
        for q in self._queues:
            q.join()

    # ── Submission (request thread, never blocks) ───────────────────

    def submit(self, req: InquiryRequest) -> bool:
        q = self._queues[self._route(req)]
        try:
            q.put_nowait(req)
        except queue.Full:
            self._bump("dropped")
            logger.error(
                "Inquiry queue full, dropping lead for postcode {} (email {})",
                req.postcode, req.email,
            )
            return False
        self._bump("submitted")
        return True

    def stats(self) -> dict:
        with self._counts_lock:
            counts = dict(self._counts)
        counts["workers"] = self.workers
        counts["running"] = sum(1 for t in self._threads if t.is_alive())
        counts["depth"] = sum(q.qsize() for q in self._queues)
        return counts

    # ── Internals ───────────────────────────────────────────────────

    def _route(self, req: InquiryRequest) -> int:
        key = req.dedup_email or (req.phone if self.pipeline.deduplicator.phone_fallback else None)
        if key:
            return zlib.crc32(key.encode("utf-8")) % self.workers
        return next(self._round_robin) % self.workers

    def _worker(self, q: queue.Queue) -> None:
        while True:
            req = q.get()
            try:
                if req is _STOP:
                    return
                self.pipeline.run(req)
                self._bump("processed")
            except Exception:
                self._bump("failed")
                logger.exception("Inquiry pipeline failed for postcode {}", req.postcode)
            finally:
                q.task_done()

    def _bump(self, key: str) -> None:
        with self._counts_lock:
            self._counts[key] += 1
