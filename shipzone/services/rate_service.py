"""Rate decision — flat rate for zoned postcodes, manual quote for the rest.

Runs on the checkout's critical path. The caller (the commerce platform)
gives up after a few seconds and may abandon the cart on any error status,
so quote() always returns exactly one rate and never raises:

  - no/invalid postcode      → INQUIRY rate, zone cache untouched
  - postcode in a zone       → ZONE_<warehouseId> at the flat price
  - postcode in no zone      → INQUIRY rate; lead capture queued, not awaited
  - anything unexpected      → INQUIRY rate

The synchronous path is normalize + in-memory match + response building.
Store and gateway I/O only happen on the zone cache's reload thread and
the inquiry workers.

Called by: routers/rates.py
Depends on: cache/zone_cache.py, services/inquiry_pipeline.py,
            services/inquiry_service.py, utils/postcode.py
"""

import time
from dataclasses import dataclass

from loguru import logger
from pydantic import ValidationError

from ..cache.zone_cache import ZoneCache, ZoneMatch
from ..exceptions import InvalidPostcode
from ..schemas.rates import CarrierRateRequest, RateResponse, ShippingRate
from ..utils.postcode import extract_postcode, normalize_postcode
from .inquiry_pipeline import InquiryDispatcher
from .inquiry_service import InquiryRequest

INQUIRY_SERVICE_CODE = "INQUIRY"

DESC_MISSING_POSTCODE = "Postcode information is missing. Please contact us for shipping."
DESC_INVALID_POSTCODE = "Postcode information is invalid. Please contact us for shipping."
DESC_NO_MATCH = "No automated rate for this postcode; store will contact you to finalize shipping."
DESC_ERROR = "Unable to calculate shipping rate. Please contact us for assistance."

LATENCY_BUDGET_MS = 500


@dataclass(frozen=True)
class RateDecision:
    outcome: str  # "matched" | "unmatched" | "invalid" | "error"
    match: ZoneMatch | None = None
    postcode: str | None = None
    description: str = DESC_ERROR
    inquiry_queued: bool = False


class RateDecisionEngine:
    def __init__(
        self,
        zone_cache: ZoneCache,
        dispatcher: InquiryDispatcher,
        flat_rate_cents: int = 5900,
        default_currency: str = "AUD",
        default_country: str = "AU",
        flat_rate_service_name: str = "Standard Delivery",
        inquiry_service_name: str = "Inquiry Required - We will contact you",
        cold_start_wait_seconds: float = 0.4,
    ):
        self.zone_cache = zone_cache
        self.dispatcher = dispatcher
        self.flat_rate_cents = flat_rate_cents
        self.default_currency = default_currency
        self.default_country = default_country
        self.flat_rate_service_name = flat_rate_service_name
        self.inquiry_service_name = inquiry_service_name
        self.cold_start_wait_seconds = cold_start_wait_seconds

    def quote(self, payload) -> dict:
        """Rate response body for a raw carrier-rate payload. Never raises."""
        started = time.perf_counter()
        currency = self.default_currency
        try:
            currency = self._currency(payload)
            decision = self.decide(payload)
        except Exception:
            logger.exception("Error in carrier rates decision, falling back to inquiry rate")
            decision = RateDecision("error", description=DESC_ERROR)

        try:
            body = self._build_response(decision, currency)
        except Exception:
            logger.exception("Error building rate response")
            body = self._inquiry_body(DESC_ERROR, self.default_currency)

        elapsed_ms = (time.perf_counter() - started) * 1000
        log = logger.warning if elapsed_ms > LATENCY_BUDGET_MS else logger.info
        log(
            "Carrier rates response: {} postcode={} inquiry_queued={} ({:.0f}ms)",
            decision.outcome.upper(), decision.postcode or "N/A", decision.inquiry_queued, elapsed_ms,
        )
        return body

    def decide(self, payload) -> RateDecision:
        raw = extract_postcode(payload)
        if raw is None:
            logger.warning("No postcode found in carrier request payload")
            return RateDecision("invalid", description=DESC_MISSING_POSTCODE)
        try:
            postcode = normalize_postcode(raw)
        except InvalidPostcode:
            logger.warning("Invalid postcode format: {!r}", raw)
            return RateDecision("invalid", description=DESC_INVALID_POSTCODE)

        self._refresh_cache()
        match = self.zone_cache.match(postcode)
        if match is not None:
            logger.info(
                "Postcode {} matched zone {} ({}, {})",
                postcode, match.zone_id, match.warehouse_name, match.match_type,
            )
            return RateDecision("matched", match=match, postcode=postcode)

        queued = self._enqueue_inquiry(payload, postcode)
        return RateDecision(
            "unmatched", postcode=postcode, description=DESC_NO_MATCH, inquiry_queued=queued
        )

    # ── Internals ───────────────────────────────────────────────────

    def _refresh_cache(self) -> None:
        self.zone_cache.ensure_fresh()
        if self.cold_start_wait_seconds and not self.zone_cache.status()["ever_loaded"]:
            # Nothing has ever loaded: give the in-flight reload a short, bounded wait
            self.zone_cache.wait_for_first_load(self.cold_start_wait_seconds)

    def _enqueue_inquiry(self, payload, postcode: str) -> bool:
        try:
            parsed = CarrierRateRequest.model_validate(payload)
        except ValidationError as e:
            logger.warning("Unparseable rate payload, saving bare inquiry: {}", e.errors()[:3])
            parsed = CarrierRateRequest()
        req = InquiryRequest.from_rate_request(parsed, postcode, default_country=self.default_country)
        return self.dispatcher.submit(req)

    def _currency(self, payload) -> str:
        rate = payload.get("rate") if isinstance(payload, dict) else None
        currency = rate.get("currency") if isinstance(rate, dict) else None
        if isinstance(currency, str) and currency.strip():
            return currency.strip().upper()
        return self.default_currency

    def _build_response(self, decision: RateDecision, currency: str) -> dict:
        if decision.outcome == "matched" and decision.match is not None:
            rate = ShippingRate(
                service_name=self.flat_rate_service_name,
                service_code=f"ZONE_{decision.match.warehouse_id}",
                total_price=str(self.flat_rate_cents),
                currency=currency,
                description=f"Delivery from {decision.match.warehouse_name}",
            )
            return RateResponse(rates=[rate]).model_dump()
        return self._inquiry_body(decision.description, currency)

    def _inquiry_body(self, description: str, currency: str) -> dict:
        rate = ShippingRate(
            service_name=self.inquiry_service_name,
            service_code=INQUIRY_SERVICE_CODE,
            total_price="0",
            currency=currency,
            description=description,
        )
        return RateResponse(rates=[rate]).model_dump()
