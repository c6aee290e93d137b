"""Inquiry service — lead records for destinations outside every zone.

Holds the InquiryRequest handed from the rate endpoint to the background
pipeline, the summary formatting stored on the lead, the store statements
for inquiries, and the deduplication rule.

Business Rules:
- Dedup key is the customer email (case-insensitive). Only status=new rows
  created inside the dedup window count.
- Without an email every request creates a new lead, unless the phone
  fallback is switched on (inquiry_dedup_phone_fallback).
- A pending lead is refreshed in place: address, postcode, product summary.
  Name, email, phone and the external order id are never rewritten.
- Rows the admin tool already moved to reviewed/closed are never touched.

Called by: services/inquiry_pipeline.py, services/rate_service.py
Depends on: datastore.py, models (Inquiry), connectors/shopify.py (order types)
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta

from sqlalchemy import func, insert, select, update

from ..connectors.shopify import OrderCustomer, OrderLineItem, ShippingAddress
from ..datastore import DataStore
from ..models import Inquiry
from ..schemas.rates import CarrierRateRequest
from ..utils import clean_str


@dataclass(frozen=True)
class InquiryRequest:
    """Everything the pipeline needs, copied out of one rate request."""

    postcode: str  # normalized
    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    phone: str | None = None
    address1: str | None = None
    city: str | None = None
    province: str | None = None
    country: str = "AU"
    postal_code: str | None = None  # as the customer typed it
    items: tuple[OrderLineItem, ...] = field(default_factory=tuple)

    @classmethod
    def from_rate_request(
        cls, req: CarrierRateRequest, postcode: str, default_country: str = "AU"
    ) -> "InquiryRequest":
        rate = req.rate
        dest = rate.destination if rate and rate.destination else None
        cust = rate.customer if rate and rate.customer else None

        def pick(attr):
            for src in (cust, dest):
                v = clean_str(getattr(src, attr, None)) if src is not None else None
                if v:
                    return v
            return None

        first, last = pick("first_name"), pick("last_name")
        if not first and not last and dest is not None and clean_str(dest.name):
            first, _, last = clean_str(dest.name).partition(" ")
            last = last.strip() or None

        items = tuple(
            OrderLineItem(
                title=clean_str(i.title) or "Product",
                quantity=i.quantity,
                price_cents=i.price,
                grams=i.grams,
            )
            for i in (rate.items if rate else [])
        )
        return cls(
            postcode=postcode,
            first_name=first,
            last_name=last,
            email=pick("email"),
            phone=pick("phone"),
            address1=clean_str(dest.address1 or dest.address) if dest else None,
            city=clean_str(dest.city) if dest else None,
            province=clean_str(dest.province or dest.state) if dest else None,
            country=(clean_str(dest.country) if dest else None) or default_country,
            postal_code=clean_str(dest.postal_code) if dest else None,
            items=items,
        )

    # ── Derived fields stored on the lead ───────────────────────────

    @property
    def dedup_email(self) -> str | None:
        return self.email.lower() if self.email else None

    @property
    def customer_name(self) -> str:
        if self.first_name and self.last_name:
            return f"{self.first_name} {self.last_name}"
        return self.first_name or self.last_name or "Customer"

    @property
    def address_summary(self) -> str | None:
        if not self.address1:
            return None
        return f"{self.address1}, {self.city or ''}, {self.province or ''} {self.postal_code or ''}".strip()

    @property
    def product_summary(self) -> str | None:
        if not self.items:
            return None
        return ", ".join(
            f"{i.quantity}x {i.title} - ${i.price_decimal}" for i in self.items
        )

    # ── Gateway arguments ───────────────────────────────────────────

    def order_customer(self) -> OrderCustomer:
        return OrderCustomer(
            first_name=self.first_name or "Customer",
            last_name=self.last_name or "",
            email=self.email or "",
            phone=self.phone or "",
        )

    def shipping_address(self) -> ShippingAddress:
        return ShippingAddress(
            first_name=self.first_name or "Customer",
            last_name=self.last_name or "",
            address1=self.address1 or "",
            city=self.city or "",
            province=self.province or "",
            country=self.country,
            zip=self.postal_code or self.postcode,
            phone=self.phone or "",
        )

    def order_note(self) -> str:
        return (
            f"Shipping inquiry required for postcode: {self.postcode}. "
            "This order requires manual shipping quote."
        )


# ── Store statements ─────────────────────────────────────────────────


def find_recent_pending(
    store: DataStore, since: datetime, email: str | None = None, phone: str | None = None
) -> dict | None:
    """Most recent status=new inquiry for this email (or phone) since ``since``."""
    stmt = select(Inquiry.__table__).where(
        Inquiry.status == "new",
        Inquiry.created_at >= since,
    )
    if email:
        stmt = stmt.where(func.lower(Inquiry.email) == email.lower())
    elif phone:
        stmt = stmt.where(Inquiry.phone == phone)
    else:
        return None
    stmt = stmt.order_by(Inquiry.created_at.desc(), Inquiry.id.desc()).limit(1)
    return store.fetch_one(stmt)


def create_inquiry(
    store: DataStore, req: InquiryRequest, external_order_id: str | None, now: datetime
) -> int:
    stmt = insert(Inquiry.__table__).values(
        customer_name=req.customer_name,
        email=req.email,
        phone=req.phone,
        address=req.address_summary,
        postcode=req.postcode,
        product_details=req.product_summary,
        external_order_id=external_order_id,
        status="new",
        created_at=now,
        updated_at=now,
    )
    return store.insert(stmt)


def refresh_pending_inquiry(
    store: DataStore, inquiry_id: int, req: InquiryRequest, now: datetime
) -> bool:
    """Overwrite address/postcode/products on a still-new lead. False if it moved on."""
    stmt = (
        update(Inquiry.__table__)
        .where(Inquiry.id == inquiry_id, Inquiry.status == "new")
        .values(
            address=req.address_summary,
            postcode=req.postcode,
            product_details=req.product_summary,
            updated_at=now,
        )
    )
    return store.execute(stmt) > 0


class InquiryDeduplicator:
    """Decides whether a no-match request refreshes an existing pending lead."""

    def __init__(self, store: DataStore, window_minutes: int = 60, phone_fallback: bool = False):
        self.store = store
        self.window = timedelta(minutes=window_minutes)
        self.phone_fallback = phone_fallback

    def find_pending(self, req: InquiryRequest, now: datetime) -> dict | None:
        if not self.window:
            return None
        since = now - self.window
        if req.email:
            return find_recent_pending(self.store, since, email=req.email)
        if self.phone_fallback and req.phone:
            return find_recent_pending(self.store, since, phone=req.phone)
        return None
