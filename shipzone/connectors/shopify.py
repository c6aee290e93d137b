"""Order gateway — opens negotiable (draft) orders on the commerce platform.

The inquiry pipeline depends only on ExternalOrderGateway: one call that
either returns the external order id or raises GatewayError. Nothing here
retries; a failed call is logged by the caller and the lead is still saved.

Shopify implementation: POST /admin/api/{version}/draft_orders.json with the
customer, shipping address, line items (decimal price strings), a note for
staff, and the manual-quote tags.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal

import httpx
from loguru import logger

from ..config import Settings
from ..exceptions import GatewayError
from ..http_client import build_client, close_client

INQUIRY_TAGS = ("shipping-inquiry", "manual-quote")


@dataclass(frozen=True)
class OrderCustomer:
    first_name: str
    last_name: str = ""
    email: str = ""
    phone: str = ""


@dataclass(frozen=True)
class ShippingAddress:
    first_name: str
    last_name: str = ""
    address1: str = ""
    city: str = ""
    province: str = ""
    country: str = "AU"
    zip: str = ""
    phone: str = ""


@dataclass(frozen=True)
class OrderLineItem:
    title: str
    quantity: int = 1
    price_cents: int = 0
    grams: int = 0

    @property
    def price_decimal(self) -> str:
        return f"{Decimal(self.price_cents) / 100:.2f}"


class ExternalOrderGateway(ABC):
    @abstractmethod
    def create_negotiable_order(
        self,
        customer: OrderCustomer,
        shipping_address: ShippingAddress,
        line_items: list[OrderLineItem],
        note: str,
        tags: tuple[str, ...] = INQUIRY_TAGS,
    ) -> str:
        """Open an unpriced order for staff follow-up. Returns its id."""

    def close(self) -> None:
        pass


class DisabledOrderGateway(ExternalOrderGateway):
    """Stand-in when platform credentials are missing. Always fails."""

    def create_negotiable_order(self, customer, shipping_address, line_items, note,
                                tags=INQUIRY_TAGS) -> str:
        raise GatewayError("Shopify credentials not configured")


class ShopifyOrderGateway(ExternalOrderGateway):
    """Shopify Admin REST API — draft orders."""

    def __init__(
        self,
        store_domain: str,
        access_token: str,
        api_version: str = "2024-01",
        timeout: float = 10,
        transport: httpx.BaseTransport | None = None,
    ):
        domain = store_domain.replace("https://", "").replace("http://", "").rstrip("/")
        self.base_url = f"https://{domain}/admin/api/{api_version}"
        self._client = build_client(
            self.base_url,
            headers={
                "X-Shopify-Access-Token": access_token,
                "Content-Type": "application/json",
            },
            timeout=timeout,
            transport=transport,
        )

    def create_negotiable_order(
        self,
        customer: OrderCustomer,
        shipping_address: ShippingAddress,
        line_items: list[OrderLineItem],
        note: str,
        tags: tuple[str, ...] = INQUIRY_TAGS,
    ) -> str:
        payload = build_draft_order_payload(customer, shipping_address, line_items, note, tags)
        try:
            resp = self._client.post("/draft_orders.json", json=payload)
        except httpx.HTTPError as e:
            raise GatewayError(f"Draft order request failed: {e}") from e

        if resp.status_code not in (200, 201):
            logger.warning(
                "Shopify draft order rejected: {} {}", resp.status_code, resp.text[:300]
            )
            raise GatewayError(
                f"Draft order rejected with HTTP {resp.status_code}", status_code=resp.status_code
            )

        try:
            order_id = resp.json()["draft_order"]["id"]
        except (ValueError, KeyError, TypeError) as e:
            raise GatewayError("Draft order response missing id") from e
        return str(order_id)

    def close(self) -> None:
        close_client(self._client)


def build_draft_order_payload(
    customer: OrderCustomer,
    shipping_address: ShippingAddress,
    line_items: list[OrderLineItem],
    note: str,
    tags: tuple[str, ...] = INQUIRY_TAGS,
) -> dict:
    return {
        "draft_order": {
            "line_items": [
                {
                    "title": li.title,
                    "quantity": li.quantity,
                    "price": li.price_decimal,
                    "grams": li.grams,
                }
                for li in line_items
            ],
            "customer": {
                "first_name": customer.first_name,
                "last_name": customer.last_name,
                "email": customer.email,
                "phone": customer.phone,
            },
            "shipping_address": {
                "first_name": shipping_address.first_name,
                "last_name": shipping_address.last_name,
                "address1": shipping_address.address1,
                "city": shipping_address.city,
                "province": shipping_address.province,
                "country": shipping_address.country,
                "zip": shipping_address.zip,
                "phone": shipping_address.phone,
            },
            "note": note,
            "tags": ", ".join(tags),
        }
    }


def build_gateway(cfg: Settings) -> ExternalOrderGateway:
    if not cfg.shopify_configured:
        logger.warning("Shopify not configured: inquiries will be saved without draft orders")
        return DisabledOrderGateway()
    return ShopifyOrderGateway(
        cfg.shopify_store_domain,
        cfg.shopify_access_token,
        api_version=cfg.shopify_api_version,
        timeout=cfg.shopify_timeout_seconds,
    )
