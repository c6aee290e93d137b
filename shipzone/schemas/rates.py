"""Carrier-rate request/response shapes.

Request models are deliberately lenient (every field optional, unknown keys
ignored, numbers accepted where strings are expected) because the checkout
platform's payload is not ours to validate: a malformed payload must still
end in the manual-quote rate, never a 422.
"""

from pydantic import BaseModel, ConfigDict, field_validator

from ..utils import safe_int


class _Lenient(BaseModel):
    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)


class RateDestination(_Lenient):
    postal_code: str | None = None
    country: str | None = None
    province: str | None = None
    state: str | None = None
    city: str | None = None
    name: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    address1: str | None = None
    address: str | None = None
    email: str | None = None
    phone: str | None = None


class RateCustomer(_Lenient):
    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    phone: str | None = None


class RateItem(_Lenient):
    title: str | None = None
    quantity: int = 1
    price: int = 0  # minor units (cents)
    grams: int = 0

    @field_validator("quantity", mode="before")
    @classmethod
    def _quantity(cls, v):
        return max(safe_int(v, 1), 1)

    @field_validator("price", "grams", mode="before")
    @classmethod
    def _non_negative(cls, v):
        return max(safe_int(v, 0), 0)


class RateBody(_Lenient):
    destination: RateDestination | None = None
    customer: RateCustomer | None = None
    items: list[RateItem] = []

    @field_validator("items", mode="before")
    @classmethod
    def _items(cls, v):
        if not isinstance(v, list):
            return []
        return [i for i in v if isinstance(i, dict)]


class CarrierRateRequest(_Lenient):
    rate: RateBody | None = None


class ShippingRate(BaseModel):
    service_name: str
    service_code: str
    total_price: str  # minor units, as a string
    currency: str
    description: str


class RateResponse(BaseModel):
    rates: list[ShippingRate]
