"""Typed failures shared by the store layer, the normalizer and the gateway.

Transient vs. permanent store failures are decided once, in datastore.py,
and every caller (zone cache, inquiry pipeline) relies on the type alone.
"""


class StoreError(Exception):
    """Base class for data-store failures."""


class TransientStoreError(StoreError):
    """Connection refused/reset/lost, timeouts, pool exhaustion. Retryable."""


class PermanentStoreError(StoreError):
    """Constraint violations, malformed statements. Never retried."""


class InvalidPostcode(ValueError):
    """Raised when a destination postcode is absent or not exactly 4 digits."""

    def __init__(self, raw):
        self.raw = raw
        super().__init__(f"Invalid postcode: {raw!r}")


class GatewayError(Exception):
    """Any failure creating an order on the external commerce platform."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)
