"""Postcode normalization — pure Python, no I/O.

Australian postcodes are exactly 4 digits. Anything else the customer types
("VIC 3000", " 3000 ", "3-0-0-0") is reduced to its digits first:
  - "3000"      → "3000"
  - " vic 3000" → "3000"
  - "3-0K0"     → InvalidPostcode (only 3 digits remain)
  - None / ""   → InvalidPostcode
"""

import re
from typing import Any

from ..exceptions import InvalidPostcode

POSTCODE_LENGTH = 4

_NON_DIGITS = re.compile(r"\D")


def normalize_postcode(raw: Any) -> str:
    """Return the canonical 4-digit postcode or raise InvalidPostcode."""
    if raw is None:
        raise InvalidPostcode(raw)
    digits = _NON_DIGITS.sub("", str(raw))
    if len(digits) != POSTCODE_LENGTH:
        raise InvalidPostcode(raw)
    return digits


def prefix_pattern(raw: Any) -> str:
    """Canonical form of a prefix zone pattern: digits only, wildcard dropped.

    "30*" → "30". May return "" for patterns with no digits.
    """
    if raw is None:
        return ""
    return _NON_DIGITS.sub("", str(raw))


def extract_postcode(payload: Any) -> Any:
    """Pull the raw destination postcode out of a carrier-rate payload.

    Checks rate.destination.postal_code, then destination.postal_code,
    then a top-level postal_code. Returns None when absent.
    """
    if not isinstance(payload, dict):
        return None

    rate = payload.get("rate")
    if isinstance(rate, dict):
        destination = rate.get("destination")
        if isinstance(destination, dict) and destination.get("postal_code"):
            return destination["postal_code"]

    destination = payload.get("destination")
    if isinstance(destination, dict) and destination.get("postal_code"):
        return destination["postal_code"]

    return payload.get("postal_code") or None
