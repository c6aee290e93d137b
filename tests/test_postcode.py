"""
test_postcode.py — Tests for shipzone/utils/postcode.py and utils.safe_int

Called by: pytest
Depends on: shipzone.utils, shipzone.utils.postcode
"""

import pytest

from shipzone.exceptions import InvalidPostcode
from shipzone.utils import safe_int
from shipzone.utils.postcode import extract_postcode, normalize_postcode, prefix_pattern


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("3000", "3000"),
        (" 3000 ", "3000"),
        ("VIC 3000", "3000"),
        ("3-0-0-0", "3000"),
        (3000, "3000"),
        ("0800", "0800"),
    ],
)
def test_normalize_postcode_valid(raw, expected):
    assert normalize_postcode(raw) == expected


@pytest.mark.parametrize("raw", [None, "", "   ", "300", "30000", "abcd", "3-0K0", "30*"])
def test_normalize_postcode_invalid(raw):
    with pytest.raises(InvalidPostcode) as exc:
        normalize_postcode(raw)
    assert exc.value.raw == raw


def test_invalid_postcode_is_value_error():
    with pytest.raises(ValueError):
        normalize_postcode("12")


def test_prefix_pattern_strips_wildcard():
    assert prefix_pattern("30*") == "30"
    assert prefix_pattern(" 3 ") == "3"
    assert prefix_pattern("*") == ""
    assert prefix_pattern(None) == ""


def test_extract_postcode_from_rate_destination():
    payload = {"rate": {"destination": {"postal_code": "3000"}}}
    assert extract_postcode(payload) == "3000"


def test_extract_postcode_falls_back_to_top_level_destination():
    assert extract_postcode({"destination": {"postal_code": "2000"}}) == "2000"
    assert extract_postcode({"postal_code": "4000"}) == "4000"


def test_extract_postcode_skips_empty_nested_value():
    payload = {"rate": {"destination": {"postal_code": ""}}, "postal_code": "5000"}
    assert extract_postcode(payload) == "5000"


@pytest.mark.parametrize("payload", [None, [], "3000", {}, {"rate": "x"}, {"rate": {}}])
def test_extract_postcode_missing(payload):
    assert extract_postcode(payload) is None


@pytest.mark.parametrize(
    "raw, expected",
    [("12", 12), (7.9, 7), (None, 0), ("abc", 0), (float("inf"), 0), (float("-inf"), 0), (float("nan"), 0)],
)
def test_safe_int(raw, expected):
    assert safe_int(raw, 0) == expected
