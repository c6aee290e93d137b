"""Shared utility helpers used across services and schemas."""


def safe_int(v, default=None):
    """Safely convert a value to int, returning ``default`` on failure."""
    if v is None:
        return default
    try:
        return int(v)
    except (ValueError, TypeError, OverflowError):
        return default


def clean_str(v) -> str | None:
    """Strip a value to a non-empty string, or None."""
    if v is None:
        return None
    s = str(v).strip()
    return s or None
