"""Shared HTTP client construction — connection pooling for outbound requests.

The inquiry workers share one pooled httpx.Client per gateway. Per-request
timeout overrides are still possible via client.post(url, timeout=...).

Usage:
    from shipzone.http_client import build_client
    client = build_client(base_url, headers={...}, timeout=10)
    resp = client.post("/draft_orders.json", json=payload)
"""

import httpx

_LIMITS = httpx.Limits(
    max_connections=20,
    max_keepalive_connections=10,
    keepalive_expiry=30,
)


def build_client(
    base_url: str = "",
    headers: dict | None = None,
    timeout: float = 10,
    transport: httpx.BaseTransport | None = None,
) -> httpx.Client:
    """Pooled client with no redirects. ``transport`` is for tests."""
    return httpx.Client(
        base_url=base_url,
        headers=headers or {},
        timeout=timeout,
        limits=_LIMITS,
        follow_redirects=False,
        transport=transport,
    )


def close_client(client: httpx.Client | None) -> None:
    """Shut a client down. Safe to call twice."""
    if client is None:
        return
    try:
        client.close()
    except RuntimeError:
        pass
