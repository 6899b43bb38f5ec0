"""Shared HTTP clients — connection pooling for all outbound requests.

Two module-level singleton httpx.AsyncClient instances:
  - vendor_http: Shopify Admin API reads
  - store_http: record store (Supabase REST) reads/writes

Per-request timeout overrides via vendor_http.get(url, timeout=15).
Components accept an injected client so tests can pass one built on
httpx.MockTransport.

Usage:
    from app.http_client import vendor_http
    resp = await vendor_http.get(url, params=params, headers=headers)
"""

import httpx

_LIMITS = httpx.Limits(
    max_connections=20,
    max_keepalive_connections=10,
    keepalive_expiry=30,
)

vendor_http = httpx.AsyncClient(
    timeout=30,
    limits=_LIMITS,
    follow_redirects=False,
)

store_http = httpx.AsyncClient(
    timeout=30,
    limits=_LIMITS,
    follow_redirects=False,
)


async def close_clients():
    """Shut down both shared clients. Call from app lifespan shutdown."""
    try:
        await vendor_http.aclose()
    except RuntimeError:
        pass
    try:
        await store_http.aclose()
    except RuntimeError:
        pass
