"""
test_shopify_inventory.py — Tests for the Shopify inventory connector

Drives ShopifyInventoryClient through httpx.MockTransport: request shape,
response parsing, 429 / Retry-After handling, retry exhaustion, and
Link-header pagination. Sleeps are recorded, never awaited for real.

Called by: pytest
Depends on: app/connectors/shopify_inventory.py
"""

import httpx
import pytest

from app.connectors.shopify_inventory import ShopifyInventoryClient
from app.exceptions import VendorError
from app.utils.backoff import BackoffPolicy, RetryPolicy

LEVELS_URL = "https://test-shop.myshopify.com/admin/api/2024-01/inventory_levels.json"


def _level(item_id, available=5, location_id=1001):
    return {
        "inventory_item_id": item_id,
        "location_id": location_id,
        "available": available,
        "updated_at": "2026-03-01T12:00:00-05:00",
    }


def _make_client(handler, **kwargs):
    sleeps: list[float] = []

    async def _sleep(seconds):
        sleeps.append(seconds)

    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    client = ShopifyInventoryClient(
        "https://test-shop.myshopify.com/",
        "shpat_test",
        http=http,
        retry=RetryPolicy(backoff=BackoffPolicy(rand=lambda: 0.0)),
        sleep=_sleep,
        **kwargs,
    )
    return client, sleeps


@pytest.mark.asyncio
async def test_request_shape_and_parse():
    seen = []

    def handler(request: httpx.Request):
        seen.append(request)
        return httpx.Response(200, json={"inventory_levels": [_level(11, 4), _level(12, None)]})

    client, sleeps = _make_client(handler, location_id=1001)
    levels = await client.fetch_levels([11, 12])

    req = seen[0]
    assert str(req.url).startswith(LEVELS_URL)
    assert req.url.params["inventory_item_ids"] == "11,12"
    assert req.url.params["limit"] == "250"
    assert req.url.params["location_ids"] == "1001"
    assert req.headers["X-Shopify-Access-Token"] == "shpat_test"

    assert [(lv.inventory_item_id, lv.location_id, lv.available) for lv in levels] == [
        (11, 1001, 4),
        (12, 1001, 0),  # null available → 0
    ]
    assert levels[0].last_change_at.utcoffset().total_seconds() == -5 * 3600
    assert sleeps == []


@pytest.mark.asyncio
async def test_empty_ids_makes_no_call():
    def handler(request):
        raise AssertionError("vendor should not be called")

    client, _ = _make_client(handler)
    assert await client.fetch_levels([]) == []


@pytest.mark.asyncio
async def test_empty_levels_is_not_an_error():
    client, _ = _make_client(lambda r: httpx.Response(200, json={"inventory_levels": []}))
    assert await client.fetch_levels([1, 2]) == []


@pytest.mark.asyncio
async def test_entries_without_ids_skipped():
    body = {"inventory_levels": [{"inventory_item_id": 5, "available": 3}, _level(6)]}
    client, _ = _make_client(lambda r: httpx.Response(200, json=body))
    levels = await client.fetch_levels([5, 6])
    assert [lv.inventory_item_id for lv in levels] == [6]


@pytest.mark.asyncio
async def test_429_honours_retry_after_then_succeeds():
    replies = iter(
        [
            httpx.Response(429, headers={"Retry-After": "3"}),
            httpx.Response(200, json={"inventory_levels": [_level(1)]}),
        ]
    )
    client, sleeps = _make_client(lambda r: next(replies))
    levels = await client.fetch_levels([1])
    assert len(levels) == 1
    assert sleeps == [3.0]


@pytest.mark.asyncio
async def test_429_long_retry_after_is_capped():
    replies = iter(
        [
            httpx.Response(429, headers={"Retry-After": "3600"}),
            httpx.Response(200, json={"inventory_levels": [_level(1)]}),
        ]
    )
    client, sleeps = _make_client(lambda r: next(replies))
    await client.fetch_levels([1])
    assert sleeps == [60.0]


@pytest.mark.asyncio
async def test_429_without_retry_after_uses_backoff():
    replies = iter(
        [
            httpx.Response(429),
            httpx.Response(429),
            httpx.Response(200, json={"inventory_levels": []}),
        ]
    )
    client, sleeps = _make_client(lambda r: next(replies))
    await client.fetch_levels([1])
    assert sleeps == [1.0, 2.0]


@pytest.mark.asyncio
async def test_persistent_429_exhausts_after_five_calls():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(429, headers={"Retry-After": "1"})

    client, sleeps = _make_client(handler)
    with pytest.raises(VendorError) as exc:
        await client.fetch_levels([1, 2])

    assert len(calls) == 5
    assert len(sleeps) == 4
    assert exc.value.code == VendorError.RATE_LIMIT_EXHAUSTED
    assert exc.value.status_code == 429
    assert exc.value.attempts == 5


@pytest.mark.asyncio
async def test_server_error_retried_then_succeeds():
    replies = iter(
        [
            httpx.Response(500, text="boom"),
            httpx.Response(200, json={"inventory_levels": [_level(9)]}),
        ]
    )
    client, sleeps = _make_client(lambda r: next(replies))
    levels = await client.fetch_levels([9])
    assert [lv.inventory_item_id for lv in levels] == [9]
    assert sleeps == [1.0]


@pytest.mark.asyncio
async def test_persistent_server_error_is_upstream_failure():
    client, _ = _make_client(lambda r: httpx.Response(503, text="unavailable"))
    with pytest.raises(VendorError) as exc:
        await client.fetch_levels([1])
    assert exc.value.code == VendorError.UPSTREAM_FAILURE
    assert exc.value.status_code == 503
    assert "503" in exc.value.message


@pytest.mark.asyncio
async def test_transport_error_retried():
    state = {"calls": 0}

    def handler(request):
        state["calls"] += 1
        if state["calls"] == 1:
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(200, json={"inventory_levels": [_level(3)]})

    client, sleeps = _make_client(handler)
    levels = await client.fetch_levels([3])
    assert len(levels) == 1
    assert state["calls"] == 2
    assert sleeps == [1.0]


@pytest.mark.asyncio
async def test_non_json_body_is_vendor_error():
    client, _ = _make_client(lambda r: httpx.Response(200, text="<html>maintenance</html>"))
    with pytest.raises(VendorError):
        await client.fetch_levels([1])


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body",
    [["unexpected"], "maintenance", 42, {"inventory_levels": {"id": 1}}, {"inventory_levels": "none"}],
)
async def test_non_object_body_is_vendor_error(body):
    client, sleeps = _make_client(lambda r: httpx.Response(200, json=body))
    with pytest.raises(VendorError) as exc:
        await client.fetch_levels([1])
    assert exc.value.kind == VendorError.UPSTREAM_FAILURE
    assert sleeps == []


@pytest.mark.asyncio
async def test_body_without_levels_key_is_empty():
    client, _ = _make_client(lambda r: httpx.Response(200, json={}))
    assert await client.fetch_levels([1]) == []


@pytest.mark.asyncio
async def test_follows_link_header_pages():
    next_url = LEVELS_URL + "?limit=250&page_info=abc"
    seen = []

    def handler(request: httpx.Request):
        seen.append(request)
        if "page_info" in request.url.params:
            return httpx.Response(200, json={"inventory_levels": [_level(2)]})
        return httpx.Response(
            200,
            json={"inventory_levels": [_level(1)]},
            headers={"Link": f'<{next_url}>; rel="next"'},
        )

    client, _ = _make_client(handler)
    levels = await client.fetch_levels([1, 2])

    assert [lv.inventory_item_id for lv in levels] == [1, 2]
    assert len(seen) == 2
    assert seen[1].url.params["page_info"] == "abc"
    assert "inventory_item_ids" not in seen[1].url.params
