"""Shopify Admin REST connector — current inventory levels for a batch of items.

Endpoint: GET https://{shop}/admin/api/{version}/inventory_levels.json
          ?inventory_item_ids=1,2,3&limit=250[&location_ids=...]
Response: { inventory_levels: [{ inventory_item_id, location_id, available, updated_at }] }

One read per batch (plus Link-header pages if a batch spans more than
`limit` item/location pairs). 429 → Retry-After or jittered backoff;
other non-2xx and transport errors → backoff. At most `max_attempts`
calls per request, then VendorError.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Sequence

import httpx

from ..exceptions import VendorError
from ..schemas.inventory import InventoryLevel
from ..utils import parse_iso, safe_int
from ..utils.backoff import RetryPolicy, parse_retry_after

log = logging.getLogger(__name__)


class ShopifyInventoryClient:
    """Reads stock levels from the vendor. Holds no cross-run state."""

    def __init__(
        self,
        store_domain: str,
        access_token: str,
        api_version: str = "2024-01",
        location_id: str | int | None = None,
        *,
        http: httpx.AsyncClient | None = None,
        retry: RetryPolicy | None = None,
        page_limit: int = 250,
        timeout: float = 30,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.store_domain = store_domain.strip().removeprefix("https://").rstrip("/")
        self.access_token = access_token
        self.api_version = api_version
        self.location_id = str(location_id) if location_id else None
        self.retry = retry or RetryPolicy()
        self.page_limit = page_limit
        self.timeout = timeout
        self._http = http
        self._sleep = sleep

    @property
    def levels_url(self) -> str:
        return f"https://{self.store_domain}/admin/api/{self.api_version}/inventory_levels.json"

    def _client(self) -> httpx.AsyncClient:
        if self._http is None:
            from ..http_client import vendor_http

            return vendor_http
        return self._http

    def _headers(self) -> dict[str, str]:
        return {
            "X-Shopify-Access-Token": self.access_token,
            "Accept": "application/json",
        }

    async def fetch_levels(self, inventory_item_ids: Sequence[int]) -> list[InventoryLevel]:
        """Current levels for the given items. [] means "nothing reported", not an error."""
        if not inventory_item_ids:
            return []

        params: dict | None = {
            "inventory_item_ids": ",".join(str(i) for i in inventory_item_ids),
            "limit": str(self.page_limit),
        }
        if self.location_id:
            params["location_ids"] = self.location_id

        url: str | None = self.levels_url
        levels: list[InventoryLevel] = []
        while url:
            resp = await self._get_with_retry(url, params)
            levels.extend(self._parse(resp))
            url = resp.links.get("next", {}).get("url")
            params = None  # next link has page_info baked in
        return levels

    async def _get_with_retry(self, url: str, params: dict | None) -> httpx.Response:
        client = self._client()

        for attempt in range(self.retry.max_attempts):
            try:
                resp = await client.get(url, params=params, headers=self._headers(), timeout=self.timeout)
            except httpx.TransportError as e:
                wait = self.retry.next_delay(attempt)
                if wait is None:
                    raise VendorError(
                        f"Shopify inventory_levels unreachable after {attempt + 1} attempts: {e}",
                        kind=VendorError.UPSTREAM_FAILURE,
                        attempts=attempt + 1,
                    ) from e
                log.warning(f"Shopify connection error — retry in {wait:.1f}s (attempt {attempt + 1}): {e}")
                await self._sleep(wait)
                continue

            if 200 <= resp.status_code < 300:
                return resp

            if resp.status_code == 429:
                retry_after = parse_retry_after(resp.headers.get("Retry-After"))
                if retry_after is not None and retry_after > self.retry.max_retry_after:
                    log.warning(
                        f"Shopify Retry-After {retry_after:.0f}s exceeds limit, "
                        f"waiting {self.retry.max_retry_after:.0f}s instead"
                    )
                wait = self.retry.next_delay(attempt, retry_after)
                if wait is None:
                    raise VendorError(
                        f"Shopify rate limit still active after {attempt + 1} attempts",
                        kind=VendorError.RATE_LIMIT_EXHAUSTED,
                        status_code=429,
                        attempts=attempt + 1,
                    )
                log.warning(f"Shopify 429 — retry in {wait:.1f}s (attempt {attempt + 1})")
                await self._sleep(wait)
                continue

            wait = self.retry.next_delay(attempt)
            if wait is None:
                raise VendorError(
                    f"Shopify inventory_levels HTTP {resp.status_code}: {resp.text[:300]}",
                    kind=VendorError.UPSTREAM_FAILURE,
                    status_code=resp.status_code,
                    attempts=attempt + 1,
                )
            log.warning(f"Shopify {resp.status_code} — retry in {wait:.1f}s (attempt {attempt + 1})")
            await self._sleep(wait)

        raise VendorError(
            f"Shopify inventory_levels not attempted (max_attempts={self.retry.max_attempts})",
            kind=VendorError.UPSTREAM_FAILURE,
        )

    def _parse(self, resp: httpx.Response) -> list[InventoryLevel]:
        try:
            body = resp.json()
        except ValueError as e:
            raise VendorError(
                f"Shopify inventory_levels returned non-JSON body: {resp.text[:200]}",
                kind=VendorError.UPSTREAM_FAILURE,
                status_code=resp.status_code,
            ) from e

        if body is None:
            body = {}
        raw = (body.get("inventory_levels") or []) if isinstance(body, dict) else None
        if not isinstance(raw, list):
            raise VendorError(
                f"Shopify inventory_levels returned unexpected body: {resp.text[:200]}",
                kind=VendorError.UPSTREAM_FAILURE,
                status_code=resp.status_code,
            )
        levels = []
        for item in raw:
            if not isinstance(item, dict):
                continue
            item_id = safe_int(item.get("inventory_item_id"))
            location_id = safe_int(item.get("location_id"))
            if item_id is None or location_id is None:
                continue
            levels.append(
                InventoryLevel(
                    inventory_item_id=item_id,
                    location_id=location_id,
                    available=safe_int(item.get("available")) or 0,
                    last_change_at=parse_iso(item.get("updated_at")),
                )
            )
        return levels
