"""Supabase (PostgREST) record store client — thin wrapper over /rest/v1.

Auth: service role key in both `apikey` and `Authorization: Bearer` headers.
Filters use PostgREST syntax, e.g. {"product_id": "in.(1,2)", "id": "eq.7"}.

Usage:
    rest = SupabaseRest(settings.supabase_url, settings.supabase_service_role_key)
    rows = await rest.select("inventory_sync_log", {"order": "started_at.desc", "limit": "20"})
"""

import logging

import httpx

log = logging.getLogger(__name__)

PAGE_SIZE = 1000  # PostgREST default max-rows


class SupabaseRestError(Exception):
    def __init__(self, method: str, table: str, status_code: int, body: str):
        super().__init__(f"{method} {table} failed: HTTP {status_code} {body[:300]}")
        self.status_code = status_code


class SupabaseRest:
    def __init__(
        self,
        base_url: str,
        service_key: str,
        *,
        http: httpx.AsyncClient | None = None,
        timeout: float = 30,
    ):
        self.base_url = base_url.rstrip("/")
        self.service_key = service_key
        self.timeout = timeout
        self._http = http

    def _client(self) -> httpx.AsyncClient:
        if self._http is None:
            from ..http_client import store_http

            return store_http
        return self._http

    def _url(self, table: str) -> str:
        return f"{self.base_url}/rest/v1/{table}"

    def _headers(self, prefer: str | None = None) -> dict[str, str]:
        h = {
            "Authorization": f"Bearer {self.service_key}",
            "apikey": self.service_key,
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if prefer:
            h["Prefer"] = prefer
        return h

    @staticmethod
    def _check(resp: httpx.Response, method: str, table: str) -> None:
        if resp.status_code >= 300:
            raise SupabaseRestError(method, table, resp.status_code, resp.text or "")

    async def select(self, table: str, params: dict | None = None) -> list[dict]:
        resp = await self._client().get(
            self._url(table), params=params, headers=self._headers(), timeout=self.timeout
        )
        self._check(resp, "GET", table)
        return resp.json() or []

    async def select_all(self, table: str, params: dict | None = None, page_size: int = PAGE_SIZE) -> list[dict]:
        """Every matching row, read in limit/offset pages until a short page.

        page_size must not exceed the project's max-rows setting. Pass an
        ``order`` in params so pages don't shift between reads.
        """
        rows: list[dict] = []
        offset = 0
        while True:
            page = await self.select(table, {**(params or {}), "limit": str(page_size), "offset": str(offset)})
            rows.extend(page)
            if len(page) < page_size:
                return rows
            offset += page_size

    async def insert(self, table: str, row: dict) -> dict:
        """Insert one row and return it as stored (with its id)."""
        resp = await self._client().post(
            self._url(table),
            json=row,
            headers=self._headers("return=representation"),
            timeout=self.timeout,
        )
        self._check(resp, "POST", table)
        data = resp.json()
        if isinstance(data, list):
            if not data:
                raise SupabaseRestError("POST", table, resp.status_code, "empty representation")
            return data[0]
        return data

    async def upsert(self, table: str, rows: list[dict], on_conflict: str) -> int:
        """Bulk merge-on-conflict write. Returns number of rows sent."""
        resp = await self._client().post(
            self._url(table),
            params={"on_conflict": on_conflict},
            json=rows,
            headers=self._headers("resolution=merge-duplicates,return=minimal"),
            timeout=self.timeout,
        )
        self._check(resp, "UPSERT", table)
        return len(rows)

    async def update(self, table: str, match: dict, values: dict) -> None:
        resp = await self._client().patch(
            self._url(table),
            params=match,
            json=values,
            headers=self._headers("return=minimal"),
            timeout=self.timeout,
        )
        self._check(resp, "PATCH", table)
