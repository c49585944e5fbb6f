"""
REST client for the hosted task table.

Talks to a PostgREST endpoint (``{base_url}/rest/v1/{table}``) with httpx.
Every call is scoped by the bearer token it is bound to, so row-level
security on the store decides which rows are visible.
"""

import logging
import os
from typing import Any, Optional

import httpx

logger = logging.getLogger(__name__)

SUPABASE_URL = os.getenv("SUPABASE_URL", "http://localhost:54321").rstrip("/")
SUPABASE_ANON_KEY = os.getenv("SUPABASE_ANON_KEY", "")
STORE_TIMEOUT_S = float(os.getenv("STORE_TIMEOUT_S", "10"))

# Makes PostgREST answer with a single JSON object and fail with PGRST116
# when the filter matched no row.
SINGLE_OBJECT = "application/vnd.pgrst.object+json"


class StoreError(Exception):
    """Error reported by the store (or the transport in front of it)."""

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code


def _raise_for_store_error(response: httpx.Response) -> None:
    if response.is_success:
        return
    try:
        body = response.json()
    except ValueError:
        body = {}
    if not isinstance(body, dict):
        body = {}
    message = body.get("message") or response.text or response.reason_phrase
    raise StoreError(message, code=body.get("code"), status_code=response.status_code)


class StoreClient:
    def __init__(
        self,
        base_url: str = SUPABASE_URL,
        api_key: str = SUPABASE_ANON_KEY,
        http: Optional[httpx.AsyncClient] = None,
        access_token: Optional[str] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.access_token = access_token
        self._http = http or httpx.AsyncClient(timeout=STORE_TIMEOUT_S)

    def with_token(self, access_token: str) -> "StoreClient":
        """Same connection pool, requests authenticated as another principal."""
        return StoreClient(
            base_url=self.base_url,
            api_key=self.api_key,
            http=self._http,
            access_token=access_token,
        )

    async def aclose(self) -> None:
        await self._http.aclose()

    def _headers(self, *, single: bool = False, returning: bool = False) -> dict:
        headers = {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.access_token or self.api_key}",
            "Content-Type": "application/json",
        }
        if single:
            headers["Accept"] = SINGLE_OBJECT
        if returning:
            headers["Prefer"] = "return=representation"
        return headers

    def _url(self, table: str) -> str:
        return f"{self.base_url}/rest/v1/{table}"

    async def _send(
        self,
        method: str,
        table: str,
        *,
        params: Optional[dict] = None,
        json: Any = None,
        single: bool = False,
        returning: bool = False,
    ) -> Any:
        try:
            response = await self._http.request(
                method,
                self._url(table),
                params=params,
                json=json,
                headers=self._headers(single=single, returning=returning),
            )
        except httpx.HTTPError as e:
            logger.error(f"Store request {method} {table} failed: {e}")
            raise StoreError(str(e) or e.__class__.__name__) from e

        _raise_for_store_error(response)

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            logger.error(f"Store answered {method} {table} with a non-JSON body")
            raise StoreError(
                f"Invalid JSON from store: {e}", status_code=response.status_code
            ) from e

    async def select(
        self,
        table: str,
        *,
        columns: str = "*",
        order: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list:
        params = {"select": columns}
        if order:
            params["order"] = order
        if limit is not None:
            params["limit"] = str(limit)
        rows = await self._send("GET", table, params=params)
        if rows is None:
            return []
        if not isinstance(rows, list):
            raise StoreError(
                f"Expected a list of rows from {table}, got {type(rows).__name__}"
            )
        return rows

    async def insert(self, table: str, row: dict) -> Optional[dict]:
        """Insert one row and return it as stored."""
        return await self._send("POST", table, json=row, single=True, returning=True)

    async def update(self, table: str, row_id: str, changes: dict) -> Optional[dict]:
        return await self._send(
            "PATCH",
            table,
            params={"id": f"eq.{row_id}"},
            json=changes,
            single=True,
            returning=True,
        )

    async def delete(self, table: str, row_id: str) -> Optional[dict]:
        # Returning the deleted row makes a second delete of the same id fail
        # with PGRST116 instead of silently affecting nothing.
        return await self._send(
            "DELETE",
            table,
            params={"id": f"eq.{row_id}"},
            single=True,
            returning=True,
        )
