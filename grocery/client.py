"""Async API client for the GroceryPicker endpoints.

Includes the two client-side policies of the dashboard:

- `SuggestionDebouncer`: a keystroke inside the debounce window supersedes
  the pending scheduled request. Requests already in flight are never
  cancelled; their results are dropped if a newer query has been scheduled.
- `staged_search`: a cheap text-only request followed by the full hybrid
  request; the second result always overwrites the first.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable

import httpx

from .config import ClientSettings, settings

logger = logging.getLogger(__name__)

SuggestionCallback = Callable[[str, list[dict[str, Any]]], Awaitable[None] | None]
SearchCallback = Callable[[str, dict[str, Any]], Awaitable[None] | None]


class ClientError(Exception):
    """Raised when the API returns an error response."""

    def __init__(self, status_code: int, payload: Any):
        super().__init__(f"API error {status_code}: {payload}")
        self.status_code = status_code
        self.payload = payload


class GroceryClient:
    """Thin async wrapper around the HTTP API."""

    def __init__(
        self,
        config: ClientSettings | None = None,
        *,
        http: httpx.AsyncClient | None = None,
    ):
        self.config = config or settings.client
        self._http = http or httpx.AsyncClient(
            base_url=self.config.base_url,
            timeout=self.config.timeout,
        )

    async def __aenter__(self) -> "GroceryClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _request(self, method: str, url: str, **kwargs) -> Any:
        response = await self._http.request(method, url, **kwargs)
        if response.status_code >= 400:
            try:
                payload = response.json()
            except ValueError:
                payload = response.text
            raise ClientError(response.status_code, payload)
        return response.json()

    async def search(
        self,
        query: str,
        *,
        limit: int = 10,
        supermarket: str | None = None,
        exclude: list[str] | None = None,
        mode: str = "hybrid",
    ) -> dict[str, Any]:
        params: dict[str, Any] = {"q": query, "limit": limit, "mode": mode}
        if supermarket:
            params["supermarket"] = supermarket
        if exclude:
            params["exclude"] = exclude
        return await self._request("GET", "/api/grocerysearch", params=params)

    async def suggest(self, query: str, *, limit: int = 5) -> list[dict[str, Any]]:
        return await self._request("GET", "/api/suggestions", params={"q": query, "limit": limit})

    async def optimize(self, query: str) -> dict[str, Any]:
        return await self._request("POST", "/api/optimize", json={"query": query})

    async def similar(
        self,
        product_id: str,
        *,
        limit: int = 5,
        threshold: float | None = None,
    ) -> list[dict[str, Any]]:
        params: dict[str, Any] = {"limit": limit}
        if threshold is not None:
            params["threshold"] = threshold
        return await self._request("GET", f"/api/products/{product_id}/similar", params=params)

    async def recommendations(self, preferences: list[str], *, limit: int = 10) -> list[dict[str, Any]]:
        return await self._request("POST", "/api/recommendations", json={"preferences": preferences, "limit": limit})

    async def cart_summary(self, items: list[dict[str, Any]]) -> dict[str, Any]:
        return await self._request("POST", "/api/cart/summary", json={"items": items})

    async def debug_db(self) -> dict[str, Any]:
        return await self._request("GET", "/api/debug-db")


async def _maybe_await(result: Awaitable[None] | None) -> None:
    if asyncio.iscoroutine(result) or isinstance(result, asyncio.Future):
        await result


class SuggestionDebouncer:
    """Coalesce rapid keystrokes into one suggestions request.

    Args:
        client: API client
        on_result: Called with (query, suggestions) for the latest query only
        delay: Debounce window in seconds (default from config)
    """

    def __init__(
        self,
        client: GroceryClient,
        on_result: SuggestionCallback,
        *,
        delay: float | None = None,
        limit: int = 5,
    ):
        self.client = client
        self.on_result = on_result
        self.delay = settings.client.debounce_seconds if delay is None else delay
        self.limit = limit
        self._pending: asyncio.Task | None = None
        self._in_flight: set[asyncio.Task] = set()
        self._generation = 0

    def schedule(self, query: str) -> None:
        """Schedule a request for `query`, superseding any pending one."""
        self._generation += 1
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = asyncio.create_task(self._wait_then_fetch(query, self._generation))

    async def _wait_then_fetch(self, query: str, generation: int) -> None:
        await asyncio.sleep(self.delay)

        # Past the window: run detached so a later schedule() cannot cancel it
        task = asyncio.create_task(self._fetch(query, generation))
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)

    async def _fetch(self, query: str, generation: int) -> None:
        try:
            suggestions = await self.client.suggest(query, limit=self.limit)
        except (httpx.HTTPError, ClientError) as e:
            logger.warning(f"Suggestions request for {query!r} failed: {e}")
            return

        if generation != self._generation:
            logger.debug(f"Dropping stale suggestions for {query!r}")
            return
        try:
            await _maybe_await(self.on_result(query, suggestions))
        except Exception as e:
            logger.error(f"Suggestion callback failed for {query!r}: {e}", exc_info=True)

    async def drain(self) -> None:
        """Wait for the pending and in-flight requests to finish."""
        if self._pending is not None:
            try:
                await self._pending
            except asyncio.CancelledError:
                pass
        while self._in_flight:
            await asyncio.gather(*list(self._in_flight), return_exceptions=True)


async def staged_search(
    client: GroceryClient,
    query: str,
    on_update: SearchCallback,
    *,
    limit: int = 10,
    supermarket: str | None = None,
) -> dict[str, Any]:
    """Show cheap text matches first, then replace them with ranked results.

    The two requests run sequentially. The hybrid response overwrites the
    text response unconditionally; if the text request fails, only the
    hybrid response is shown.

    Returns:
        The final (hybrid) response
    """
    try:
        quick = await client.search(query, limit=limit, supermarket=supermarket, mode="text")
        await _maybe_await(on_update("text", quick))
    except (httpx.HTTPError, ClientError) as e:
        logger.warning(f"Quick text search failed for {query!r}: {e}")

    ranked = await client.search(query, limit=limit, supermarket=supermarket, mode="hybrid")
    await _maybe_await(on_update("hybrid", ranked))
    return ranked
