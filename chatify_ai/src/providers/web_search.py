"""
Chatify AI - Web Search Provider
=================================
Top-k web results from the Tavily search API over ``httpx``, formatted
as a numbered text blob the LLM can read directly::

    [1] Title of first hit
    Snippet of first hit

    [2] Title of second hit
    Snippet of second hit
"""

from __future__ import annotations

import time

import httpx

from chatify_ai.config.settings import settings
from chatify_ai.src.core.errors import ProviderError
from chatify_ai.src.utils.logger import elapsed_ms, get_logger

logger = get_logger(__name__)


def format_results(results: list[dict[str, str]]) -> str:
    """Render Tavily ``results`` entries as ``[n] title\\ncontent`` blocks."""
    return "\n\n".join(f"[{i}] {r.get('title', '')}\n{r.get('content', '')}" for i, r in enumerate(results, 1))


class TavilyWebSearch:
    """
    Async Tavily client.

    Parameters
    ----------
    api_key
        Tavily API key.  Defaults to ``settings.TAVILY_API_KEY``.
    client
        Optional ``httpx.AsyncClient`` (tests pass one with a ``MockTransport``).
    """

    def __init__(self, api_key: str | None = None, client: httpx.AsyncClient | None = None, url: str | None = None) -> None:
        self._api_key = api_key or settings.TAVILY_API_KEY.get_secret_value()
        self._url = url or settings.WEB_SEARCH_URL
        self._client = client


    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=settings.WEB_SEARCH_TIMEOUT)
        return self._client


    async def search(self, query: str, max_results: int | None = None) -> str:
        """
        Search the web for *query*.

        Returns
        -------
        str
            Formatted results; empty string when the API found nothing.

        Raises
        ------
        ProviderError
            On transport errors, non-2xx responses or an unreadable body.
        """
        max_results = max_results or settings.WEB_SEARCH_MAX_RESULTS
        logger.info("[WEB] Searching: '%s' (max=%d)", query, max_results)

        t_start = time.perf_counter()
        try:
            response = await self._get_client().post(self._url, json={"query": query, "max_results": max_results}, headers={"Authorization": f"Bearer {self._api_key}"})
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("[WEB] Search failed: %s", exc)
            raise ProviderError("web-search", str(exc)) from exc

        results = payload.get("results", [])
        logger.info("[WEB] %d result(s) in %.1fms", len(results), elapsed_ms(t_start))
        return format_results(results)


    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
