"""ContentService — cached daily quote and cached web lookup."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import httpx

from lumina.llm.governor import QUOTE_CACHE_KEY
from lumina.llm.transport import ErrorKind, TransportError

if TYPE_CHECKING:
    from lumina.config import Settings
    from lumina.llm.governor import RequestGovernor
    from lumina.llm.transport import Transport

logger = logging.getLogger(__name__)

BRAVE_SEARCH_URL = "https://api.search.brave.com/res/v1/web/search"
SEARCH_RESULT_COUNT = 5

FALLBACK_QUOTE = "Every day is a new opportunity to grow. 🌟"
SEARCH_QUOTA_MESSAGE = (
    "I've hit my search quota. Please wait a couple of minutes before trying again."
)
SEARCH_UNAVAILABLE_MESSAGE = "Unable to search at this moment. Please try again later."
NO_RESULTS_MESSAGE = "No information found."

QUOTE_PROMPT = (
    "Generate an inspiring, motivational quote for an Indian user. Make it relevant "
    "to personal growth, productivity, or well-being. Keep it concise (1-2 sentences)."
)

SEARCH_PROMPT = """\
Provide information about: {query}

Give a brief, factual response with:
1. Key facts
2. Recent developments if applicable
3. Relevant data

Keep it concise (2-3 sentences max)."""


def normalize_query(query: str) -> str:
    """Cache key for a search query: lower-cased, whitespace collapsed."""
    return " ".join(query.lower().split())


class ContentService:
    """Low-variance lookups served from the governor's caches when possible.

    Every remote call goes through the governor queue. Only successful,
    non-empty answers are cached.
    """

    def __init__(self, transport: Transport, governor: RequestGovernor, settings: Settings) -> None:
        self._transport = transport
        self._governor = governor
        self._settings = settings

    async def daily_quote(self) -> str:
        cached = self._governor.quote_cache.get(QUOTE_CACHE_KEY)
        if cached is not None:
            logger.debug("Using cached quote")
            return cached

        try:
            quote = await self._governor.submit(lambda: self._transport.complete(QUOTE_PROMPT))
        except TransportError as exc:
            logger.warning("Quote generation failed (%s): %s", exc.kind, exc)
            if exc.kind is ErrorKind.QUOTA:
                self._governor.start_cooldown(self._settings.quota_cooldown_seconds)
            return FALLBACK_QUOTE

        quote = quote.strip()
        if not quote:
            return FALLBACK_QUOTE
        self._governor.quote_cache.put(QUOTE_CACHE_KEY, quote)
        return quote

    async def search(self, query: str) -> str:
        key = normalize_query(query)
        cached = self._governor.search_cache.get(key)
        if cached is not None:
            logger.debug("Using cached search result for: %s", query)
            return cached

        try:
            if self._settings.brave_search_api_key:
                text = await self._governor.submit(lambda: self._brave_search(query))
            else:
                text = await self._governor.submit(
                    lambda: self._transport.complete(SEARCH_PROMPT.format(query=query))
                )
        except TransportError as exc:
            logger.warning("Search failed (%s): %s", exc.kind, exc)
            if exc.kind is ErrorKind.QUOTA:
                self._governor.start_cooldown(self._settings.search_quota_cooldown_seconds)
                return SEARCH_QUOTA_MESSAGE
            return SEARCH_UNAVAILABLE_MESSAGE
        except httpx.HTTPError:
            logger.exception("Brave Search request failed")
            return SEARCH_UNAVAILABLE_MESSAGE

        text = text.strip()
        if not text:
            return NO_RESULTS_MESSAGE
        self._governor.search_cache.put(key, text)
        return text

    async def _brave_search(self, query: str) -> str:
        headers = {
            "Accept": "application/json",
            "Accept-Encoding": "gzip",
            "X-Subscription-Token": self._settings.brave_search_api_key,
        }
        params: dict[str, Any] = {"q": query, "count": SEARCH_RESULT_COUNT}

        async with httpx.AsyncClient(timeout=20) as client:
            resp = await client.get(BRAVE_SEARCH_URL, headers=headers, params=params)

        if resp.status_code == 429:
            raise TransportError(ErrorKind.QUOTA, "Brave Search rate limit reached")
        if resp.status_code != 200:
            raise TransportError(
                ErrorKind.TRANSPORT,
                f"Brave Search API returned {resp.status_code}: {resp.text[:200]}",
            )

        results = resp.json().get("web", {}).get("results", [])
        lines = [
            f"- {r.get('title', '')}: {r.get('description', '')} ({r.get('url', '')})"
            for r in results[:SEARCH_RESULT_COUNT]
        ]
        return "\n".join(lines)
