from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass

from app.config import settings
from app.errors import SearchError
from app.services import logger as log_service
from app.tools import exa_search, tavily_search
from app.tools.exa_search import SearchResult


@dataclass
class SearchResponse:
    results: list[SearchResult]
    provider: str


async def search(
    query: str,
    *,
    max_results: int | None = None,
) -> SearchResponse:
    """Run one web search against the configured provider.

    Any provider failure or timeout surfaces as SearchError so callers can
    skip the query and carry on.
    """
    provider = settings.search_provider.lower().strip()
    limit = max_results or settings.search_results_per_query

    if provider == "exa":
        call = exa_search.search(query, max_results=limit, livecrawl="always")
    elif provider == "tavily":
        call = tavily_search.search(query, max_results=limit)
    else:
        raise ValueError(f"Unsupported SEARCH_PROVIDER: {settings.search_provider}")

    t0 = time.monotonic()
    try:
        results = await asyncio.wait_for(call, timeout=settings.search_timeout_seconds)
    except asyncio.TimeoutError as exc:
        log_service.log_search_call(provider, query, error="timeout")
        raise SearchError(f"Search timed out for '{query}'") from exc
    except Exception as exc:
        log_service.log_search_call(provider, query, error=str(exc))
        raise SearchError(f"Search failed for '{query}': {exc}") from exc

    log_service.log_search_call(
        provider,
        query,
        results_count=len(results),
        duration_ms=int((time.monotonic() - t0) * 1000),
    )
    return SearchResponse(results=results, provider=provider)

