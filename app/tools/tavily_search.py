from __future__ import annotations

from typing import Any

from tavily import AsyncTavilyClient

from app.config import settings
from app.tools.exa_search import SearchResult


async def search(
    query: str,
    *,
    max_results: int = 5,
    search_depth: str = "advanced",
) -> list[SearchResult]:
    """Execute a Tavily web search with raw page content.

    Tavily has no re-crawl switch; raw content is requested so results carry
    page text rather than only the snippet.
    """
    if not settings.tavily_api_key:
        raise ValueError("TAVILY_API_KEY not configured")
    client = AsyncTavilyClient(api_key=settings.tavily_api_key)

    kwargs: dict[str, Any] = {
        "query": query,
        "search_depth": search_depth,
        "max_results": max_results,
        "include_raw_content": True,
    }
    response = await client.search(**kwargs)

    return [
        SearchResult(
            title=r.get("title", "") or "",
            url=r.get("url", "") or "",
            content=r.get("raw_content") or r.get("content", "") or "",
            published_date=r.get("published_date"),
        )
        for r in response.get("results", [])
    ]
