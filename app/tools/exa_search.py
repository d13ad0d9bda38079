from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any

from app.config import settings


@dataclass
class SearchResult:
    """Normalized search result shared by all providers."""
    title: str
    url: str
    content: str
    published_date: str | None = None


_client: Any | None = None


def client() -> Any:
    global _client
    if _client is None:
        if not settings.exa_api_key:
            raise ValueError("EXA_API_KEY not configured")
        from exa_py import Exa

        _client = Exa(api_key=settings.exa_api_key)
    return _client


def _to_result(raw: Any) -> SearchResult:
    return SearchResult(
        title=getattr(raw, "title", None) or "",
        url=getattr(raw, "url", None) or "",
        content=getattr(raw, "text", None) or "",
        published_date=getattr(raw, "published_date", None),
    )


async def search(
    query: str,
    *,
    max_results: int = 5,
    livecrawl: str = "always",
) -> list[SearchResult]:
    """Search and fetch page text in one call.

    ``livecrawl="always"`` makes Exa re-crawl every hit instead of serving
    cached page text.
    """
    exa = client()

    def do_search() -> Any:
        return exa.search_and_contents(
            query,
            num_results=max_results,
            livecrawl=livecrawl,
            text=True,
        )

    response = await asyncio.to_thread(do_search)
    return [_to_result(r) for r in (getattr(response, "results", None) or [])][:max_results]
