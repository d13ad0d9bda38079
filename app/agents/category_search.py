"""Generic category search: expand, search, analyze, reduce."""
from __future__ import annotations

import asyncio
from typing import Callable, Iterable, TypeVar

from loguru import logger

from app import llm_client
from app.agents.categories import CategoryDescriptor
from app.config import settings
from app.errors import ExtractionError, SearchError
from app.models.search import (
    CategoryItem,
    CategorySearchConfig,
    CategorySearchResult,
    QueryExpansion,
)
from app.services.prompt_store import render_prompt
from app.tools import search_provider
from app.tools.exa_search import SearchResult
from app.tools.web_utils import truncate

ItemT = TypeVar("ItemT", bound=CategoryItem)

_AUDIENCE = {"marketing": "potential customers", "help": "people who can help"}
_ROLE = {"marketing": "customer", "help": "helper"}
_PURPOSE = {"marketing": "business operations", "help": "compliance"}


def clean_queries(queries: Iterable[str], limit: int) -> list[str]:
    """Strip, drop blanks and case-insensitive repeats, cap at ``limit``."""
    cleaned: list[str] = []
    seen: set[str] = set()
    for query in queries:
        if not isinstance(query, str):
            continue
        text = " ".join(query.split())
        key = text.lower()
        if not text or key in seen:
            continue
        seen.add(key)
        cleaned.append(text)
        if len(cleaned) >= limit:
            break
    return cleaned


def reduce_items(
    items: Iterable[ItemT],
    key_fn: Callable[[ItemT], tuple[str, ...]],
    *,
    min_relevance: float,
    limit: int,
) -> list[ItemT]:
    """Filter, dedupe, rank and truncate extracted items.

    On a key collision the higher relevance wins; a tie keeps the item seen
    first. The sort is stable so equal scores keep first-seen order.
    """
    best: dict[tuple[str, ...], ItemT] = {}
    for item in items:
        if not item.name or item.relevance_score < min_relevance:
            continue
        key = key_fn(item)
        current = best.get(key)
        if current is None or item.relevance_score > current.relevance_score:
            best[key] = item
    ranked = sorted(best.values(), key=lambda i: i.relevance_score, reverse=True)
    return ranked[:limit]


class CategorySearcher:
    def __init__(
        self,
        descriptor: CategoryDescriptor,
        *,
        num_queries: int | None = None,
        min_relevance: float | None = None,
        max_parallel: int | None = None,
    ):
        self.descriptor = descriptor
        self.num_queries = num_queries or settings.category_num_queries
        self.min_relevance = (
            settings.category_min_relevance if min_relevance is None else min_relevance
        )
        self._semaphore = asyncio.Semaphore(max_parallel or settings.category_max_parallel_requests)

    def _prompt_values(self, config: CategorySearchConfig) -> dict[str, str]:
        return {
            "query": config.query,
            "location": config.location or "various locations",
            "profession": config.profession or "professional",
            "search_type": config.search_type,
            "audience": _AUDIENCE[config.search_type],
            "role": _ROLE[config.search_type],
            "purpose": _PURPOSE[config.search_type],
        }

    async def generate_queries(self, config: CategorySearchConfig) -> QueryExpansion:
        values = self._prompt_values(config)
        prompt = "\n".join(
            [
                render_prompt(self.descriptor.query_prompt_key, **values),
                render_prompt("categories.queries_footer", num_queries=self.num_queries, **values),
            ]
        )
        expansion = await llm_client.extract_structured(
            prompt,
            QueryExpansion,
            caller=f"{self.descriptor.tag}.queries",
        )
        queries = clean_queries(expansion.queries, self.num_queries)
        if not queries:
            logger.warning(f"[{self.descriptor.tag}] No queries generated; using the base query")
            queries = [config.query]
        return expansion.model_copy(update={"queries": queries})

    async def _search_one(self, query: str) -> list[SearchResult]:
        async with self._semaphore:
            try:
                response = await search_provider.search(
                    query, max_results=settings.search_results_per_query
                )
            except SearchError as exc:
                logger.warning(f"[{self.descriptor.tag}] Skipping query '{query}': {exc.message}")
                return []
        return [
            SearchResult(
                title=r.title,
                url=r.url,
                content=truncate(r.content or "", settings.search_content_max_chars),
                published_date=r.published_date,
            )
            for r in response.results
        ]

    async def _analyze_one(
        self, result: SearchResult, config: CategorySearchConfig
    ) -> CategoryItem | None:
        values = self._prompt_values(config)
        header = render_prompt(
            "categories.analyze_header",
            title=result.title,
            url=result.url,
            content=result.content,
            **values,
        )
        prompt = render_prompt(self.descriptor.analysis_prompt_key, header=header, **values)
        async with self._semaphore:
            try:
                item = await llm_client.extract_structured(
                    prompt,
                    self.descriptor.item_model,
                    model=llm_client.get_analysis_model(),
                    caller=f"{self.descriptor.tag}.analyze",
                )
            except ExtractionError as exc:
                logger.warning(
                    f"[{self.descriptor.tag}] Skipping result {result.url}: {exc.message}"
                )
                return None

        update: dict[str, str | None] = {"source": result.url or item.source}
        fields = self.descriptor.item_model.model_fields
        if "region" in fields and not getattr(item, "region", None):
            update["region"] = config.location
        if "industry" in fields and not getattr(item, "industry", None):
            update["industry"] = config.profession
        return item.model_copy(update=update)

    async def search(self, config: CategorySearchConfig) -> CategorySearchResult:
        """Run one category search for a single (location, profession) unit.

        Query generation failures propagate; individual search and analysis
        failures are logged and skipped.
        """
        tag = self.descriptor.tag
        expansion = await self.generate_queries(config)
        logger.info(f"[{tag}] Searching {len(expansion.queries)} queries for '{config.query}'")

        batches = await asyncio.gather(*(self._search_one(q) for q in expansion.queries))
        results: list[SearchResult] = []
        seen_urls: set[str] = set()
        for batch in batches:
            for result in batch:
                if result.url and result.url in seen_urls:
                    continue
                seen_urls.add(result.url)
                results.append(result)

        analyzed = await asyncio.gather(*(self._analyze_one(r, config) for r in results))
        items = reduce_items(
            (item for item in analyzed if item is not None),
            self.descriptor.dedup_key,
            min_relevance=self.min_relevance,
            limit=config.num_results,
        )
        logger.info(
            f"[{tag}] {len(items)} items kept from {len(results)} results "
            f"(location={config.location!r}, profession={config.profession!r})"
        )
        return CategorySearchResult(
            items=items,
            reasoning=expansion.reasoning or "Search completed successfully",
        )
