"""Fan-out search orchestration.

A finalized ``SearchPlan`` is expanded per category into ``(region,
profession)`` units. Units run concurrently under one semaphore; each
category merges its unit results with the same reducer the category search
uses, so final order depends only on relevance. One failed unit is logged
and counted as done; it never aborts the run.
"""
from __future__ import annotations

import asyncio
from typing import Any, AsyncGenerator

from loguru import logger

from app.agents.categories import CategoryDescriptor, fan_out_units, get_category
from app.agents.category_search import CategorySearcher, reduce_items
from app.config import settings
from app.models.events import EventType, SSEEvent
from app.models.search import CategoryItem, CategorySearchConfig, SearchPlan
from app.services import logger as log_service
from app.services import streaming
from app.services import supabase as db


class SearchOrchestrator:
    def __init__(
        self,
        *,
        max_parallel: int | None = None,
        num_results: int | None = None,
        searcher_factory: Any | None = None,
    ):
        self.max_parallel = max(int(max_parallel or settings.fanout_max_parallel), 1)
        self.num_results = num_results or settings.category_num_results
        self.searcher_factory = searcher_factory or CategorySearcher

    async def _run_category(
        self,
        descriptor: CategoryDescriptor,
        plan: SearchPlan,
        semaphore: asyncio.Semaphore,
        queue: asyncio.Queue,
        results: dict[str, list[CategoryItem]],
    ) -> None:
        tag = descriptor.tag
        units = fan_out_units(descriptor, plan)
        total = len(units)
        searcher = self.searcher_factory(descriptor)
        collected: list[CategoryItem] = []
        completed = 0

        async def run_unit(region: str, profession: str | None) -> None:
            nonlocal completed
            async with semaphore:
                if tag == "gatherings":
                    await queue.put(
                        streaming.gathering_progress(
                            region, profession, "searching", completed / total * 100
                        )
                    )
                config = CategorySearchConfig(
                    query=plan.base_query,
                    location=region or None,
                    profession=profession,
                    search_type=plan.search_type,
                    num_results=self.num_results,
                )
                failed = False
                found = 0
                try:
                    result = await searcher.search(config)
                    collected.extend(result.items)
                    found = len(result.items)
                except Exception as exc:
                    failed = True
                    logger.warning(
                        f"[{tag}] Unit failed (region={region!r}, profession={profession!r}): {exc}"
                    )
                    log_service.log_event(
                        "category_unit_failed", str(exc), category=tag, region=region
                    )
                completed += 1
                await queue.put(
                    streaming.category_progress(
                        tag,
                        completed,
                        total,
                        region=region,
                        profession=profession,
                        items_found=found,
                        failed=failed,
                    )
                )
                if tag == "gatherings":
                    await queue.put(
                        streaming.gathering_progress(
                            region,
                            profession,
                            "failed" if failed else "completed",
                            completed / total * 100,
                        )
                    )

        try:
            await queue.put(streaming.category_started(tag, total))
            await asyncio.gather(*(run_unit(region, prof) for region, prof in units))
            items = reduce_items(
                collected,
                descriptor.dedup_key,
                min_relevance=settings.category_min_relevance,
                limit=len(collected),
            )
            results[tag] = items
            await queue.put(streaming.category_completed(tag, len(items)))
            if tag == "gatherings":
                await queue.put(streaming.gatherings_complete([i.to_wire() for i in items]))
        except Exception as exc:
            logger.error(f"[{tag}] Category failed: {exc}")
            results.setdefault(tag, [])
            await queue.put(streaming.category_failed(tag, str(exc)))
        finally:
            await queue.put(None)

    async def _fan_out(
        self,
        plan: SearchPlan,
        results: dict[str, list[CategoryItem]],
    ) -> AsyncGenerator[SSEEvent, None]:
        descriptors = [get_category(tag) for tag in plan.selected_categories]
        semaphore = asyncio.Semaphore(self.max_parallel)
        queue: asyncio.Queue = asyncio.Queue()
        tasks = [
            asyncio.create_task(self._run_category(d, plan, semaphore, queue, results))
            for d in descriptors
        ]
        remaining = len(tasks)
        try:
            while remaining:
                event = await queue.get()
                if event is None:
                    remaining -= 1
                    continue
                yield event
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

    async def run(
        self,
        plan: SearchPlan,
        user_id: str | None = None,
        *,
        persist: bool = True,
    ) -> AsyncGenerator[SSEEvent, None]:
        """Run the full fan-out, persist the aggregate and yield progress events.

        The stream always ends with ``search_complete``; ``searchId`` is None
        when nothing was persisted.
        """
        totals = {
            tag: len(fan_out_units(get_category(tag), plan)) for tag in plan.selected_categories
        }
        logger.info(f"Starting fan-out for '{plan.base_query[:80]}': {totals}")
        yield streaming.search_started(plan.base_query, list(plan.selected_categories), totals)

        results: dict[str, list[CategoryItem]] = {}
        async for event in self._fan_out(plan, results):
            yield event

        search_data = {
            tag: [item.to_wire() for item in results.get(tag, [])]
            for tag in plan.selected_categories
        }

        search_id: str | None = None
        if persist and user_id:
            try:
                row = await db.create_search(user_id, plan.base_query, search_data)
                search_id = str(row.get("id")) if row.get("id") is not None else None
            except Exception as exc:
                logger.error(f"Failed to persist search: {exc}")
                yield streaming.error(f"Failed to save search: {exc}")

        log_service.log_event(
            "search_complete",
            plan.base_query[:80],
            search_id=search_id,
            counts={tag: len(items) for tag, items in search_data.items()},
        )
        yield streaming.search_complete(search_id, search_data, plan.base_query)

    async def stream_gatherings(self, plan: SearchPlan) -> AsyncGenerator[SSEEvent, None]:
        """Gatherings only, unpersisted, ending with ``gatherings_complete``."""
        gatherings_plan = plan.model_copy(update={"selected_categories": ("gatherings",)})
        results: dict[str, list[CategoryItem]] = {}
        async for event in self._fan_out(gatherings_plan, results):
            if event.event in (EventType.GATHERING_PROGRESS, EventType.GATHERINGS_COMPLETE):
                yield event
            elif event.event == EventType.CATEGORY_FAILED:
                message = event.data.get("message", "Gathering search failed")
                yield streaming.error(message, "gatherings")
                yield streaming.gatherings_complete([])

    async def execute(
        self,
        plan: SearchPlan,
        user_id: str | None = None,
        *,
        persist: bool = True,
    ) -> dict[str, Any]:
        """Non-streaming run; returns the ``search_complete`` payload."""
        final: dict[str, Any] = {}
        async for event in self.run(plan, user_id, persist=persist):
            if event.event == EventType.SEARCH_COMPLETE:
                final = event.data
        return final
