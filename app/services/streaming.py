from __future__ import annotations

from typing import Any

from app.models.events import EventType, SSEEvent


def search_started(query: str, categories: list[str], totals: dict[str, int]) -> SSEEvent:
    return SSEEvent(
        event=EventType.SEARCH_STARTED,
        data={"query": query, "categories": categories, "totals": totals},
    )


def category_started(category: str, total: int) -> SSEEvent:
    return SSEEvent(event=EventType.CATEGORY_STARTED, data={"category": category, "total": total})


def category_progress(
    category: str,
    completed: int,
    total: int,
    *,
    region: str | None = None,
    profession: str | None = None,
    items_found: int = 0,
    failed: bool = False,
) -> SSEEvent:
    """Progress for one category, normalized to [0, 1]."""
    progress = 1.0 if total <= 0 else min(completed / total, 1.0)
    data: dict[str, Any] = {
        "category": category,
        "completed": completed,
        "total": total,
        "progress": progress,
        "itemsFound": items_found,
    }
    if region is not None:
        data["region"] = region
    if profession is not None:
        data["profession"] = profession
    if failed:
        data["failed"] = True
    return SSEEvent(event=EventType.CATEGORY_PROGRESS, data=data)


def category_completed(category: str, count: int) -> SSEEvent:
    return SSEEvent(event=EventType.CATEGORY_COMPLETED, data={"category": category, "count": count})


def category_failed(category: str, message: str) -> SSEEvent:
    return SSEEvent(event=EventType.CATEGORY_FAILED, data={"category": category, "message": message})


def gathering_progress(
    current_region: str,
    current_industry: str | None,
    status: str,
    progress: float,
) -> SSEEvent:
    return SSEEvent(
        event=EventType.GATHERING_PROGRESS,
        data={
            "currentRegion": current_region,
            "currentIndustry": current_industry or "",
            "status": status,
            "progress": round(max(0.0, min(progress, 100.0)), 2),
        },
    )


def gatherings_complete(items: list[dict[str, Any]]) -> SSEEvent:
    return SSEEvent(event=EventType.GATHERINGS_COMPLETE, data={"items": items})


def search_complete(search_id: str | None, search_data: dict[str, Any], query: str) -> SSEEvent:
    return SSEEvent(
        event=EventType.SEARCH_COMPLETE,
        data={"searchId": search_id, "query": query, "searchData": search_data},
    )


def campaign_progress(progress: dict[str, Any] | None, entries: int) -> SSEEvent:
    return SSEEvent(
        event=EventType.CAMPAIGN_PROGRESS,
        data={"progress": progress, "entries": entries},
    )


def campaign_complete(campaign: list[dict[str, Any]]) -> SSEEvent:
    return SSEEvent(event=EventType.CAMPAIGN_COMPLETE, data={"campaign": campaign})


def error(message: str, category: str | None = None) -> SSEEvent:
    data: dict[str, Any] = {"message": message}
    if category:
        data["category"] = category
    return SSEEvent(event=EventType.ERROR, data=data)
