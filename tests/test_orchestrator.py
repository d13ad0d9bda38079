from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest

from app.agents.categories import fan_out_units, get_category
from app.agents.orchestrator import SearchOrchestrator
from app.errors import SearchError
from app.models.search import (
    CategorySearchResult,
    Gathering,
    License,
    Person,
    ProfessionSet,
    RegionSet,
    SearchPlan,
)


def _plan(categories, professions=("Baker",), industries=("Food Service",)) -> SearchPlan:
    return SearchPlan(
        base_query="marketing help for my bakery",
        regions=RegionSet(base_region="Chicago", larger=["Illinois"], smaller=[]),
        professions=ProfessionSet(professions=list(professions), industries=list(industries)),
        selected_categories=categories,
    )


def test_fan_out_units_by_shape():
    plan = _plan(["people"], professions=["Baker", "Chef"], industries=["Food Service"])

    assert fan_out_units(get_category("people"), plan) == [
        ("Chicago", "Baker"),
        ("Chicago", "Chef"),
        ("Chicago", "Food Service"),
        ("Illinois", "Baker"),
        ("Illinois", "Chef"),
        ("Illinois", "Food Service"),
    ]
    assert fan_out_units(get_category("gatherings"), plan) == [
        ("Chicago", "Food Service"),
        ("Illinois", "Food Service"),
    ]
    assert fan_out_units(get_category("platforms"), plan) == [("Chicago", "Baker")]
    assert fan_out_units(get_category("exchanges"), plan) == [
        ("Chicago", "Baker"),
        ("Illinois", "Baker"),
    ]


def test_fan_out_units_without_audience_runs_once_per_region():
    plan = _plan(["licenses"], professions=[], industries=[])

    assert fan_out_units(get_category("licenses"), plan) == [("Chicago", None), ("Illinois", None)]
    assert fan_out_units(get_category("platforms"), plan) == [("Chicago", None)]


def test_platforms_fall_back_to_first_industry():
    plan = _plan(["platforms"], professions=[], industries=["Retail", "Food"])

    assert fan_out_units(get_category("platforms"), plan) == [("Chicago", "Retail")]


def test_plan_orders_categories_and_rejects_unknown():
    plan = _plan(["licenses", "people"])
    assert plan.selected_categories == ("people", "licenses")

    with pytest.raises(ValueError):
        _plan(["people", "weather"])
    with pytest.raises(ValueError):
        _plan([])


class FakeSearcher:
    def __init__(self, descriptor):
        self.descriptor = descriptor
        self.configs = []

    async def search(self, config):
        self.configs.append(config)
        tag = self.descriptor.tag
        if tag == "people":
            if config.location == "Illinois" and config.profession == "Food Service":
                raise SearchError("provider down")
            return CategorySearchResult(
                items=[
                    Person(name="Ann", relevance_score=0.6 if config.location == "Chicago" else 0.9),
                    Person(name=f"{config.location}-{config.profession}", relevance_score=0.7),
                ]
            )
        if tag == "gatherings":
            return CategorySearchResult(
                items=[Gathering(name="Bake Expo", location=config.location, relevance_score=0.8)]
            )
        return CategorySearchResult(items=[License(name="Food License", relevance_score=0.75)])


async def _collect(gen):
    return [event async for event in gen]


@pytest.mark.asyncio
async def test_run_aggregates_reports_progress_and_persists():
    create = AsyncMock(return_value={"id": "search-1"})
    with patch("app.services.supabase.create_search", new=create):
        orchestrator = SearchOrchestrator(searcher_factory=FakeSearcher, max_parallel=2)
        events = await _collect(
            orchestrator.run(_plan(["people", "licenses", "gatherings"]), "user-1")
        )

    names = [e.event.value for e in events]
    assert names[0] == "search_started"
    assert names[-1] == "search_complete"
    assert "gatherings_complete" in names

    people_progress = [
        e.data["progress"]
        for e in events
        if e.event.value == "category_progress" and e.data["category"] == "people"
    ]
    assert len(people_progress) == 4
    assert people_progress == sorted(people_progress)
    assert people_progress[-1] == 1.0
    assert all(0.0 <= p <= 1.0 for p in people_progress)

    final = events[-1].data
    assert final["searchId"] == "search-1"
    people = final["searchData"]["people"]
    assert people[0] == {"name": "Ann", "description": "", "relevanceScore": 0.9, "title": "", "location": ""}
    assert len({p["name"] for p in people}) == len(people)
    assert [p["relevanceScore"] for p in people] == sorted(
        (p["relevanceScore"] for p in people), reverse=True
    )
    assert len(final["searchData"]["licenses"]) == 1
    assert {g["location"] for g in final["searchData"]["gatherings"]} == {"Chicago", "Illinois"}

    create.assert_awaited_once()
    user_id, query, search_data = create.await_args.args
    assert user_id == "user-1"
    assert query == "marketing help for my bakery"
    assert search_data == final["searchData"]


@pytest.mark.asyncio
async def test_gathering_progress_is_percent_and_ends_complete():
    orchestrator = SearchOrchestrator(searcher_factory=FakeSearcher)
    events = await _collect(orchestrator.stream_gatherings(_plan(["people"])))

    progress = [e for e in events if e.event.value == "gathering_progress"]
    assert progress
    assert {e.data["currentIndustry"] for e in progress} == {"Food Service"}
    assert all(0 <= e.data["progress"] <= 100 for e in progress)
    assert progress[-1].data["progress"] == 100
    assert events[-1].event.value == "gatherings_complete"
    assert len(events[-1].data["items"]) == 2


@pytest.mark.asyncio
async def test_persistence_failure_still_completes_stream():
    with patch(
        "app.services.supabase.create_search",
        new=AsyncMock(side_effect=RuntimeError("db down")),
    ):
        orchestrator = SearchOrchestrator(searcher_factory=FakeSearcher)
        events = await _collect(orchestrator.run(_plan(["licenses"]), "user-1"))

    assert events[-2].event.value == "error"
    assert events[-1].event.value == "search_complete"
    assert events[-1].data["searchId"] is None


@pytest.mark.asyncio
async def test_execute_without_user_skips_persistence():
    create = AsyncMock()
    with patch("app.services.supabase.create_search", new=create):
        result = await SearchOrchestrator(searcher_factory=FakeSearcher).execute(
            _plan(["platforms"])
        )

    create.assert_not_awaited()
    assert result["searchId"] is None
    assert result["searchData"]["platforms"][0]["name"] == "Food License"
