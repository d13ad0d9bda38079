from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from app.agents import campaign as campaign_module
from app.agents.campaign import CampaignAlreadyRunning, CampaignRunner, cancel_campaign
from app.errors import ExtractionError, NavigationError
from app.models.search import Contact, ContactInfo, PageSummary


class FakeBrowser:
    def __init__(self, *, fail_urls=(), broken_urls=()):
        self.fail_urls = set(fail_urls)
        self.broken_urls = set(broken_urls)
        self.visited: list[str] = []
        self.current: str | None = None
        self.closed = False

    async def navigate(self, url, timeout_ms=None):
        self.visited.append(url)
        if url in self.fail_urls:
            raise NavigationError(f"timeout: {url}")
        self.current = url
        return url

    async def extract(self, instruction, schema):
        if self.current in self.broken_urls and schema is ContactInfo:
            raise ExtractionError("no contacts")
        if schema is PageSummary:
            return PageSummary(summary=f"About {self.current}", name="Org")
        return ContactInfo(contacts=[Contact(name="Desk", email="hello@example.com")])

    async def close(self):
        self.closed = True


class FakeStore:
    def __init__(self, people):
        self.row = {"id": "s1", "user_id": "u1", "search_data": {"people": people}}
        self.updates: list[dict] = []

    async def get_search(self, search_id, user_id):
        return dict(self.row)

    async def update_search(self, search_id, user_id, **patch):
        self.updates.append(patch)
        self.row.update(patch)
        return dict(self.row)


def _people(n, *, without_source=()):
    return [
        {
            "name": f"Person {i}",
            "title": "Owner",
            "location": "Chicago",
            "relevanceScore": 0.9,
            **({} if i in without_source else {"source": f"https://example.com/{i}"}),
        }
        for i in range(n)
    ]


def _patch_store(store):
    return (
        patch("app.services.supabase.get_search", new=AsyncMock(side_effect=store.get_search)),
        patch("app.services.supabase.update_search", new=AsyncMock(side_effect=store.update_search)),
    )


@pytest.mark.asyncio
async def test_campaign_produces_one_entry_per_person_in_order():
    store = FakeStore(_people(3))
    browser = FakeBrowser()
    get_patch, update_patch = _patch_store(store)
    with get_patch, update_patch:
        entries = await CampaignRunner("s1", "u1", browser_factory=lambda: browser).run()

    assert [e.original_person.name for e in entries] == ["Person 0", "Person 1", "Person 2"]
    assert all(e.summary and e.contact_info for e in entries)
    assert entries[0].contact_info.contacts[0].email == "hello@example.com"
    assert store.row["campaign_progress"] is None
    assert len(store.row["campaign"]) == 3
    assert store.row["campaign"][1]["originalPerson"]["name"] == "Person 1"
    assert browser.closed


@pytest.mark.asyncio
async def test_campaign_persists_each_transition():
    store = FakeStore(_people(1))
    get_patch, update_patch = _patch_store(store)
    with get_patch, update_patch:
        await CampaignRunner("s1", "u1", browser_factory=FakeBrowser).run()

    statuses = [
        u["campaign_progress"]["status"]
        for u in store.updates
        if u.get("campaign_progress")
    ]
    assert statuses == ["navigating", "extracting_summary", "extracting_contacts", "completed"]
    assert store.updates[-1] == {"campaign_progress": None}


@pytest.mark.asyncio
async def test_navigation_failure_keeps_partial_entry_and_continues():
    store = FakeStore(_people(3))
    browser = FakeBrowser(fail_urls={"https://example.com/1"})
    get_patch, update_patch = _patch_store(store)
    with get_patch, update_patch:
        entries = await CampaignRunner("s1", "u1", browser_factory=lambda: browser).run()

    assert len(entries) == 3
    assert entries[1].summary is None
    assert entries[1].contact_info is None
    assert entries[2].summary is not None
    failed = [
        u for u in store.updates
        if u.get("campaign_progress") and u["campaign_progress"]["status"] == "failed"
    ]
    assert failed and failed[0]["campaign_progress"]["currentPerson"] == 1
    assert "summary" not in store.row["campaign"][1]


@pytest.mark.asyncio
async def test_missing_source_and_extraction_failure_are_tolerated():
    store = FakeStore(_people(3, without_source={0}))
    browser = FakeBrowser(broken_urls={"https://example.com/1"})
    get_patch, update_patch = _patch_store(store)
    with get_patch, update_patch:
        entries = await CampaignRunner("s1", "u1", browser_factory=lambda: browser).run()

    assert len(entries) == 3
    assert "https://example.com/0" not in browser.visited
    assert entries[0].summary is None
    assert entries[1].summary is not None
    assert entries[1].contact_info is None
    assert entries[2].contact_info is not None


@pytest.mark.asyncio
async def test_browser_closed_when_persistence_fails():
    store = FakeStore(_people(2))
    browser = FakeBrowser()
    with patch("app.services.supabase.get_search", new=AsyncMock(side_effect=store.get_search)), \
         patch("app.services.supabase.update_search", new=AsyncMock(side_effect=RuntimeError("db"))):
        with pytest.raises(RuntimeError):
            await CampaignRunner("s1", "u1", browser_factory=lambda: browser).run()

    assert browser.closed
    assert campaign_module.get_active_run("s1") is None


@pytest.mark.asyncio
async def test_cancellation_stops_between_people():
    store = FakeStore(_people(3))
    runner = CampaignRunner("s1", "u1", browser_factory=FakeBrowser)

    async def update_and_cancel(search_id, user_id, **patch):
        result = await store.update_search(search_id, user_id, **patch)
        progress = patch.get("campaign_progress")
        if progress and progress["status"] == "completed":
            assert cancel_campaign("s1", "someone-else") is False
            assert cancel_campaign("s1", "u1") is True
        return result

    with patch("app.services.supabase.get_search", new=AsyncMock(side_effect=store.get_search)), \
         patch("app.services.supabase.update_search", new=AsyncMock(side_effect=update_and_cancel)):
        entries = await runner.run()

    assert runner.cancelled
    assert len(entries) == 1
    assert store.row["campaign_progress"] is None


@pytest.mark.asyncio
async def test_second_run_for_same_search_is_rejected():
    store = FakeStore(_people(1))
    first = CampaignRunner("s1", "u1", browser_factory=FakeBrowser)
    campaign_module._active_runs["s1"] = first
    try:
        get_patch, update_patch = _patch_store(store)
        with get_patch, update_patch:
            with pytest.raises(CampaignAlreadyRunning):
                await CampaignRunner("s1", "u1", browser_factory=FakeBrowser).run()
    finally:
        campaign_module._active_runs.pop("s1", None)


@pytest.mark.asyncio
async def test_concurrent_starts_for_same_search_run_once():
    store = FakeStore(_people(2))

    async def slow_get_search(search_id, user_id):
        await asyncio.sleep(0.01)
        return await store.get_search(search_id, user_id)

    with patch("app.services.supabase.get_search", new=AsyncMock(side_effect=slow_get_search)), \
         patch("app.services.supabase.update_search", new=AsyncMock(side_effect=store.update_search)):
        results = await asyncio.gather(
            CampaignRunner("s1", "u1", browser_factory=FakeBrowser).run(),
            CampaignRunner("s1", "u1", browser_factory=FakeBrowser).run(),
            return_exceptions=True,
        )

    rejected = [r for r in results if isinstance(r, CampaignAlreadyRunning)]
    finished = [r for r in results if isinstance(r, list)]
    assert len(rejected) == 1
    assert len(finished) == 1 and len(finished[0]) == 2
    assert campaign_module.get_active_run("s1") is None


@pytest.mark.asyncio
async def test_progress_cleared_when_run_crashes():
    store = FakeStore(_people(3))
    calls = {"n": 0}

    async def flaky_update(search_id, user_id, **patch):
        calls["n"] += 1
        if calls["n"] == 5:
            raise RuntimeError("supabase unavailable")
        return await store.update_search(search_id, user_id, **patch)

    browser = FakeBrowser()
    with patch("app.services.supabase.get_search", new=AsyncMock(side_effect=store.get_search)), \
         patch("app.services.supabase.update_search", new=AsyncMock(side_effect=flaky_update)):
        with pytest.raises(RuntimeError):
            await CampaignRunner("s1", "u1", browser_factory=lambda: browser).run()

    assert store.row["campaign_progress"] is None
    assert browser.closed
    assert campaign_module.get_active_run("s1") is None


@pytest.mark.asyncio
async def test_rerun_resets_previous_entries_before_first_progress():
    store = FakeStore(_people(3))
    get_patch, update_patch = _patch_store(store)
    with get_patch, update_patch:
        await CampaignRunner("s1", "u1", browser_factory=FakeBrowser).run()
        assert len(store.row["campaign"]) == 3

        store.updates.clear()
        entries = await CampaignRunner("s1", "u1", browser_factory=FakeBrowser).run()

    assert store.updates[0] == {"campaign": [], "campaign_progress": None}
    first_progress = next(u for u in store.updates if u.get("campaign_progress"))
    assert first_progress["campaign_progress"]["status"] == "navigating"
    assert len(entries) == 3
    assert len(store.row["campaign"]) == 3
