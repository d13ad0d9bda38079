"""Sequential outreach campaign over a saved search's people.

One browser page serves the whole run, so people are processed strictly
in list order. Every state transition is written to the search row before
the next step starts, which is what progress readers observe.
"""
from __future__ import annotations

import asyncio
from typing import Any, Callable

from loguru import logger

from app.config import settings
from app.errors import AppError, NavigationError
from app.models.search import (
    CampaignEntry,
    CampaignProgress,
    CampaignStatus,
    ContactInfo,
    PageSummary,
    Person,
)
from app.services import logger as log_service
from app.services import supabase as db
from app.services.prompt_store import render_prompt
from app.tools.browser import BrowserSession

_active_runs: dict[str, "CampaignRunner"] = {}


class CampaignAlreadyRunning(AppError):
    code = "CAMPAIGN_RUNNING"
    status_code = 409


def get_active_run(search_id: str) -> "CampaignRunner | None":
    return _active_runs.get(str(search_id))


def cancel_campaign(search_id: str, user_id: str) -> bool:
    """Ask an active run to stop after its current person."""
    runner = _active_runs.get(str(search_id))
    if runner is None or runner.user_id != user_id:
        return False
    runner.cancel()
    return True


def people_from_search(search: dict[str, Any]) -> list[Person]:
    raw_people = (search.get("search_data") or {}).get("people") or []
    return [Person.model_validate(p) for p in raw_people if isinstance(p, dict)]


class CampaignRunner:
    def __init__(
        self,
        search_id: str,
        user_id: str,
        *,
        browser_factory: Callable[[], BrowserSession] | None = None,
        navigation_timeout_ms: int | None = None,
    ):
        self.search_id = str(search_id)
        self.user_id = user_id
        self.browser_factory = browser_factory or BrowserSession
        self.navigation_timeout_ms = navigation_timeout_ms or settings.browser_navigation_timeout_ms
        self.entries: list[CampaignEntry] = []
        self._cancelled = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self) -> None:
        self._cancelled.set()

    async def _set_progress(
        self, index: int, total: int, person: Person, status: CampaignStatus
    ) -> None:
        progress = CampaignProgress(
            current_person=index,
            total_people=total,
            current_person_name=person.name,
            status=status,
        )
        log_service.log_campaign_step(self.search_id, index, status.value)
        await db.update_search(self.search_id, self.user_id, campaign_progress=progress.to_wire())

    async def _save_entries(self, **extra: Any) -> None:
        await db.update_search(
            self.search_id,
            self.user_id,
            campaign=[entry.to_wire() for entry in self.entries],
            **extra,
        )

    async def _clear_progress(self) -> None:
        try:
            await db.update_search(self.search_id, self.user_id, campaign_progress=None)
        except Exception as exc:
            logger.warning(f"Campaign {self.search_id}: could not clear progress: {exc}")

    async def _process(
        self, browser: BrowserSession, index: int, total: int, person: Person
    ) -> None:
        await self._set_progress(index, total, person, CampaignStatus.NAVIGATING)
        entry = CampaignEntry(original_person=person)

        if not person.source:
            self.entries.append(entry)
            await self._save_entries()
            return

        try:
            await browser.navigate(person.source, timeout_ms=self.navigation_timeout_ms)
        except NavigationError as exc:
            logger.warning(
                f"Campaign {self.search_id}: navigation failed for {person.name!r}: {exc}"
            )
            self.entries.append(entry)
            progress = CampaignProgress(
                current_person=index,
                total_people=total,
                current_person_name=person.name,
                status=CampaignStatus.FAILED,
            )
            log_service.log_campaign_step(
                self.search_id, index, CampaignStatus.FAILED.value, {"error": str(exc)}
            )
            await self._save_entries(campaign_progress=progress.to_wire())
            return

        try:
            await self._set_progress(index, total, person, CampaignStatus.EXTRACTING_SUMMARY)
            entry.summary = await browser.extract(render_prompt("campaign.summary"), PageSummary)

            await self._set_progress(index, total, person, CampaignStatus.EXTRACTING_CONTACTS)
            entry.contact_info = await browser.extract(
                render_prompt("campaign.contacts"), ContactInfo
            )
        except Exception as exc:
            logger.warning(
                f"Campaign {self.search_id}: extraction failed for {person.name!r}: {exc}"
            )
            self.entries.append(entry)
            await self._save_entries()
            return

        self.entries.append(entry)
        progress = CampaignProgress(
            current_person=index,
            total_people=total,
            current_person_name=person.name,
            status=CampaignStatus.COMPLETED,
        )
        log_service.log_campaign_step(
            self.search_id,
            index,
            CampaignStatus.COMPLETED.value,
            {"contacts": len(entry.contact_info.contacts) if entry.contact_info else 0},
        )
        await self._save_entries(campaign_progress=progress.to_wire())

    async def run(self) -> list[CampaignEntry]:
        """Visit every person's source page and extract summary and contacts.

        Returns one entry per processed person, in list order. Progress is
        cleared when the loop ends and the browser is always closed.
        """
        if self.search_id in _active_runs:
            raise CampaignAlreadyRunning(
                f"A campaign is already running for search {self.search_id}"
            )
        _active_runs[self.search_id] = self

        browser: BrowserSession | None = None
        loaded = False
        try:
            search = await db.get_search(self.search_id, self.user_id)
            loaded = True
            people = people_from_search(search)
            total = len(people)
            logger.info(f"Campaign {self.search_id}: starting over {total} people")

            browser = self.browser_factory()
            # Entries from an earlier run must not count towards this one.
            await db.update_search(
                self.search_id, self.user_id, campaign=[], campaign_progress=None
            )
            for index, person in enumerate(people):
                if self.cancelled:
                    logger.info(f"Campaign {self.search_id}: cancelled after {index} people")
                    break
                await self._process(browser, index, total, person)
        finally:
            if loaded:
                await self._clear_progress()
            _active_runs.pop(self.search_id, None)
            if browser is not None:
                await browser.close()

        log_service.log_event(
            "campaign_complete",
            f"Campaign {self.search_id} finished",
            entries=len(self.entries),
            cancelled=self.cancelled,
        )
        return self.entries
