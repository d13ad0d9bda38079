"""Headless browser session used by outreach campaigns.

One session drives one page: navigate, then extract structured data from
whatever is currently loaded. Extraction renders the page to text and asks
the model for a value matching a pydantic schema.
"""
from __future__ import annotations

import time
from typing import Any, TypeVar

from loguru import logger
from pydantic import BaseModel

from app import llm_client
from app.config import settings
from app.errors import ExtractionError, NavigationError
from app.services.prompt_store import render_prompt
from app.tools.web_utils import html_to_text, is_valid_url

ModelT = TypeVar("ModelT", bound=BaseModel)


class BrowserSession:
    def __init__(
        self,
        *,
        headless: bool | None = None,
        navigation_timeout_ms: int | None = None,
        max_chars: int | None = None,
    ):
        self.headless = settings.browser_headless if headless is None else headless
        self.navigation_timeout_ms = navigation_timeout_ms or settings.browser_navigation_timeout_ms
        self.max_chars = max_chars or settings.browser_extract_max_chars
        self._playwright: Any | None = None
        self._browser: Any | None = None
        self._context: Any | None = None
        self._page: Any | None = None

    @property
    def started(self) -> bool:
        return self._page is not None

    async def start(self) -> None:
        if self._page is not None:
            return
        from playwright.async_api import async_playwright

        self._playwright = await async_playwright().start()
        self._browser = await self._playwright.chromium.launch(headless=self.headless)
        self._context = await self._browser.new_context()
        self._page = await self._context.new_page()
        logger.debug(f"Browser session started (headless={self.headless})")

    async def navigate(self, url: str, timeout_ms: int | None = None) -> str:
        """Load ``url`` and return the final URL after redirects."""
        if not is_valid_url(url):
            raise NavigationError(f"Invalid URL: {url}", details={"url": url})
        if self._page is None:
            await self.start()

        t0 = time.monotonic()
        try:
            await self._page.goto(
                url,
                wait_until="domcontentloaded",
                timeout=timeout_ms or self.navigation_timeout_ms,
            )
        except Exception as exc:
            raise NavigationError(f"Navigation to {url} failed: {exc}", details={"url": url}) from exc

        logger.debug(f"Navigated to {url} in {int((time.monotonic() - t0) * 1000)}ms")
        return self._page.url

    async def page_text(self) -> str:
        if self._page is None:
            raise NavigationError("No page loaded")
        html = await self._page.content()
        return html_to_text(html, max_chars=self.max_chars)

    async def extract(self, instruction: str, schema: type[ModelT]) -> ModelT:
        text = await self.page_text()
        if not text:
            raise ExtractionError("Page has no readable content", details={"url": self._page.url})
        prompt = render_prompt(
            "browser.extract",
            instruction=instruction,
            url=self._page.url,
            page_text=text,
        )
        return await llm_client.extract_structured(
            prompt,
            schema,
            model=llm_client.get_analysis_model(),
            caller=f"browser.extract:{schema.__name__}",
        )

    async def close(self) -> None:
        for resource in (self._context, self._browser):
            if resource is None:
                continue
            try:
                await resource.close()
            except Exception as exc:
                logger.warning(f"Browser resource close failed: {exc}")
        if self._playwright is not None:
            try:
                await self._playwright.stop()
            except Exception as exc:
                logger.warning(f"Playwright stop failed: {exc}")
        self._playwright = self._browser = self._context = self._page = None

    async def __aenter__(self) -> "BrowserSession":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()
