from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from app.errors import NavigationError
from app.models.search import PageSummary
from app.tools.browser import BrowserSession
from app.tools.web_utils import html_to_text


def test_html_to_text_drops_scripts_and_keeps_contact_links():
    html = """
    <html><head><script>var x = 1;</script><style>p {}</style></head>
    <body><h1>Ann's Bakery</h1><p>Call us</p>
    <a href="mailto:ann@example.com">Email</a> <a href="tel:+13125550100">Phone</a></body></html>
    """
    text = html_to_text(html)
    assert "Ann's Bakery" in text
    assert "var x" not in text
    assert "ann@example.com" in text
    assert "+13125550100" in text


def _session_with_page(url="https://example.com/ann", html="<p>Hello</p>") -> tuple[BrowserSession, MagicMock]:
    session = BrowserSession(headless=True)
    page = MagicMock()
    page.url = url
    page.goto = AsyncMock()
    page.content = AsyncMock(return_value=html)
    session._page = page
    return session, page


@pytest.mark.asyncio
async def test_navigate_rejects_invalid_url():
    session, _ = _session_with_page()
    with pytest.raises(NavigationError):
        await session.navigate("not a url")


@pytest.mark.asyncio
async def test_navigate_wraps_timeouts():
    session, page = _session_with_page()
    page.goto.side_effect = TimeoutError("Timeout 60000ms exceeded")

    with pytest.raises(NavigationError, match="Timeout"):
        await session.navigate("https://example.com/slow", timeout_ms=60000)

    assert page.goto.await_args.kwargs["timeout"] == 60000


@pytest.mark.asyncio
async def test_extract_renders_page_text_into_prompt():
    session, _ = _session_with_page(html="<h1>Ann's Bakery</h1>")
    extract = AsyncMock(return_value=PageSummary(summary="A bakery", name="Ann's Bakery"))

    with patch("app.llm_client.extract_structured", new=extract):
        result = await session.extract("Summarize the page.", PageSummary)

    assert result.name == "Ann's Bakery"
    prompt = extract.await_args.args[0]
    assert prompt.startswith("Summarize the page.")
    assert "Ann's Bakery" in prompt
    assert "https://example.com/ann" in prompt


@pytest.mark.asyncio
async def test_close_releases_resources():
    session, _ = _session_with_page()
    context, browser, playwright = AsyncMock(), AsyncMock(), AsyncMock()
    session._context, session._browser, session._playwright = context, browser, playwright

    await session.close()

    context.close.assert_awaited_once()
    browser.close.assert_awaited_once()
    playwright.stop.assert_awaited_once()
    assert not session.started
