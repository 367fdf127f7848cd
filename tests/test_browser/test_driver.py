# Browser driver tests
# Changes: Initial creation
"""Tests for BrowserDriver actions against a fake page."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from fakes import FakeFrame, FakePage, node, web_area
from framesnap.browser.driver import normalize_url
from framesnap.browser.errors import (
    ElementNotFoundError,
    NoActivePageError,
    StaleReferenceError,
)
from framesnap.browser.session import BrowserSession
from framesnap.config import Settings

CREATE = "framesnap.browser.session.create_browser_page"


def _page() -> FakePage:
    tree = web_area(
        node("button", "Submit", ref="e1"),
        node("textbox", "Search", ref="e2"),
        node("combobox", "Size", ref="e3"),
    )
    return FakePage(FakeFrame(tree), url="https://shop.test/", title="Shop")


def _session(**settings) -> BrowserSession:
    playwright = MagicMock()
    playwright.stop = AsyncMock()
    settings.setdefault("settle_timeout_ms", 1000)
    settings.setdefault("settle_grace_ms", 0)
    return BrowserSession(
        "test",
        settings=Settings(**settings),
        playwright_factory=AsyncMock(return_value=playwright),
    )


async def _open(session: BrowserSession, page: FakePage | None = None) -> FakePage:
    page = page or _page()
    with patch(CREATE, AsyncMock(return_value=(None, page))):
        await session.get_or_create_page()
    return page


class TestNormalizeUrl:
    def test_adds_scheme(self):
        assert normalize_url("example.com") == "https://example.com"

    def test_keeps_scheme(self):
        assert normalize_url(" http://localhost:8000 ") == "http://localhost:8000"


class TestNavigate:
    """Tests for BrowserDriver.navigate."""

    @pytest.mark.asyncio
    async def test_navigate_creates_page_and_snapshots(self):
        session = _session()
        page = _page()

        with patch(CREATE, AsyncMock(return_value=(None, page))):
            result = await session.driver.navigate("shop.test")

        assert page.gotos == [("https://shop.test", "domcontentloaded")]
        assert result.status == "Navigated to https://shop.test"
        assert result.title == "Shop"
        assert "- Page URL: https://shop.test" in result.snapshot
        assert "- Page Title: Shop" in result.snapshot
        assert "- Mode: Full snapshot" in result.snapshot
        assert '- button "Submit" [ref=s1e1]' in result.snapshot

    @pytest.mark.asyncio
    async def test_navigate_compact(self):
        session = _session()
        with patch(CREATE, AsyncMock(return_value=(None, _page()))):
            result = await session.driver.navigate("https://shop.test/", compact=True)

        assert "- Mode: Compact snapshot (interactive elements only)" in result.snapshot
        assert "interactive_elements: 3" in result.snapshot


class TestSnapshot:
    """Tests for BrowserDriver.snapshot."""

    @pytest.mark.asyncio
    async def test_snapshot_requires_page(self):
        with pytest.raises(NoActivePageError):
            await _session().driver.snapshot()

    @pytest.mark.asyncio
    async def test_snapshot_layout(self):
        session = _session()
        await _open(session)

        result = await session.driver.snapshot()

        lines = result.snapshot.splitlines()
        assert lines[:4] == [
            "",
            "- Page URL: https://shop.test/",
            "- Page Title: Shop",
            "- Mode: Full snapshot",
        ]
        assert lines[4] == "```yaml"
        assert lines[-1] == "```"

    @pytest.mark.asyncio
    async def test_snapshot_truncation(self):
        session = _session(snapshot_max_length=10)
        await _open(session)

        truncated = await session.driver.snapshot()
        full = await session.driver.snapshot(truncate=False)

        assert "[snapshot truncated at 10 of" in truncated.snapshot
        assert "truncated" not in full.snapshot

    @pytest.mark.asyncio
    async def test_snapshot_mentions_file_chooser(self):
        session = _session()
        page = await _open(session)
        page.emit("filechooser", MagicMock())

        result = await session.driver.snapshot()

        assert "file chooser visible" in result.snapshot


class TestRefActions:
    """Tests for actions that target an element by ref."""

    @pytest.mark.asyncio
    async def test_click(self):
        session = _session()
        page = await _open(session)
        await session.driver.snapshot()

        result = await session.driver.click("s1e1", element="Submit button")

        assert page.main_frame.actions == [("s1e1", "click")]
        assert result.status == '"Submit button" clicked'
        assert "[ref=s2e1]" in result.snapshot

    @pytest.mark.asyncio
    async def test_hover(self):
        session = _session()
        page = await _open(session)
        await session.driver.snapshot()

        await session.driver.hover("s1e1")

        assert page.main_frame.actions == [("s1e1", "hover")]

    @pytest.mark.asyncio
    async def test_type_and_submit(self):
        session = _session()
        page = await _open(session)
        await session.driver.snapshot()

        result = await session.driver.type_text("s1e2", "shoes", submit=True)

        assert page.main_frame.actions == [("s1e2", "fill", "shoes"), ("s1e2", "press", "Enter")]
        assert result.status == 'Typed "shoes" into "s1e2"'

    @pytest.mark.asyncio
    async def test_select_option(self):
        session = _session()
        page = await _open(session)
        await session.driver.snapshot()

        await session.driver.select_option("s1e3", ("M", "L"))

        assert page.main_frame.actions == [("s1e3", "select_option", ["M", "L"])]

    @pytest.mark.asyncio
    async def test_action_in_child_frame(self):
        """Should route f<N> refs to the matching frame."""
        child = FakeFrame(web_area(node("button", "Pay", ref="e1")))
        main = FakeFrame(web_area(node("iframe", ref="e1")), children={"e1": child})
        session = _session()
        await _open(session, FakePage(main))
        await session.driver.snapshot()

        await session.driver.click("f1s1e1")

        assert child.actions == [("s1e1", "click")]
        assert main.actions == []

    @pytest.mark.asyncio
    async def test_ref_from_older_snapshot(self):
        session = _session()
        await _open(session)
        await session.driver.snapshot()
        await session.driver.snapshot()

        with pytest.raises(StaleReferenceError):
            await session.driver.click("s1e1")

    @pytest.mark.asyncio
    async def test_ref_after_navigation(self):
        session = _session()
        page = await _open(session)
        await session.driver.snapshot()
        page.navigate_top_level()

        with pytest.raises(StaleReferenceError, match="navigated"):
            await session.driver.click("s1e1")

    @pytest.mark.asyncio
    async def test_missing_element(self):
        session = _session()
        await _open(session)
        await session.driver.snapshot()

        with pytest.raises(ElementNotFoundError):
            await session.driver.click("s1e42")

    @pytest.mark.asyncio
    async def test_action_dismisses_pending_chooser(self):
        session = _session()
        page = await _open(session)
        await session.driver.snapshot()
        page.emit("filechooser", MagicMock())

        await session.driver.click("s1e1")

        assert not session.has_pending_file_chooser()


class TestPageActions:
    """Tests for keyboard, upload and console."""

    @pytest.mark.asyncio
    async def test_press_key(self):
        session = _session()
        page = await _open(session)

        result = await session.driver.press_key("ArrowDown")

        page.keyboard.press.assert_awaited_once_with("ArrowDown")
        assert result.status == "Pressed key ArrowDown"

    @pytest.mark.asyncio
    async def test_upload_files(self):
        session = _session()
        page = await _open(session)
        chooser = MagicMock()
        chooser.set_files = AsyncMock()
        page.emit("filechooser", chooser)

        result = await session.driver.upload_files(["/tmp/a.png", "/tmp/b.png"])

        chooser.set_files.assert_awaited_once_with(["/tmp/a.png", "/tmp/b.png"])
        assert result.status == "Chose 2 file(s)"
        assert "file chooser visible" not in result.snapshot

    @pytest.mark.asyncio
    async def test_console_output(self):
        session = _session()
        page = await _open(session)
        message = MagicMock()
        message.type = "error"
        message.text = "boom"
        message.location = {"url": "https://shop.test/app.js", "lineNumber": 3}
        page.emit("console", message)

        text = session.driver.console(clear=True)

        assert text == "Console Messages:\n[1] [ERROR] (https://shop.test/app.js:3): boom"
        assert session.driver.console() == "Console Messages:\n[No console messages]"
