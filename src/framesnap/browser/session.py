# Browser session: one page per client
# Changes: Initial creation with lazy page creation, event wiring and cascading teardown
#
# A session owns at most one page. The page is created on first use and
# every concurrent caller waiting on that first creation gets the same page.
# Closing the page resets the session so the next request starts clean.
"""Page session lifecycle and the explicit session store."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Sequence

from playwright.async_api import (
    Browser,
    ConsoleMessage,
    Error as PlaywrightError,
    FileChooser,
    Frame,
    Locator,
    Page,
    Playwright,
    async_playwright,
)

from ..config import Settings, get_settings
from .driver import BrowserDriver
from .errors import NoActivePageError, NoFileChooserError
from .launch import create_browser_page
from .refs import FrameTable, ReferenceResolver
from .snapshot import SnapshotBuilder

logger = logging.getLogger(__name__)

PlaywrightFactory = Callable[[], Awaitable[Playwright]]


async def _start_playwright() -> Playwright:
    return await async_playwright().start()


class BrowserSession:
    """Owns the browser and active page for one client.

    Action tools are expected to serialize their calls through a session;
    nothing here locks the page against concurrent mutation.
    """

    def __init__(
        self,
        session_id: str = "default",
        settings: Settings | None = None,
        playwright_factory: PlaywrightFactory | None = None,
    ) -> None:
        self.session_id = session_id
        self.settings = settings or get_settings()
        self._playwright_factory = playwright_factory or _start_playwright

        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._page: Page | None = None
        self._create_task: asyncio.Task[Page] | None = None
        self._teardown_tasks: set[asyncio.Task[None]] = set()

        self._console: list[ConsoleMessage] = []
        self._file_chooser: FileChooser | None = None

        self.frames = FrameTable()
        self._snapshots = SnapshotBuilder(self.frames)
        self._resolver = ReferenceResolver(self.frames)

        self.driver = BrowserDriver(self)

    # =========================================================================
    # Page lifecycle
    # =========================================================================

    @property
    def has_page(self) -> bool:
        return self._page is not None

    async def get_or_create_page(self) -> Page:
        """Return the active page, creating the browser on first use."""
        if self._page is not None:
            return self._page
        if self._create_task is None:
            self._create_task = asyncio.ensure_future(self._create_page())
        # A cancelled caller must not cancel creation for everyone else.
        return await asyncio.shield(self._create_task)

    def existing_page(self) -> Page:
        """Return the active page without ever creating one."""
        if self._page is None:
            raise NoActivePageError()
        return self._page

    async def _create_page(self) -> Page:
        playwright: Playwright | None = None
        try:
            playwright = await self._playwright_factory()
            browser, page = await create_browser_page(playwright, self.settings)
        except Exception:
            # Let the next request start a fresh attempt.
            self._create_task = None
            await self._stop_playwright(playwright)
            raise

        page.on("console", self._on_console)
        page.on("framenavigated", self._on_frame_navigated)
        page.on("close", self._on_page_close)
        page.on("filechooser", self._on_file_chooser)
        page.set_default_navigation_timeout(self.settings.navigation_timeout_ms)
        page.set_default_timeout(self.settings.action_timeout_ms)

        self._playwright = playwright
        self._browser = browser
        self._page = page
        logger.info("Browser session '%s' ready", self.session_id)
        return page

    async def close(self) -> None:
        """Close the page; the browser follows through the close event."""
        if self._page is None and self._create_task is not None:
            # A page still being created would otherwise outlive the close.
            try:
                await asyncio.shield(self._create_task)
            except Exception as e:
                logger.debug("Page creation for session '%s' failed before close: %s", self.session_id, e)
        page = self._page
        if page is None:
            return
        try:
            await page.close()
        except PlaywrightError as e:
            logger.debug("Page close failed for session '%s': %s", self.session_id, e)
        if self._page is page:
            # No close event arrived (browser already gone); reset by hand.
            self._on_page_close(page)
        if self._teardown_tasks:
            await asyncio.gather(*self._teardown_tasks, return_exceptions=True)

    # =========================================================================
    # Page events
    # =========================================================================

    def _on_console(self, message: ConsoleMessage) -> None:
        self._console.append(message)
        limit = self.settings.console_limit
        if limit is not None and len(self._console) > limit:
            del self._console[:-limit]

    def _on_frame_navigated(self, frame: Frame) -> None:
        if frame.parent_frame is not None:
            return
        # New document: old console output and old refs no longer apply.
        self._console.clear()
        self.frames.invalidate()

    def _on_file_chooser(self, chooser: FileChooser) -> None:
        self._file_chooser = chooser

    def _on_page_close(self, _page: Any = None) -> None:
        page, browser, playwright = self._page, self._browser, self._playwright

        self._create_task = None
        self._page = None
        self._browser = None
        self._playwright = None
        self._file_chooser = None
        self._console.clear()
        self.frames.invalidate()

        if page is None:
            return
        task = asyncio.get_running_loop().create_task(self._teardown(page, browser, playwright))
        self._teardown_tasks.add(task)
        task.add_done_callback(self._teardown_tasks.discard)
        logger.info("Browser session '%s' page closed", self.session_id)

    async def _teardown(self, page: Page, browser: Browser | None, playwright: Playwright | None) -> None:
        # Best effort: the close that triggered this has already happened.
        try:
            await page.context.close()
            if browser is not None:
                await browser.close()
        except Exception as e:
            logger.debug("Ignoring error during browser teardown: %s", e)
        await self._stop_playwright(playwright)

    @staticmethod
    async def _stop_playwright(playwright: Playwright | None) -> None:
        if playwright is None:
            return
        try:
            await playwright.stop()
        except Exception as e:
            logger.debug("Ignoring error while stopping Playwright: %s", e)

    # =========================================================================
    # Console and file chooser
    # =========================================================================

    def console_messages(self) -> list[ConsoleMessage]:
        """Console messages since the last top-level navigation or clear."""
        return list(self._console)

    def clear_console(self) -> None:
        self._console.clear()

    def has_pending_file_chooser(self) -> bool:
        return self._file_chooser is not None

    async def submit_files(self, paths: Sequence[str]) -> None:
        """Answer the pending file chooser with ``paths``."""
        if self._file_chooser is None:
            raise NoFileChooserError()
        await self._file_chooser.set_files(list(paths))
        self._file_chooser = None

    def clear_pending_file_chooser(self) -> None:
        self._file_chooser = None

    # =========================================================================
    # Snapshots and references
    # =========================================================================

    async def capture_full_snapshot(self) -> str:
        return await self._snapshots.capture_full(self.existing_page())

    async def capture_compact_snapshot(self) -> str:
        return await self._snapshots.capture_compact(self.existing_page())

    def resolve(self, ref: str) -> Locator:
        """Locator for a reference from the most recent snapshot."""
        return self._resolver.resolve(ref)


class BrowserSessionManager:
    """Session store keyed by session id.

    Owned by whatever layer creates sessions and passed to the code that
    needs it; there is no process-wide instance.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        playwright_factory: PlaywrightFactory | None = None,
    ) -> None:
        self.settings = settings
        self._playwright_factory = playwright_factory
        self._sessions: dict[str, BrowserSession] = {}
        self._lock = asyncio.Lock()

    async def get_or_create(self, session_id: str = "default") -> BrowserSession:
        async with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                session = BrowserSession(
                    session_id,
                    settings=self.settings,
                    playwright_factory=self._playwright_factory,
                )
                self._sessions[session_id] = session
                logger.debug("Created browser session '%s'", session_id)
            return session

    def get(self, session_id: str) -> BrowserSession | None:
        return self._sessions.get(session_id)

    async def close_session(self, session_id: str) -> bool:
        """Close and forget a session. Returns False if it did not exist."""
        async with self._lock:
            session = self._sessions.pop(session_id, None)
        if session is None:
            return False
        await session.close()
        return True

    async def close_all(self) -> None:
        async with self._lock:
            sessions = list(self._sessions.values())
            self._sessions.clear()
        for session in sessions:
            await session.close()

    def __len__(self) -> int:
        return len(self._sessions)


__all__ = ["BrowserSession", "BrowserSessionManager"]
