# Browser driver: actions that wait for the page and report a snapshot
# Changes: Initial creation with run_and_wait, ref-based actions, console and upload
#
# Every mutating action goes through the completion waiter so the snapshot
# returned afterwards reflects the settled page.
"""Action runner used by the browser tool."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Sequence

from playwright.async_api import Locator, Page

from .errors import ElementNotFoundError
from .snapshot import truncate_snapshot
from .waiter import wait_for_completion

if TYPE_CHECKING:
    from .session import BrowserSession

logger = logging.getLogger(__name__)


@dataclass
class NavigationResult:
    """Outcome of a driver action."""

    status: str
    url: str
    title: str
    snapshot: str


def normalize_url(url: str) -> str:
    """Prefix ``https://`` when the URL has no http(s) scheme."""
    url = url.strip()
    if not url.startswith("http://") and not url.startswith("https://"):
        return "https://" + url
    return url


class BrowserDriver:
    """Runs actions against a session's page.

    Args:
        session: The owning BrowserSession
    """

    def __init__(self, session: BrowserSession) -> None:
        self._session = session

    async def run_and_wait(
        self,
        status: str,
        callback: Callable[[Page], Awaitable[Any]],
        snapshot: bool = False,
        compact: bool = True,
    ) -> NavigationResult:
        """Run ``callback`` on the existing page and wait for it to settle."""
        page = self._session.existing_page()
        settings = self._session.settings
        # An action on a page with a chooser open dismisses that chooser.
        dismiss_file_chooser = self._session.has_pending_file_chooser()
        logger.debug("Running action on session '%s': %s", self._session.session_id, status)

        await wait_for_completion(
            page,
            lambda: callback(page),
            timeout_ms=settings.settle_timeout_ms,
            grace_ms=settings.settle_grace_ms,
        )
        if dismiss_file_chooser:
            self._session.clear_pending_file_chooser()

        if snapshot:
            return await self.snapshot(compact=compact, status=status)
        return NavigationResult(status=status, url=page.url, title=await page.title(), snapshot=status)

    async def snapshot(
        self,
        compact: bool = False,
        truncate: bool = True,
        max_length: int | None = None,
        status: str = "",
    ) -> NavigationResult:
        """Capture the page and wrap the outline with page details."""
        page = self._session.existing_page()
        if compact:
            body = await self._session.capture_compact_snapshot()
        else:
            body = await self._session.capture_full_snapshot()
        if truncate:
            body = truncate_snapshot(body, max_length or self._session.settings.snapshot_max_length)

        title = await page.title()
        lines = []
        if status:
            lines.append(status)
        lines.extend([
            "",
            f"- Page URL: {page.url}",
            f"- Page Title: {title}",
        ])
        if self._session.has_pending_file_chooser():
            lines.append("- There is a file chooser visible that requires files to be uploaded")
        if compact:
            lines.append("- Mode: Compact snapshot (interactive elements only)")
        else:
            lines.append("- Mode: Full snapshot")
        lines.extend(["```yaml", body, "```", ""])

        return NavigationResult(status=status, url=page.url, title=title, snapshot="\n".join(lines))

    async def navigate(self, url: str, compact: bool = False) -> NavigationResult:
        """Go to ``url``, creating the page if needed."""
        url = normalize_url(url)
        await self._session.get_or_create_page()
        return await self.run_and_wait(
            f"Navigated to {url}",
            lambda page: page.goto(url, wait_until="domcontentloaded"),
            snapshot=True,
            compact=compact,
        )

    async def click(self, ref: str, element: str | None = None) -> NavigationResult:
        locator = await self._locate(ref, element)
        return await self.run_and_wait(
            f'"{element or ref}" clicked', lambda page: locator.click(), snapshot=True
        )

    async def hover(self, ref: str, element: str | None = None) -> NavigationResult:
        locator = await self._locate(ref, element)
        return await self.run_and_wait(
            f'Hovered over "{element or ref}"', lambda page: locator.hover(), snapshot=True
        )

    async def type_text(
        self,
        ref: str,
        text: str,
        submit: bool = False,
        element: str | None = None,
    ) -> NavigationResult:
        locator = await self._locate(ref, element)

        async def fill(page: Page) -> None:
            await locator.fill(text)
            if submit:
                await locator.press("Enter")

        return await self.run_and_wait(f'Typed "{text}" into "{element or ref}"', fill, snapshot=True)

    async def select_option(
        self,
        ref: str,
        values: Sequence[str],
        element: str | None = None,
    ) -> NavigationResult:
        locator = await self._locate(ref, element)
        return await self.run_and_wait(
            f'Selected option in "{element or ref}"',
            lambda page: locator.select_option(list(values)),
            snapshot=True,
        )

    async def press_key(self, key: str) -> NavigationResult:
        return await self.run_and_wait(
            f"Pressed key {key}", lambda page: page.keyboard.press(key), snapshot=True
        )

    async def upload_files(self, paths: Sequence[str]) -> NavigationResult:
        """Answer the pending file chooser."""
        return await self.run_and_wait(
            f"Chose {len(paths)} file(s)",
            lambda page: self._session.submit_files(paths),
            snapshot=True,
        )

    def console(self, clear: bool = False) -> str:
        """Console messages formatted one per line."""
        messages = self._session.console_messages()
        lines = ["Console Messages:"]
        if not messages:
            lines.append("[No console messages]")
        for index, message in enumerate(messages, start=1):
            location = message.location or {}
            where = ""
            if location.get("url"):
                where = f" ({location['url']}:{location.get('lineNumber', 0)})"
            lines.append(f"[{index}] [{message.type.upper()}]{where}: {message.text}")
        if clear:
            self._session.clear_console()
        return "\n".join(lines)

    async def _locate(self, ref: str, element: str | None) -> Locator:
        locator = self._session.resolve(ref)
        if await locator.count() == 0:
            raise ElementNotFoundError(ref, f'element "{element or ref}" is no longer on the page')
        return locator


__all__ = ["BrowserDriver", "NavigationResult", "normalize_url"]
