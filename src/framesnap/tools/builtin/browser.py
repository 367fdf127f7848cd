# Browser automation tool for AI agent control
# Changes: Closed BrowserAction enum with an exhaustive handler table; string refs
#
# Provides browser automation capabilities through Playwright with cross-frame
# accessibility snapshots for LLM-based browser control.
"""Browser automation tool for agent use."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Awaitable, Callable

from ..protocol import BaseTool
from ...config import get_settings
from ...logging_setup import setup_logging
from ...browser.errors import BrowserError, UnsupportedActionError
from ...browser.session import BrowserSession, BrowserSessionManager

logger = logging.getLogger(__name__)


class BrowserAction(str, Enum):
    """Every action the browser tool understands."""

    NAVIGATE = "navigate"
    SNAPSHOT = "snapshot"
    CLICK = "click"
    HOVER = "hover"
    TYPE = "type"
    SELECT_OPTION = "select_option"
    PRESS_KEY = "press_key"
    UPLOAD = "upload"
    CONSOLE = "console"
    CLOSE = "close"

    @classmethod
    def parse(cls, value: Any) -> BrowserAction:
        try:
            return cls(value)
        except ValueError:
            raise UnsupportedActionError(value) from None


Handler = Callable[["BrowserTool", dict[str, Any], str], Awaitable[str]]


class BrowserTool(BaseTool):
    """Browser automation tool using Playwright.

    Provides actions for navigating, clicking, typing and reading the page.
    Uses cross-frame accessibility snapshots for element identification;
    refs look like ``s2e5`` in the main frame and ``f1s2e5`` inside frames.

    Actions:
        navigate: Go to a URL
        snapshot: Get current page accessibility snapshot
        click / hover: Act on an element by ref
        type: Type text into an element
        select_option: Choose dropdown values
        press_key: Press a keyboard key
        upload: Answer a pending file chooser
        console: Read console messages
        close: Close the browser session
    """

    DEFAULT_SESSION_ID = "default"

    def __init__(self, manager: BrowserSessionManager | None = None) -> None:
        if manager is None:
            # Standalone tool: configure from the user's settings file.
            settings = get_settings()
            setup_logging(settings.log_level)
            manager = BrowserSessionManager(settings=settings)
        self.manager = manager

    @property
    def name(self) -> str:
        return "browser"

    @property
    def description(self) -> str:
        return (
            "Control a web browser to navigate pages, click elements and fill forms. "
            "Uses accessibility snapshots with [ref=...] markers for element "
            "identification, including elements inside iframes."
        )

    @property
    def trust_level(self) -> str:
        return "high"

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "action": {
                    "type": "string",
                    "description": "The browser action to perform",
                    "enum": [action.value for action in BrowserAction]
                },
                "url": {
                    "type": "string",
                    "description": "URL to navigate to (required for 'navigate' action)"
                },
                "ref": {
                    "type": "string",
                    "description": "Exact element reference from the latest snapshot (click, hover, type, select_option)"
                },
                "element": {
                    "type": "string",
                    "description": "Human-readable description of the element"
                },
                "text": {
                    "type": "string",
                    "description": "Text to type (required for 'type' action)"
                },
                "submit": {
                    "type": "boolean",
                    "description": "Press Enter after typing"
                },
                "values": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "Option values to select (required for 'select_option' action)"
                },
                "key": {
                    "type": "string",
                    "description": "Key to press, e.g. 'Enter' or 'ArrowDown'"
                },
                "paths": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "Absolute file paths for 'upload' action"
                },
                "compact": {
                    "type": "boolean",
                    "description": "Only list interactive elements in the snapshot"
                },
                "truncate": {
                    "type": "boolean",
                    "description": "Limit the snapshot length (default: true)"
                },
                "max_length": {
                    "type": "integer",
                    "description": "Maximum snapshot length when truncating"
                },
                "clear": {
                    "type": "boolean",
                    "description": "Clear console messages after reading them"
                },
                "session_id": {
                    "type": "string",
                    "description": "Browser session ID (optional, uses default if not specified)"
                }
            },
            "required": ["action"]
        }

    async def execute(self, **params: Any) -> str:
        """Execute a browser action.

        Returns:
            Action result (snapshot, console dump, or confirmation message)
        """
        session_id = params.get("session_id") or self.DEFAULT_SESSION_ID

        try:
            action = BrowserAction.parse(params.get("action"))
            handler = self._HANDLERS[action]
            return await handler(self, params, session_id)
        except BrowserError as e:
            return self._error(str(e))
        except Exception as e:
            logger.error("Browser action failed: %s", e)
            return self._error(str(e))

    async def _session(self, session_id: str) -> BrowserSession:
        return await self.manager.get_or_create(session_id)

    async def _navigate(self, params: dict, session_id: str) -> str:
        url = params.get("url")
        if not url:
            return self._error("URL is required for navigate action")

        session = await self._session(session_id)
        result = await session.driver.navigate(url, compact=bool(params.get("compact", False)))
        return result.snapshot

    async def _snapshot(self, params: dict, session_id: str) -> str:
        session = await self._session(session_id)
        result = await session.driver.snapshot(
            compact=bool(params.get("compact", False)),
            truncate=params.get("truncate", True) is not False,
            max_length=params.get("max_length"),
        )
        return result.snapshot

    async def _click(self, params: dict, session_id: str) -> str:
        ref = params.get("ref")
        if not ref:
            return self._error("ref is required for click action")

        session = await self._session(session_id)
        result = await session.driver.click(str(ref), element=params.get("element"))
        return result.snapshot

    async def _hover(self, params: dict, session_id: str) -> str:
        ref = params.get("ref")
        if not ref:
            return self._error("ref is required for hover action")

        session = await self._session(session_id)
        result = await session.driver.hover(str(ref), element=params.get("element"))
        return result.snapshot

    async def _type(self, params: dict, session_id: str) -> str:
        ref = params.get("ref")
        text = params.get("text")

        if not ref:
            return self._error("ref is required for type action")
        if text is None:
            return self._error("text is required for type action")

        session = await self._session(session_id)
        result = await session.driver.type_text(
            str(ref), text, submit=bool(params.get("submit", False)), element=params.get("element")
        )
        return result.snapshot

    async def _select_option(self, params: dict, session_id: str) -> str:
        ref = params.get("ref")
        values = params.get("values")
        if not ref:
            return self._error("ref is required for select_option action")
        if not values:
            return self._error("values are required for select_option action")

        session = await self._session(session_id)
        result = await session.driver.select_option(str(ref), values, element=params.get("element"))
        return result.snapshot

    async def _press_key(self, params: dict, session_id: str) -> str:
        key = params.get("key")
        if not key:
            return self._error("key is required for press_key action")

        session = await self._session(session_id)
        result = await session.driver.press_key(key)
        return result.snapshot

    async def _upload(self, params: dict, session_id: str) -> str:
        paths = params.get("paths")
        if not paths:
            return self._error("paths are required for upload action")

        session = await self._session(session_id)
        result = await session.driver.upload_files(paths)
        return result.snapshot

    async def _console(self, params: dict, session_id: str) -> str:
        session = await self._session(session_id)
        return session.driver.console(clear=bool(params.get("clear", False)))

    async def _close(self, params: dict, session_id: str) -> str:
        await self.manager.close_session(session_id)
        return f"Browser session '{session_id}' closed"

    _HANDLERS: dict[BrowserAction, Handler] = {
        BrowserAction.NAVIGATE: _navigate,
        BrowserAction.SNAPSHOT: _snapshot,
        BrowserAction.CLICK: _click,
        BrowserAction.HOVER: _hover,
        BrowserAction.TYPE: _type,
        BrowserAction.SELECT_OPTION: _select_option,
        BrowserAction.PRESS_KEY: _press_key,
        BrowserAction.UPLOAD: _upload,
        BrowserAction.CONSOLE: _console,
        BrowserAction.CLOSE: _close,
    }


_unhandled = set(BrowserAction) - BrowserTool._HANDLERS.keys()
if _unhandled:
    raise RuntimeError(f"BrowserTool has no handler for: {sorted(a.value for a in _unhandled)}")


__all__ = ["BrowserAction", "BrowserTool"]
