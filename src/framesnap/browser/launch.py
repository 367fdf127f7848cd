# Browser creation strategies
# Changes: Initial creation with persistent launch, CDP attach and remote pool connect
#
# Exactly one strategy is used per session. Only the persistent launch owns the
# browser process, so only it installs signal handlers for cleanup.
"""Launch or connect to a browser and hand back its first page."""

from __future__ import annotations

import json
import logging
from enum import Enum
from pathlib import Path
from typing import Any
from urllib.parse import urlencode, urlsplit, urlunsplit, parse_qsl

from playwright.async_api import Browser, BrowserContext, Error as PlaywrightError, Page, Playwright

from ..config import Settings
from .errors import BrowserConnectionError, BrowserNotInstalledError, ProfileLockedError

logger = logging.getLogger(__name__)

# Keeps background work from racing the automation: no throttled timers,
# no first-run UI, no background networking.
HARDENED_CHROMIUM_ARGS = [
    "--disable-field-trial-config",
    "--disable-background-networking",
    "--disable-background-timer-throttling",
    "--disable-backgrounding-occluded-windows",
    "--disable-breakpad",
    "--disable-client-side-phishing-detection",
    "--no-default-browser-check",
    "--disable-default-apps",
    "--disable-dev-shm-usage",
    "--allow-pre-commit-input",
    "--disable-hang-monitor",
    "--disable-ipc-flooding-protection",
    "--disable-popup-blocking",
    "--disable-prompt-on-repost",
    "--disable-renderer-backgrounding",
    "--force-color-profile=srgb",
    "--metrics-recording-only",
    "--no-first-run",
    "--password-store=basic",
    "--use-mock-keychain",
    "--no-service-autorun",
    "--export-tagged-pdf",
    "--disable-search-engine-choice-screen",
]

_MISSING_EXECUTABLE = "Executable doesn't exist"
_CLOSED_TARGET = "Target page, context or browser has been closed"


class ConnectionStrategy(str, Enum):
    """How a session obtains its browser."""

    LAUNCH = "launch"
    CDP = "cdp"
    REMOTE = "remote"


def select_strategy(settings: Settings) -> ConnectionStrategy:
    """Pick the strategy from configuration; remote wins over CDP, CDP over launch."""
    if settings.remote_endpoint:
        return ConnectionStrategy.REMOTE
    if settings.cdp_endpoint:
        return ConnectionStrategy.CDP
    return ConnectionStrategy.LAUNCH


def engine_for(browser_name: str) -> str:
    """Map a configured browser name to the Playwright engine that drives it."""
    if browser_name in ("firefox", "webkit"):
        return browser_name
    return "chromium"


def channel_for(browser_name: str) -> str | None:
    """Branded Chromium builds are selected through a launch channel."""
    if browser_name in ("chrome", "msedge"):
        return browser_name
    return None


def build_remote_url(endpoint: str, browser_name: str, launch_options: dict[str, Any] | None = None) -> str:
    """Encode the engine and launch options into a remote pool URL.

    Existing query parameters on the endpoint are preserved.
    """
    parts = urlsplit(endpoint)
    query = dict(parse_qsl(parts.query, keep_blank_values=True))
    query["browser"] = engine_for(browser_name)
    if launch_options:
        query["launch-options"] = json.dumps(launch_options, separators=(",", ":"))
    return urlunsplit(parts._replace(query=urlencode(query)))


def build_launch_options(settings: Settings) -> dict[str, Any]:
    """Keyword arguments for ``launch_persistent_context``."""
    # Playwright owns the profile flag; a second one would fight it.
    extra_args = [
        arg for arg in settings.launch_args
        if not arg.startswith("--user-data-dir=") and not arg.startswith("--user-data-dir-name=")
    ]
    options: dict[str, Any] = {
        "headless": settings.headless,
        "handle_sigint": True,
        "handle_sighup": True,
        "handle_sigterm": True,
    }
    if engine_for(settings.browser_name) == "chromium":
        options["args"] = [*HARDENED_CHROMIUM_ARGS, *extra_args]
    elif extra_args:
        options["args"] = extra_args

    channel = channel_for(settings.browser_name)
    if channel:
        options["channel"] = channel
    if settings.executable_path:
        options["executable_path"] = settings.executable_path
    return options


async def launch_persistent(playwright: Playwright, settings: Settings) -> tuple[BrowserContext, Page]:
    """Launch a local browser on a persistent profile directory."""
    user_data_dir = settings.resolve_user_data_dir()
    Path(user_data_dir).mkdir(parents=True, exist_ok=True)
    browser_type = getattr(playwright, engine_for(settings.browser_name))
    options = build_launch_options(settings)

    logger.debug(
        "Launching %s (%s) with profile %s: %s",
        engine_for(settings.browser_name), settings.browser_name, user_data_dir, options,
    )
    try:
        context = await browser_type.launch_persistent_context(str(user_data_dir), **options)
    except PlaywrightError as e:
        message = str(e)
        if _MISSING_EXECUTABLE in message:
            raise BrowserNotInstalledError(settings.browser_name) from e
        if _CLOSED_TARGET in message:
            logger.error("Persistent context issue, likely a stale browser process: %s", message)
            raise ProfileLockedError(str(user_data_dir)) from e
        logger.error("Failed to launch browser: %s", message)
        raise

    pages = context.pages
    page = pages[0] if pages else await context.new_page()
    return context, page


async def connect_over_cdp(playwright: Playwright, settings: Settings) -> tuple[Browser, Page]:
    """Attach to a running browser, reusing its first open page."""
    try:
        browser = await playwright.chromium.connect_over_cdp(settings.cdp_endpoint)
    except PlaywrightError as e:
        raise BrowserConnectionError(
            f"Could not attach to browser at {settings.cdp_endpoint}: {e}"
        ) from e

    contexts = browser.contexts
    context = contexts[0] if contexts else await browser.new_context()
    pages = context.pages
    page = pages[0] if pages else await context.new_page()
    return browser, page


async def connect_remote(playwright: Playwright, settings: Settings) -> tuple[Browser, Page]:
    """Connect to a remote browser pool and open a fresh page."""
    launch_options: dict[str, Any] = {}
    if settings.launch_args:
        launch_options["args"] = list(settings.launch_args)
    if settings.headless:
        launch_options["headless"] = True
    channel = channel_for(settings.browser_name)
    if channel:
        launch_options["channel"] = channel

    url = build_remote_url(settings.remote_endpoint or "", settings.browser_name, launch_options)
    browser_type = getattr(playwright, engine_for(settings.browser_name))
    try:
        browser = await browser_type.connect(url)
    except PlaywrightError as e:
        raise BrowserConnectionError(f"Could not connect to remote browser at {url}: {e}") from e

    page = await browser.new_page()
    return browser, page


async def create_browser_page(playwright: Playwright, settings: Settings) -> tuple[Browser | None, Page]:
    """Create a page with the configured strategy.

    Returns:
        Tuple of (browser, page). ``browser`` is None for persistent launches,
        where the page's context owns the process.
    """
    strategy = select_strategy(settings)
    logger.info("Creating browser page via %s strategy", strategy.value)
    if strategy is ConnectionStrategy.REMOTE:
        return await connect_remote(playwright, settings)
    if strategy is ConnectionStrategy.CDP:
        return await connect_over_cdp(playwright, settings)
    _context, page = await launch_persistent(playwright, settings)
    return None, page


__all__ = [
    "HARDENED_CHROMIUM_ARGS",
    "ConnectionStrategy",
    "select_strategy",
    "engine_for",
    "channel_for",
    "build_remote_url",
    "build_launch_options",
    "launch_persistent",
    "connect_over_cdp",
    "connect_remote",
    "create_browser_page",
]
