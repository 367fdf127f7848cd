# Completion waiter for page actions
# Changes: Initial creation with request tracking, top-level navigation and hard ceiling
#
# Decides when an action has "settled" the page so that the following
# snapshot shows the action's effect rather than a half-loaded document.
"""Run a page action and wait until network and navigation settle."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

from playwright.async_api import Error as PlaywrightError, Frame, Page, Request

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_SETTLE_TIMEOUT_MS = 10_000
DEFAULT_GRACE_MS = 1_000


async def wait_for_completion(
    page: Page,
    callback: Callable[[], Awaitable[T]],
    *,
    timeout_ms: int = DEFAULT_SETTLE_TIMEOUT_MS,
    grace_ms: int = DEFAULT_GRACE_MS,
) -> T:
    """Run ``callback`` and return its result once the page has settled.

    The page counts as settled when every request seen since the action
    started has finished, or, if a top-level navigation happened, when the
    navigated frame reaches its ``load`` state. Whatever happens, waiting
    stops ``timeout_ms`` after the action started. A further ``grace_ms``
    delay lets post-load rendering finish.

    The callback and the settle barrier are independent: both have to
    complete before this returns. Exceptions from the callback propagate.
    """
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout_ms / 1000

    requests: set[Request] = set()
    settled = asyncio.Event()
    navigated = False
    listening = True
    load_task: asyncio.Task[None] | None = None

    def on_request(request: Request) -> None:
        requests.add(request)

    def on_request_done(request: Request) -> None:
        requests.discard(request)
        if not requests:
            settled.set()

    async def wait_for_load(frame: Frame) -> None:
        try:
            await frame.wait_for_load_state("load")
        except PlaywrightError as e:
            logger.debug("Load state wait ended early: %s", e)
        finally:
            settled.set()

    def on_frame_navigated(frame: Frame) -> None:
        nonlocal navigated, load_task
        if frame.parent_frame is not None:
            return
        # Requests of the old document no longer matter.
        navigated = True
        remove_listeners()
        settled.clear()
        load_task = loop.create_task(wait_for_load(frame))

    def remove_listeners() -> None:
        nonlocal listening
        if not listening:
            return
        listening = False
        page.remove_listener("request", on_request)
        page.remove_listener("requestfinished", on_request_done)
        page.remove_listener("requestfailed", on_request_done)
        page.remove_listener("framenavigated", on_frame_navigated)

    page.on("request", on_request)
    page.on("requestfinished", on_request_done)
    page.on("requestfailed", on_request_done)
    page.on("framenavigated", on_frame_navigated)

    try:
        result = await callback()
        if not requests and not navigated:
            settled.set()

        remaining = max(0.0, deadline - loop.time())
        try:
            await asyncio.wait_for(settled.wait(), timeout=remaining)
        except asyncio.TimeoutError:
            logger.debug(
                "Page did not settle within %d ms (%d requests pending), proceeding",
                timeout_ms, len(requests),
            )

        if grace_ms > 0:
            try:
                await page.wait_for_timeout(grace_ms)
            except PlaywrightError as e:
                logger.debug("Grace delay interrupted: %s", e)
        return result
    finally:
        remove_listeners()
        if load_task is not None and not load_task.done():
            load_task.cancel()


__all__ = [
    "DEFAULT_SETTLE_TIMEOUT_MS",
    "DEFAULT_GRACE_MS",
    "wait_for_completion",
]
