# Browser launch strategy tests
# Changes: Initial creation
"""Tests for browser launch and connection strategies."""

import json
from urllib.parse import parse_qs, urlsplit
from unittest.mock import AsyncMock, MagicMock

import pytest
from playwright.async_api import Error as PlaywrightError

from framesnap.browser.errors import (
    BrowserConnectionError,
    BrowserNotInstalledError,
    ProfileLockedError,
)
from framesnap.browser.launch import (
    HARDENED_CHROMIUM_ARGS,
    ConnectionStrategy,
    build_launch_options,
    build_remote_url,
    channel_for,
    create_browser_page,
    engine_for,
    select_strategy,
)
from framesnap.config import Settings


def _settings(**overrides) -> Settings:
    return Settings(**overrides)


def _playwright(context=None, browser=None) -> MagicMock:
    playwright = MagicMock()
    for engine in ("chromium", "firefox", "webkit"):
        browser_type = getattr(playwright, engine)
        browser_type.launch_persistent_context = AsyncMock(return_value=context)
        browser_type.connect_over_cdp = AsyncMock(return_value=browser)
        browser_type.connect = AsyncMock(return_value=browser)
    return playwright


class TestStrategySelection:
    """Tests for choosing how to obtain a browser."""

    def test_default_is_launch(self):
        assert select_strategy(_settings()) is ConnectionStrategy.LAUNCH

    def test_cdp_endpoint(self):
        assert select_strategy(_settings(cdp_endpoint="http://localhost:9222")) is ConnectionStrategy.CDP

    def test_remote_wins_over_cdp(self):
        settings = _settings(cdp_endpoint="http://localhost:9222", remote_endpoint="ws://pool:3000")
        assert select_strategy(settings) is ConnectionStrategy.REMOTE

    @pytest.mark.parametrize("name,engine,channel", [
        ("chrome", "chromium", "chrome"),
        ("msedge", "chromium", "msedge"),
        ("chromium", "chromium", None),
        ("firefox", "firefox", None),
        ("webkit", "webkit", None),
    ])
    def test_engine_and_channel(self, name, engine, channel):
        assert engine_for(name) == engine
        assert channel_for(name) == channel


class TestLaunchOptions:
    """Tests for build_launch_options."""

    def test_chromium_gets_hardened_args(self):
        options = build_launch_options(_settings(browser_name="chrome", launch_args=["--lang=de"]))
        assert options["args"] == [*HARDENED_CHROMIUM_ARGS, "--lang=de"]
        assert options["channel"] == "chrome"
        assert options["handle_sigint"] is True
        assert options["handle_sigterm"] is True

    def test_user_data_dir_flag_is_dropped(self):
        options = build_launch_options(_settings(launch_args=["--user-data-dir=/tmp/x", "--mute-audio"]))
        assert "--user-data-dir=/tmp/x" not in options["args"]
        assert "--mute-audio" in options["args"]

    def test_firefox_has_no_chromium_args(self):
        options = build_launch_options(_settings(browser_name="firefox"))
        assert "args" not in options
        assert "channel" not in options

    def test_executable_path(self):
        options = build_launch_options(_settings(executable_path="/opt/chrome/chrome"))
        assert options["executable_path"] == "/opt/chrome/chrome"


class TestRemoteUrl:
    """Tests for build_remote_url."""

    def test_encodes_browser_and_options(self):
        url = build_remote_url("ws://pool:3000/connect", "chrome", {"headless": True})
        query = parse_qs(urlsplit(url).query)
        assert url.startswith("ws://pool:3000/connect?")
        assert query["browser"] == ["chromium"]
        assert json.loads(query["launch-options"][0]) == {"headless": True}

    def test_preserves_existing_params(self):
        url = build_remote_url("ws://pool:3000/?token=abc", "firefox")
        query = parse_qs(urlsplit(url).query)
        assert query["token"] == ["abc"]
        assert query["browser"] == ["firefox"]
        assert "launch-options" not in query


class TestCreateBrowserPage:
    """Tests for create_browser_page with a mocked Playwright."""

    @pytest.mark.asyncio
    async def test_persistent_launch_reuses_first_page(self, tmp_path):
        page = MagicMock()
        context = MagicMock()
        context.pages = [page]
        playwright = _playwright(context=context)
        settings = _settings(browser_name="chromium", user_data_dir=tmp_path / "profile")

        browser, result = await create_browser_page(playwright, settings)

        assert browser is None
        assert result is page
        assert (tmp_path / "profile").is_dir()
        args, kwargs = playwright.chromium.launch_persistent_context.call_args
        assert args == (str(tmp_path / "profile"),)
        assert kwargs["headless"] is False

    @pytest.mark.asyncio
    async def test_persistent_launch_opens_page_when_none(self, tmp_path):
        page = MagicMock()
        context = MagicMock()
        context.pages = []
        context.new_page = AsyncMock(return_value=page)
        playwright = _playwright(context=context)

        _, result = await create_browser_page(playwright, _settings(user_data_dir=tmp_path))

        assert result is page

    @pytest.mark.asyncio
    async def test_missing_executable(self, tmp_path):
        """Should explain that the browser is not installed."""
        playwright = _playwright()
        playwright.chromium.launch_persistent_context.side_effect = PlaywrightError(
            "Executable doesn't exist at /ms-playwright/chrome"
        )

        with pytest.raises(BrowserNotInstalledError, match="chrome"):
            await create_browser_page(playwright, _settings(user_data_dir=tmp_path))

    @pytest.mark.asyncio
    async def test_locked_profile(self, tmp_path):
        """Should point at the profile directory to remove."""
        playwright = _playwright()
        playwright.chromium.launch_persistent_context.side_effect = PlaywrightError(
            "Target page, context or browser has been closed"
        )

        with pytest.raises(ProfileLockedError) as exc_info:
            await create_browser_page(playwright, _settings(user_data_dir=tmp_path))
        assert str(tmp_path) in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_other_launch_errors_propagate(self, tmp_path):
        playwright = _playwright()
        playwright.chromium.launch_persistent_context.side_effect = PlaywrightError("spawn EACCES")

        with pytest.raises(PlaywrightError):
            await create_browser_page(playwright, _settings(user_data_dir=tmp_path))

    @pytest.mark.asyncio
    async def test_cdp_reuses_open_page(self):
        page = MagicMock()
        context = MagicMock()
        context.pages = [page]
        browser = MagicMock()
        browser.contexts = [context]
        playwright = _playwright(browser=browser)

        result_browser, result = await create_browser_page(
            playwright, _settings(cdp_endpoint="http://localhost:9222")
        )

        assert result_browser is browser
        assert result is page
        playwright.chromium.connect_over_cdp.assert_awaited_once_with("http://localhost:9222")

    @pytest.mark.asyncio
    async def test_cdp_refused(self):
        playwright = _playwright()
        playwright.chromium.connect_over_cdp.side_effect = PlaywrightError("ECONNREFUSED")

        with pytest.raises(BrowserConnectionError, match="localhost:9222"):
            await create_browser_page(playwright, _settings(cdp_endpoint="http://localhost:9222"))

    @pytest.mark.asyncio
    async def test_remote_connect(self):
        page = MagicMock()
        browser = MagicMock()
        browser.new_page = AsyncMock(return_value=page)
        playwright = _playwright(browser=browser)
        settings = _settings(browser_name="firefox", remote_endpoint="ws://pool:3000", headless=True)

        result_browser, result = await create_browser_page(playwright, settings)

        assert result_browser is browser
        assert result is page
        url = playwright.firefox.connect.call_args.args[0]
        query = parse_qs(urlsplit(url).query)
        assert query["browser"] == ["firefox"]
        assert json.loads(query["launch-options"][0]) == {"headless": True}
