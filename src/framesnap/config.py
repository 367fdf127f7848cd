"""Configuration management for framesnap.

Changes:
  - Browser connection strategy (local profile, CDP attach, remote pool).
  - Completion waiter ceiling and grace delay are settings with the old
    literal values as defaults.
"""

import json
import os
import sys
from pathlib import Path
from typing import Literal, Optional
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

BrowserName = Literal["chromium", "firefox", "webkit", "chrome", "msedge"]


def get_config_dir() -> Path:
    """Get the config directory, creating if needed."""
    config_dir = Path.home() / ".framesnap"
    config_dir.mkdir(exist_ok=True)
    return config_dir


def get_config_path() -> Path:
    """Get the config file path."""
    return get_config_dir() / "config.json"


def get_cache_dir() -> Path:
    """Platform cache directory used for persistent browser profiles."""
    if sys.platform.startswith("linux"):
        return Path(os.environ.get("XDG_CACHE_HOME") or Path.home() / ".cache")
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Caches"
    if sys.platform == "win32":
        return Path(os.environ.get("LOCALAPPDATA") or Path.home() / "AppData" / "Local")
    raise RuntimeError(f"Unsupported platform: {sys.platform}")


class Settings(BaseSettings):
    """framesnap settings with env and file support."""

    model_config = SettingsConfigDict(
        env_prefix="FRAMESNAP_",
        env_file=".env",
        extra="ignore"
    )

    # Browser selection
    browser_name: BrowserName = Field(
        default="chrome",
        description="Browser to drive: 'chrome', 'msedge', 'chromium', 'firefox' or 'webkit'"
    )
    headless: bool = Field(default=False, description="Run the local browser without a window")
    executable_path: Optional[str] = Field(default=None, description="Explicit browser executable")
    user_data_dir: Optional[Path] = Field(
        default=None,
        description="Persistent profile directory (defaults to a per-browser cache directory)"
    )
    launch_args: list[str] = Field(default_factory=list, description="Extra browser command line flags")

    # Connection strategy: remote pool > CDP attach > local persistent launch
    cdp_endpoint: Optional[str] = Field(default=None, description="Attach to a running browser over CDP")
    remote_endpoint: Optional[str] = Field(default=None, description="Connect to a remote browser pool")

    # Page timeouts
    navigation_timeout_ms: int = Field(default=60_000, description="Default navigation timeout")
    action_timeout_ms: int = Field(default=5_000, description="Default locator action timeout")

    # Completion waiter
    settle_timeout_ms: int = Field(default=10_000, description="Hard ceiling for waiting on network/navigation")
    settle_grace_ms: int = Field(default=1_000, description="Extra delay after settling, before snapshotting")

    # Snapshots
    snapshot_max_length: int = Field(default=5_000, description="Truncation length for snapshot output")
    console_limit: Optional[int] = Field(
        default=None,
        description="Maximum console messages kept (None keeps everything until cleared)"
    )

    log_level: str = Field(default="INFO", description="Log level for setup_logging()")

    def resolve_user_data_dir(self) -> Path:
        """Profile directory for persistent launches."""
        if self.user_data_dir is not None:
            return self.user_data_dir
        return get_cache_dir() / "ms-playwright" / f"framesnap-{self.browser_name}-profile"

    def save(self) -> None:
        """Save settings to config file.

        Merges with existing config so keys written by other tools survive.
        """
        config_path = get_config_path()

        existing = {}
        if config_path.exists():
            try:
                existing = json.loads(config_path.read_text())
            except json.JSONDecodeError:
                existing = {}

        data = {**existing, **self.model_dump(mode="json")}
        config_path.write_text(json.dumps(data, indent=2))

    @classmethod
    def load(cls) -> "Settings":
        """Load settings from config file, falling back to env/defaults."""
        config_path = get_config_path()
        if config_path.exists():
            try:
                data = json.loads(config_path.read_text())
                return cls(**data)
            except (json.JSONDecodeError, ValueError):
                pass
        return cls()


@lru_cache
def get_settings(force_reload: bool = False) -> Settings:
    """Get cached settings instance."""
    if force_reload:
        get_settings.cache_clear()
    return Settings.load()
