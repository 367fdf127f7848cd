# Browser engine error taxonomy
# Changes: Initial creation with setup, staleness and file chooser errors
#
# Setup errors mean "fix the environment and reconnect"; staleness errors
# mean "take a new snapshot". Callers tell them apart by class.
"""Exceptions raised by the browser session and snapshot engine."""

from __future__ import annotations


class BrowserError(Exception):
    """Base class for every error raised by the browser engine."""


class BrowserSetupError(BrowserError):
    """The browser could not be launched or connected to."""


class BrowserNotInstalledError(BrowserSetupError):
    """The configured browser executable does not exist."""

    def __init__(self, browser_name: str | None = None) -> None:
        name = f" ({browser_name})" if browser_name else ""
        super().__init__(
            f"Browser specified in your config{name} is not installed. "
            "Either install it (likely) or change the config."
        )
        self.browser_name = browser_name


class ProfileLockedError(BrowserSetupError):
    """The persistent profile is held by a stale browser process."""

    def __init__(self, user_data_dir: str) -> None:
        super().__init__(
            f"Browser launch failed. Try removing the profile directory at: {user_data_dir}"
        )
        self.user_data_dir = user_data_dir


class BrowserConnectionError(BrowserSetupError):
    """A CDP or remote endpoint refused the connection."""


class NoActivePageError(BrowserError):
    """An action needs a page but none has been created yet."""

    def __init__(self) -> None:
        super().__init__("Navigate to a location to create a page")


class StaleReferenceError(BrowserError):
    """A reference does not belong to the most recent snapshot."""

    HINT = "Provide ref from the most current snapshot."

    def __init__(self, ref: str, reason: str) -> None:
        super().__init__(f"Stale or unknown reference '{ref}': {reason}. {self.HINT}")
        self.ref = ref
        self.reason = reason


class InvalidReferenceError(StaleReferenceError):
    """A reference string is not shaped like a snapshot reference."""


class ElementNotFoundError(StaleReferenceError):
    """A reference resolved to a locator that matches nothing."""


class NoFileChooserError(BrowserError):
    """File submission was requested while no chooser is pending."""

    def __init__(self) -> None:
        super().__init__("No file chooser visible")


class UnsupportedActionError(BrowserError):
    """The tool layer was asked for an action outside the known set."""

    def __init__(self, action: object) -> None:
        super().__init__(f"Unknown action: {action}")
        self.action = action


__all__ = [
    "BrowserError",
    "BrowserSetupError",
    "BrowserNotInstalledError",
    "ProfileLockedError",
    "BrowserConnectionError",
    "NoActivePageError",
    "StaleReferenceError",
    "InvalidReferenceError",
    "ElementNotFoundError",
    "NoFileChooserError",
    "UnsupportedActionError",
]
