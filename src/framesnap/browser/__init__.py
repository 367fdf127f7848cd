# Browser automation module for framesnap
# Changes: Exports for session, snapshot, reference and waiter components
#
# This module provides Playwright-based browser sessions with cross-frame
# accessibility tree snapshots for AI agent control.
"""Browser session and snapshot engine."""

from .errors import (
    BrowserError,
    BrowserSetupError,
    BrowserNotInstalledError,
    ProfileLockedError,
    BrowserConnectionError,
    NoActivePageError,
    StaleReferenceError,
    InvalidReferenceError,
    ElementNotFoundError,
    NoFileChooserError,
    UnsupportedActionError,
)
from .refs import FrameTable, Reference, ReferenceResolver
from .snapshot import AccessibilityNode, SnapshotBuilder, SnapshotGenerator, truncate_snapshot
from .waiter import wait_for_completion
from .driver import BrowserDriver, NavigationResult
from .session import BrowserSession, BrowserSessionManager

__all__ = [
    # Errors
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
    # References
    "FrameTable",
    "Reference",
    "ReferenceResolver",
    # Snapshot
    "AccessibilityNode",
    "SnapshotBuilder",
    "SnapshotGenerator",
    "truncate_snapshot",
    # Waiter
    "wait_for_completion",
    # Driver
    "BrowserDriver",
    "NavigationResult",
    # Session
    "BrowserSession",
    "BrowserSessionManager",
]
