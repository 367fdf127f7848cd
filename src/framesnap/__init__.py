"""framesnap: a Playwright browser session with cross-frame accessibility snapshots."""

__version__ = "0.1.0"
