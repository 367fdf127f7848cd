# Builtin tools.

from framesnap.tools.builtin.browser import BrowserAction, BrowserTool

__all__ = ["BrowserAction", "BrowserTool"]
