# Tools package.

from framesnap.tools.protocol import BaseTool, ToolDefinition

__all__ = [
    "BaseTool",
    "ToolDefinition",
]
