"""
Tools the agent can call.

- base: BaseTool contract and descriptor export
- types: ToolResult and its variants
- registry: ToolCollection (lookup, invocation, error normalization)
- terminate: the built-in terminal tool
- mcp: proxies for tools served over the Model Context Protocol
"""

from manus.tools.base import BaseTool
from manus.tools.registry import ToolCollection
from manus.tools.terminate import Terminate
from manus.tools.types import CLIResult, ToolFailure, ToolResult

__all__ = [
    "BaseTool",
    "ToolCollection",
    "Terminate",
    "ToolResult",
    "ToolFailure",
    "CLIResult",
]
