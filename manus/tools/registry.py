"""
Tool registry.

``ToolCollection`` keeps tools in registration order plus a name index, and
is the single place where tool invocation failures are normalized:
- unknown tool name -> a ``ToolFailure`` result, never an exception
- ``ToolError`` raised by the tool -> a ``ToolFailure`` result
- any other exception -> propagates (a defect in the tool)
"""

from typing import Any, Iterable, Iterator, Optional

from manus.tools.base import BaseTool
from manus.tools.types import ToolFailure, ToolResult
from manus.utils.errors import ToolError
from manus.utils.logger import get_logger

log = get_logger(__name__)


class ToolCollection:
    """A collection of defined tools."""

    def __init__(self, *tools: BaseTool) -> None:
        self.tools: list[BaseTool] = []
        self.tool_map: dict[str, BaseTool] = {}
        self.add_tools(*tools)

    def __iter__(self) -> Iterator[BaseTool]:
        return iter(self.tools)

    def __len__(self) -> int:
        return len(self.tools)

    def __contains__(self, name: str) -> bool:
        return name in self.tool_map

    def to_params(self) -> list[dict[str, Any]]:
        return [tool.to_param() for tool in self.tools]

    async def execute(
        self, name: str, tool_input: Optional[dict[str, Any]] = None
    ) -> ToolResult:
        tool = self.tool_map.get(name)
        if tool is None:
            return ToolFailure(error=f"Tool {name} not found")
        try:
            return await tool(**(tool_input or {}))
        except ToolError as e:
            return ToolFailure(error=e.message)

    async def execute_all(self) -> list[ToolResult]:
        """Execute every tool with no arguments, in registration order.

        A tool that raises anything other than ``ToolError`` contributes no
        entry to the returned list.
        """
        results: list[ToolResult] = []
        for tool in self.tools:
            try:
                results.append(await tool())
            except ToolError as e:
                results.append(ToolFailure(error=e.message))
            except Exception as e:
                log.warning(f"Tool {tool.name} raised during execute_all, skipped: {e!r}")
        return results

    def get_tool(self, name: str) -> Optional[BaseTool]:
        return self.tool_map.get(name)

    def add_tool(self, tool: BaseTool) -> "ToolCollection":
        if tool.name in self.tool_map:
            log.warning(f"Tool {tool.name} already exists in collection, skipping")
            return self
        self.tools.append(tool)
        self.tool_map[tool.name] = tool
        return self

    def add_tools(self, *tools: BaseTool) -> "ToolCollection":
        for tool in tools:
            self.add_tool(tool)
        return self

    def remove_tool(self, name: str) -> Optional[BaseTool]:
        tool = self.tool_map.pop(name, None)
        if tool is not None:
            self.tools = [t for t in self.tools if t.name != name]
        return tool

    def replace_tools(self, tools: Iterable[BaseTool]) -> None:
        """Reset the collection to ``tools`` (first occurrence of a name wins)."""
        self.tools = []
        self.tool_map = {}
        self.add_tools(*tools)
