"""
Remote tools discovered over the Model Context Protocol.

This module provides:
- MCPClientTool: A local proxy for one tool on an MCP server
- MCPClients: A ToolCollection fed by one or more MCP server connections
"""

import re
from contextlib import AsyncExitStack
from typing import Any, AsyncContextManager, Optional

from mcp import ClientSession, StdioServerParameters
from mcp.client.sse import sse_client
from mcp.client.stdio import stdio_client
from mcp.client.streamable_http import streamablehttp_client
from mcp.types import ImageContent, ListToolsResult, TextContent, Tool
from pydantic import Field

from manus.tools.base import BaseTool
from manus.tools.registry import ToolCollection
from manus.tools.types import ToolResult
from manus.utils.errors import InvalidArgument, InvalidState
from manus.utils.logger import get_logger

log = get_logger(__name__)

MAX_TOOL_NAME_LENGTH = 64


class MCPClientTool(BaseTool):
    """Represents a tool proxy that can be called on the MCP server from the client side."""

    session: Optional[ClientSession] = None
    server_id: str = Field("", description="Server identifier for routing")
    original_name: str = Field("", description="Tool name as known to the server")

    async def execute(self, **kwargs: Any) -> ToolResult:
        """Execute the tool by making a remote call to the MCP server."""
        if self.session is None:
            return ToolResult(error="Not connected to MCP server")

        try:
            log.info(f"Executing MCP tool: {self.original_name}")
            result = await self.session.call_tool(self.original_name, kwargs)

            texts = [item.text for item in result.content if isinstance(item, TextContent)]
            images = [item.data for item in result.content if isinstance(item, ImageContent)]

            output = ", ".join(texts) or "No output returned."
            if result.isError:
                return ToolResult(error=output)
            return ToolResult(output=output, base64_image=images[0] if images else None)
        except Exception as e:
            return ToolResult(error=f"Error executing tool: {e}")


class MCPClients(ToolCollection):
    """
    A collection of tools that connects to multiple MCP servers and manages
    available tools through the Model Context Protocol.
    """

    description: str = "MCP client tools for server interaction"

    def __init__(self) -> None:
        super().__init__()
        self.sessions: dict[str, ClientSession] = {}
        self.exit_stacks: dict[str, AsyncExitStack] = {}

    async def connect_sse(self, server_url: str, server_id: str = "") -> None:
        """Connect to an MCP server over HTTP.

        Streamable HTTP is tried first; servers that only speak the older
        SSE transport are reached through the fallback.
        """
        if not server_url:
            raise InvalidArgument("Server URL is required.")

        server_id = server_id or server_url
        if server_id in self.sessions:
            await self.disconnect(server_id)

        try:
            await self._connect(server_id, streamablehttp_client(url=server_url))
            log.info(f"Connected to MCP server {server_id} using Streamable HTTP")
        except Exception as e:
            log.warning(
                f"Streamable HTTP connection to {server_url} failed ({e!r}), falling back to SSE"
            )
            await self._connect(server_id, sse_client(url=server_url))
            log.info(f"Connected to MCP server {server_id} using SSE (fallback)")

    async def connect_stdio(
        self, command: str, args: Optional[list[str]] = None, server_id: str = ""
    ) -> None:
        """Connect to an MCP server using stdio transport."""
        if not command:
            raise InvalidArgument("Server command is required.")

        server_id = server_id or command
        if server_id in self.sessions:
            await self.disconnect(server_id)

        server_params = StdioServerParameters(command=command, args=args or [])
        await self._connect(server_id, stdio_client(server_params))

    async def _connect(self, server_id: str, transport: AsyncContextManager[Any]) -> None:
        """Open ``transport``, start a session on it and register the server's tools.

        On failure everything entered so far is closed again and the server
        is left unregistered.
        """
        exit_stack = AsyncExitStack()
        try:
            # Streamable HTTP also yields a session-id getter after the two streams
            streams = await exit_stack.enter_async_context(transport)
            read, write = streams[0], streams[1]
            session = await exit_stack.enter_async_context(ClientSession(read, write))
            self.sessions[server_id] = session
            self.exit_stacks[server_id] = exit_stack

            await self._initialize_and_list_tools(server_id)
        except Exception:
            self.sessions.pop(server_id, None)
            self.exit_stacks.pop(server_id, None)
            await self._close_stack(server_id, exit_stack)
            raise

    async def _close_stack(self, server_id: str, exit_stack: AsyncExitStack) -> None:
        try:
            await exit_stack.aclose()
        except Exception as e:
            log.error(f"Error closing connection to MCP server {server_id}: {e!r}")

    async def _initialize_and_list_tools(self, server_id: str) -> None:
        """Initialize the session and register a proxy for every server tool."""
        session = self.sessions.get(server_id)
        if session is None:
            raise InvalidState(f"Session not initialized for server {server_id}")

        await session.initialize()
        response = await session.list_tools()

        for tool in response.tools:
            self.register_tool(server_id, tool)

        log.info(
            f"Connected to server {server_id} with tools: {[tool.name for tool in response.tools]}"
        )

    def proxy_name(self, server_id: str, tool_name: str) -> str:
        """Local name of ``tool_name`` on ``server_id``."""
        return self._sanitize_tool_name(f"mcp_{server_id}_{tool_name}")

    def register_tool(self, server_id: str, tool: Tool) -> MCPClientTool:
        """Register a proxy for one server tool, replacing any previous one."""
        proxy = MCPClientTool(
            name=self.proxy_name(server_id, tool.name),
            description=tool.description or "",
            parameters=tool.inputSchema,
            session=self.sessions[server_id],
            server_id=server_id,
            original_name=tool.name,
        )
        self.remove_tool(proxy.name)
        self.add_tool(proxy)
        return proxy

    @staticmethod
    def _sanitize_tool_name(name: str) -> str:
        sanitized = re.sub(r"[^a-zA-Z0-9_-]", "_", name)
        sanitized = re.sub(r"_+", "_", sanitized)
        sanitized = sanitized.strip("_")
        return sanitized[:MAX_TOOL_NAME_LENGTH]

    async def list_tools(self) -> ListToolsResult:
        """List all available tools from all connected servers."""
        tools = []
        for session in self.sessions.values():
            response = await session.list_tools()
            tools.extend(response.tools)
        return ListToolsResult(tools=tools)

    async def disconnect(self, server_id: str = "") -> None:
        """Disconnect from one MCP server, or from all of them when no id is given."""
        if not server_id:
            for sid in sorted(self.sessions):
                await self.disconnect(sid)
            self.replace_tools([])
            log.info("Disconnected from all MCP servers")
            return

        if server_id not in self.sessions:
            return

        exit_stack = self.exit_stacks.pop(server_id, None)
        self.sessions.pop(server_id, None)
        if exit_stack is not None:
            await self._close_stack(server_id, exit_stack)

        self.replace_tools(
            tool
            for tool in self.tools
            if not (isinstance(tool, MCPClientTool) and tool.server_id == server_id)
        )
        log.info(f"Disconnected from MCP server {server_id}")
