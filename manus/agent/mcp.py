"""
Agent for interacting with MCP (Model Context Protocol) servers.

The agent connects to an MCP server over HTTP or stdio and exposes the
server's tools through the regular tool-calling loop. The server's tool
catalog is re-read every few steps; the run ends when the server goes away.
"""

from typing import Any, Literal, Optional

from mcp.types import Tool

from manus.agent.prompts import (
    MCP_NEXT_STEP_PROMPT,
    MCP_SYSTEM_PROMPT,
    MULTIMEDIA_RESPONSE_PROMPT,
)
from manus.agent.toolcall import ToolCallAgent, finish_on_terminate
from manus.agent.types import AgentConfig, AgentState
from manus.model.llm import LLM
from manus.tools.mcp import MCPClients, MCPClientTool
from manus.tools.terminate import Terminate
from manus.tools.types import ToolResult
from manus.utils.errors import InvalidArgument
from manus.utils.logger import get_logger
from manus.utils.memory import Memory, Message

log = get_logger(__name__)

ConnectionType = Literal["stdio", "sse"]


class MCPAgent(ToolCallAgent):
    name: str = "mcp_agent"
    description: str = "An agent that connects to an MCP server and uses its tools."

    system_prompt: Optional[str] = MCP_SYSTEM_PROMPT
    next_step_prompt: Optional[str] = MCP_NEXT_STEP_PROMPT

    refresh_tools_interval: int = 5

    def __init__(
        self,
        llm: LLM,
        config: Optional[AgentConfig] = None,
        memory: Optional[Memory] = None,
        mcp_clients: Optional[MCPClients] = None,
        connection_type: ConnectionType = "stdio",
    ) -> None:
        self.mcp_clients = mcp_clients if mcp_clients is not None else MCPClients()
        super().__init__(
            llm,
            config=config,
            memory=memory,
            available_tools=self.mcp_clients,
            special_tool_names=[Terminate().name],
            should_finish=finish_on_terminate,
        )
        self.connection_type: ConnectionType = connection_type
        # Original tool name -> input schema, as last reported by the server(s)
        self.tool_schemas: dict[str, dict[str, Any]] = {}
        # Tools whose result carried an image during the current act()
        self._image_tools: list[str] = []

    @classmethod
    def default_config(cls) -> AgentConfig:
        return AgentConfig(max_steps=20)

    @property
    def _remote_tools(self) -> list[MCPClientTool]:
        return [tool for tool in self.mcp_clients if isinstance(tool, MCPClientTool)]

    async def initialize(
        self,
        connection_type: Optional[ConnectionType] = None,
        server_url: Optional[str] = None,
        command: Optional[str] = None,
        args: Optional[list[str]] = None,
    ) -> None:
        """Connect to the MCP server and announce its tools to the model.

        Raises:
            InvalidArgument: Missing URL/command for the chosen transport,
                or an unknown transport.
        """
        if connection_type:
            self.connection_type = connection_type

        if self.connection_type == "sse":
            if not server_url:
                raise InvalidArgument("Server URL is required for SSE connection")
            await self.mcp_clients.connect_sse(server_url=server_url)
        elif self.connection_type == "stdio":
            if not command:
                raise InvalidArgument("Command is required for stdio connection")
            await self.mcp_clients.connect_stdio(command=command, args=args or [])
        else:
            raise InvalidArgument(f"Unsupported connection type: {self.connection_type}")

        self.mcp_clients.add_tool(Terminate())
        await self._refresh_tools()

        tools_info = ", ".join(self.mcp_clients.tool_map.keys())
        self.memory.add_message(
            Message.system_message(f"{self.system_prompt}\n\nAvailable MCP tools: {tools_info}")
        )

    async def _refresh_tools(self) -> tuple[list[str], list[str]]:
        """Re-read the server tool catalogs and sync the local proxies.

        Returns:
            (added tool names, removed tool names)
        """
        if not self.mcp_clients.sessions:
            return [], []

        server_tools: dict[str, list[Tool]] = {}
        for server_id, session in list(self.mcp_clients.sessions.items()):
            response = await session.list_tools()
            server_tools[server_id] = response.tools

        current_tools = {
            tool.name: tool.inputSchema for tools in server_tools.values() for tool in tools
        }

        current_names = set(current_tools)
        previous_names = set(self.tool_schemas)

        added_tools = sorted(current_names - previous_names)
        removed_tools = sorted(previous_names - current_names)
        changed_tools = sorted(
            name
            for name in current_names & previous_names
            if current_tools[name] != self.tool_schemas[name]
        )

        self.tool_schemas = current_tools

        for server_id, tools in server_tools.items():
            for tool in tools:
                proxy_name = self.mcp_clients.proxy_name(server_id, tool.name)
                if proxy_name not in self.mcp_clients or tool.name in changed_tools:
                    self.mcp_clients.register_tool(server_id, tool)

        for proxy in self._remote_tools:
            offered = [tool.name for tool in server_tools.get(proxy.server_id, [])]
            if proxy.original_name not in offered:
                self.mcp_clients.remove_tool(proxy.name)

        if added_tools:
            log.info(f"Added MCP tools: {added_tools}")
            self.memory.add_message(
                Message.system_message(f"New tools available: {', '.join(added_tools)}")
            )
        if removed_tools:
            log.info(f"Removed MCP tools: {removed_tools}")
            self.memory.add_message(
                Message.system_message(f"Tools no longer available: {', '.join(removed_tools)}")
            )
        if changed_tools:
            log.info(f"Changed MCP tools: {changed_tools}")

        return added_tools, removed_tools

    async def think(self) -> bool:
        if not self.mcp_clients.sessions or not self._remote_tools:
            log.info("MCP service is no longer available, ending interaction")
            self.state = AgentState.FINISHED
            return False

        if self.current_step % self.refresh_tools_interval == 0:
            await self._refresh_tools()
            if not self._remote_tools:
                log.info("MCP service has shut down, ending interaction")
                self.state = AgentState.FINISHED
                return False

        return await super().think()

    async def act(self) -> str:
        self._image_tools = []
        result = await super().act()
        # Notes go after all tool messages of this step
        for tool_name in self._image_tools:
            self.memory.add_message(
                Message.system_message(MULTIMEDIA_RESPONSE_PROMPT.format(tool_name=tool_name))
            )
        self._image_tools = []
        return result

    async def _handle_special_tool(self, name: str, result: ToolResult, **kwargs: Any) -> None:
        await super()._handle_special_tool(name, result, **kwargs)

        if result.base64_image:
            self._image_tools.append(name)

    async def cleanup(self) -> None:
        await super().cleanup()
        if self.mcp_clients.sessions:
            await self.mcp_clients.disconnect()
            log.info("MCP connection closed")
