"""
Unit tests for manus/tools/mcp.py and manus/agent/mcp.py

Coverage:
- Tool name sanitizing
- MCPClientTool result conversion
- MCPClients transports, registration and disconnect
- MCPAgent initialization, tool refresh, image notes and shutdown
"""

from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock

import pytest
from mcp import ClientSession
from mcp.types import CallToolResult, ImageContent, ListToolsResult, TextContent, Tool

from manus.agent.mcp import MCPAgent
from manus.agent.prompts import MULTIMEDIA_RESPONSE_PROMPT
from manus.agent.types import AgentState
from manus.tests.fakes import ScriptedLLM, reply
from manus.tools.mcp import MCPClients, MCPClientTool
from manus.tools.types import ToolResult
from manus.utils.errors import InvalidArgument
from manus.utils.memory import Function, Message, Role, ToolCall

READ_FILE = Tool(
    name="read_file",
    description="Read a file.",
    inputSchema={"type": "object", "properties": {"path": {"type": "string"}}},
)
WRITE_FILE = Tool(
    name="write_file",
    description="Write a file.",
    inputSchema={"type": "object", "properties": {"path": {"type": "string"}}},
)


def make_session(*tools: Tool) -> MagicMock:
    session = MagicMock(spec=ClientSession)
    session.list_tools.return_value = ListToolsResult(tools=list(tools))
    session.call_tool.return_value = CallToolResult(
        content=[TextContent(type="text", text="ok")], isError=False
    )
    return session


async def connect(clients: MCPClients, session: MagicMock, server_id: str = "srv") -> None:
    clients.sessions[server_id] = session
    await clients._initialize_and_list_tools(server_id)


@asynccontextmanager
async def open_transport(*streams):
    yield streams


@asynccontextmanager
async def failing_transport():
    raise ConnectionError("405 Method Not Allowed")
    yield


@pytest.fixture
def client_session(monkeypatch):
    """Session handed out by every ClientSession the connect helpers open."""
    session = make_session(READ_FILE)

    @asynccontextmanager
    async def open_session(read, write):
        yield session

    monkeypatch.setattr("manus.tools.mcp.ClientSession", open_session)
    return session


# ======================================================================
# MCPClientTool
# ======================================================================


class TestMCPClientTool:
    """Remote tool proxy"""

    @pytest.mark.asyncio
    async def test_text_content_joined(self):
        session = make_session()
        session.call_tool.return_value = CallToolResult(
            content=[TextContent(type="text", text="a"), TextContent(type="text", text="b")],
            isError=False,
        )
        tool = MCPClientTool(
            name="mcp_srv_read_file", description="", session=session, original_name="read_file"
        )

        result = await tool.execute(path="/tmp/x")

        assert result.output == "a, b"
        session.call_tool.assert_awaited_once_with("read_file", {"path": "/tmp/x"})

    @pytest.mark.asyncio
    async def test_no_output(self):
        session = make_session()
        session.call_tool.return_value = CallToolResult(content=[], isError=False)
        tool = MCPClientTool(name="t", description="", session=session, original_name="t")

        assert (await tool.execute()).output == "No output returned."

    @pytest.mark.asyncio
    async def test_image_content(self):
        session = make_session()
        session.call_tool.return_value = CallToolResult(
            content=[
                TextContent(type="text", text="shot"),
                ImageContent(type="image", data="aW1n", mimeType="image/png"),
            ],
            isError=False,
        )
        tool = MCPClientTool(name="t", description="", session=session, original_name="t")

        result = await tool.execute()

        assert result.output == "shot"
        assert result.base64_image == "aW1n"

    @pytest.mark.asyncio
    async def test_server_reported_error(self):
        session = make_session()
        session.call_tool.return_value = CallToolResult(
            content=[TextContent(type="text", text="file not found")], isError=True
        )
        tool = MCPClientTool(name="t", description="", session=session, original_name="t")

        assert (await tool.execute()).error == "file not found"

    @pytest.mark.asyncio
    async def test_transport_failure(self):
        session = make_session()
        session.call_tool.side_effect = ConnectionError("pipe closed")
        tool = MCPClientTool(name="t", description="", session=session, original_name="t")

        assert (await tool.execute()).error == "Error executing tool: pipe closed"

    @pytest.mark.asyncio
    async def test_not_connected(self):
        tool = MCPClientTool(name="t", description="")
        assert (await tool.execute()).error == "Not connected to MCP server"


# ======================================================================
# MCPClients
# ======================================================================


class TestMCPClients:
    """Connections and tool registration"""

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("mcp_my server_read.file", "mcp_my_server_read_file"),
            ("__a!!b__", "a_b"),
            ("mcp_srv_" + "x" * 100, ("mcp_srv_" + "x" * 100)[:64]),
        ],
    )
    def test_sanitize_tool_name(self, raw, expected):
        assert MCPClients._sanitize_tool_name(raw) == expected

    @pytest.mark.asyncio
    async def test_registers_server_tools(self):
        clients = MCPClients()
        session = make_session(READ_FILE)

        await connect(clients, session)

        session.initialize.assert_awaited_once()
        tool = clients.get_tool("mcp_srv_read_file")
        assert isinstance(tool, MCPClientTool)
        assert tool.original_name == "read_file"
        assert tool.server_id == "srv"
        assert tool.parameters == READ_FILE.inputSchema

    @pytest.mark.asyncio
    async def test_list_tools_across_servers(self):
        clients = MCPClients()
        await connect(clients, make_session(READ_FILE), "one")
        await connect(clients, make_session(Tool(name="write_file", inputSchema={})), "two")

        response = await clients.list_tools()

        assert sorted(tool.name for tool in response.tools) == ["read_file", "write_file"]

    @pytest.mark.asyncio
    async def test_connect_requires_target(self):
        clients = MCPClients()
        with pytest.raises(InvalidArgument):
            await clients.connect_sse("")
        with pytest.raises(InvalidArgument):
            await clients.connect_stdio("")

    @pytest.mark.asyncio
    async def test_connect_http_prefers_streamable(self, monkeypatch, client_session):
        sse = MagicMock()
        monkeypatch.setattr(
            "manus.tools.mcp.streamablehttp_client",
            lambda url: open_transport("read", "write", lambda: None),
        )
        monkeypatch.setattr("manus.tools.mcp.sse_client", sse)
        clients = MCPClients()

        await clients.connect_sse("http://localhost:8000/mcp", server_id="srv")

        sse.assert_not_called()
        assert clients.sessions == {"srv": client_session}
        assert "mcp_srv_read_file" in clients

    @pytest.mark.asyncio
    async def test_connect_http_falls_back_to_sse(self, monkeypatch, client_session):
        monkeypatch.setattr(
            "manus.tools.mcp.streamablehttp_client", lambda url: failing_transport()
        )
        monkeypatch.setattr(
            "manus.tools.mcp.sse_client", lambda url: open_transport("read", "write")
        )
        clients = MCPClients()

        await clients.connect_sse("http://localhost:8000/sse", server_id="srv")

        assert clients.sessions == {"srv": client_session}
        assert list(clients.exit_stacks) == ["srv"]
        assert "mcp_srv_read_file" in clients

    @pytest.mark.asyncio
    async def test_failed_http_connect_leaves_nothing_behind(self, monkeypatch, client_session):
        monkeypatch.setattr(
            "manus.tools.mcp.streamablehttp_client", lambda url: failing_transport()
        )
        monkeypatch.setattr("manus.tools.mcp.sse_client", lambda url: failing_transport())
        clients = MCPClients()

        with pytest.raises(ConnectionError):
            await clients.connect_sse("http://localhost:8000/sse", server_id="srv")

        assert clients.sessions == {}
        assert clients.exit_stacks == {}
        assert len(clients) == 0

    @pytest.mark.asyncio
    async def test_failed_handshake_closes_transport(self, monkeypatch, client_session):
        closed = []

        @asynccontextmanager
        async def transport(params):
            try:
                yield "read", "write"
            finally:
                closed.append(params.command)

        monkeypatch.setattr("manus.tools.mcp.stdio_client", transport)
        client_session.initialize.side_effect = RuntimeError("handshake failed")
        clients = MCPClients()

        with pytest.raises(RuntimeError, match="handshake failed"):
            await clients.connect_stdio("server", server_id="srv")

        assert closed == ["server"]
        assert clients.sessions == {}
        assert clients.exit_stacks == {}

    @pytest.mark.asyncio
    async def test_disconnect_one_server(self):
        clients = MCPClients()
        await connect(clients, make_session(READ_FILE), "one")
        await connect(clients, make_session(Tool(name="write_file", inputSchema={})), "two")
        stack = MagicMock()
        stack.aclose = AsyncMock()
        clients.exit_stacks["one"] = stack

        await clients.disconnect("one")

        stack.aclose.assert_awaited_once()
        assert list(clients.sessions) == ["two"]
        assert [tool.name for tool in clients] == ["mcp_two_write_file"]

    @pytest.mark.asyncio
    async def test_disconnect_survives_close_errors(self):
        clients = MCPClients()
        await connect(clients, make_session(READ_FILE))
        stack = MagicMock()
        stack.aclose = AsyncMock(side_effect=RuntimeError("already closed"))
        clients.exit_stacks["srv"] = stack

        await clients.disconnect("srv")

        assert clients.sessions == {}
        assert len(clients) == 0

    @pytest.mark.asyncio
    async def test_disconnect_all(self):
        clients = MCPClients()
        await connect(clients, make_session(READ_FILE), "one")
        await connect(clients, make_session(READ_FILE), "two")

        await clients.disconnect()

        assert clients.sessions == {}
        assert len(clients) == 0


# ======================================================================
# MCPAgent
# ======================================================================


def make_agent(session=None) -> MCPAgent:
    clients = MCPClients()
    agent = MCPAgent(llm=ScriptedLLM(reply("thinking")), mcp_clients=clients)

    async def fake_connect(**kwargs):
        await connect(clients, session or make_session(READ_FILE))

    clients.connect_stdio = AsyncMock(side_effect=fake_connect)
    return agent


class TestMCPAgent:
    """Agent on top of MCP tools"""

    def test_defaults(self):
        agent = MCPAgent(llm=ScriptedLLM(reply("x")))
        assert agent.max_steps == 20
        assert agent.special_tool_names == ["terminate"]

    @pytest.mark.asyncio
    async def test_initialize_requires_command(self):
        agent = make_agent()
        with pytest.raises(InvalidArgument, match="Command is required"):
            await agent.initialize()

    @pytest.mark.asyncio
    async def test_initialize_sse_requires_url(self):
        agent = make_agent()
        with pytest.raises(InvalidArgument, match="Server URL is required"):
            await agent.initialize(connection_type="sse")

    @pytest.mark.asyncio
    async def test_initialize_announces_tools(self):
        agent = make_agent()

        await agent.initialize(command="server", args=["--stdio"])

        agent.mcp_clients.connect_stdio.assert_awaited_once_with(command="server", args=["--stdio"])
        assert "terminate" in agent.mcp_clients
        assert agent.tool_schemas == {"read_file": READ_FILE.inputSchema}

        system_messages = [m.content for m in agent.messages if m.role == Role.SYSTEM]
        assert system_messages[0] == "New tools available: read_file"
        assert system_messages[-1].endswith(
            "Available MCP tools: mcp_srv_read_file, terminate"
        )

    @pytest.mark.asyncio
    async def test_refresh_removes_vanished_tools(self):
        session = make_session(READ_FILE)
        agent = make_agent(session)
        await agent.initialize(command="server")

        session.list_tools.return_value = ListToolsResult(tools=[])
        added, removed = await agent._refresh_tools()

        assert (added, removed) == ([], ["read_file"])
        assert "mcp_srv_read_file" not in agent.mcp_clients
        assert agent.messages[-1].content == "Tools no longer available: read_file"

    @pytest.mark.asyncio
    async def test_refresh_registers_new_tools(self):
        session = make_session(READ_FILE)
        agent = make_agent(session)
        await agent.initialize(command="server")

        session.list_tools.return_value = ListToolsResult(tools=[READ_FILE, WRITE_FILE])
        added, removed = await agent._refresh_tools()

        assert (added, removed) == (["write_file"], [])
        assert agent.messages[-1].content == "New tools available: write_file"
        tool = agent.mcp_clients.get_tool("mcp_srv_write_file")
        assert tool.session is session
        assert tool.original_name == "write_file"

        call = ToolCall(
            id="call_1",
            function=Function(name="mcp_srv_write_file", arguments='{"path": "a.txt"}'),
        )
        observation = await agent.execute_tool(call)

        assert observation.startswith("Observed output of cmd `mcp_srv_write_file`")
        session.call_tool.assert_awaited_with("write_file", {"path": "a.txt"})

    @pytest.mark.asyncio
    async def test_refresh_updates_changed_schema(self):
        session = make_session(READ_FILE)
        agent = make_agent(session)
        await agent.initialize(command="server")
        schema = {"type": "object", "properties": {"uri": {"type": "string"}}}

        session.list_tools.return_value = ListToolsResult(
            tools=[Tool(name="read_file", inputSchema=schema)]
        )
        assert await agent._refresh_tools() == ([], [])

        assert agent.mcp_clients.get_tool("mcp_srv_read_file").parameters == schema

    @pytest.mark.asyncio
    async def test_think_finishes_without_server(self):
        agent = MCPAgent(llm=ScriptedLLM(reply("x")), mcp_clients=MCPClients())

        assert await agent.think() is False
        assert agent.state == AgentState.FINISHED
        assert agent.llm.calls == []

    @pytest.mark.asyncio
    async def test_think_finishes_when_tools_disappear(self):
        session = make_session(READ_FILE)
        agent = make_agent(session)
        await agent.initialize(command="server")
        session.list_tools.return_value = ListToolsResult(tools=[])

        assert await agent.think() is False
        assert agent.state == AgentState.FINISHED

    @pytest.mark.asyncio
    async def test_think_delegates_to_model(self):
        agent = make_agent()
        await agent.initialize(command="server")

        assert await agent.think() is True
        tool_names = [t["function"]["name"] for t in agent.llm.calls[0]["tools"]]
        assert tool_names == ["mcp_srv_read_file", "terminate"]

    @pytest.mark.asyncio
    async def test_image_note_follows_tool_messages(self):
        session = make_session(Tool(name="screenshot", inputSchema={}))
        session.call_tool.return_value = CallToolResult(
            content=[ImageContent(type="image", data="aW1n", mimeType="image/png")],
            isError=False,
        )
        agent = make_agent(session)
        await agent.initialize(command="server")
        calls = [
            ToolCall(id=f"call_{i}", function=Function(name="mcp_srv_screenshot", arguments="{}"))
            for i in (1, 2)
        ]
        agent.tool_calls = calls
        agent.memory.add_message(Message.from_tool_calls(calls))

        await agent.act()

        roles = [m.role for m in agent.messages[-5:]]
        assert roles == [Role.ASSISTANT, Role.TOOL, Role.TOOL, Role.SYSTEM, Role.SYSTEM]
        assert agent.messages[-1].content == MULTIMEDIA_RESPONSE_PROMPT.format(
            tool_name="mcp_srv_screenshot"
        )
        assert agent.messages[-3].base64_image == "aW1n"
        assert agent.state == AgentState.IDLE

    @pytest.mark.asyncio
    async def test_act_without_images_adds_no_note(self):
        agent = make_agent()
        await agent.initialize(command="server")
        call = ToolCall(id="call_1", function=Function(name="mcp_srv_read_file", arguments="{}"))
        agent.tool_calls = [call]
        agent.memory.add_message(Message.from_tool_calls([call]))

        await agent.act()

        assert agent.messages[-1].role == Role.TOOL

    @pytest.mark.asyncio
    async def test_cleanup_disconnects(self):
        agent = make_agent()
        await agent.initialize(command="server")

        await agent.cleanup()

        assert agent.mcp_clients.sessions == {}
        assert len(agent.mcp_clients) == 0
