from manus.agent import AgentConfig, MCPAgent, ToolCallAgent
from manus.model import LLMRegistry
from manus.model.llm import ToolChoice


async def main():
    # Gateways are read from OPENAI_* (and <NAME>_*) environment variables / .env
    registry = LLMRegistry()

    print("Tool-calling agent basic example\n")

    # Example 1: Plain tool-calling agent; the only tool is `terminate`.
    print("Example 1: Answer a question, then terminate\n")

    agent = ToolCallAgent.create(
        config=AgentConfig(max_steps=5, tool_choice=ToolChoice.AUTO),
        registry=registry,
    )
    result = await agent.run("What is the capital of France? Answer, then terminate.")
    print(result)

    llm = registry.get()
    print(
        f"\nTokens used: input={llm.total_input_tokens}, "
        f"completion={llm.total_completion_tokens}"
    )

    # Example 2: Agent whose tools come from an MCP server over stdio.
    print("\nExample 2: Use tools from an MCP server\n")

    mcp_agent = MCPAgent.create(registry=registry)
    await mcp_agent.initialize(
        connection_type="stdio",
        command="npx",
        args=["-y", "@modelcontextprotocol/server-filesystem", "."],
    )
    # run() always disconnects from the server when it returns
    result = await mcp_agent.run("List the files in the current directory.")
    print(result)


if __name__ == "__main__":
    import asyncio

    asyncio.run(main())
