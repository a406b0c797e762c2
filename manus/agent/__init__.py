"""
Agent module - tool-calling agent runtime.

Core components:
- BaseAgent: Lifecycle state machine and run loop
- ReActAgent: think/act step split
- ToolCallAgent: Model-driven tool execution loop
- MCPAgent: ToolCallAgent fed by Model Context Protocol servers
- Types: AgentState, AgentConfig
- Prompts: Customization layer (swap for different agent types)

Usage:
    from manus.agent import ToolCallAgent, AgentConfig
    from manus.model import LLMRegistry

    agent = ToolCallAgent.create(AgentConfig(max_steps=5), registry=LLMRegistry())
    print(await agent.run("Your request"))
"""

from manus.agent.base import BaseAgent
from manus.agent.mcp import MCPAgent
from manus.agent.react import ReActAgent
from manus.agent.toolcall import (
    ToolCallAgent,
    FinishPolicy,
    finish_on_any_special_tool,
    finish_on_terminate,
)
from manus.agent.types import AgentConfig, AgentState

__all__ = [
    "BaseAgent",
    "ReActAgent",
    "ToolCallAgent",
    "MCPAgent",
    "AgentConfig",
    "AgentState",
    "FinishPolicy",
    "finish_on_any_special_tool",
    "finish_on_terminate",
]
