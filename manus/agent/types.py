"""
Type definitions for the Agent system.

Includes:
- AgentState: Lifecycle states of an agent run
- AgentConfig: Agent configuration
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from manus.model.llm import ToolChoice


# ============================================================================
# Agent Lifecycle
# ============================================================================


class AgentState(str, Enum):
    IDLE = "IDLE"
    RUNNING = "RUNNING"
    FINISHED = "FINISHED"
    ERROR = "ERROR"


# ============================================================================
# Agent Configuration
# ============================================================================


class AgentConfig(BaseModel):
    """Configuration options for an agent."""

    name: Optional[str] = None
    max_steps: int = Field(10, ge=0)
    duplicate_threshold: int = Field(2, ge=1)
    max_observe: Optional[int] = None  # Truncate tool observations to this many chars
    tool_choice: ToolChoice = ToolChoice.AUTO
    llm_config_name: str = "default"
