"""
Utility modules for the agent runtime.

- logger: Structured logging with loguru
- memory: Messages and the bounded conversation log
- config: Gateway settings from the environment / .env
- errors: Exception taxonomy
"""

from manus.utils.logger import get_logger, set_log_level, LoggerManager, LogSettings
from manus.utils.memory import Memory, Message, Role, ToolCall, Function
from manus.utils.config import LLMSettings, load_llm_settings
from manus.utils.errors import (
    ManusError,
    InvalidState,
    InvalidArgument,
    TokenLimitExceeded,
    UnsupportedCapability,
    EmptyResponse,
    ToolCallRequired,
    ToolError,
)

__all__ = [
    # Logger
    "get_logger",
    "set_log_level",
    "LoggerManager",
    "LogSettings",
    # Memory
    "Memory",
    "Message",
    "Role",
    "ToolCall",
    "Function",
    # Config
    "LLMSettings",
    "load_llm_settings",
    # Errors
    "ManusError",
    "InvalidState",
    "InvalidArgument",
    "TokenLimitExceeded",
    "UnsupportedCapability",
    "EmptyResponse",
    "ToolCallRequired",
    "ToolError",
]
