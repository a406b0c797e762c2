"""
Base class for tools the model can call.

A tool has a unique ``name``, a ``description`` and a JSON-schema
``parameters`` object. ``execute`` receives the parsed call arguments as
keyword arguments and returns a :class:`ToolResult`. Recoverable failures are
reported by raising :class:`~manus.utils.errors.ToolError`.
"""

import json
from abc import ABC, abstractmethod
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from manus.tools.types import ToolResult
from manus.utils.logger import get_logger

log = get_logger(__name__)


class BaseTool(ABC, BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    name: str = Field(..., description="Unique tool name")
    description: str = Field(..., description="What the tool does, shown to the model")
    parameters: Optional[dict[str, Any]] = Field(
        None, description="JSON schema for the tool arguments"
    )

    async def __call__(self, **kwargs: Any) -> ToolResult:
        return await self.execute(**kwargs)

    @abstractmethod
    async def execute(self, **kwargs: Any) -> ToolResult:
        """Run the tool with the given arguments."""

    def to_param(self) -> dict[str, Any]:
        """Descriptor in OpenAI function-calling format."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }

    def success_response(self, data: Union[str, dict[str, Any]]) -> ToolResult:
        text = data if isinstance(data, str) else json.dumps(data, indent=2)
        log.debug(f"Created success response for {self.__class__.__name__}")
        return ToolResult(output=text)

    def fail_response(self, msg: str) -> ToolResult:
        log.debug(f"Tool {self.__class__.__name__} returned failed result: {msg}")
        return ToolResult(error=msg)
