"""
Conversation memory for agents.

This module provides:
- Role: The fixed set of chat roles
- Function / ToolCall: A model-proposed tool invocation (arguments kept as raw JSON text)
- Message: An immutable chat message
- Memory: A bounded, ordered message log with FIFO truncation
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Iterable, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from manus.utils.errors import InvalidArgument


class Role(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


ROLE_VALUES: tuple[str, ...] = tuple(role.value for role in Role)


class Function(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Name of the tool to invoke")
    arguments: str = Field(
        "", description="Raw JSON text of the arguments, not yet parsed"
    )


class ToolCall(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Provider-assigned call id")
    type: Literal["function"] = "function"
    function: Function


class Message(BaseModel):
    """A single chat message. Frozen once constructed."""

    model_config = ConfigDict(frozen=True, use_enum_values=False)

    role: Role
    content: Optional[str] = None
    tool_calls: Optional[list[ToolCall]] = None
    name: Optional[str] = None
    tool_call_id: Optional[str] = None
    base64_image: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        """Transport-neutral record with absent fields dropped."""
        record: dict[str, Any] = {"role": self.role.value}
        if self.content:
            record["content"] = self.content
        if self.tool_calls:
            record["tool_calls"] = [call.model_dump() for call in self.tool_calls]
        if self.name:
            record["name"] = self.name
        if self.tool_call_id:
            record["tool_call_id"] = self.tool_call_id
        if self.base64_image:
            record["base64_image"] = self.base64_image
        return record

    # ---- constructors, one per role -------------------------------------

    @classmethod
    def system_message(cls, content: str) -> "Message":
        return cls(role=Role.SYSTEM, content=content)

    @classmethod
    def user_message(
        cls, content: str, base64_image: Optional[str] = None
    ) -> "Message":
        return cls(role=Role.USER, content=content, base64_image=base64_image)

    @classmethod
    def assistant_message(
        cls, content: Optional[str] = None, base64_image: Optional[str] = None
    ) -> "Message":
        return cls(role=Role.ASSISTANT, content=content, base64_image=base64_image)

    @classmethod
    def tool_message(
        cls,
        content: str,
        name: str,
        tool_call_id: str,
        base64_image: Optional[str] = None,
    ) -> "Message":
        return cls(
            role=Role.TOOL,
            content=content,
            name=name,
            tool_call_id=tool_call_id,
            base64_image=base64_image,
        )

    @classmethod
    def from_tool_calls(
        cls,
        tool_calls: list[ToolCall],
        content: Optional[str] = "",
        base64_image: Optional[str] = None,
    ) -> "Message":
        """Assistant message that carries the model's proposed tool calls."""
        return cls(
            role=Role.ASSISTANT,
            content=content,
            tool_calls=list(tool_calls),
            base64_image=base64_image,
        )


class Memory:
    """Ordered message log that never holds more than ``max_messages``."""

    def __init__(self, max_messages: int = 100) -> None:
        if max_messages < 1:
            raise InvalidArgument(f"max_messages must be at least 1, got {max_messages}")
        self.max_messages = max_messages
        self.messages: list[Message] = []

    def __len__(self) -> int:
        return len(self.messages)

    def _truncate(self) -> None:
        if len(self.messages) > self.max_messages:
            self.messages = self.messages[-self.max_messages :]

    def add_message(self, message: Message) -> None:
        self.messages.append(message)
        self._truncate()

    def add_messages(self, messages: Iterable[Message]) -> None:
        self.messages.extend(messages)
        self._truncate()

    def clear(self) -> None:
        self.messages = []

    def get_recent_messages(self, n: int) -> list[Message]:
        if n <= 0:
            return []
        return self.messages[-n:]

    def to_dict_list(self) -> list[dict[str, Any]]:
        return [message.to_dict() for message in self.messages]
