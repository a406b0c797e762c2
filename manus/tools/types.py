"""
Result types for tool execution.

This module provides:
- ToolResult: Output of one tool invocation (text, error, image, system note)
- CLIResult / ToolFailure: Tagged variants for command output and failures
"""

from typing import Any, Optional

from pydantic import BaseModel, Field

from manus.utils.errors import InvalidArgument


class ToolResult(BaseModel):
    output: Optional[str] = Field(None, description="Textual result of the tool.")
    error: Optional[str] = Field(None, description="Error message, if the tool failed.")
    base64_image: Optional[str] = Field(
        None, description="Base64-encoded image produced by the tool."
    )
    system: Optional[str] = Field(
        None, description="Out-of-band note for the agent, not the model."
    )

    def __bool__(self) -> bool:
        return any((self.output, self.error, self.base64_image, self.system))

    def __add__(self, other: "ToolResult") -> "ToolResult":
        def combine(
            field: Optional[str], other_field: Optional[str], concatenate: bool = True
        ) -> Optional[str]:
            if field and other_field:
                if concatenate:
                    return field + other_field
                raise InvalidArgument("Cannot combine tool results")
            return field or other_field

        return ToolResult(
            output=combine(self.output, other.output),
            error=combine(self.error, other.error),
            base64_image=combine(self.base64_image, other.base64_image, False),
            system=combine(self.system, other.system),
        )

    def __str__(self) -> str:
        return f"Error: {self.error}" if self.error else (self.output or "")

    def replace(self, **fields: Any) -> "ToolResult":
        """Return a copy of this result with ``fields`` replaced."""
        return self.model_copy(update=fields)


class CLIResult(ToolResult):
    """A result that can be rendered as command-line output."""


class ToolFailure(ToolResult):
    """A result that represents a failure."""
