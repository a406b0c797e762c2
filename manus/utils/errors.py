"""
Exception taxonomy for the agent runtime.

Everything raised on purpose by the runtime derives from ``ManusError``.
``ToolError`` is the only exception a tool may raise for a failure that the
model should see as an observation; anything else escaping a tool is treated
as a defect and propagates.
"""

from __future__ import annotations


class ManusError(Exception):
    """Base class for runtime errors."""

    def __init__(self, message: str = "") -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


class InvalidState(ManusError):
    """An agent operation was requested from the wrong lifecycle state."""


class InvalidArgument(ManusError, ValueError):
    """A caller supplied a malformed role, tool choice, descriptor or image."""


class TokenLimitExceeded(ManusError):
    """The gateway's cumulative input-token budget would be exceeded."""


class UnsupportedCapability(ManusError):
    """The configured model cannot serve the requested kind of input."""


class EmptyResponse(ManusError):
    """The provider returned no usable content."""


class ToolCallRequired(ManusError):
    """Tool choice is ``required`` but the model produced no tool calls."""


class ToolError(ManusError):
    """Recoverable tool failure, surfaced to the model as an error result."""
