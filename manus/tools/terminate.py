from typing import Any, Literal

from manus.tools.base import BaseTool
from manus.tools.description import TERMINATE_DESCRIPTION
from manus.tools.types import ToolResult


class Terminate(BaseTool):
    name: str = "terminate"
    description: str = TERMINATE_DESCRIPTION
    parameters: dict[str, Any] = {
        "type": "object",
        "properties": {
            "status": {
                "type": "string",
                "description": "The finish status of the interaction.",
                "enum": ["success", "failure"],
            },
        },
        "required": ["status"],
    }

    async def execute(
        self, status: Literal["success", "failure"] = "success", **kwargs: Any
    ) -> ToolResult:
        """Finish the current execution."""
        return ToolResult(
            output=f"The interaction has been completed with status: {status}"
        )
