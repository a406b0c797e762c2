"""
Tool-calling agent.

Each step asks the model for its next move (``think``) and then runs the
proposed tool calls in order (``act``), recording every observation as a
tool message so the model sees it on the next step.
"""

import inspect
import json
from typing import Any, Callable, Iterable, Optional

from manus.agent.prompts import TOOLCALL_NEXT_STEP_PROMPT, TOOLCALL_SYSTEM_PROMPT
from manus.agent.react import ReActAgent
from manus.agent.types import AgentConfig, AgentState
from manus.model.llm import LLM, ToolChoice
from manus.tools.registry import ToolCollection
from manus.tools.terminate import Terminate
from manus.tools.types import ToolResult
from manus.utils.errors import EmptyResponse, TokenLimitExceeded, ToolCallRequired
from manus.utils.logger import get_logger
from manus.utils.memory import Function, Memory, Message, ToolCall

log = get_logger(__name__)

TOOL_CALL_REQUIRED = "Tool calls required but none provided"

# Decides whether a special tool's result ends the run.
FinishPolicy = Callable[[str, ToolResult], bool]


def finish_on_any_special_tool(name: str, result: ToolResult) -> bool:
    return True


def finish_on_terminate(name: str, result: ToolResult) -> bool:
    return name.lower() == "terminate"


def _caused_by_token_limit(error: BaseException) -> bool:
    seen: set[int] = set()
    current: Optional[BaseException] = error
    while current is not None and id(current) not in seen:
        if isinstance(current, TokenLimitExceeded):
            return True
        seen.add(id(current))
        current = current.__cause__ or current.__context__
    return False


class ToolCallAgent(ReActAgent):
    """Base agent class for handling tool/function calls with enhanced abstraction"""

    name: str = "toolcall"
    description: str = "an agent that can execute tool calls."

    system_prompt: Optional[str] = TOOLCALL_SYSTEM_PROMPT
    next_step_prompt: Optional[str] = TOOLCALL_NEXT_STEP_PROMPT

    def __init__(
        self,
        llm: LLM,
        config: Optional[AgentConfig] = None,
        memory: Optional[Memory] = None,
        available_tools: Optional[ToolCollection] = None,
        special_tool_names: Optional[Iterable[str]] = None,
        should_finish: Optional[FinishPolicy] = None,
        system_prompt: Optional[str] = None,
        next_step_prompt: Optional[str] = None,
    ) -> None:
        super().__init__(
            llm,
            config=config,
            memory=memory,
            system_prompt=system_prompt,
            next_step_prompt=next_step_prompt,
        )
        self.available_tools = (
            available_tools if available_tools is not None else ToolCollection(Terminate())
        )
        self.special_tool_names: list[str] = (
            list(special_tool_names) if special_tool_names is not None else [Terminate().name]
        )
        self.should_finish: FinishPolicy = should_finish or finish_on_any_special_tool
        self.tool_choices = ToolChoice(self.config.tool_choice)
        self.max_observe = self.config.max_observe

        self.tool_calls: list[ToolCall] = []
        self._current_base64_image: Optional[str] = None

    # ------------------------------------------------------------------
    # think
    # ------------------------------------------------------------------

    async def think(self) -> bool:
        """Process current state and decide next actions using tools.

        Never raises: a token-limit breach finishes the agent, any other
        failure is recorded in memory and ends the step.
        """
        try:
            return await self._think()
        except Exception as e:
            if _caused_by_token_limit(e):
                log.error(f"Token limit error: {e}")
                self.memory.add_message(
                    Message.assistant_message(
                        f"Maximum token limit reached, cannot continue execution: {e}"
                    )
                )
                self.state = AgentState.FINISHED
                return False

            log.error(f"{self.name}'s thinking process hit a snag: {e!r}")
            self.memory.add_message(
                Message.assistant_message(f"Error encountered while processing: {e}")
            )
            return False

    async def _think(self) -> bool:
        self.tool_calls = []

        if self.next_step_prompt:
            self.memory.add_message(Message.user_message(self.next_step_prompt))

        response = await self.llm.ask_tool(
            messages=self.messages,
            system_msgs=(
                [Message.system_message(self.system_prompt)] if self.system_prompt else None
            ),
            tools=self.available_tools.to_params(),
            tool_choice=self.tool_choices,
        )
        if response is None:
            raise EmptyResponse("No response received from the LLM")

        tool_calls = [
            ToolCall(
                id=call.get("id") or "",
                function=Function(
                    name=(call.get("function") or {}).get("name") or "",
                    arguments=(call.get("function") or {}).get("arguments") or "",
                ),
            )
            for call in response.tool_calls
            if call.get("type", "function") == "function"
        ]
        content = response.content or ""

        log.info(f"{self.name}'s thoughts: {content}")
        log.info(f"{self.name} selected {len(tool_calls)} tools to use")
        if tool_calls:
            log.info(f"Tools being prepared: {[call.function.name for call in tool_calls]}")
            log.debug(f"Tool arguments: {[call.function.arguments for call in tool_calls]}")

        if self.tool_choices == ToolChoice.NONE:
            if tool_calls:
                log.warning(f"{self.name} tried to use tools when they weren't available!")
            if content:
                self.memory.add_message(Message.assistant_message(content))
                return True
            return False

        self.tool_calls = tool_calls
        self.memory.add_message(
            Message.from_tool_calls(content=content, tool_calls=tool_calls)
            if tool_calls
            else Message.assistant_message(content)
        )

        if self.tool_choices == ToolChoice.REQUIRED and not tool_calls:
            return True  # act() rejects this

        if self.tool_choices == ToolChoice.AUTO and not tool_calls:
            return bool(content)

        return bool(tool_calls)

    # ------------------------------------------------------------------
    # act
    # ------------------------------------------------------------------

    async def act(self) -> str:
        """Execute pending tool calls in order and record their observations.

        Raises:
            ToolCallRequired: Tool choice is ``required`` and there are no calls.
        """
        if not self.tool_calls:
            if self.tool_choices == ToolChoice.REQUIRED:
                raise ToolCallRequired(TOOL_CALL_REQUIRED)

            last_content = self.messages[-1].content if self.messages else None
            return last_content or "No content or commands to execute"

        results: list[str] = []
        for command in self.tool_calls:
            self._current_base64_image = None

            result = await self.execute_tool(command)
            if self.max_observe:
                result = result[: self.max_observe]

            log.info(f"Tool '{command.function.name}' completed. Result: {result}")

            self.memory.add_message(
                Message.tool_message(
                    content=result,
                    tool_call_id=command.id,
                    name=command.function.name,
                    base64_image=self._current_base64_image,
                )
            )
            results.append(result)

        return "\n\n".join(results)

    async def execute_tool(self, command: ToolCall) -> str:
        """Execute a single tool call and describe the outcome. Never raises."""
        if command is None or not command.function or not command.function.name:
            return "Error: Invalid command format"

        name = command.function.name
        if name not in self.available_tools.tool_map:
            return f"Error: Unknown tool '{name}'"

        try:
            args = json.loads(command.function.arguments or "{}")
        except json.JSONDecodeError:
            args = None
        if not isinstance(args, dict):
            error_msg = f"Error parsing arguments for {name}: Invalid JSON format"
            log.error(f"{error_msg}. Arguments: {command.function.arguments}")
            return f"Error: {error_msg}"

        try:
            log.info(f"Activating tool: '{name}'...")
            result = await self.available_tools.execute(name=name, tool_input=args)

            await self._handle_special_tool(name=name, result=result)

            if result.base64_image:
                self._current_base64_image = result.base64_image

            if result:
                return f"Observed output of cmd `{name}` executed:\n{result}"
            return f"Cmd `{name}` completed with no output"
        except Exception as e:
            error_msg = f"Tool '{name}' encountered a problem: {e}"
            log.exception(error_msg)
            return f"Error: {error_msg}"

    # ------------------------------------------------------------------
    # special tools
    # ------------------------------------------------------------------

    async def _handle_special_tool(self, name: str, result: ToolResult, **kwargs: Any) -> None:
        """Finish the run when a special tool fires and the finish policy agrees."""
        if not self._is_special_tool(name):
            return

        if self._should_finish_execution(name=name, result=result, **kwargs):
            log.info(f"Special tool '{name}' has completed the task!")
            self.state = AgentState.FINISHED

    def _should_finish_execution(self, name: str, result: ToolResult, **kwargs: Any) -> bool:
        return self.should_finish(name, result)

    def _is_special_tool(self, name: str) -> bool:
        return name.lower() in [n.lower() for n in self.special_tool_names]

    # ------------------------------------------------------------------
    # lifecycle
    # ------------------------------------------------------------------

    async def cleanup(self) -> None:
        """Run each tool's ``cleanup`` hook, if it has one. Failures are logged only."""
        log.info(f"Starting cleanup for agent '{self.name}'...")
        for tool in list(self.available_tools):
            hook = getattr(tool, "cleanup", None)
            if not callable(hook):
                continue
            try:
                outcome = hook()
                if inspect.isawaitable(outcome):
                    await outcome
            except Exception as e:
                log.error(f"Error cleaning up tool '{tool.name}': {e!r}")
        log.info(f"Cleanup complete for agent '{self.name}'.")

    async def run(self, request: Optional[str] = None) -> str:
        """Run the agent, always cleaning up afterwards."""
        try:
            return await super().run(request)
        finally:
            await self.cleanup()
