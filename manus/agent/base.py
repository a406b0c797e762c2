"""
Base agent: lifecycle state machine and run loop.

An agent moves IDLE -> RUNNING -> (FINISHED | ERROR) within one ``run`` and
is restored to its previous state when the run scope exits. Each loop
iteration executes one ``step`` (supplied by subclasses), checks for
repetitive output and records a line of the step trace.
"""

from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional, Union

from manus.agent.prompts import STUCK_PROMPT
from manus.agent.types import AgentConfig, AgentState
from manus.model.llm import LLM
from manus.model.registry import LLMRegistry
from manus.utils.errors import InvalidArgument, InvalidState
from manus.utils.logger import get_logger
from manus.utils.memory import Memory, Message, Role

log = get_logger(__name__)


class BaseAgent(ABC):
    """
    Abstract base class for agents.

    Subclasses implement :meth:`step`. Dependencies are injected: pass an
    ``LLM`` directly, or build the agent with :meth:`create` and an
    ``LLMRegistry``.
    """

    name: str = "base"
    description: Optional[str] = None
    system_prompt: Optional[str] = None
    next_step_prompt: Optional[str] = None

    def __init__(
        self,
        llm: LLM,
        config: Optional[AgentConfig] = None,
        memory: Optional[Memory] = None,
        system_prompt: Optional[str] = None,
        next_step_prompt: Optional[str] = None,
    ) -> None:
        self.config = config or self.default_config()
        self.name = self.config.name or type(self).name
        self.llm = llm
        self.memory = memory if memory is not None else Memory()

        if system_prompt is not None:
            self.system_prompt = system_prompt
        if next_step_prompt is not None:
            self.next_step_prompt = next_step_prompt

        self.state = AgentState.IDLE
        self.max_steps = self.config.max_steps
        self.current_step = 0
        self.duplicate_threshold = self.config.duplicate_threshold

        log.debug(f"Agent '{self.name}' initialized with max_steps={self.max_steps}")

    @classmethod
    def default_config(cls) -> AgentConfig:
        return AgentConfig()

    @classmethod
    def create(
        cls,
        config: Optional[AgentConfig] = None,
        registry: Optional[LLMRegistry] = None,
        **kwargs,
    ) -> "BaseAgent":
        """Build an agent whose gateway is resolved from ``registry`` by config name."""
        config = config or cls.default_config()
        registry = registry or LLMRegistry()
        return cls(llm=registry.get(config.llm_config_name), config=config, **kwargs)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def state_context(self, new_state: AgentState) -> AsyncIterator[None]:
        """
        Enter ``new_state`` for the duration of the block.

        A failure inside the block marks the agent ERROR before the exception
        propagates; on every exit the previous state is restored.
        """
        if not isinstance(new_state, AgentState):
            raise InvalidArgument(f"Invalid state: {new_state}")

        previous_state = self.state
        self.state = new_state
        try:
            yield
        except Exception:
            self.state = AgentState.ERROR
            raise
        finally:
            self.state = previous_state

    # ------------------------------------------------------------------
    # Memory
    # ------------------------------------------------------------------

    @property
    def messages(self) -> list[Message]:
        return self.memory.messages

    @messages.setter
    def messages(self, value: list[Message]) -> None:
        self.memory.messages = value

    def update_memory(
        self,
        role: Union[Role, str],
        content: str,
        base64_image: Optional[str] = None,
        name: Optional[str] = None,
        tool_call_id: Optional[str] = None,
    ) -> None:
        """Append a message built for ``role``.

        Raises:
            InvalidArgument: ``role`` is not one of the four chat roles.
        """
        try:
            role = Role(role)
        except ValueError:
            raise InvalidArgument(f"Unsupported message role: {role}") from None

        match role:
            case Role.USER:
                message = Message.user_message(content, base64_image=base64_image)
            case Role.SYSTEM:
                message = Message.system_message(content)
            case Role.ASSISTANT:
                message = Message.assistant_message(content, base64_image=base64_image)
            case Role.TOOL:
                message = Message.tool_message(
                    content,
                    name=name or "",
                    tool_call_id=tool_call_id or "",
                    base64_image=base64_image,
                )

        self.memory.add_message(message)

    # ------------------------------------------------------------------
    # Run loop
    # ------------------------------------------------------------------

    async def run(self, request: Optional[str] = None) -> str:
        """
        Execute the agent's main loop.

        Args:
            request: Optional user request added to memory before the loop.

        Returns:
            One ``Step i: ...`` line per executed step, newline-joined.

        Raises:
            InvalidState: The agent is not IDLE.
        """
        if self.state != AgentState.IDLE:
            raise InvalidState(f"Cannot run agent from state: {self.state.value}")

        if request:
            self.update_memory(Role.USER, request)

        results: list[str] = []
        async with self.state_context(AgentState.RUNNING):
            while self.current_step < self.max_steps and self.state != AgentState.FINISHED:
                self.current_step += 1
                log.info(f"Executing step {self.current_step}/{self.max_steps}")

                step_result = await self.step()

                if self.is_stuck():
                    self.handle_stuck_state()

                results.append(f"Step {self.current_step}: {step_result}")

            if self.state != AgentState.FINISHED and self.current_step >= self.max_steps:
                self.current_step = 0
                self.state = AgentState.IDLE
                if results:
                    results.append(f"Terminated: Reached max steps ({self.max_steps})")

        return "\n".join(results) if results else "No steps executed"

    @abstractmethod
    async def step(self) -> str:
        """Execute a single step in the agent's workflow."""

    # ------------------------------------------------------------------
    # Stuck detection
    # ------------------------------------------------------------------

    def is_stuck(self) -> bool:
        """True when the latest content already appeared in enough earlier assistant messages."""
        if len(self.memory.messages) < 2:
            return False

        last_message = self.memory.messages[-1]
        if not last_message.content:
            return False

        duplicate_count = sum(
            1
            for message in reversed(self.memory.messages[:-1])
            if message.role == Role.ASSISTANT and message.content == last_message.content
        )
        return duplicate_count >= self.duplicate_threshold

    def handle_stuck_state(self) -> None:
        self.next_step_prompt = f"{STUCK_PROMPT}\n{self.next_step_prompt or ''}"
        log.warning(f"Agent detected stuck state. Added prompt: {STUCK_PROMPT}")
