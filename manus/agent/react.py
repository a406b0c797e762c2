from abc import abstractmethod

from manus.agent.base import BaseAgent


class ReActAgent(BaseAgent):
    """Splits a step into ``think`` (decide) and ``act`` (execute)."""

    @abstractmethod
    async def think(self) -> bool:
        """Process current state and decide next action."""

    @abstractmethod
    async def act(self) -> str:
        """Execute decided actions."""

    async def step(self) -> str:
        should_act = await self.think()
        if not should_act:
            return "Thinking complete - no action needed"
        return await self.act()
