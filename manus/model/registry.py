"""
Named gateway registry.

The embedding application owns an ``LLMRegistry`` and passes it to agents.
Each configuration name resolves to a single ``LLM`` instance (and so a
single set of token counters) for the registry's lifetime.
"""

from typing import Callable, Optional

from manus.model.llm import LLM
from manus.utils.config import LLMSettings, load_llm_settings
from manus.utils.logger import get_logger

log = get_logger(__name__)


class LLMRegistry:
    def __init__(
        self,
        settings: Optional[dict[str, LLMSettings]] = None,
        factory: Optional[Callable[[LLMSettings], LLM]] = None,
    ) -> None:
        self._settings: dict[str, LLMSettings] = dict(settings or {})
        self._factory: Callable[[LLMSettings], LLM] = factory or LLM
        self._instances: dict[str, LLM] = {}

    def register(self, name: str, llm: LLM) -> None:
        """Pin ``name`` to an existing gateway (e.g. a test stub)."""
        self._instances[name] = llm

    def get(self, name: str = "default") -> LLM:
        if name not in self._instances:
            settings = self._settings.get(name) or load_llm_settings(name)
            log.debug(f"Creating LLM gateway '{name}' for model={settings.model}")
            self._instances[name] = self._factory(settings)
        return self._instances[name]

    def __contains__(self, name: str) -> bool:
        return name in self._instances
