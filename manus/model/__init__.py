from manus.model.llm import (
    LLM,
    ChatResponse,
    ToolChoice,
    TOOL_CHOICE_VALUES,
    REASONING_MODELS,
    MULTIMODAL_MODELS,
)
from manus.model.registry import LLMRegistry
from manus.model.token_counter import TokenCounter, get_tokenizer

__all__ = [
    "LLM",
    "ChatResponse",
    "ToolChoice",
    "TOOL_CHOICE_VALUES",
    "REASONING_MODELS",
    "MULTIMODAL_MODELS",
    "LLMRegistry",
    "TokenCounter",
    "get_tokenizer",
]
