"""
Settings for model gateways.

Values come from the process environment, optionally seeded from a ``.env``
file. A named configuration (for example ``vision``) reads ``VISION_*``
variables first and falls back to the unprefixed ``OPENAI_*`` ones.
"""

import os
from typing import Literal, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

load_dotenv()


DEFAULT_MODEL = "gpt-4o"
DEFAULT_BASE_URL = "https://api.openai.com/v1"


class LLMSettings(BaseModel):
    model: str = Field(DEFAULT_MODEL, description="Model identifier")
    base_url: str = Field(DEFAULT_BASE_URL, description="API base URL")
    api_key: str = Field("", description="API key")
    max_tokens: int = Field(4096, description="Maximum tokens per completion")
    max_input_tokens: Optional[int] = Field(
        None,
        description="Cumulative input-token budget across all requests (None = unlimited)",
    )
    temperature: float = Field(1.0, description="Sampling temperature")
    api_type: Literal["openai", "azure"] = Field("openai", description="Provider flavour")
    api_version: str = Field("", description="API version (Azure only)")


def _lookup(name: str, key: str) -> Optional[str]:
    if name != "default":
        value = os.getenv(f"{name.upper()}_{key}")
        if value is not None:
            return value
    return os.getenv(f"OPENAI_{key}")


def load_llm_settings(name: str = "default") -> LLMSettings:
    """Build :class:`LLMSettings` for the configuration called ``name``."""
    fields = {
        "model": _lookup(name, "MODEL"),
        "base_url": _lookup(name, "BASE_URL"),
        "api_key": _lookup(name, "API_KEY"),
        "max_tokens": _lookup(name, "MAX_TOKENS"),
        "max_input_tokens": _lookup(name, "MAX_INPUT_TOKENS"),
        "temperature": _lookup(name, "TEMPERATURE"),
        "api_type": _lookup(name, "API_TYPE"),
        "api_version": _lookup(name, "API_VERSION"),
    }
    return LLMSettings(**{k: v for k, v in fields.items() if v not in (None, "")})
