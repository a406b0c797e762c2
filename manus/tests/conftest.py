from typing import Any

import pytest
from langchain_core.language_models.fake_chat_models import GenericFakeChatModel

from manus.model.llm import LLM
from manus.tests.fakes import FakeEncoding
from manus.utils.config import LLMSettings


@pytest.fixture
def fake_encoding() -> FakeEncoding:
    return FakeEncoding()


@pytest.fixture
def make_llm(monkeypatch):
    """Factory for real gateways backed by LangChain's ``GenericFakeChatModel``."""
    monkeypatch.setattr("manus.model.llm.get_tokenizer", lambda model: FakeEncoding())

    def _make(responses=("ok",), retry_attempts: int = 2, **settings: Any) -> LLM:
        settings.setdefault("api_key", "test-key")
        client = GenericFakeChatModel(messages=iter(list(responses)))
        return LLM(
            settings=LLMSettings(**settings),
            client=client,
            retry_attempts=retry_attempts,
            retry_wait=0,
        )

    return _make
