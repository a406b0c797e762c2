"""
Model gateway.

``LLM`` turns a list of messages into exactly one model response. It:
- validates and normalizes messages (roles, image attachments)
- enforces a cumulative input-token budget
- picks the right token parameter family for reasoning models
- retries transient provider failures (never a token-limit breach)

Three calling modes are supported: ``ask`` (plain text), ``ask_with_image``
(multimodal) and ``ask_tool`` (function calling).
"""

import json
from enum import Enum
from typing import Any, Iterable, Mapping, Optional, Sequence, Union

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import (
    AIMessage,
    BaseMessage,
    HumanMessage,
    SystemMessage,
    ToolMessage,
)
from langchain_openai import AzureChatOpenAI, ChatOpenAI
from pydantic import BaseModel, Field
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from manus.model.token_counter import TokenCounter, get_tokenizer
from manus.utils.config import LLMSettings, load_llm_settings
from manus.utils.errors import (
    EmptyResponse,
    InvalidArgument,
    TokenLimitExceeded,
    UnsupportedCapability,
)
from manus.utils.logger import get_logger
from manus.utils.memory import ROLE_VALUES, Message, Role

log = get_logger(__name__)


REASONING_MODELS = ["o1", "o3-mini"]
MULTIMODAL_MODELS = [
    "gpt-4-vision-preview",
    "gpt-4o",
    "gpt-4o-mini",
    "claude-3-opus-20240229",
    "claude-3-sonnet-20240229",
    "claude-3-haiku-20240307",
]

DEFAULT_RETRY_ATTEMPTS = 6
DEFAULT_RETRY_WAIT = 30.0

# Failures that retrying cannot fix.
NON_RETRYABLE_ERRORS = (TokenLimitExceeded, InvalidArgument, UnsupportedCapability)


class ToolChoice(str, Enum):
    NONE = "none"
    AUTO = "auto"
    REQUIRED = "required"


TOOL_CHOICE_VALUES: tuple[str, ...] = tuple(choice.value for choice in ToolChoice)

MessageLike = Union[Message, Mapping[str, Any]]
ImageLike = Union[str, Mapping[str, Any]]


class ChatResponse(BaseModel):
    """A provider reply, reduced to what the agent loop consumes."""

    content: Optional[str] = Field(None, description="Assistant text, if any")
    tool_calls: list[dict[str, Any]] = Field(
        default_factory=list,
        description="Tool calls in OpenAI wire form: {id, type, function: {name, arguments}}",
    )
    usage: dict[str, int] = Field(default_factory=dict)


# ======================================================================
## Provider client
# ======================================================================


def _get_chat_llm(settings: LLMSettings) -> BaseChatModel:
    """Initialize the LangChain chat model described by ``settings``."""
    if not settings.api_key:
        raise ValueError("OPENAI_API_KEY environment variable is not set.")

    if settings.api_type == "azure":
        return AzureChatOpenAI(
            azure_deployment=settings.model,
            azure_endpoint=settings.base_url,
            api_key=settings.api_key,
            api_version=settings.api_version,
            timeout=60,
        )

    return ChatOpenAI(
        model=settings.model,
        api_key=settings.api_key,
        base_url=settings.base_url,
        timeout=60,
    )


def _text_content(message: BaseMessage) -> str:
    """Extract text from a (possibly multi-block) LangChain message."""
    content = message.content
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        return "".join(
            block.get("text", "") if isinstance(block, dict) else str(block)
            for block in content
        )
    return ""


def _parse_arguments(arguments: str) -> Optional[dict[str, Any]]:
    try:
        parsed = json.loads(arguments or "{}")
    except json.JSONDecodeError:
        return None
    return parsed if isinstance(parsed, dict) else None


def _to_langchain_messages(records: Sequence[Mapping[str, Any]]) -> list[BaseMessage]:
    """Convert formatted records into LangChain message objects."""
    converted: list[BaseMessage] = []
    for record in records:
        role = record["role"]
        content = record.get("content") or ""

        if role == Role.SYSTEM.value:
            converted.append(SystemMessage(content=content))
        elif role == Role.USER.value:
            converted.append(HumanMessage(content=content))
        elif role == Role.ASSISTANT.value:
            tool_calls, invalid_tool_calls = [], []
            for call in record.get("tool_calls") or []:
                function = call.get("function") or {}
                args = _parse_arguments(function.get("arguments", ""))
                if args is None:
                    invalid_tool_calls.append(
                        {
                            "name": function.get("name"),
                            "args": function.get("arguments"),
                            "id": call.get("id"),
                            "error": "invalid JSON arguments",
                        }
                    )
                else:
                    tool_calls.append(
                        {"name": function.get("name", ""), "args": args, "id": call.get("id")}
                    )
            converted.append(
                AIMessage(
                    content=content,
                    tool_calls=tool_calls,
                    invalid_tool_calls=invalid_tool_calls,
                )
            )
        else:
            converted.append(
                ToolMessage(
                    content=content,
                    tool_call_id=record.get("tool_call_id") or "",
                    name=record.get("name"),
                )
            )
    return converted


def _to_chat_response(message: AIMessage) -> ChatResponse:
    """Normalize an AIMessage, keeping raw argument text whenever available."""
    raw_calls = message.additional_kwargs.get("tool_calls") or []
    if raw_calls:
        tool_calls = [
            {
                "id": call.get("id") or "",
                "type": call.get("type", "function"),
                "function": {
                    "name": (call.get("function") or {}).get("name") or "",
                    "arguments": (call.get("function") or {}).get("arguments") or "",
                },
            }
            for call in raw_calls
        ]
    else:
        tool_calls = [
            {
                "id": call.get("id") or "",
                "type": "function",
                "function": {"name": call["name"], "arguments": json.dumps(call["args"])},
            }
            for call in message.tool_calls
        ]
        tool_calls.extend(
            {
                "id": call.get("id") or "",
                "type": "function",
                "function": {
                    "name": call.get("name") or "",
                    "arguments": call.get("args") or "",
                },
            }
            for call in message.invalid_tool_calls
        )

    usage = message.usage_metadata or {}
    return ChatResponse(
        content=_text_content(message) or None,
        tool_calls=tool_calls,
        usage={
            "input_tokens": usage.get("input_tokens", 0),
            "output_tokens": usage.get("output_tokens", 0),
        },
    )


# ======================================================================
## Gateway
# ======================================================================


class LLM:
    """
    Chat-completion gateway with token budgeting and retries.

    One instance owns one set of running token counters; share it across
    concurrently running agents only if the caller serializes access.
    """

    def __init__(
        self,
        settings: Optional[LLMSettings] = None,
        client: Optional[BaseChatModel] = None,
        retry_attempts: int = DEFAULT_RETRY_ATTEMPTS,
        retry_wait: float = DEFAULT_RETRY_WAIT,
    ) -> None:
        self.settings = settings or load_llm_settings()
        self.model = self.settings.model
        self.max_tokens = self.settings.max_tokens
        self.temperature = self.settings.temperature
        self.max_input_tokens = self.settings.max_input_tokens

        self.total_input_tokens = 0
        self.total_completion_tokens = 0

        self.tokenizer = get_tokenizer(self.model)
        self.token_counter = TokenCounter(self.tokenizer)

        self.retry_attempts = retry_attempts
        self.retry_wait = retry_wait
        self.client = client if client is not None else _get_chat_llm(self.settings)

    # ---- token accounting -------------------------------------------

    @property
    def supports_images(self) -> bool:
        return self.model in MULTIMODAL_MODELS

    def count_tokens(self, text: str) -> int:
        return self.token_counter.count_text(text)

    def count_message_tokens(self, messages: Iterable[MessageLike]) -> int:
        return self.token_counter.count_message_tokens(messages)

    def update_token_count(self, input_tokens: int, completion_tokens: int = 0) -> None:
        self.total_input_tokens += input_tokens
        self.total_completion_tokens += completion_tokens
        log.info(
            f"Token usage: input={input_tokens}, completion={completion_tokens}, "
            f"cumulative input={self.total_input_tokens}, "
            f"cumulative completion={self.total_completion_tokens}, "
            f"total={self.total_input_tokens + self.total_completion_tokens}"
        )

    def check_token_limit(self, input_tokens: int) -> bool:
        if self.max_input_tokens is None:
            return True
        return self.total_input_tokens + input_tokens <= self.max_input_tokens

    def get_limit_error_message(self, input_tokens: int) -> str:
        return (
            f"Request may exceed input token limit (Current: {self.total_input_tokens}, "
            f"Needed: {input_tokens}, Max: {self.max_input_tokens})"
        )

    def _enforce_token_limit(self, input_tokens: int) -> None:
        if not self.check_token_limit(input_tokens):
            message = self.get_limit_error_message(input_tokens)
            log.warning(message)
            raise TokenLimitExceeded(message)

    # ---- formatting ---------------------------------------------------

    @staticmethod
    def format_messages(
        messages: Iterable[MessageLike], supports_images: bool = False
    ) -> list[dict[str, Any]]:
        """
        Validate messages and convert them into provider records.

        Attachments become an ``image_url`` content part when the model is
        multimodal and are dropped otherwise. Records left with neither
        content nor tool calls are skipped.

        Raises:
            InvalidArgument: A message is of an unknown type or carries an
                unknown or missing role.
        """
        formatted: list[dict[str, Any]] = []

        for message in messages:
            if isinstance(message, Message):
                record = message.to_dict()
            elif isinstance(message, Mapping):
                record = dict(message)
            else:
                raise InvalidArgument(
                    f"Message must be a Message or a mapping, got {type(message).__name__}"
                )

            role = record.get("role")
            if isinstance(role, Role):
                role = record["role"] = role.value
            if not role:
                raise InvalidArgument("Message dict must contain 'role' field")
            if role not in ROLE_VALUES:
                raise InvalidArgument(f"Invalid role: {role}")

            base64_image = record.pop("base64_image", None)
            if supports_images and base64_image:
                content = record.get("content")
                if not content:
                    parts: list[Any] = []
                elif isinstance(content, str):
                    parts = [{"type": "text", "text": content}]
                else:
                    parts = [
                        {"type": "text", "text": part} if isinstance(part, str) else part
                        for part in content
                    ]
                parts.append(
                    {
                        "type": "image_url",
                        "image_url": {"url": f"data:image/jpeg;base64,{base64_image}"},
                    }
                )
                record["content"] = parts

            if "content" in record or "tool_calls" in record:
                formatted.append(record)

        return formatted

    def _prepare(
        self,
        messages: Iterable[MessageLike],
        system_msgs: Optional[Iterable[MessageLike]],
        supports_images: bool,
    ) -> list[dict[str, Any]]:
        records = self.format_messages(messages, supports_images)
        if system_msgs:
            records = self.format_messages(system_msgs, supports_images) + records
        return records

    def _completion_params(self, temperature: Optional[float]) -> dict[str, Any]:
        """Reasoning models take a completion budget instead of max_tokens + temperature."""
        if self.model in REASONING_MODELS:
            return {"max_completion_tokens": self.max_tokens}
        return {
            "max_tokens": self.max_tokens,
            "temperature": temperature if temperature is not None else self.temperature,
        }

    # ---- retry --------------------------------------------------------

    def _log_retry(self, retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        log.warning(
            f"LLM call failed (attempt {retry_state.attempt_number}/{self.retry_attempts}): "
            f"{error!r}; retrying in {self.retry_wait}s"
        )

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            wait=wait_fixed(self.retry_wait),
            stop=stop_after_attempt(self.retry_attempts),
            retry=retry_if_not_exception_type(NON_RETRYABLE_ERRORS),
            before_sleep=self._log_retry,
            reraise=True,
        )

    # ---- provider calls -----------------------------------------------

    async def _generate(
        self, records: list[dict[str, Any]], **params: Any
    ) -> Optional[AIMessage]:
        """Single non-streaming completion; ``None`` when there are no choices."""
        result = await self.client.agenerate([_to_langchain_messages(records)], **params)
        generations = result.generations[0] if result.generations else []
        if not generations:
            return None
        return generations[0].message

    async def _complete_text(
        self,
        records: list[dict[str, Any]],
        input_tokens: int,
        stream: bool,
        temperature: Optional[float],
    ) -> str:
        params = self._completion_params(temperature)

        if not stream:
            message = await self._generate(records, **params)
            response = _to_chat_response(message) if message is not None else None
            if response is None or not response.content:
                raise EmptyResponse("Empty or invalid response from LLM")
            self.update_token_count(
                response.usage.get("input_tokens") or input_tokens,
                response.usage.get("output_tokens", 0),
            )
            return response.content

        self.update_token_count(input_tokens)
        collected: list[str] = []
        async for chunk in self.client.astream(_to_langchain_messages(records), **params):
            text = _text_content(chunk)
            if text:
                collected.append(text)

        full_response = "".join(collected).strip()
        if not full_response:
            raise EmptyResponse("Empty response from streaming LLM")

        completion_tokens = self.count_tokens(full_response)
        log.debug(f"Estimated completion tokens for streaming response: {completion_tokens}")
        self.total_completion_tokens += completion_tokens
        return full_response

    async def ask(
        self,
        messages: Iterable[MessageLike],
        system_msgs: Optional[Iterable[MessageLike]] = None,
        stream: bool = True,
        temperature: Optional[float] = None,
    ) -> str:
        """
        Send a prompt and return the response text.

        Args:
            messages: Conversation messages.
            system_msgs: Optional system messages prepended to the conversation.
            stream: Accumulate a streamed response instead of a single reply.
            temperature: Sampling temperature override.

        Raises:
            TokenLimitExceeded: The input-token budget would be exceeded.
            EmptyResponse: The provider returned no content.
        """
        messages = list(messages)
        async for attempt in self._retrying():
            with attempt:
                records = self._prepare(messages, system_msgs, self.supports_images)
                input_tokens = self.count_message_tokens(records)
                self._enforce_token_limit(input_tokens)
                return await self._complete_text(records, input_tokens, stream, temperature)

    async def ask_with_image(
        self,
        messages: Iterable[MessageLike],
        images: Sequence[ImageLike],
        system_msgs: Optional[Iterable[MessageLike]] = None,
        stream: bool = False,
        temperature: Optional[float] = None,
    ) -> str:
        """
        Send a prompt with images attached to the final user message.

        Images may be URL strings, ``{"url": ...}`` mappings or ready-made
        ``{"type": "image_url", "image_url": ...}`` parts.

        Raises:
            UnsupportedCapability: The model is not multimodal.
            InvalidArgument: The last message is not from the user, or an
                image has an unsupported shape.
        """
        messages = list(messages)
        async for attempt in self._retrying():
            with attempt:
                if not self.supports_images:
                    raise UnsupportedCapability(
                        f"Model {self.model} does not support images. "
                        f"Use a model from {MULTIMODAL_MODELS}"
                    )

                records = self.format_messages(messages, supports_images=True)
                if not records or records[-1]["role"] != Role.USER.value:
                    raise InvalidArgument(
                        "The last message must be from the user to attach images"
                    )

                last = records[-1]
                content = last.get("content")
                if isinstance(content, str):
                    parts: list[Any] = [{"type": "text", "text": content}]
                elif isinstance(content, list):
                    parts = list(content)
                else:
                    parts = []

                for image in images:
                    if isinstance(image, str):
                        parts.append({"type": "image_url", "image_url": {"url": image}})
                    elif isinstance(image, Mapping) and "url" in image:
                        parts.append({"type": "image_url", "image_url": dict(image)})
                    elif isinstance(image, Mapping) and "image_url" in image:
                        parts.append(dict(image))
                    else:
                        raise InvalidArgument(f"Unsupported image format: {image!r}")
                last["content"] = parts

                if system_msgs:
                    records = self.format_messages(system_msgs, supports_images=True) + records

                input_tokens = self.count_message_tokens(records)
                self._enforce_token_limit(input_tokens)
                return await self._complete_text(records, input_tokens, stream, temperature)

    async def ask_tool(
        self,
        messages: Iterable[MessageLike],
        system_msgs: Optional[Iterable[MessageLike]] = None,
        tools: Optional[Sequence[Mapping[str, Any]]] = None,
        tool_choice: Union[ToolChoice, str] = ToolChoice.AUTO,
        temperature: Optional[float] = None,
        **kwargs: Any,
    ) -> Optional[ChatResponse]:
        """
        Ask the model to respond, possibly with tool calls.

        Returns:
            The normalized reply, or ``None`` if the provider produced no choices.

        Raises:
            InvalidArgument: Unknown ``tool_choice`` or a tool descriptor
                without a ``type`` field.
            TokenLimitExceeded: The input-token budget would be exceeded.
        """
        messages = list(messages)
        choice = tool_choice.value if isinstance(tool_choice, ToolChoice) else tool_choice
        async for attempt in self._retrying():
            with attempt:
                if choice not in TOOL_CHOICE_VALUES:
                    raise InvalidArgument(f"Invalid tool_choice: {tool_choice}")
                for tool in tools or []:
                    if not isinstance(tool, Mapping) or "type" not in tool:
                        raise InvalidArgument("Each tool must be a dict with 'type' field")

                records = self._prepare(messages, system_msgs, self.supports_images)

                input_tokens = self.count_message_tokens(records)
                input_tokens += sum(self.count_tokens(json.dumps(tool)) for tool in tools or [])
                self._enforce_token_limit(input_tokens)

                params = self._completion_params(temperature)
                if tools:
                    params["tools"] = [dict(tool) for tool in tools]
                    params["tool_choice"] = choice
                params.update(kwargs)

                message = await self._generate(records, **params)
                if message is None:
                    return None

                response = _to_chat_response(message)
                self.update_token_count(
                    response.usage.get("input_tokens") or input_tokens,
                    response.usage.get("output_tokens", 0),
                )
                return response
