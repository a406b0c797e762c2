"""
Token accounting for chat requests.

The numbers here approximate how OpenAI bills chat messages and images. They
are used to enforce the gateway's input-token budget, so the constants must
stay exactly as they are.
"""

import math
from typing import Any, Iterable, Mapping, Optional, Union

import tiktoken

from manus.utils.memory import Message, ToolCall

FALLBACK_ENCODING = "cl100k_base"

ContentPart = Union[str, Mapping[str, Any]]


def get_tokenizer(model: str) -> tiktoken.Encoding:
    """Model-specific encoding, or ``cl100k_base`` for unknown models."""
    try:
        return tiktoken.encoding_for_model(model)
    except KeyError:
        return tiktoken.get_encoding(FALLBACK_ENCODING)


def _has_area(dimensions: Optional[Mapping[str, float]]) -> bool:
    return bool(dimensions) and dimensions.get("width", 0) > 0 and dimensions.get("height", 0) > 0


class TokenCounter:
    # Token constants
    BASE_MESSAGE_TOKENS = 4
    FORMAT_TOKENS = 2
    LOW_DETAIL_IMAGE_TOKENS = 85
    HIGH_DETAIL_TILE_TOKENS = 170

    # Image processing constants
    MAX_SIZE = 2048
    HIGH_DETAIL_TARGET_SHORT_SIDE = 768
    TILE_SIZE = 512

    MEDIUM_DETAIL_DEFAULT_TOKENS = 1024
    HIGH_DETAIL_DEFAULT_DIMENSIONS = {"width": 1024, "height": 2024}

    def __init__(self, tokenizer: tiktoken.Encoding) -> None:
        self.tokenizer = tokenizer

    def count_text(self, text: Optional[str]) -> int:
        return len(self.tokenizer.encode(text)) if text else 0

    def count_image(
        self,
        detail: str = "medium",
        dimensions: Optional[Mapping[str, float]] = None,
    ) -> int:
        """
        Tokens for one image.

        For "low" detail: fixed 85 tokens.
        For "high"/"medium" with known dimensions:
          1. Scale to fit in a 2048x2048 square
          2. Scale the shortest side to 768px
          3. Count 512px tiles (170 tokens each)
          4. Add 85 tokens
        Without usable dimensions, "medium" costs 1024 and "high" is priced as a
        1024x2024 image.
        """
        if detail == "low":
            return self.LOW_DETAIL_IMAGE_TOKENS

        if detail in ("high", "medium") and _has_area(dimensions):
            return self._calculate_high_detail_tokens(
                dimensions["width"], dimensions["height"]
            )

        if detail == "high":
            return self._calculate_high_detail_tokens(
                self.HIGH_DETAIL_DEFAULT_DIMENSIONS["width"],
                self.HIGH_DETAIL_DEFAULT_DIMENSIONS["height"],
            )
        return self.MEDIUM_DETAIL_DEFAULT_TOKENS

    def _calculate_high_detail_tokens(self, width: float, height: float) -> int:
        if width > self.MAX_SIZE or height > self.MAX_SIZE:
            scale = self.MAX_SIZE / max(width, height)
            width, height = width * scale, height * scale

        scale = self.HIGH_DETAIL_TARGET_SHORT_SIDE / min(width, height)
        scaled_width = width * scale
        scaled_height = height * scale

        tiles_x = math.ceil(scaled_width / self.TILE_SIZE)
        tiles_y = math.ceil(scaled_height / self.TILE_SIZE)

        return tiles_x * tiles_y * self.HIGH_DETAIL_TILE_TOKENS + self.LOW_DETAIL_IMAGE_TOKENS

    def _count_image_part(self, part: Mapping[str, Any]) -> int:
        image_url = part.get("image_url")
        detail = part.get("detail")
        if detail is None and isinstance(image_url, Mapping):
            detail = image_url.get("detail")
        return self.count_image(detail or "medium", part.get("dimensions"))

    def count_content(self, content: Union[None, str, Iterable[ContentPart]]) -> int:
        if not content:
            return 0
        if isinstance(content, str):
            return self.count_text(content)

        tokens = 0
        for part in content:
            if isinstance(part, str):
                tokens += self.count_text(part)
            elif "text" in part:
                tokens += self.count_text(part["text"])
            elif "image_url" in part:
                tokens += self._count_image_part(part)
        return tokens

    def count_tool_calls(
        self, tool_calls: Optional[Iterable[Union[ToolCall, Mapping[str, Any]]]]
    ) -> int:
        tokens = 0
        for call in tool_calls or []:
            if isinstance(call, ToolCall):
                name, arguments = call.function.name, call.function.arguments
            else:
                function = call.get("function")
                if not function:
                    continue
                name, arguments = function.get("name"), function.get("arguments")
            tokens += self.count_text(name)
            tokens += self.count_text(arguments)
        return tokens

    def count_message_tokens(
        self, messages: Iterable[Union[Message, Mapping[str, Any]]]
    ) -> int:
        total = self.FORMAT_TOKENS
        for message in messages:
            if isinstance(message, Message):
                message = message.to_dict()
            tokens = self.BASE_MESSAGE_TOKENS
            tokens += self.count_text(message.get("role"))
            tokens += self.count_content(message.get("content"))
            tokens += self.count_tool_calls(message.get("tool_calls"))
            tokens += self.count_text(message.get("name"))
            tokens += self.count_text(message.get("tool_call_id"))
            total += tokens
        return total
