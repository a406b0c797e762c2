"""
Unit tests for manus/model/token_counter.py

Coverage:
- Image pricing by detail level and dimensions
- Content, tool call and message counting
"""

import pytest

from manus.model.token_counter import TokenCounter
from manus.utils.memory import Function, Message, ToolCall


@pytest.fixture
def counter(fake_encoding) -> TokenCounter:
    return TokenCounter(fake_encoding)


class TestImageTokens:
    """Image token estimation"""

    def test_low_detail_is_fixed(self, counter):
        """Low detail always costs 85"""
        assert counter.count_image("low") == 85
        assert counter.count_image("low", {"width": 4000, "height": 4000}) == 85

    def test_medium_without_dimensions(self, counter):
        """Medium detail defaults to 1024"""
        assert counter.count_image() == 1024
        assert counter.count_image("medium") == 1024

    def test_high_detail_square_image(self, counter):
        """1024x1024 scales to 768x768: 4 tiles"""
        assert counter.count_image("high", {"width": 1024, "height": 1024}) == 4 * 170 + 85

    def test_medium_with_dimensions_uses_tiles(self, counter):
        """Medium detail with known size is priced like high"""
        assert counter.count_image("medium", {"width": 1024, "height": 1024}) == 765

    def test_high_detail_default_dimensions(self, counter):
        """High detail without size assumes 1024x2024"""
        # 1024x2024 -> 768x1518 -> 2x3 tiles
        assert counter.count_image("high") == 6 * 170 + 85

    def test_oversized_image_is_clamped_first(self, counter):
        """Images larger than 2048 are scaled into the square first"""
        # 4096x2048 -> 2048x1024 -> 1536x768 -> 3x2 tiles
        assert counter.count_image("high", {"width": 4096, "height": 2048}) == 6 * 170 + 85

    def test_zero_sized_image_uses_default_estimate(self, counter):
        assert counter.count_image("high", {"width": 0, "height": 768}) == 6 * 170 + 85
        assert counter.count_image("medium", {"width": 512, "height": 0}) == 1024


class TestContentTokens:
    """Text, content parts and tool calls"""

    def test_empty_text(self, counter):
        """Empty or missing text costs nothing"""
        assert counter.count_text("") == 0
        assert counter.count_text(None) == 0
        assert counter.count_content(None) == 0

    def test_content_parts(self, counter):
        """Text parts and image parts are summed"""
        content = [
            {"type": "text", "text": "look at this"},
            {"type": "image_url", "image_url": {"url": "data:...", "detail": "low"}},
        ]
        assert counter.count_content(content) == 3 + 85

    def test_image_part_defaults_to_medium(self, counter):
        """Image part without detail is medium"""
        assert counter.count_content([{"type": "image_url", "image_url": {"url": "x"}}]) == 1024

    def test_tool_calls_from_dicts_and_models(self, counter):
        """Name and argument text are counted for both shapes"""
        as_dict = {"id": "1", "type": "function", "function": {"name": "run", "arguments": "a b"}}
        as_model = ToolCall(id="1", function=Function(name="run", arguments="a b"))

        assert counter.count_tool_calls([as_dict]) == 3
        assert counter.count_tool_calls([as_model]) == 3
        assert counter.count_tool_calls(None) == 0


class TestMessageTokens:
    """Whole-request counting"""

    def test_single_message(self, counter):
        """Format overhead + per-message overhead + role + content"""
        assert counter.count_message_tokens([{"role": "user", "content": "hello world"}]) == 2 + 4 + 1 + 2

    def test_empty_request(self, counter):
        """Only the format overhead"""
        assert counter.count_message_tokens([]) == 2

    def test_message_objects_match_dicts(self, counter):
        """Message models count the same as their records"""
        message = Message.tool_message("ok", name="terminate", tool_call_id="call_1")
        assert counter.count_message_tokens([message]) == counter.count_message_tokens(
            [message.to_dict()]
        )

    def test_counts_are_additive(self, counter):
        """Per-message costs add up, format overhead is paid once"""
        first = Message.user_message("what is the weather")
        second = Message.assistant_message("sunny and warm")

        combined = counter.count_message_tokens([first, second])
        separate = counter.count_message_tokens([first]) + counter.count_message_tokens([second])

        assert combined == separate - 2
