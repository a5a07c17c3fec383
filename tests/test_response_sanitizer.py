"""Tests for reasoning-block stripping and the empty content gate."""

import pytest

from kb_builder.core.errors import EmptyContent
from kb_builder.core.response_sanitizer import sanitize_response, strip_reasoning

ANSWER = "Acme Robotics builds collaborative robot arms for small factories in Portugal."


class TestStripReasoning:
    def test_removes_think_block(self):
        text = f"<think>Let me look at their site first.</think>\n{ANSWER}"
        assert strip_reasoning(text) == ANSWER

    def test_removes_all_blocks_non_greedy(self):
        text = f"<think>a</think>{ANSWER}<think>b</think> Tail sentence."
        assert strip_reasoning(text) == f"{ANSWER} Tail sentence."

    def test_multiline_and_case_insensitive(self):
        text = f"<THINKING>\nline one\nline two\n</THINKING>\n\n{ANSWER}"
        assert strip_reasoning(text) == ANSWER

    def test_unterminated_block_is_dropped(self):
        text = f"{ANSWER}\n<think>I was cut off mid"
        assert strip_reasoning(text) == ANSWER

    def test_orphan_end_marker_removed(self):
        text = f"tail of reasoning</think>{ANSWER}"
        assert "</think>" not in strip_reasoning(text)

    def test_collapses_blank_lines(self):
        assert strip_reasoning("a\n\n\n\n\nb") == "a\n\nb"

    def test_plain_text_unchanged(self):
        assert strip_reasoning(ANSWER) == ANSWER


class TestSanitizeResponse:
    def test_reasoning_only_is_empty(self):
        raw = "<think>" + "deliberation " * 40 + "</think>"
        with pytest.raises(EmptyContent) as exc_info:
            sanitize_response(raw)
        assert exc_info.value.details["clean_chars"] == 0

    def test_below_floor_rejected(self):
        with pytest.raises(EmptyContent):
            sanitize_response("Too short.")

    def test_none_rejected(self):
        with pytest.raises(EmptyContent):
            sanitize_response(None)

    def test_clean_answer_passes(self):
        assert sanitize_response(f"<think>x</think>  {ANSWER}  ") == ANSWER

    def test_custom_floor(self):
        assert sanitize_response("ok", min_chars=1) == "ok"
