"""Sanitization of raw model output before parsing.

Strips provider-internal reasoning blocks and rejects answers too short to use.
Some research models return only their deliberation with no user-facing
answer; after stripping, that is indistinguishable from an empty response.
"""

import re

from kb_builder.core.errors import EmptyContent
from kb_builder.core.logging import get_logger

logger = get_logger(__name__)

DEFAULT_MIN_CHARS = 50

_REASONING_TAGS = ("think", "thinking", "reasoning")

# Complete blocks: non-greedy, every occurrence
_REASONING_BLOCK_RE = re.compile(
    r"<(" + "|".join(_REASONING_TAGS) + r")\b[^>]*>.*?</\1\s*>",
    re.IGNORECASE | re.DOTALL,
)

# A start marker with no end marker (truncated output): drop the tail
_UNTERMINATED_RE = re.compile(
    r"<(?:" + "|".join(_REASONING_TAGS) + r")\b[^>]*>.*\Z",
    re.IGNORECASE | re.DOTALL,
)

# Stray end markers left behind when the start marker was cut off
_ORPHAN_END_RE = re.compile(r"</(?:" + "|".join(_REASONING_TAGS) + r")\s*>", re.IGNORECASE)


def strip_reasoning(text: str) -> str:
    """Remove reasoning blocks, unterminated reasoning tails and orphan end markers."""
    if not text:
        return ""
    cleaned = _REASONING_BLOCK_RE.sub("", text)
    cleaned = _UNTERMINATED_RE.sub("", cleaned)
    cleaned = _ORPHAN_END_RE.sub("", cleaned)
    # Normalize whitespace: collapse 3+ newlines to 2
    cleaned = re.sub(r"\n{3,}", "\n\n", cleaned)
    return cleaned.strip()


def sanitize_response(raw_text: str | None, min_chars: int = DEFAULT_MIN_CHARS) -> str:
    """
    Clean raw model text into usable content.

    Args:
        raw_text: Text exactly as returned by the provider
        min_chars: Minimum length of the cleaned text

    Returns:
        Cleaned text

    Raises:
        EmptyContent: If the cleaned text is shorter than ``min_chars``
    """
    cleaned = strip_reasoning(raw_text or "")

    if len(cleaned) < min_chars:
        logger.warning(
            "Response rejected after sanitization",
            extra={"extra_data": {"raw_chars": len(raw_text or ""), "clean_chars": len(cleaned)}},
        )
        raise EmptyContent(
            "The provider returned no usable content",
            {"clean_chars": len(cleaned), "min_chars": min_chars},
        )

    return cleaned
