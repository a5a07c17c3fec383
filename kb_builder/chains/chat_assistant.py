"""
Chat Assistant Chain

Answers a user message about the current wizard step. When the user asks for
changes the assistant appends the full revised report after the edit marker;
that part is split off here and applied by the pipeline controller.
"""

from dataclasses import dataclass
from typing import Any, Mapping, Sequence

from kb_builder.core.config import Settings, get_settings
from kb_builder.core.logging import get_logger
from kb_builder.core.model_gateway import ModelGateway, ModelRequest
from kb_builder.core.prompt_builder import EDIT_MARKER, build_chat_prompt
from kb_builder.core.response_sanitizer import sanitize_response

logger = get_logger(__name__)

DEFAULT_EDIT_ACK = "I've updated the content."


@dataclass
class AssistantReply:
    message: str
    edited_content: str | None = None


def split_edit(reply_text: str) -> AssistantReply:
    """Split a reply into its visible message and optional replacement content."""
    if EDIT_MARKER not in reply_text:
        return AssistantReply(message=reply_text.strip())

    message, _, edited = reply_text.partition(EDIT_MARKER)
    edited = edited.strip()
    message = message.strip()
    if not edited:
        return AssistantReply(message=message or reply_text.replace(EDIT_MARKER, "").strip())
    return AssistantReply(message=message or DEFAULT_EDIT_ACK, edited_content=edited)


async def generate_chat_reply(
    gateway: ModelGateway,
    message: str,
    step: str,
    locale: str,
    company_url: str | None = None,
    current_content: str | None = None,
    history: Sequence[Mapping[str, Any]] | None = None,
    settings: Settings | None = None,
) -> AssistantReply:
    """
    Produce the assistant reply for one user message.

    Raises:
        ProviderUnavailable: Chat provider is not configured
        ProviderExhausted: Chat provider kept failing
        EmptyContent: Reply was only reasoning markup
    """
    settings = settings or get_settings()
    prompt = build_chat_prompt(
        message,
        step,
        locale,
        company_url=company_url,
        current_content=current_content,
        history=history,
    )

    raw = await gateway.call(
        ModelRequest(
            kind="chat",
            prompt=prompt.user,
            system=prompt.system,
            temperature=settings.CHAT_TEMPERATURE,
            max_tokens=settings.CHAT_MAX_TOKENS,
            locale=locale,
            metadata={"step": step},
        )
    )

    reply = split_edit(sanitize_response(raw.content, min_chars=1))
    if reply.edited_content:
        logger.info(
            f"Assistant proposed an edit for {step} ({len(reply.edited_content)} chars)",
            extra={"step": step},
        )
    return reply
