"""Tests for splitting assistant replies into message and edit."""

import pytest

from kb_builder.chains.chat_assistant import DEFAULT_EDIT_ACK, generate_chat_reply, split_edit
from kb_builder.core.errors import ProviderUnavailable
from tests.fakes.fake_providers import ScriptedProvider, make_gateway


def test_no_marker():
    reply = split_edit("  The tone is friendly.  ")
    assert reply.message == "The tone is friendly."
    assert reply.edited_content is None


def test_marker_splits_edit():
    reply = split_edit("Updated!\n[EDIT_CONTENT]\n# Services\n\n## Install")
    assert reply.message == "Updated!"
    assert reply.edited_content == "# Services\n\n## Install"


def test_marker_without_message_gets_default_ack():
    reply = split_edit("[EDIT_CONTENT]# Brand Voice")
    assert reply.message == DEFAULT_EDIT_ACK
    assert reply.edited_content == "# Brand Voice"


def test_empty_edit_is_ignored():
    reply = split_edit("I could not change that. [EDIT_CONTENT]   ")
    assert reply.edited_content is None
    assert reply.message == "I could not change that."


@pytest.mark.asyncio
async def test_reasoning_stripped_from_reply(settings):
    chat = ScriptedProvider("<think>hmm</think>Short answer.")
    reply = await generate_chat_reply(make_gateway(chat=chat), "Tone?", "brand", "en-US", settings=settings)
    assert reply.message == "Short answer."


@pytest.mark.asyncio
async def test_chat_unavailable_without_provider(settings):
    with pytest.raises(ProviderUnavailable):
        await generate_chat_reply(make_gateway(), "Tone?", "brand", "en-US", settings=settings)
