"""Tests for provider adapters with mocked SDK clients."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from kb_builder.core.anthropic_chat_service import AnthropicChatProvider
from kb_builder.core.errors import ProviderTransient
from kb_builder.core.model_gateway import ModelRequest
from kb_builder.core.openai_vision_service import (
    OpenAIImageProvider,
    decode_data_url,
    to_data_url,
)
from kb_builder.core.perplexity_service import PerplexityResearchProvider, _response_citations


def _completion(text, **extra):
    response = MagicMock()
    response.choices = [SimpleNamespace(message=SimpleNamespace(content=text))]
    response.model_extra = extra
    response.citations = extra.get("citations")
    return response


@pytest.mark.asyncio
async def test_perplexity_returns_content_and_citations():
    client = MagicMock()
    client.chat.completions.create = AsyncMock(
        return_value=_completion("Acme overview", citations=["https://a.example", "https://b.example"])
    )
    provider = PerplexityResearchProvider(api_key="k", client=client)

    output = await provider.complete(
        ModelRequest(kind="research", prompt="Research acme", system="sys", temperature=0.2, max_tokens=100)
    )

    assert output.content == "Acme overview"
    assert output.citations == ["https://a.example", "https://b.example"]
    kwargs = client.chat.completions.create.call_args.kwargs
    assert kwargs["messages"][0] == {"role": "system", "content": "sys"}
    assert kwargs["temperature"] == 0.2


def test_search_results_citations():
    response = SimpleNamespace(
        citations=None,
        model_extra={"search_results": [{"url": "https://c.example", "title": "C"}, {"title": "no url"}]},
    )
    assert _response_citations(response) == ["https://c.example"]


@pytest.mark.asyncio
async def test_perplexity_api_error_is_transient():
    import openai

    client = MagicMock()
    client.chat.completions.create = AsyncMock(
        side_effect=openai.APIConnectionError(request=httpx.Request("POST", "https://api.perplexity.ai"))
    )
    provider = PerplexityResearchProvider(api_key="k", client=client)

    with pytest.raises(ProviderTransient):
        await provider.complete(ModelRequest(kind="research", prompt="x"))


@pytest.mark.asyncio
async def test_image_provider_generates_one_per_call():
    client = MagicMock()
    client.images.generate = AsyncMock(
        return_value=SimpleNamespace(data=[SimpleNamespace(b64_json="QUJD", url=None)])
    )
    provider = OpenAIImageProvider(api_key="k", client=client)

    output = await provider.complete(ModelRequest(kind="image", prompt="robot", count=3))

    assert client.images.generate.await_count == 3
    assert output.image_urls == ["data:image/png;base64,QUJD"] * 3
    assert client.images.generate.call_args.kwargs["n"] == 1


@pytest.mark.asyncio
async def test_anthropic_joins_text_blocks():
    client = MagicMock()
    client.messages.create = AsyncMock(
        return_value=SimpleNamespace(
            content=[SimpleNamespace(type="text", text="Hello "), SimpleNamespace(type="text", text="there")]
        )
    )
    provider = AnthropicChatProvider(api_key="k", model="claude-test", client=client)

    output = await provider.complete(ModelRequest(kind="chat", prompt="hi", system="be brief"))

    assert output.content == "Hello there"
    assert client.messages.create.call_args.kwargs["system"] == "be brief"


def test_data_url_helpers():
    data_url = to_data_url(b"abc", "image/jpeg; charset=binary")
    assert data_url == "data:image/jpeg;base64,YWJj"
    assert decode_data_url(data_url) == (b"abc", "image/jpeg")
