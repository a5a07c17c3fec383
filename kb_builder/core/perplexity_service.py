"""Perplexity research provider (OpenAI-compatible chat completions API)."""

from typing import Any

from openai import APIError, AsyncOpenAI

from kb_builder.core.errors import ProviderTransient
from kb_builder.core.logging import get_logger
from kb_builder.core.model_gateway import ModelRequest, RawModelOutput

logger = get_logger(__name__)


def _response_citations(response: Any) -> list[str]:
    """Citation URLs from a Perplexity response.

    The SDK does not model Perplexity's extra fields, so they arrive as
    undeclared attributes: ``citations`` (list of URLs) or ``search_results``
    (list of {"url": ...}).
    """
    extra = getattr(response, "model_extra", None) or {}
    raw = getattr(response, "citations", None) or extra.get("citations")
    if not raw:
        raw = extra.get("search_results") or []

    urls = []
    for item in raw:
        if isinstance(item, str):
            urls.append(item)
        elif isinstance(item, dict) and item.get("url"):
            urls.append(item["url"])
    return urls


class PerplexityResearchProvider:
    """Web-grounded research completions."""

    name = "perplexity"

    def __init__(
        self,
        api_key: str,
        model: str = "sonar",
        base_url: str = "https://api.perplexity.ai",
        client: AsyncOpenAI | None = None,
    ):
        self.model = model
        # Retries belong to the gateway
        self.client = client or AsyncOpenAI(api_key=api_key, base_url=base_url, max_retries=0)

    async def complete(self, request: ModelRequest) -> RawModelOutput:
        messages = []
        if request.system:
            messages.append({"role": "system", "content": request.system})
        messages.append({"role": "user", "content": request.prompt})

        kwargs: dict[str, Any] = {"model": self.model, "messages": messages}
        if request.temperature is not None:
            kwargs["temperature"] = request.temperature
        if request.max_tokens is not None:
            kwargs["max_tokens"] = request.max_tokens

        try:
            response = await self.client.chat.completions.create(**kwargs)
        except APIError as e:
            raise ProviderTransient(f"Perplexity request failed: {e}") from e

        content = ""
        if response.choices:
            content = response.choices[0].message.content or ""

        citations = _response_citations(response)
        logger.debug(
            f"Perplexity returned {len(content)} chars, {len(citations)} citations",
            extra={"provider": self.name},
        )
        return RawModelOutput(
            content=content,
            citations=citations,
            provider=self.name,
            model=self.model,
        )
