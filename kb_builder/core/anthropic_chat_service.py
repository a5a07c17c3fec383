"""Anthropic provider for the chat assistant."""

from anthropic import APIError, AsyncAnthropic

from kb_builder.core.errors import ProviderTransient
from kb_builder.core.model_gateway import ModelRequest, RawModelOutput


class AnthropicChatProvider:
    name = "anthropic"

    def __init__(self, api_key: str, model: str, client: AsyncAnthropic | None = None):
        self.model = model
        self.client = client or AsyncAnthropic(api_key=api_key, max_retries=0)

    async def complete(self, request: ModelRequest) -> RawModelOutput:
        kwargs = {
            "model": self.model,
            "max_tokens": request.max_tokens or 2000,
            "messages": [{"role": "user", "content": request.prompt}],
        }
        if request.system:
            kwargs["system"] = request.system
        if request.temperature is not None:
            kwargs["temperature"] = request.temperature

        try:
            response = await self.client.messages.create(**kwargs)
        except APIError as e:
            raise ProviderTransient(f"Anthropic request failed: {e}") from e

        text = "".join(
            block.text for block in (response.content or []) if getattr(block, "type", "") == "text"
        )
        return RawModelOutput(content=text, provider=self.name, model=self.model)
