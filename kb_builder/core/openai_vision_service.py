"""OpenAI providers: brand image analysis (vision) and test image generation."""

import base64
from typing import Any

import httpx
from openai import APIError, AsyncOpenAI

from kb_builder.core.errors import ProviderTransient
from kb_builder.core.logging import get_logger
from kb_builder.core.model_gateway import ModelRequest, RawModelOutput

logger = get_logger(__name__)


def to_data_url(content: bytes, content_type: str | None) -> str:
    mime = (content_type or "image/jpeg").split(";")[0].strip() or "image/jpeg"
    return f"data:{mime};base64,{base64.b64encode(content).decode('ascii')}"


def decode_data_url(data_url: str) -> tuple[bytes, str]:
    """Split a base64 data URL into (bytes, mime type)."""
    header, _, payload = data_url.partition(",")
    mime = header.removeprefix("data:").split(";")[0] or "application/octet-stream"
    return base64.b64decode(payload), mime


async def download_as_data_urls(urls: list[str], timeout: float = 30.0) -> list[str]:
    """
    Fetch images and inline them as base64 data URLs.

    Storage URLs are not always reachable from the provider, so images are
    sent inline. Any failed download fails the whole batch.
    """
    data_urls = []
    async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as client:
        for url in urls:
            if url.startswith("data:"):
                data_urls.append(url)
                continue
            response = await client.get(url)
            response.raise_for_status()
            data_urls.append(to_data_url(response.content, response.headers.get("content-type")))
            logger.debug(f"Downloaded image {url} ({len(response.content)} bytes)")
    return data_urls


class OpenAIVisionProvider:
    """Analyses a set of images in one multimodal completion."""

    name = "openai"

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o",
        download_timeout: float = 30.0,
        client: AsyncOpenAI | None = None,
    ):
        self.model = model
        self.download_timeout = download_timeout
        self.client = client or AsyncOpenAI(api_key=api_key, max_retries=0)

    async def complete(self, request: ModelRequest) -> RawModelOutput:
        # httpx errors propagate; the gateway treats them as transient
        images = await download_as_data_urls(list(request.image_urls), self.download_timeout)

        content: list[dict[str, Any]] = [{"type": "text", "text": request.prompt}]
        content.extend({"type": "image_url", "image_url": {"url": url}} for url in images)

        messages: list[dict[str, Any]] = []
        if request.system:
            messages.append({"role": "system", "content": request.system})
        messages.append({"role": "user", "content": content})

        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=request.temperature if request.temperature is not None else 0.4,
                max_tokens=request.max_tokens or 2000,
                response_format={"type": "json_object"},
            )
        except APIError as e:
            raise ProviderTransient(f"OpenAI vision request failed: {e}") from e

        text = ""
        if response.choices:
            text = response.choices[0].message.content or ""
        logger.info(
            f"Vision analysis returned {len(text)} chars for {len(images)} images",
            extra={"provider": self.name, "image_count": len(images)},
        )
        return RawModelOutput(content=text, provider=self.name, model=self.model)


class OpenAIImageProvider:
    """Generates images from a text prompt; returns base64 data URLs."""

    name = "openai"

    def __init__(
        self,
        api_key: str,
        model: str = "dall-e-3",
        size: str = "1024x1024",
        client: AsyncOpenAI | None = None,
    ):
        self.model = model
        self.size = size
        self.client = client or AsyncOpenAI(api_key=api_key, max_retries=0)

    async def complete(self, request: ModelRequest) -> RawModelOutput:
        urls = []
        # dall-e-3 only accepts n=1
        for _ in range(request.count):
            try:
                response = await self.client.images.generate(
                    model=self.model,
                    prompt=request.prompt,
                    n=1,
                    size=self.size,
                    quality="standard",
                    style="natural",
                    response_format="b64_json",
                )
            except APIError as e:
                raise ProviderTransient(f"OpenAI image generation failed: {e}") from e

            for image in response.data or []:
                if image.b64_json:
                    urls.append(f"data:image/png;base64,{image.b64_json}")
                elif image.url:
                    urls.append(image.url)

        return RawModelOutput(image_urls=urls, provider=self.name, model=self.model)
