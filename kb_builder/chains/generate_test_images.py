"""Test image generation from a visual guide prompt."""

from kb_builder.core.logging import get_logger
from kb_builder.core.model_gateway import ModelGateway, ModelRequest
from kb_builder.core.prompt_builder import build_image_prompt

logger = get_logger(__name__)


async def generate_test_images(
    gateway: ModelGateway,
    base_prompt: str,
    negative_prompt: str | None = None,
    count: int = 1,
) -> list[str]:
    """Generate ``count`` images. Returns provider image URLs (data URLs for OpenAI)."""
    raw = await gateway.call(
        ModelRequest(
            kind="image",
            prompt=build_image_prompt(base_prompt, negative_prompt),
            count=count,
            metadata={"step": "visual"},
        )
    )
    logger.info(
        f"Generated {len(raw.image_urls)} test images",
        extra={"image_count": len(raw.image_urls), "provider": raw.provider},
    )
    return raw.image_urls[:count]
