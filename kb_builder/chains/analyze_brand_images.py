"""
Brand Image Analysis Chain

Turns a set of brand photographs into a validated visual guide using the
vision provider. The guide either validates completely or the call fails
with SchemaViolation.
"""

from typing import Sequence

from kb_builder.core.config import Settings, get_settings
from kb_builder.core.content_parser import parse_visual_guide
from kb_builder.core.logging import get_logger
from kb_builder.core.model_gateway import ModelGateway, ModelRequest
from kb_builder.core.prompt_builder import build_vision_prompt
from kb_builder.core.response_sanitizer import sanitize_response
from kb_builder.core.schemas_kb import VisualGuideResult

logger = get_logger(__name__)

# Smallest payload that can hold a JSON object
MIN_GUIDE_CHARS = 2


async def analyze_brand_images(
    gateway: ModelGateway,
    image_urls: Sequence[str],
    locale: str,
    brand_context: str | None = None,
    settings: Settings | None = None,
) -> VisualGuideResult:
    """
    Analyse brand images into a visual guide.

    Raises:
        ProviderExhausted: Vision provider kept failing
        EmptyContent: Nothing left after sanitization
        SchemaViolation: Guide missing a section or failing validation
    """
    settings = settings or get_settings()
    prompt = build_vision_prompt(locale, brand_context)

    raw = await gateway.call(
        ModelRequest(
            kind="vision",
            prompt=prompt.user,
            system=prompt.system,
            image_urls=tuple(image_urls),
            temperature=settings.VISION_TEMPERATURE,
            max_tokens=settings.VISION_MAX_TOKENS,
            min_chars=MIN_GUIDE_CHARS,
            locale=locale,
            metadata={"step": "visual"},
        )
    )

    clean = sanitize_response(raw.content, min_chars=MIN_GUIDE_CHARS)
    result = parse_visual_guide(clean)

    logger.info(
        f"Visual guide generated from {len(image_urls)} images",
        extra={"step": "visual", "image_count": len(image_urls), "provider": raw.provider},
    )
    return result
