"""
Research Step Chain

Generates the markdown document for one research step (research, brand,
services, market, competitors) through the research provider:
prompt -> gateway -> sanitizer -> parser.
"""

from typing import Mapping

from kb_builder.core.config import Settings, get_settings
from kb_builder.core.content_parser import parse_step_content
from kb_builder.core.logging import get_logger
from kb_builder.core.model_gateway import ModelGateway, ModelRequest
from kb_builder.core.prompt_builder import build_prompt
from kb_builder.core.response_sanitizer import sanitize_response
from kb_builder.core.schemas_kb import StructuredContent

logger = get_logger(__name__)


async def generate_step_content(
    gateway: ModelGateway,
    step: str,
    locale: str,
    company_url: str,
    prior_outputs: Mapping[str, str] | None = None,
    require_context: bool = True,
    settings: Settings | None = None,
) -> StructuredContent:
    """
    Generate structured content for one research step.

    Args:
        gateway: Model gateway used for the research call
        step: Research step name
        locale: Output locale
        company_url: Subject company URL
        prior_outputs: step -> markdown of that step's current document
        require_context: Fail with MissingContext instead of degrading
        settings: Optional settings override

    Returns:
        StructuredContent with markdown body, citations and structured JSON

    Raises:
        MissingContext: Required prior output is absent
        ProviderExhausted: Research provider kept failing
        EmptyContent: Response had no usable answer after sanitization
    """
    settings = settings or get_settings()

    prompt = build_prompt(
        step,
        locale,
        company_url,
        prior_outputs=prior_outputs,
        require_context=require_context,
    )

    raw = await gateway.call(
        ModelRequest(
            kind="research",
            prompt=prompt.user,
            system=prompt.system,
            temperature=settings.RESEARCH_TEMPERATURE,
            max_tokens=settings.RESEARCH_MAX_TOKENS,
            min_chars=settings.MIN_CONTENT_CHARS,
            locale=locale,
            metadata={"step": step},
        )
    )

    clean = sanitize_response(raw.content, min_chars=settings.MIN_CONTENT_CHARS)
    content = parse_step_content(clean, step, company_url, provider_citations=raw.citations)

    logger.info(
        f"Generated {step} content ({len(content.markdown_body)} chars, "
        f"{len(content.citations)} citations, {raw.attempts} attempts)",
        extra={"step": step, "provider": raw.provider},
    )
    return content
