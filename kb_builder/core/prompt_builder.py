"""Prompt composition for research, vision and chat calls.

Pure functions: no I/O, deterministic for the same inputs.
"""

from dataclasses import dataclass
from typing import Any, Mapping, Sequence
from urllib.parse import urlparse

from kb_builder.core.errors import InvalidInput, MissingContext
from kb_builder.core.schemas_kb import LANGUAGE_NAMES
from kb_builder.core.step_graph import STEP_DEFINITIONS, context_steps

# ruff: noqa: E501

NOT_AVAILABLE = "information not available"

ACCURACY_RULES = f"""ACCURACY RULES (mandatory):
- Only state facts you found in sources about this company. Never invent names, numbers, clients, dates or quotes.
- If something cannot be verified, write "{NOT_AVAILABLE}" instead of guessing.
- Cite the URL of every source you used in a final "Sources:" section, one per line as: 1. URL - short snippet
- Return only the final answer. Do not include internal reasoning, <think> blocks or notes about your process."""

RESEARCH_SYSTEM_PROMPT = """You are a meticulous brand and market researcher building a company knowledge base.
You write clear, specific markdown and you never fabricate facts."""

STEP_INSTRUCTIONS: dict[str, str] = {
    "research": """Research the company at {company_url} and write a concise brand overview.

Requirements:
- Maximum 4 short paragraphs
- Cover: mission/essence, target audience, positioning, and 3 key differentiators
- Prefer concrete facts from the company's own site over generic corporate language

Format:
# Company Overview
[overview paragraphs]

## Key Differentiators
- [differentiator]
- [differentiator]
- [differentiator]""",
    "brand": """Analyze the brand voice and tone used by the company at {company_url}.

Requirements:
- Identify 3-4 tone traits (e.g. professional, friendly, authoritative, playful)
- Give 3 example sentences that capture how they communicate, based on their real copy
- Be specific about what makes their voice distinct

Format:
# Brand Voice
Tone Traits: [trait1], [trait2], [trait3]

## Example Sentences
1. "[example sentence]"
2. "[example sentence]"
3. "[example sentence]\"""",
    "services": """Research the main services offered by the company at {company_url}.

Requirements:
- List 3-5 core services actually offered on their site
- For each service write one paragraph: the benefit and who it is for
- Keep descriptions concrete; skip services you cannot confirm

Format:
# Services

## [Service Name]
[one paragraph]

## [Service Name]
[one paragraph]""",
    "market": """Research current market trends affecting the business at {company_url}.

Requirements:
- Identify 2-3 current trends in their industry or region
- For each trend, two lines on what it is and why it matters to this company
- Add 2-3 actionable takeaways for their social media strategy
- Prefer recent sources and include their dates

Format:
# Market Trends

## [Trend Name]
[two-line explanation]

## Takeaways for Strategy
- [actionable insight]
- [actionable insight]""",
    "competitors": """Research competitors of the company at {company_url}.

Requirements:
- Identify 3 relevant competitors in the same market or region
- For each competitor, 2-3 points on what they do well
- Then 2-3 points on how the company differentiates from them, consistent with the context above

Format:
# Competitors

## [Competitor Name]
Strengths: [what they do well]

## Differentiators
- [how the company is different]
- [how the company is different]""",
}


@dataclass(frozen=True)
class PromptText:
    """A fully formed instruction pair for the external model."""

    system: str
    user: str
    step: str | None = None


def base_url(url: str) -> str:
    """Reduce a URL to scheme://host; returns the input if it does not parse."""
    parsed = urlparse(url)
    if parsed.scheme and parsed.netloc:
        return f"{parsed.scheme}://{parsed.netloc}"
    return url


def language_name(locale: str) -> str:
    return LANGUAGE_NAMES.get(locale, LANGUAGE_NAMES["en-US"])


def render_context_block(step: str, prior_outputs: Mapping[str, str]) -> str:
    """Prior steps' markdown, verbatim, under labeled headers in dependency order."""
    sections = []
    for dep in context_steps(step):
        body = prior_outputs.get(dep)
        if not body:
            continue
        label = STEP_DEFINITIONS[dep].display_name
        sections.append(f"=== CONTEXT FROM PREVIOUS STEP: {label} ({dep}) ===\n{body}\n=== END {dep} ===")
    if not sections:
        return ""
    return "\n\n".join(sections)


def build_prompt(
    step: str,
    locale: str,
    company_url: str,
    prior_outputs: Mapping[str, str] | None = None,
    require_context: bool = True,
) -> PromptText:
    """
    Compose the research prompt for one wizard step.

    Context-dependent steps get their prior steps' markdown prepended under
    labeled headers, followed by the step instructions and the accuracy rules.

    Args:
        step: Research step (research, brand, services, market, competitors)
        locale: Output locale (e.g. "pt-BR")
        company_url: Subject company URL
        prior_outputs: Map of step -> markdown body of that step's current document
        require_context: Fail when a dependency is missing instead of degrading

    Returns:
        PromptText with system and user messages

    Raises:
        InvalidInput: If the step has no research prompt
        MissingContext: If a required prior step output is absent and require_context is set
    """
    if step not in STEP_INSTRUCTIONS:
        raise InvalidInput(f"Step '{step}' has no research prompt")

    prior_outputs = prior_outputs or {}
    missing = [dep for dep in context_steps(step) if not (prior_outputs.get(dep) or "").strip()]
    if missing and require_context:
        raise MissingContext(
            f"Step '{step}' requires output from: {', '.join(missing)}",
            missing=missing,
        )

    parts = []
    context_block = render_context_block(step, prior_outputs)
    if context_block:
        parts.append(
            "Use the following previously researched material as ground truth about the company. "
            "Stay consistent with it and do not contradict it.\n\n" + context_block
        )

    parts.append(STEP_INSTRUCTIONS[step].format(company_url=base_url(company_url)))
    parts.append(
        f"LANGUAGE: Write the entire answer in {language_name(locale)} ({locale}), "
        "using that region's spelling and conventions."
    )
    parts.append(ACCURACY_RULES)

    return PromptText(system=RESEARCH_SYSTEM_PROMPT, user="\n\n".join(parts), step=step)


VISION_SYSTEM_PROMPT = """You are an art director who turns a set of brand photographs into a precise visual guide.
You only describe what is visible in the images."""

VISION_INSTRUCTIONS = """Analyze these brand images and extract visual guidelines.

Return ONLY a JSON object with exactly these four sections:
{
  "style_direction": {
    "lighting": "description of lighting style",
    "composition": "description of composition patterns",
    "mood": ["emotional tone keywords"]
  },
  "palette": {
    "primary": ["#hex"],
    "secondary": ["#hex"],
    "neutrals": ["#hex"]
  },
  "imagery_categories": {
    "subjects": ["recurring subjects"],
    "textures": ["materials and surfaces"]
  },
  "producer_notes": {
    "dos": ["visual do's"],
    "donts": ["visual don'ts"],
    "base_prompts": ["3 detailed prompts for consistent image generation"],
    "negative_prompts": ["things to avoid in generated images"]
  }
}

Rules:
- Colors must be hex codes (#RRGGBB) sampled from the images
- Describe only what the images show; do not invent brand facts
- No markdown fences, no commentary, no internal reasoning"""


def build_vision_prompt(locale: str, brand_context: str | None = None) -> PromptText:
    """Compose the instruction sent alongside the image set."""
    parts = []
    if brand_context and brand_context.strip():
        parts.append(f"Brand context:\n{brand_context.strip()}")
    parts.append(VISION_INSTRUCTIONS)
    parts.append(
        f"Write all free-text values in {language_name(locale)} ({locale}). Keep JSON keys in English."
    )
    return PromptText(system=VISION_SYSTEM_PROMPT, user="\n\n".join(parts), step="visual")


def build_image_prompt(base_prompt: str, negative_prompt: str | None = None) -> str:
    """Single prompt string for image generation."""
    prompt = base_prompt.strip()
    if negative_prompt and negative_prompt.strip():
        prompt = f"{prompt}. Avoid: {negative_prompt.strip()}"
    return prompt


EDIT_MARKER = "[EDIT_CONTENT]"

CHAT_SYSTEM_TEMPLATE = """You are Wit, the assistant inside a knowledge base builder. You are helping with step "{step}".

CONTEXT:
- Current Step: {step}
- Company URL: {company_url}
- User Language: {language} ({locale})
{current_content_line}

INSTRUCTIONS:
- Be concise and helpful; skip greetings unless this is the first message
- Focus on accuracy; if you do not know something, say so. Never invent facts
- Respond in {language} using {locale} spelling and conventions

EDITING THE REPORT:
- When the user asks to change, add, fix or remove anything in the report, apply the change yourself
- Write a short confirmation, then {marker} followed by the COMPLETE updated markdown of the report
- Everything after {marker} replaces the report, so include all of it, not only the changed part
- Without {marker} the report does not change"""


def build_chat_prompt(
    message: str,
    step: str,
    locale: str,
    company_url: str | None = None,
    current_content: str | None = None,
    history: Sequence[Mapping[str, Any]] | None = None,
) -> PromptText:
    """Compose the chat assistant prompt for one user message."""
    current_content_line = ""
    if current_content:
        current_content_line = f"- Current Content:\n{current_content}"

    system = CHAT_SYSTEM_TEMPLATE.format(
        step=step,
        company_url=company_url or "Not specified",
        language=language_name(locale),
        locale=locale,
        current_content_line=current_content_line,
        marker=EDIT_MARKER,
    )

    user_parts = [f'User message: "{message}"']
    recent = list(history or [])[-5:]
    if recent:
        lines = "\n".join(f"{m.get('role')}: {m.get('content')}" for m in recent)
        user_parts.append(f"Recent conversation:\n{lines}")
    user_parts.append("Respond directly to the user's request.")

    return PromptText(system=system, user="\n\n".join(user_parts), step=step)
