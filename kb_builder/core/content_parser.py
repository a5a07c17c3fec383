"""Parsing of sanitized model output into structured step content.

Research responses are natural language. Parsing is deliberately tolerant:
the markdown body is the payload, citations are best effort, and a response
without any citations still parses. Vision responses are different: the
visual guide must validate against its schema or the whole result is rejected.
"""

import re
from typing import Any, Iterable

from pydantic import ValidationError

from kb_builder.core.errors import EmptyContent, SchemaViolation
from kb_builder.core.llm import extract_json_object
from kb_builder.core.logging import get_logger
from kb_builder.core.schemas_kb import Citation, StructuredContent, VisualGuideResult
from kb_builder.core.schemas_visual_guide import REQUIRED_SECTIONS, VisualGuideRules
from kb_builder.core.step_graph import STEP_DEFINITIONS

logger = get_logger(__name__)

_URL_RE = re.compile(r"https?://[^\s<>\"'\)\]]+")
_SOURCES_HEADER_RE = re.compile(
    r"^(?:#{1,6}\s*)?(?:\*\*)?\s*(sources|citations|references|fontes|referências)\s*:?\s*(?:\*\*)?\s*:?$",
    re.IGNORECASE,
)
_LIST_PREFIX_RE = re.compile(r"^\s*(?:[-*•]|\d+[.)]|\[\d+\])\s*")
_SNIPPET_TRIM = " -–—:|[]()"


def _clean_url(url: str) -> str:
    return url.rstrip(".,;:!?*")


def _dedupe(citations: Iterable[Citation]) -> list[Citation]:
    seen: set[str] = set()
    result = []
    for c in citations:
        key = c.url.rstrip("/")
        if key in seen:
            continue
        seen.add(key)
        result.append(c)
    return result


def _citation_from_line(line: str) -> list[Citation]:
    """Citations declared on one line of a Sources section."""
    urls = [_clean_url(u) for u in _URL_RE.findall(line)]
    if not urls:
        return []
    snippet = _LIST_PREFIX_RE.sub("", line)
    for url in urls:
        snippet = snippet.replace(url, "")
    snippet = re.sub(r"\[\s*\]|\(\s*\)", "", snippet).strip(_SNIPPET_TRIM).strip()
    return [Citation(url=url, snippet=snippet) for url in urls]


def split_sources(text: str) -> tuple[str, list[Citation]]:
    """
    Separate the markdown body from a trailing Sources/Citations section.

    A new markdown heading after the sources section ends it and the text
    continues as body.
    """
    body_lines: list[str] = []
    citations: list[Citation] = []
    in_sources = False

    for line in text.split("\n"):
        stripped = line.strip()
        if _SOURCES_HEADER_RE.match(stripped):
            in_sources = True
            continue
        if in_sources:
            if stripped.startswith("#"):
                in_sources = False
            else:
                citations.extend(_citation_from_line(stripped))
                continue
        body_lines.append(line.rstrip())

    body = re.sub(r"\n{3,}", "\n\n", "\n".join(body_lines)).strip()
    return body, citations


def _sections(body: str) -> list[tuple[str, list[str]]]:
    """Split markdown into (level-2 heading, lines) pairs; text before the first heading is ''."""
    sections: list[tuple[str, list[str]]] = [("", [])]
    for line in body.split("\n"):
        if line.startswith("## "):
            sections.append((line[3:].strip().strip("*"), []))
        elif line.strip() and not line.startswith("# "):
            sections[-1][1].append(line.strip())
    return sections


def _bullets(lines: Iterable[str]) -> list[str]:
    return [_LIST_PREFIX_RE.sub("", ln).strip() for ln in lines if _LIST_PREFIX_RE.match(ln)]


def _extract_brand(body: str) -> dict[str, Any]:
    data: dict[str, Any] = {}
    traits = re.search(r"tone traits?\s*:\s*(.+)", body, re.IGNORECASE)
    if traits:
        data["tone_traits"] = [t.strip(" *.[]") for t in traits.group(1).split(",") if t.strip(" *.[]")]
    examples = re.findall(r'^\s*\d+[.)]\s*["“](.+?)["”]\s*$', body, re.MULTILINE)
    if examples:
        data["example_sentences"] = examples
    return data


def _extract_named_sections(body: str, key: str, tail_keyword: str | None) -> dict[str, Any]:
    """Level-2 sections become named items; the section matching tail_keyword becomes a bullet list."""
    items = []
    tail: list[str] = []
    for heading, lines in _sections(body):
        if not heading:
            continue
        if tail_keyword and tail_keyword in heading.lower():
            tail.extend(_bullets(lines))
            continue
        text = " ".join(_LIST_PREFIX_RE.sub("", ln) for ln in lines).strip()
        items.append({"name": heading, "description": text})
    data: dict[str, Any] = {}
    if items:
        data[key] = items
    if tail and tail_keyword:
        data[tail_keyword + "s"] = tail
    return data


def extract_structured_json(step: str, body: str) -> dict[str, Any] | None:
    """Best-effort structured view of a step's markdown. Never raises."""
    try:
        if step == "brand":
            data = _extract_brand(body)
        elif step == "services":
            data = _extract_named_sections(body, "services", None)
        elif step == "market":
            data = _extract_named_sections(body, "trends", "takeaway")
        elif step == "competitors":
            data = _extract_named_sections(body, "competitors", "differentiator")
        elif step == "research":
            data = _extract_named_sections(body, "sections", "differentiator")
        else:
            data = {}
    except (re.error, IndexError, AttributeError) as e:
        logger.debug(f"Structured extraction skipped for {step}: {e}")
        return None
    return data or None


def _title(body: str, step: str) -> str:
    for line in body.split("\n"):
        if line.startswith("# "):
            return line[2:].strip()
    return STEP_DEFINITIONS[step].display_name


def parse_step_content(
    clean_text: str,
    step: str,
    company_url: str | None = None,
    provider_citations: Iterable[str] | None = None,
) -> StructuredContent:
    """
    Parse sanitized research text into structured content.

    Citations come from the response's Sources section, URLs provider-declared
    alongside the response, and URLs inline in the body, deduplicated in that
    order. The subject company URL itself is not treated as a citation unless
    the model cited it explicitly.

    Raises:
        EmptyContent: If nothing but a sources list remains
    """
    body, declared = split_sources(clean_text)
    if not body:
        raise EmptyContent(f"Response for step '{step}' contained no content besides sources")

    provider = [Citation(url=_clean_url(u)) for u in (provider_citations or []) if u]
    subject = (company_url or "").rstrip("/")
    inline = [
        Citation(url=_clean_url(u))
        for u in _URL_RE.findall(body)
        if _clean_url(u).rstrip("/") != subject
    ]

    citations = _dedupe([*declared, *provider, *inline])

    logger.debug(
        f"Parsed {step} content: {len(body)} chars, {len(citations)} citations",
        extra={"step": step},
    )

    return StructuredContent(
        step=step,
        title=_title(body, step),
        markdown_body=body,
        citations=citations,
        structured_json=extract_structured_json(step, body),
    )


def _validation_errors(e: ValidationError) -> list[dict[str, str]]:
    return [
        {"loc": ".".join(str(p) for p in err.get("loc", ())), "msg": err.get("msg", "")}
        for err in e.errors()
    ]


def parse_visual_guide(clean_text: str) -> VisualGuideResult:
    """
    Extract and validate the visual guide rule object.

    Raises:
        SchemaViolation: If no JSON object is present, a required section is
            missing, or any section fails validation
    """
    try:
        payload = extract_json_object(clean_text)
    except ValueError as e:
        raise SchemaViolation("Vision response did not contain a JSON guide") from e

    if not isinstance(payload, dict):
        raise SchemaViolation("Vision response JSON is not an object")

    missing = [s for s in REQUIRED_SECTIONS if s not in payload]
    if missing:
        raise SchemaViolation(
            f"Visual guide is missing required sections: {', '.join(missing)}",
            {"missing": missing},
        )

    try:
        rules = VisualGuideRules.model_validate(payload)
    except ValidationError as e:
        raise SchemaViolation(
            "Visual guide failed schema validation",
            {"errors": _validation_errors(e)},
        ) from e

    return VisualGuideResult(visual_guide=rules, guide_md=render_guide_markdown(rules))


def _list_md(items: list[str], numbered: bool = False) -> str:
    if not items:
        return "- (none)"
    if numbered:
        return "\n".join(f"{i}. {item}" for i, item in enumerate(items, 1))
    return "\n".join(f"- {item}" for item in items)


def render_guide_markdown(rules: VisualGuideRules) -> str:
    """Markdown summary of a validated guide."""
    style = rules.style_direction
    palette = rules.palette
    imagery = rules.imagery_categories
    notes = rules.producer_notes
    return f"""# Visual Brand Guidelines

## Style Direction
- **Lighting:** {style.lighting}
- **Composition:** {style.composition}
- **Mood:** {", ".join(style.mood)}

## Color Palette
- **Primary:** {", ".join(palette.primary)}
- **Secondary:** {", ".join(palette.secondary) or "-"}
- **Neutrals:** {", ".join(palette.neutrals) or "-"}

## Imagery
- **Subjects:** {", ".join(imagery.subjects)}
- **Textures:** {", ".join(imagery.textures) or "-"}

## Producer Notes

### Do's
{_list_md(notes.dos)}

### Don'ts
{_list_md(notes.donts)}

### Base Prompts
{_list_md(notes.base_prompts, numbered=True)}

### Negative Prompts
{_list_md(notes.negative_prompts, numbered=True)}
"""
