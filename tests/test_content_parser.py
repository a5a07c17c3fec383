"""Tests for research content parsing and visual guide validation."""

import pytest

from kb_builder.core.content_parser import (
    parse_step_content,
    parse_visual_guide,
    render_guide_markdown,
    split_sources,
)
from kb_builder.core.errors import EmptyContent, SchemaViolation
from kb_builder.core.schemas_visual_guide import VisualGuideRules
from tests.fixtures_kb import (
    BRAND_RESPONSE,
    COMPETITORS_RESPONSE,
    MARKET_RESPONSE,
    RESEARCH_MD,
    RESEARCH_RESPONSE,
    VALID_GUIDE,
    guide_json,
)


class TestSplitSources:
    def test_sources_section_becomes_citations(self):
        body, citations = split_sources(RESEARCH_RESPONSE)

        assert body == RESEARCH_MD
        assert [c.url for c in citations] == [
            "https://acme.example/about",
            "https://news.example.com/acme-funding",
        ]
        assert citations[0].snippet == "About Acme Robotics"

    def test_heading_variants(self):
        for header in ("## Sources", "**Citations:**", "References:", "### Fontes"):
            body, citations = split_sources(f"Body text here.\n\n{header}\n- https://a.example/x")
            assert body == "Body text here."
            assert [c.url for c in citations] == ["https://a.example/x"]

    def test_heading_after_sources_ends_section(self):
        text = "Intro.\n\nSources:\n1. https://a.example\n\n## Appendix\nMore body."
        body, citations = split_sources(text)
        assert "## Appendix" in body
        assert "More body." in body
        assert len(citations) == 1


class TestParseStepContent:
    def test_markdown_body_and_title(self):
        content = parse_step_content(RESEARCH_RESPONSE, "research", "https://acme.example")

        assert content.markdown_body == RESEARCH_MD
        assert content.title == "Company Overview"
        assert content.step == "research"
        assert content.structured_json["differentiators"][0] == "Robots configured in under a day"

    def test_no_citations_still_parses(self):
        content = parse_step_content(RESEARCH_MD, "research", "https://acme.example")

        assert content.citations == []
        assert content.markdown_body == RESEARCH_MD

    def test_provider_and_inline_citations_merged_without_duplicates(self):
        text = "Acme is covered at https://press.example/acme in depth.\n\nSources:\n1. https://acme.example/about - About"
        content = parse_step_content(
            text,
            "research",
            "https://acme.example",
            provider_citations=["https://acme.example/about", "https://extra.example/report"],
        )

        assert [c.url for c in content.citations] == [
            "https://acme.example/about",
            "https://extra.example/report",
            "https://press.example/acme",
        ]

    def test_subject_url_inline_is_not_a_citation(self):
        text = "Acme's website https://acme.example describes the company in detail for buyers."
        content = parse_step_content(text, "research", "https://acme.example")
        assert content.citations == []

    def test_sources_only_is_empty(self):
        with pytest.raises(EmptyContent):
            parse_step_content("Sources:\n1. https://a.example", "research", "https://acme.example")

    def test_title_falls_back_to_step_name(self):
        content = parse_step_content("Plain paragraph about services offered by Acme.", "services")
        assert content.title == "Services"

    def test_brand_structured_json(self):
        content = parse_step_content(BRAND_RESPONSE, "brand", "https://acme.example")

        assert content.structured_json["tone_traits"] == ["practical", "friendly", "confident"]
        assert content.structured_json["example_sentences"][0] == "Automation that fits your shop floor."

    def test_competitors_structured_json(self):
        content = parse_step_content(COMPETITORS_RESPONSE, "competitors", "https://acme.example")

        assert content.structured_json["competitors"][0]["name"] == "Universal Robots"
        assert content.structured_json["differentiators"] == ["Local installation team", "Leasing model"]

    def test_market_structured_json(self):
        content = parse_step_content(MARKET_RESPONSE, "market", "https://acme.example")

        assert content.structured_json["trends"][0]["name"] == "Reshoring"
        assert len(content.structured_json["takeaways"]) == 2


class TestParseVisualGuide:
    def test_valid_guide(self):
        result = parse_visual_guide(guide_json())

        assert result.visual_guide.model_dump() == VALID_GUIDE
        assert "# Visual Brand Guidelines" in result.guide_md
        assert "#1A2B3C" in result.guide_md

    def test_guide_inside_fences_and_prose(self):
        result = parse_visual_guide(f"Here is the guide:\n```json\n{guide_json()}\n```")
        assert result.visual_guide.palette.primary == ["#1A2B3C"]

    def test_missing_section_is_schema_violation(self):
        with pytest.raises(SchemaViolation) as exc_info:
            parse_visual_guide(guide_json(producer_notes=None))
        assert exc_info.value.details["missing"] == ["producer_notes"]

    def test_malformed_section_is_schema_violation(self):
        bad_palette = {"primary": ["blue"], "secondary": [], "neutrals": []}
        with pytest.raises(SchemaViolation) as exc_info:
            parse_visual_guide(guide_json(palette=bad_palette))
        assert exc_info.value.details["errors"][0]["loc"].startswith("palette")

    def test_no_json_is_schema_violation(self):
        with pytest.raises(SchemaViolation):
            parse_visual_guide("I could not analyse these images, sorry.")

    def test_render_is_deterministic(self):
        rules = VisualGuideRules.model_validate(VALID_GUIDE)
        assert render_guide_markdown(rules) == render_guide_markdown(rules)
