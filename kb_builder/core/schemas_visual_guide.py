"""Pydantic schema for the visual guide rule object.

The guide has four required sections. A vision response missing any of them
(or carrying one in the wrong shape) is rejected as a whole; partial guides
are never written.
"""

import re

from pydantic import BaseModel, Field, field_validator

REQUIRED_SECTIONS = ("style_direction", "palette", "imagery_categories", "producer_notes")

_HEX_RE = re.compile(r"^#(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6}|[0-9a-fA-F]{8})$")


class StyleDirection(BaseModel):
    """Overall look: light, framing and emotional tone."""

    lighting: str = Field(..., min_length=1)
    composition: str = Field(..., min_length=1)
    mood: list[str] = Field(..., min_length=1)


class Palette(BaseModel):
    """Brand colors as hex codes."""

    primary: list[str] = Field(..., min_length=1)
    secondary: list[str] = Field(default_factory=list)
    neutrals: list[str] = Field(default_factory=list)

    @field_validator("primary", "secondary", "neutrals")
    @classmethod
    def _hex_colors(cls, colors: list[str]) -> list[str]:
        cleaned = [c.strip() for c in colors]
        bad = [c for c in cleaned if not _HEX_RE.match(c)]
        if bad:
            raise ValueError(f"not hex colors: {', '.join(bad)}")
        return cleaned


class ImageryCategories(BaseModel):
    """What the brand photographs and what surfaces show up."""

    subjects: list[str] = Field(..., min_length=1)
    textures: list[str] = Field(default_factory=list)


class ProducerNotes(BaseModel):
    """Guidance for whoever produces new imagery."""

    dos: list[str] = Field(default_factory=list)
    donts: list[str] = Field(default_factory=list)
    base_prompts: list[str] = Field(..., min_length=1)
    negative_prompts: list[str] = Field(default_factory=list)


class VisualGuideRules(BaseModel):
    """Complete visual guide. All four sections are required."""

    style_direction: StyleDirection
    palette: Palette
    imagery_categories: ImageryCategories
    producer_notes: ProducerNotes
