"""Pydantic schemas for KB sessions, documents, sources, images and API payloads."""

import re
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, Field, HttpUrl, field_validator

from kb_builder.core.schemas_visual_guide import VisualGuideRules

Locale = Literal["en-US", "en-GB", "pt-BR", "pt-PT"]

WizardStep = Literal[
    "welcome", "research", "brand", "services", "market", "competitors", "visual", "export"
]

# Steps whose artifact is a markdown Document; also the set of document types
ResearchStep = Literal["research", "brand", "services", "market", "competitors"]

DocumentStatus = Literal["draft", "approved"]

ImageRole = Literal["user", "generated"]
ImageStatus = Literal["uploading", "uploaded", "analyzing", "analyzed", "rejected", "error"]

SourceProvider = Literal["perplexity", "openai", "manual"]
ChatRole = Literal["user", "assistant"]

LANGUAGE_NAMES: dict[str, str] = {
    "en-US": "English (US)",
    "en-GB": "English (UK)",
    "pt-BR": "Portuguese (Brazil)",
    "pt-PT": "Portuguese (Portugal)",
}

_SCHEME_RE = re.compile(r"^https?://", re.IGNORECASE)


def normalize_url(url: str) -> str:
    """Prepend https:// to URLs typed without a scheme."""
    if not isinstance(url, str):
        return url
    trimmed = url.strip()
    if not trimmed or _SCHEME_RE.match(trimmed):
        return trimmed
    return f"https://{trimmed}"


# === CONTENT ===


class Citation(BaseModel):
    """A source URL cited by a research response."""

    url: str
    snippet: str = ""
    provider: SourceProvider = "perplexity"


class StructuredContent(BaseModel):
    """Parsed, validated output of one research step."""

    step: ResearchStep
    title: str | None = None
    markdown_body: str
    citations: list[Citation] = Field(default_factory=list)
    structured_json: dict[str, Any] | None = None


class VisualGuideResult(BaseModel):
    """Validated vision analysis: rule object plus its markdown rendering."""

    visual_guide: VisualGuideRules
    guide_md: str


# === REQUESTS ===


class CreateSessionRequest(BaseModel):
    """Start a new wizard run."""

    user_id: UUID
    language: Locale = "en-US"
    company_url: HttpUrl | None = None

    @field_validator("company_url", mode="before")
    @classmethod
    def _normalize(cls, v: Any) -> Any:
        return normalize_url(v) if v else v


class RunStepRequest(BaseModel):
    """Generate (or regenerate) one wizard step."""

    session_id: UUID
    step: WizardStep
    company_url: HttpUrl | None = Field(
        default=None, description="Overrides the session's company URL for this run"
    )
    allow_degraded_context: bool = Field(
        default=False,
        description="Proceed with whatever prior context exists instead of failing",
    )

    @field_validator("company_url", mode="before")
    @classmethod
    def _normalize(cls, v: Any) -> Any:
        return normalize_url(v) if v else v


class ChatEditRequest(BaseModel):
    """Direct content replacement for a step's current document."""

    session_id: UUID
    step: ResearchStep
    updated_content: str = Field(..., min_length=1)
    reason: str | None = None


class VisionAnalyseRequest(BaseModel):
    """Analyse a session's uploaded brand images into a visual guide."""

    session_id: UUID
    image_urls: list[HttpUrl] = Field(default_factory=list)
    locale: Locale = "en-US"
    brand_context: str | None = None
    reanalyze: bool = Field(
        default=False, description="Include already analyzed images in the batch"
    )


class ImageGenerationRequest(BaseModel):
    """Generate sample images from a visual guide prompt."""

    session_id: UUID
    base_prompt: str = Field(..., min_length=1)
    negative_prompt: str | None = None
    count: int = Field(default=1, ge=1, le=4)


class ChatRequest(BaseModel):
    """A user message to the chat assistant."""

    session_id: UUID
    content: str = Field(..., min_length=1)
    current_step: WizardStep
    current_content: str | None = None
    user_language: Locale | None = None


class ImportImageRequest(BaseModel):
    """Import an image from a public URL into the session's image set."""

    session_id: UUID
    url: HttpUrl

    @field_validator("url", mode="before")
    @classmethod
    def _normalize(cls, v: Any) -> Any:
        return normalize_url(v) if v else v


# === RESPONSES ===


class RunStepResponse(BaseModel):
    """Result of a successful step run."""

    session_id: UUID
    step: WizardStep
    session_step: WizardStep
    document_id: UUID | None = None
    content_md: str
    content_json: dict[str, Any] | None = None
    sources: list[Citation] = Field(default_factory=list)
    visual_guide: VisualGuideRules | None = None


class ChatEditResponse(BaseModel):
    """Acknowledgement of a chat-driven content replacement."""

    success: bool = True
    message: str = "Content updated successfully"
    step: ResearchStep
    document_id: UUID
    reason: str | None = None


class VisionAnalyseResponse(BaseModel):
    """Validated visual guide plus which images were analysed."""

    visual_guide: VisualGuideRules
    guide_md: str
    analyzed_image_ids: list[UUID] = Field(default_factory=list)


class GeneratedImage(BaseModel):
    """One generated test image."""

    url: str
    storage_path: str
    image_id: UUID | None = None


class ImageGenerationResponse(BaseModel):
    """Generated test images."""

    images: list[GeneratedImage]


class ChatResponse(BaseModel):
    """Assistant reply, with whether it edited the step content."""

    session_id: UUID
    role: ChatRole = "assistant"
    content: str
    content_updated: bool = False
    document_id: UUID | None = None
