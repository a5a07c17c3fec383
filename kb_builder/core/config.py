"""Configuration management for the KB Builder service."""

from functools import lru_cache

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load environment variables from .env file (only if accessible)
try:
    load_dotenv()
except (PermissionError, OSError):
    # In sandboxed environments, .env might not be accessible
    pass


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
        frozen=True,
    )

    # Supabase configuration (required)
    SUPABASE_URL: str = Field(..., description="Supabase project URL")
    SUPABASE_SERVICE_ROLE_KEY: str = Field(..., description="Supabase service role key")
    STORAGE_BUCKET: str = Field(default="kb-builder", description="Bucket for KB images")

    # Provider keys
    OPENAI_API_KEY: str = Field(..., description="OpenAI API key (vision + image generation)")
    PERPLEXITY_API_KEY: str = Field(..., description="Perplexity API key (research)")
    ANTHROPIC_API_KEY: str | None = Field(default=None, description="Anthropic key (chat)")

    # Environment
    KB_ENV: str = Field(default="dev", description="Environment: dev, staging, prod, test")

    # Research (Perplexity)
    PERPLEXITY_BASE_URL: str = Field(default="https://api.perplexity.ai")
    RESEARCH_MODEL: str = Field(default="sonar", description="Perplexity model for research steps")
    RESEARCH_TEMPERATURE: float = Field(default=0.2)
    RESEARCH_MAX_TOKENS: int = Field(default=2000)

    # Vision analysis + image generation (OpenAI)
    VISION_MODEL: str = Field(default="gpt-4o", description="Model for brand image analysis")
    VISION_TEMPERATURE: float = Field(default=0.4)
    VISION_MAX_TOKENS: int = Field(default=2000)
    IMAGE_MODEL: str = Field(default="dall-e-3", description="Model for test image generation")
    IMAGE_SIZE: str = Field(default="1024x1024")

    # Chat assistant (Anthropic)
    CHAT_MODEL: str = Field(default="claude-3-5-haiku-20241022")
    CHAT_TEMPERATURE: float = Field(default=0.7)
    CHAT_MAX_TOKENS: int = Field(default=2000)

    # Gateway retry policy
    PROVIDER_TIMEOUT_SECONDS: float = Field(default=60.0, description="Per-attempt timeout")
    PROVIDER_MAX_RETRIES: int = Field(default=3, description="Additional attempts after the first")
    PROVIDER_BACKOFF_BASE_SECONDS: float = Field(
        default=1.0, description="First backoff delay; doubles on every retry"
    )

    # Content gates
    MIN_CONTENT_CHARS: int = Field(default=50, description="Minimum usable response length")
    MAX_IMAGE_BYTES: int = Field(default=10_000_000, description="Max imported image size")

    # Request boundary
    REQUEST_TIMEOUT_SECONDS: float = Field(
        default=120.0, description="How long an API call waits on the pipeline"
    )


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Settings instance

    Raises:
        ValidationError: If required environment variables are missing
    """
    return Settings()
