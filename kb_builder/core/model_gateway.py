"""Model gateway: one entry point for every external generative call.

Each request is routed to the provider registered for its ``kind``. A call
gets a per-attempt timeout; timeouts, network errors, non-2xx answers and
empty/too-short bodies are retried with exponential backoff up to a fixed
bound. Structurally wrong but present content is returned as-is; deciding
that it is unusable is the parser's job and is never retried here.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, Awaitable, Callable, Literal, Mapping, Protocol

import httpx

from kb_builder.core.config import Settings, get_settings
from kb_builder.core.errors import ProviderExhausted, ProviderTransient, ProviderUnavailable
from kb_builder.core.logging import get_logger, log_with_context

logger = get_logger(__name__)

RequestKind = Literal["research", "vision", "image", "chat"]


@dataclass(frozen=True)
class ModelRequest:
    """Provider-agnostic description of one generative call."""

    kind: RequestKind
    prompt: str
    system: str | None = None
    image_urls: tuple[str, ...] = ()
    temperature: float | None = None
    max_tokens: int | None = None
    # Responses shorter than this (after trimming) count as empty and are retried
    min_chars: int = 1
    count: int = 1
    locale: str | None = None
    metadata: Mapping[str, Any] = field(default_factory=dict)


@dataclass
class RawModelOutput:
    """Unprocessed provider answer."""

    content: str = ""
    citations: list[str] = field(default_factory=list)
    image_urls: list[str] = field(default_factory=list)
    provider: str = ""
    model: str = ""
    attempts: int = 1


class ModelProvider(Protocol):
    name: str

    async def complete(self, request: ModelRequest) -> RawModelOutput: ...


SleepFn = Callable[[float], Awaitable[Any]]

# Failures a retry can plausibly fix
RETRYABLE_ERRORS: tuple[type[BaseException], ...] = (
    ProviderTransient,
    asyncio.TimeoutError,
    httpx.HTTPError,
    ConnectionError,
)


class ModelGateway:
    """
    Routes requests to providers with timeout, retry and backoff.

    Args:
        providers: Map of request kind -> provider
        max_retries: Additional attempts after the first
        backoff_base: Delay before the first retry; doubles on every retry
        timeout: Per-attempt timeout in seconds
        sleep: Awaitable sleep, replaced in tests to observe delays
    """

    def __init__(
        self,
        providers: Mapping[str, ModelProvider],
        max_retries: int = 3,
        backoff_base: float = 1.0,
        timeout: float = 60.0,
        sleep: SleepFn = asyncio.sleep,
    ):
        self.providers = dict(providers)
        self.max_retries = max_retries
        self.backoff_base = backoff_base
        self.timeout = timeout
        self._sleep = sleep

    def backoff_delay(self, retry_number: int) -> float:
        """Delay before retry ``retry_number`` (0-based): base, 2*base, 4*base, ..."""
        return self.backoff_base * (2**retry_number)

    def provider_for(self, kind: str) -> ModelProvider:
        provider = self.providers.get(kind)
        if provider is None:
            raise ProviderUnavailable(f"No provider configured for '{kind}' requests")
        return provider

    def _check_output(self, request: ModelRequest, output: RawModelOutput) -> None:
        """Empty answers are transient: the provider produced nothing to parse."""
        if request.kind == "image":
            if not output.image_urls:
                raise ProviderTransient("Image provider returned no images")
            return
        if len((output.content or "").strip()) < request.min_chars:
            raise ProviderTransient(
                f"Provider returned empty or too short content ({len((output.content or '').strip())} chars)"
            )

    async def call(self, request: ModelRequest) -> RawModelOutput:
        """
        Execute a request with bounded retry.

        Returns:
            RawModelOutput of the first successful attempt

        Raises:
            ProviderUnavailable: If no provider handles ``request.kind``
            ProviderExhausted: If every attempt failed; carries the last error
        """
        provider = self.provider_for(request.kind)
        total_attempts = self.max_retries + 1
        last_error: BaseException | None = None
        log_ctx = {"provider": provider.name, "step": request.metadata.get("step")}

        for attempt in range(total_attempts):
            if attempt > 0:
                delay = self.backoff_delay(attempt - 1)
                logger.info(
                    f"Retrying {request.kind} call in {delay:.1f}s",
                    extra={**log_ctx, "attempt": attempt + 1},
                )
                await self._sleep(delay)

            try:
                output = await asyncio.wait_for(provider.complete(request), timeout=self.timeout)
                self._check_output(request, output)
            except RETRYABLE_ERRORS as e:
                last_error = e
                logger.warning(
                    f"{request.kind} attempt {attempt + 1}/{total_attempts} failed: "
                    f"{type(e).__name__}: {e}",
                    extra={**log_ctx, "attempt": attempt + 1},
                )
                continue

            output.attempts = attempt + 1
            output.provider = output.provider or provider.name
            logger.debug(
                f"{request.kind} call succeeded on attempt {attempt + 1}",
                extra={**log_ctx, "attempt": attempt + 1},
            )
            return output

        log_with_context(
            logger,
            logging.ERROR,
            f"{request.kind} call exhausted {total_attempts} attempts",
            last_error=type(last_error).__name__,
            **log_ctx,
        )
        raise ProviderExhausted(
            f"The {request.kind} provider failed after {total_attempts} attempts",
            last_error=last_error,
            attempts=total_attempts,
        )


def build_providers(settings: Settings) -> dict[str, ModelProvider]:
    """Instantiate the configured providers. Chat is omitted without an Anthropic key."""
    from kb_builder.core.anthropic_chat_service import AnthropicChatProvider
    from kb_builder.core.openai_vision_service import OpenAIImageProvider, OpenAIVisionProvider
    from kb_builder.core.perplexity_service import PerplexityResearchProvider

    providers: dict[str, ModelProvider] = {
        "research": PerplexityResearchProvider(
            api_key=settings.PERPLEXITY_API_KEY,
            model=settings.RESEARCH_MODEL,
            base_url=settings.PERPLEXITY_BASE_URL,
        ),
        "vision": OpenAIVisionProvider(
            api_key=settings.OPENAI_API_KEY,
            model=settings.VISION_MODEL,
            download_timeout=settings.PROVIDER_TIMEOUT_SECONDS,
        ),
        "image": OpenAIImageProvider(
            api_key=settings.OPENAI_API_KEY,
            model=settings.IMAGE_MODEL,
            size=settings.IMAGE_SIZE,
        ),
    }
    if settings.ANTHROPIC_API_KEY:
        providers["chat"] = AnthropicChatProvider(
            api_key=settings.ANTHROPIC_API_KEY,
            model=settings.CHAT_MODEL,
        )
    else:
        logger.warning("ANTHROPIC_API_KEY not set, chat assistant disabled")
    return providers


@lru_cache
def get_model_gateway() -> ModelGateway:
    """Process-wide gateway built once from settings."""
    settings = get_settings()
    return ModelGateway(
        providers=build_providers(settings),
        max_retries=settings.PROVIDER_MAX_RETRIES,
        backoff_base=settings.PROVIDER_BACKOFF_BASE_SECONDS,
        timeout=settings.PROVIDER_TIMEOUT_SECONDS,
    )
