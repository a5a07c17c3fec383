"""
Wizard step graph.

Linear step flow:
  welcome → research → brand → services → market → competitors → visual → export

Each generative step declares which prior steps' documents it reads as
context. The pipeline controller consults this table; prompt text never
decides dependencies on its own.
"""

from dataclasses import dataclass, field

STEP_ORDER: tuple[str, ...] = (
    "welcome",
    "research",
    "brand",
    "services",
    "market",
    "competitors",
    "visual",
    "export",
)


@dataclass(frozen=True)
class StepDefinition:
    """Definition of one wizard step."""

    step: str
    display_name: str
    generator: str | None  # "research", "vision" or None for non-generative steps
    context_steps: tuple[str, ...] = field(default_factory=tuple)
    requires_images: bool = False


STEP_DEFINITIONS: dict[str, StepDefinition] = {
    "welcome": StepDefinition("welcome", "Welcome", generator=None),
    "research": StepDefinition("research", "Company Research", generator="research"),
    "brand": StepDefinition(
        "brand", "Brand Voice", generator="research", context_steps=("research",)
    ),
    "services": StepDefinition(
        "services", "Services", generator="research", context_steps=("research",)
    ),
    "market": StepDefinition(
        "market", "Market Trends", generator="research", context_steps=("research",)
    ),
    "competitors": StepDefinition(
        "competitors",
        "Competitors",
        generator="research",
        context_steps=("research", "brand"),
    ),
    "visual": StepDefinition("visual", "Visual Guide", generator="vision", requires_images=True),
    "export": StepDefinition("export", "Export", generator=None),
}


def step_index(step: str) -> int:
    return STEP_ORDER.index(step)


def next_step(step: str) -> str:
    """Step after ``step``; ``export`` is terminal and maps to itself."""
    idx = step_index(step)
    return STEP_ORDER[min(idx + 1, len(STEP_ORDER) - 1)]


def expected_step(current: str) -> str:
    """
    The generative step a session at ``current`` is expected to run next.

    A session parked on a non-generative step (``welcome``) expects the first
    generative step after it.
    """
    idx = step_index(current)
    for candidate in STEP_ORDER[idx:]:
        if STEP_DEFINITIONS[candidate].generator is not None:
            return candidate
    return current


def step_after_success(current: str, ran: str) -> str:
    """
    Session step after ``ran`` succeeded while the session was at ``current``.

    Only running the expected step advances the session. Regenerating an
    already visited step, or running ahead, leaves it where it is.
    """
    if ran == expected_step(current):
        return next_step(ran)
    return current


def context_steps(step: str) -> tuple[str, ...]:
    """Prior steps whose current documents feed ``step``'s prompt."""
    return STEP_DEFINITIONS[step].context_steps
