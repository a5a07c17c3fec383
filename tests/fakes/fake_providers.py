"""Scripted model providers and a sleep recorder for gateway tests."""

from typing import Any, Awaitable, Callable, List

from kb_builder.core.model_gateway import ModelGateway, ModelRequest, RawModelOutput


class ScriptedProvider:
    """Returns queued outputs in order; queued exceptions are raised.

    Strings are wrapped as RawModelOutput(content=...). The last entry is
    repeated once the script runs out. ``on_call`` is awaited after the
    request is recorded and before the output is returned.
    """

    def __init__(
        self,
        *script: Any,
        name: str = "fake",
        on_call: Callable[[ModelRequest], Awaitable[None]] | None = None,
    ):
        self.name = name
        self.on_call = on_call
        self.script: List[Any] = list(script)
        self.requests: List[ModelRequest] = []

    @property
    def calls(self) -> int:
        return len(self.requests)

    async def complete(self, request: ModelRequest) -> RawModelOutput:
        self.requests.append(request)
        index = min(len(self.requests) - 1, len(self.script) - 1)
        if self.on_call is not None:
            await self.on_call(request)
        item = self.script[index]
        if isinstance(item, BaseException):
            raise item
        if isinstance(item, str):
            return RawModelOutput(content=item, provider=self.name)
        return RawModelOutput(
            content=item.content,
            citations=list(item.citations),
            image_urls=list(item.image_urls),
            provider=item.provider or self.name,
            model=item.model,
        )


class SleepRecorder:
    """Awaitable replacement for asyncio.sleep that records requested delays."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)

    @property
    def total(self) -> float:
        return sum(self.delays)


def make_gateway(sleep: SleepRecorder | None = None, **providers: ScriptedProvider) -> ModelGateway:
    return ModelGateway(
        providers=providers,
        max_retries=3,
        backoff_base=1.0,
        timeout=5.0,
        sleep=sleep or SleepRecorder(),
    )
