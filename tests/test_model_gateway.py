"""Tests for the model gateway retry/backoff loop."""

import asyncio

import httpx
import pytest

from kb_builder.core.errors import ProviderExhausted, ProviderTransient, ProviderUnavailable
from kb_builder.core.model_gateway import ModelGateway, ModelRequest, RawModelOutput
from tests.fakes.fake_providers import ScriptedProvider, SleepRecorder, make_gateway

GOOD_TEXT = "Acme builds industrial robots for small factories. " * 3


def _research_request(**overrides):
    fields = {"kind": "research", "prompt": "Research acme", "min_chars": 50}
    fields.update(overrides)
    return ModelRequest(**fields)


@pytest.mark.asyncio
async def test_first_attempt_success_no_sleep():
    sleep = SleepRecorder()
    provider = ScriptedProvider(GOOD_TEXT)
    gateway = make_gateway(sleep, research=provider)

    output = await gateway.call(_research_request())

    assert output.content == GOOD_TEXT
    assert output.attempts == 1
    assert provider.calls == 1
    assert sleep.delays == []


@pytest.mark.asyncio
async def test_transient_failures_then_success_backs_off():
    sleep = SleepRecorder()
    provider = ScriptedProvider(
        httpx.ConnectError("connection reset"),
        ProviderTransient("503 from provider"),
        GOOD_TEXT,
    )
    gateway = make_gateway(sleep, research=provider)

    output = await gateway.call(_research_request())

    assert output.attempts == 3
    assert provider.calls == 3
    assert sleep.delays == [1.0, 2.0]
    assert sleep.total >= 3.0


@pytest.mark.asyncio
async def test_retries_identical_request():
    provider = ScriptedProvider(ProviderTransient("boom"), GOOD_TEXT)
    gateway = make_gateway(research=provider)
    request = _research_request()

    await gateway.call(request)

    assert provider.requests[0] is request
    assert provider.requests[1] is request


@pytest.mark.asyncio
async def test_empty_and_short_content_are_retried():
    sleep = SleepRecorder()
    provider = ScriptedProvider("", "   too short   ", GOOD_TEXT)
    gateway = make_gateway(sleep, research=provider)

    output = await gateway.call(_research_request())

    assert output.content == GOOD_TEXT
    assert provider.calls == 3


@pytest.mark.asyncio
async def test_exhaustion_carries_last_error():
    sleep = SleepRecorder()
    provider = ScriptedProvider(
        ProviderTransient("first"),
        ProviderTransient("second"),
        ProviderTransient("third"),
        httpx.ReadTimeout("last one"),
    )
    gateway = make_gateway(sleep, research=provider)

    with pytest.raises(ProviderExhausted) as exc_info:
        await gateway.call(_research_request())

    error = exc_info.value
    assert provider.calls == 4
    assert error.attempts == 4
    assert isinstance(error.last_error, httpx.ReadTimeout)
    assert "ReadTimeout" in error.details["last_error"]
    assert sleep.delays == [1.0, 2.0, 4.0]


@pytest.mark.asyncio
async def test_timeout_is_retryable():
    class SlowThenFast:
        name = "slow"

        def __init__(self):
            self.calls = 0

        async def complete(self, request):
            self.calls += 1
            if self.calls == 1:
                await asyncio.sleep(10)
            return RawModelOutput(content=GOOD_TEXT)

    provider = SlowThenFast()
    gateway = ModelGateway({"research": provider}, timeout=0.05, sleep=SleepRecorder())

    output = await gateway.call(_research_request())

    assert provider.calls == 2
    assert output.attempts == 2


@pytest.mark.asyncio
async def test_non_retryable_error_propagates_immediately():
    provider = ScriptedProvider(KeyError("bug"))
    gateway = make_gateway(research=provider)

    with pytest.raises(KeyError):
        await gateway.call(_research_request())
    assert provider.calls == 1


@pytest.mark.asyncio
async def test_malformed_but_present_content_is_not_retried():
    provider = ScriptedProvider("{not valid json at all, but present}")
    gateway = make_gateway(vision=provider)

    output = await gateway.call(ModelRequest(kind="vision", prompt="analyse", min_chars=2))

    assert provider.calls == 1
    assert output.content.startswith("{not valid")


@pytest.mark.asyncio
async def test_image_requests_need_images():
    provider = ScriptedProvider(
        RawModelOutput(image_urls=[]),
        RawModelOutput(image_urls=["data:image/png;base64,AAAA"]),
    )
    gateway = make_gateway(image=provider)

    output = await gateway.call(ModelRequest(kind="image", prompt="a red chair", count=1))

    assert provider.calls == 2
    assert output.image_urls == ["data:image/png;base64,AAAA"]


@pytest.mark.asyncio
async def test_missing_provider_is_unavailable():
    gateway = make_gateway(research=ScriptedProvider(GOOD_TEXT))

    with pytest.raises(ProviderUnavailable):
        await gateway.call(ModelRequest(kind="chat", prompt="hi"))


def test_backoff_doubles():
    gateway = ModelGateway({}, backoff_base=0.5)
    assert [gateway.backoff_delay(n) for n in range(4)] == [0.5, 1.0, 2.0, 4.0]
