"""Reply generation with timeouts and stream cleanup."""

import asyncio

import pytest

from cvassist.core.config.settings import ResponseSettings
from cvassist.core.errors import InferenceFailed
from cvassist.integrations.inference import InferenceService, drain_with_timeout
from cvassist.integrations.openai_client import OpenAIClient, hashed_embedding

from conftest import FakeCompletion


class SlowStream:
    def __init__(self):
        self.closed = False

    def __aiter__(self):
        return self

    async def __anext__(self):
        await asyncio.sleep(1)
        return "never"

    async def aclose(self):
        self.closed = True


class SlowModel:
    def __init__(self):
        self.stream = SlowStream()

    async def complete(self, system_prompt, user_prompt, max_tokens=80, stop=None):
        return self.stream


def test_drain_collects_chunks():
    async def chunks():
        for part in ("I built ", "Python services", "."):
            yield part

    assert asyncio.run(drain_with_timeout(chunks(), 1.0)) == "I built Python services."


def test_drain_timeout_closes_stream():
    stream = SlowStream()
    with pytest.raises(asyncio.TimeoutError):
        asyncio.run(drain_with_timeout(stream, 0.05))
    assert stream.closed


def test_generate_from_stream_strips_quotes():
    model = FakeCompletion(reply='"I engineered Python services at Acme."', stream=True)
    service = InferenceService(model)
    assert asyncio.run(service.generate("system", "user")) == "I engineered Python services at Acme."
    assert model.calls == [("system", "user")]


def test_timeout_becomes_inference_failed():
    model = SlowModel()
    service = InferenceService(model, ResponseSettings(inference_timeout_seconds=0.05))
    with pytest.raises(InferenceFailed):
        asyncio.run(service.generate("system", "user"))
    assert model.stream.closed


class LateStream:
    def __init__(self, delay):
        self.delay = delay
        self.sent = False
        self.closed = False

    def __aiter__(self):
        return self

    async def __anext__(self):
        if self.sent:
            raise StopAsyncIteration
        await asyncio.sleep(self.delay)
        self.sent = True
        return "I built Python services."

    async def aclose(self):
        self.closed = True


class SlowOpenModel:
    """Takes ``delay`` to open the stream and ``delay`` again to finish it."""

    def __init__(self, delay):
        self.delay = delay
        self.stream = LateStream(delay)

    async def complete(self, system_prompt, user_prompt, max_tokens=80, stop=None):
        await asyncio.sleep(self.delay)
        return self.stream


def test_timeout_covers_open_and_drain_together():
    model = SlowOpenModel(delay=0.3)
    service = InferenceService(model, ResponseSettings(inference_timeout_seconds=0.5))

    with pytest.raises(InferenceFailed):
        asyncio.run(service.generate("system", "user"))
    assert model.stream.closed


def test_slow_open_within_budget_still_answers():
    model = SlowOpenModel(delay=0.1)
    service = InferenceService(model, ResponseSettings(inference_timeout_seconds=1.0))
    assert asyncio.run(service.generate("system", "user")) == "I built Python services."


def test_model_error_becomes_inference_failed():
    service = InferenceService(FakeCompletion(error=RuntimeError("upstream 500")))
    with pytest.raises(InferenceFailed) as info:
        asyncio.run(service.generate("system", "user"))
    assert info.value.detail == "upstream 500"


def test_openai_client_test_mode(monkeypatch):
    monkeypatch.setenv("CVASSIST_TEST_MODE", "1")
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    client = OpenAIClient(embedding_dimensions=32)

    vector = asyncio.run(client.embed("Python services"))
    assert len(vector) == 32
    assert vector == hashed_embedding("Python services", 32)

    user_prompt = "Question: Python?\n\nRelevant skills:\n1. Python: 12 years, Advanced\n   Employer: Acme\n"
    stream = asyncio.run(client.complete("system", user_prompt))
    reply = asyncio.run(drain_with_timeout(stream, 1.0))
    assert reply == "I delivered production systems with Python at Acme."
