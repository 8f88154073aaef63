"""Daily inference budget breaker."""

from datetime import datetime, timedelta, timezone

import pytest

from cvassist.core.config.settings import QuotaSettings
from cvassist.core.errors import QuotaExhausted
from cvassist.core.storage.kv_store import MemoryKeyValueStore
from cvassist.kb.utils.quota_breaker import QuotaCircuitBreaker


class Clock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def epoch(self) -> float:
        return self.now.timestamp()


@pytest.fixture
def clock():
    return Clock(datetime(2025, 3, 4, 22, 30, tzinfo=timezone.utc))


@pytest.fixture
def breaker(clock):
    store = MemoryKeyValueStore(clock=clock.epoch)
    return QuotaCircuitBreaker(store, QuotaSettings(), clock=clock)


def test_keys_and_reset_time(breaker):
    status = breaker.status()
    assert status.date == "2025-03-04"
    assert status.reset_at == datetime(2025, 3, 5, tzinfo=timezone.utc)
    assert breaker._cost_key() == "ai:quota:daily:2025-03-04"
    assert breaker._count_key() == "ai:quota:daily:2025-03-04:count"


def test_accumulates_fixed_costs(breaker):
    before = breaker.status().used
    for _ in range(7):
        breaker.record_inference("llama-3.1-70b-instruct")
    status = breaker.status()
    assert status.used == pytest.approx(before + 7 * 5)
    assert status.inference_count == 7
    assert status.remaining == pytest.approx(9500 - 35)


def test_costs_per_kind(breaker):
    assert breaker.cost_of("mistral-7b-instruct") == 75
    assert breaker.cost_of("bge-base-en-v1.5") == pytest.approx(0.6)
    assert breaker.cost_of("llama-3.2-3b-instruct") == 35
    assert breaker.cost_of() == 5
    with pytest.raises(ValueError):
        breaker.cost_of("unknown-model")


def test_closes_once_limit_reached(breaker):
    while breaker.can_use():
        breaker.record_inference("mistral-7b-instruct")

    status = breaker.status()
    assert status.is_exceeded
    assert status.used >= status.limit
    assert status.remaining == 0
    for _ in range(3):
        assert not breaker.can_use()
        with pytest.raises(QuotaExhausted):
            breaker.check()


def test_reopens_after_utc_midnight(breaker, clock):
    breaker.sync(9500)
    assert not breaker.can_use()

    clock.now = clock.now + timedelta(hours=2)

    assert breaker.can_use()
    assert breaker.status().date == "2025-03-05"
    assert breaker.status().used == 0


def test_reset_and_sync_are_idempotent(breaker):
    breaker.record_inference()
    breaker.reset()
    breaker.reset()
    assert breaker.status().used == 0
    assert breaker.status().inference_count == 0

    breaker.sync(120.5)
    breaker.sync(120.5)
    assert breaker.status().used == pytest.approx(120.5)

    with pytest.raises(ValueError):
        breaker.sync(-1)


def test_fallback_message_names_top_matches(breaker):
    message = breaker.fallback_message(["Python", "PostgreSQL", "React", "Terraform"])
    assert "Python, PostgreSQL and React" in message
    assert "Terraform" not in message
    assert "Python" in breaker.fallback_message(["Python"])
    assert breaker.fallback_message([])
