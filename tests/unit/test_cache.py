"""Query response cache."""

from cvassist.core.config.settings import CacheSettings
from cvassist.core.models.enums import ResponseStatus
from cvassist.core.models.query import QueryResponse, RankedMatch
from cvassist.core.models.skill import SkillRecord
from cvassist.core.storage.kv_store import MemoryKeyValueStore
from cvassist.search.cache import QueryCache, normalize_query


class Tick:
    def __init__(self):
        self.now = 1_000.0

    def __call__(self):
        return self.now


def _response(query="What is your experience with Python?"):
    skill = SkillRecord(id=1, name="Python", years_of_experience=12, proficiency_level="Advanced", employer="Acme")
    return QueryResponse(
        query=query,
        matches=[RankedMatch(skill=skill, score=0.82, raw_score=0.78, boost=1.05, source="chroma")],
        reply="I engineered Python services at Acme.",
        source="chroma",
        confidence="high",
    )


def test_normalize_query():
    assert normalize_query("  What   IS your\texperience?  ") == "what is your experience?"


def test_key_is_stable_for_equivalent_text():
    cache = QueryCache(MemoryKeyValueStore())
    key = cache.key_for("What is your experience with Python?")
    assert key.startswith("query:")
    assert len(key) == len("query:") + 64
    assert cache.key_for("  what is YOUR experience   with python?") == key


def test_round_trip_identical_except_cached_flag():
    cache = QueryCache(MemoryKeyValueStore())
    original = _response()
    cache.put(original.query, original)

    hit = cache.get(original.query)

    assert hit is not None
    assert hit.cached is True
    assert original.cached is False
    assert hit.model_dump(exclude={"cached"}) == original.model_dump(exclude={"cached"})
    assert hit.status == ResponseStatus.ANSWERED


def test_entries_expire_after_ttl():
    tick = Tick()
    cache = QueryCache(MemoryKeyValueStore(clock=tick), CacheSettings(ttl_seconds=60))
    cache.put("What is your experience with Python?", _response())

    tick.now += 59
    assert cache.get("What is your experience with Python?") is not None
    tick.now += 2
    assert cache.get("What is your experience with Python?") is None


def test_disabled_cache_never_hits():
    cache = QueryCache(MemoryKeyValueStore(), CacheSettings(enabled=False))
    cache.put("What is your experience with Python?", _response())
    assert cache.get("What is your experience with Python?") is None


def test_store_errors_are_misses():
    class BrokenStore(MemoryKeyValueStore):
        def get(self, key):
            raise OSError("disk gone")

        def put(self, key, value, ttl=None):
            raise OSError("disk gone")

    cache = QueryCache(BrokenStore())
    cache.put("What is your experience with Python?", _response())
    assert cache.get("What is your experience with Python?") is None
