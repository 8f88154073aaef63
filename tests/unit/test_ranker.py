"""Similarity ranking and experience boost."""

import itertools

import numpy as np
import pytest

from cvassist.core.config.settings import RankingSettings
from cvassist.core.models.skill import SkillRecord, VectorMatch, VectorMetadata
from cvassist.kb.storage.vector_store import cosine_similarity
from cvassist.search.ranker import SimilarityRanker


def _record(skill_id, years, level, name="Python"):
    return SkillRecord(id=skill_id, name=name, years_of_experience=years, proficiency_level=level)


def _match(skill_id, score, source="sqlite-scan"):
    return VectorMatch(
        id=f"skills-{skill_id}",
        score=score,
        metadata=VectorMetadata(id=skill_id),
        source=source,
    )


@pytest.mark.parametrize(
    "years,level,expected",
    [
        (16, "Expert", 1.15),
        (15, "Expert", 1.15),
        (12, "Expert", 1.10),
        (12, "Advanced", 1.05),
        (8, "Advanced", 1.05),
        (8, "Expert", 1.05),
        (7, "Advanced", 1.0),
        (20, "Intermediate", 1.0),
        (20, "", 1.0),
    ],
)
def test_boost_shelves(years, level, expected):
    assert SimilarityRanker().boost_factor(years, level) == pytest.approx(expected)


def test_boost_is_monotonic_in_years_and_level():
    ranker = SimilarityRanker()
    levels = RankingSettings().levels
    years = [0, 2, 3, 5, 7, 8, 9, 10, 12, 15, 20]
    for (y1, l1), (y2, l2) in itertools.product(itertools.product(years, levels), repeat=2):
        if y2 > y1 and levels.index(l2) >= levels.index(l1):
            assert ranker.boost_factor(y2, l2) >= ranker.boost_factor(y1, l1)


def test_boosted_score_is_clamped():
    ranker = SimilarityRanker()
    score, factor = ranker.score(0.95, 20, "Expert")
    assert factor == pytest.approx(1.15)
    assert score == 1.0

    negative, _ = ranker.score(-0.4, 20, "Expert")
    assert negative == 0.0


def test_cosine_similarity_range():
    rng = np.random.default_rng(7)
    for _ in range(50):
        a = rng.normal(size=16).astype(np.float32)
        b = rng.normal(size=16).astype(np.float32)
        sim = cosine_similarity(a, b)
        assert -1.0 <= sim <= 1.0
        boosted, _ = SimilarityRanker().score(sim, 15, "Expert")
        assert 0.0 <= boosted <= 1.0


def test_long_tenure_outranks_near_tie():
    # "What is your experience with Python?" with two Advanced records
    ranker = SimilarityRanker()
    records = {1: _record(1, 3, "Advanced"), 2: _record(2, 12, "Advanced")}
    ranked = ranker.rank([_match(1, 0.70), _match(2, 0.67)], records, top_k=3)

    assert [r.skill.id for r in ranked] == [2, 1]
    assert ranked[0].boost == pytest.approx(1.05)
    assert ranked[0].raw_score == pytest.approx(0.67)


def test_expert_tenure_outranks_five_point_gap():
    ranker = SimilarityRanker()
    records = {1: _record(1, 3, "Expert"), 2: _record(2, 16, "Expert")}
    ranked = ranker.rank([_match(1, 0.65), _match(2, 0.60)], records, top_k=3)
    assert ranked[0].skill.id == 2


def test_rank_slices_and_drops_unknown_records():
    ranker = SimilarityRanker()
    records = {i: _record(i, 1, "Beginner", name=f"skill-{i}") for i in range(1, 6)}
    matches = [_match(i, 0.5 + i / 100) for i in range(1, 7)]  # id 6 has no record

    ranked = ranker.rank(matches, records, top_k=3)

    assert [r.skill.id for r in ranked] == [5, 4, 3]
    assert all(r.source == "sqlite-scan" for r in ranked)


def test_custom_shelves_from_settings():
    settings = RankingSettings(shelves=[{"min_years": 1, "min_level": "Beginner", "factor": 1.2}])
    assert SimilarityRanker(settings).boost_factor(1, "Intermediate") == pytest.approx(1.2)
