"""Experience-weighted ranking of vector matches.

Raw similarities are clamped to [0, 1], multiplied by the best matching
experience shelf and clamped again, then sorted and cut to top-K.
"""

from __future__ import annotations

from ..core.config.settings import RankingSettings
from ..core.models.query import RankedMatch
from ..core.models.skill import SkillRecord, VectorMatch
from ..observability.logger import get_logger

logger = get_logger(__name__)


def clamp_unit(score: float) -> float:
    return max(0.0, min(1.0, score))


class SimilarityRanker:
    """Apply experience shelves and produce ordered ``RankedMatch`` lists."""

    def __init__(self, settings: RankingSettings | None = None):
        self.settings = settings or RankingSettings()
        self._level_rank = {level.lower(): idx for idx, level in enumerate(self.settings.levels)}

    def level_rank(self, level: str | None) -> int:
        """Position of a proficiency level in the ordered scale; -1 when unknown."""
        return self._level_rank.get((level or "").strip().lower(), -1)

    def boost_factor(self, years: float, level: str | None) -> float:
        """Highest shelf factor whose years and minimum level are both met.

        A level counts when it is at or above the shelf level, so more years
        at an equal or higher level never yields a smaller factor.
        """
        rank = self.level_rank(level)
        factor = 1.0
        for shelf in self.settings.shelves:
            if years >= shelf.min_years and rank >= 0 and rank >= self.level_rank(shelf.min_level):
                factor = max(factor, shelf.factor)
        return factor

    def score(self, raw_score: float, years: float, level: str | None) -> tuple[float, float]:
        """Return (boosted score, factor) for one raw similarity."""
        factor = self.boost_factor(years, level)
        return clamp_unit(clamp_unit(raw_score) * factor), factor

    def rank(
        self,
        matches: list[VectorMatch],
        records: dict[int, SkillRecord],
        top_k: int,
    ) -> list[RankedMatch]:
        """Boost, sort and slice matches. Matches without a stored record are dropped.

        Args:
            matches: Backend hits (any order)
            records: Skill records keyed by id
            top_k: Number of results to keep

        Returns:
            Ranked matches, best first
        """
        ranked: list[RankedMatch] = []
        for match in matches:
            record = records.get(match.metadata.id)
            if record is None:
                logger.warning("match_without_record", vector_id=match.id)
                continue
            boosted, factor = self.score(
                match.score, record.years_of_experience, record.proficiency_level
            )
            ranked.append(
                RankedMatch(
                    skill=record,
                    score=boosted,
                    raw_score=match.score,
                    boost=factor,
                    source=match.source,
                )
            )

        ranked.sort(key=lambda r: (r.score, r.skill.years_of_experience), reverse=True)
        return ranked[:top_k]
