"""Skill search: vector query, record hydration and experience ranking."""

from __future__ import annotations

import asyncio

from pydantic import BaseModel, Field

from ..core.config.settings import SearchSettings
from ..core.models.query import RankedMatch
from ..core.models.skill import MatchFilter
from ..core.storage.skill_repository import SkillRepository
from ..kb.storage.vector_store import VectorStore
from ..observability.logger import get_logger
from .ranker import SimilarityRanker

logger = get_logger(__name__)


class SearchResult(BaseModel):
    matches: list[RankedMatch] = Field(default_factory=list)
    source: str | None = None


class SearchService:
    def __init__(
        self,
        vector_store: VectorStore,
        repository: SkillRepository,
        ranker: SimilarityRanker | None = None,
        settings: SearchSettings | None = None,
    ):
        self.vector_store = vector_store
        self.repository = repository
        self.ranker = ranker or SimilarityRanker()
        self.settings = settings or SearchSettings()

    async def search(
        self,
        embedding: list[float],
        top_k: int | None = None,
        filters: MatchFilter | None = None,
    ) -> SearchResult:
        """Search a candidate pool, then rank and cut to top-K.

        The backend is asked for more candidates than returned so the
        experience boost can reorder near ties before slicing.

        Raises:
            SearchUnavailable: If every vector backend failed
        """
        top_k = top_k or self.settings.top_k
        pool = max(top_k, self.settings.candidate_pool)

        raw_matches = await self.vector_store.query(embedding, pool, filters)
        if not raw_matches:
            logger.info("search_no_matches", filtered=bool(filters and not filters.is_empty()))
            return SearchResult()

        ids = [m.metadata.id for m in raw_matches]
        records = await asyncio.to_thread(self.repository.get_skills, ids)
        ranked = self.ranker.rank(raw_matches, records, top_k)

        logger.info(
            "search_complete",
            candidates=len(raw_matches),
            returned=len(ranked),
            top_score=ranked[0].score if ranked else None,
            source=raw_matches[0].source,
        )
        return SearchResult(matches=ranked, source=raw_matches[0].source)
