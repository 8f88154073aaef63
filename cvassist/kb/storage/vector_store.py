"""Vector search backends and the composite that fails over between them.

Both backends implement the same async interface and return similarities
where higher means more similar. The composite tries the approximate index
first and falls back to a linear scan over the raw vectors kept in SQLite.
"""

from __future__ import annotations

import asyncio
import math
from typing import Any, Protocol

import numpy as np
from pydantic import ValidationError

from ...core.errors import BackendUnavailable, SearchUnavailable
from ...core.models.skill import EmbeddingVector, MatchFilter, VectorMatch, VectorMetadata
from ...core.storage.skill_repository import SkillRepository
from ...observability.logger import get_logger
from .chroma_client import ChromaClientWrapper

logger = get_logger(__name__)


class VectorStore(Protocol):
    name: str

    async def query(
        self,
        embedding: list[float],
        top_k: int,
        filters: MatchFilter | None = None,
    ) -> list[VectorMatch]: ...

    async def upsert(self, vectors: list[EmbeddingVector]) -> None: ...

    async def health(self) -> bool: ...

    def info(self) -> dict[str, Any]: ...


def cosine_similarity(a: np.ndarray, b: np.ndarray) -> float:
    """Cosine similarity in [-1, 1]; NaN when either vector has zero norm."""
    denom = float(np.linalg.norm(a) * np.linalg.norm(b))
    if denom == 0.0:
        return math.nan
    return max(-1.0, min(1.0, float(np.dot(a, b)) / denom))


def _chroma_metadata(metadata: VectorMetadata) -> dict[str, Any]:
    """Flatten metadata for Chroma (no None values, lowercase employer key for filtering)."""
    flat = {k: v for k, v in metadata.model_dump(mode="json").items() if v is not None}
    flat["employer_key"] = metadata.employer.lower()
    return flat


class ChromaVectorStore:
    """Approximate-search backend on a Chroma cosine collection."""

    name = "chroma"

    def __init__(self, client: ChromaClientWrapper, dimensions: int | None = None):
        self.client = client
        self.dimensions = dimensions
        self.logger = get_logger(f"{__name__}.{self.__class__.__name__}")

    async def query(
        self,
        embedding: list[float],
        top_k: int,
        filters: MatchFilter | None = None,
    ) -> list[VectorMatch]:
        total = await asyncio.to_thread(self.client.count)
        if total == 0:
            # Ephemeral collections start empty in every process
            raise BackendUnavailable(self.name, detail="collection is empty")

        where = None
        if filters is not None and not filters.is_empty():
            where = {"employer_key": filters.employer.lower()}

        hits = await asyncio.to_thread(self.client.query, embedding, min(top_k, total), where)

        matches: list[VectorMatch] = []
        for hit in hits:
            if hit.distance is None or math.isnan(hit.distance):
                continue
            meta = dict(hit.metadata)
            meta.pop("employer_key", None)
            try:
                metadata = VectorMetadata(**meta)
            except ValidationError:
                self.logger.warning("chroma_metadata_invalid", id=hit.id)
                continue
            matches.append(
                VectorMatch(
                    id=hit.id,
                    score=max(-1.0, min(1.0, 1.0 - float(hit.distance))),
                    metadata=metadata,
                    source=self.name,
                )
            )
        return matches

    async def upsert(self, vectors: list[EmbeddingVector]) -> None:
        if not vectors:
            return
        await asyncio.to_thread(
            self.client.upsert,
            ids=[v.key for v in vectors],
            embeddings=[v.values for v in vectors],
            metadatas=[_chroma_metadata(v.metadata) for v in vectors],
        )

    async def health(self) -> bool:
        try:
            await asyncio.to_thread(self.client.count)
            return True
        except Exception as exc:
            self.logger.warning("chroma_unhealthy", error=str(exc))
            return False

    def info(self) -> dict[str, Any]:
        return {"type": self.name, "dimensions": self.dimensions, "collection": self.client.collection_name}


class SqliteScanVectorStore:
    """Brute-force cosine scan over float32 vectors stored in SQLite.

    Rows whose byte length is not a multiple of 4, whose dimension differs
    from the query, whose similarity is NaN or whose metadata does not
    validate are skipped individually.
    """

    name = "sqlite-scan"

    def __init__(self, repository: SkillRepository, item_type: str = "skills"):
        self.repository = repository
        self.item_type = item_type
        self.logger = get_logger(f"{__name__}.{self.__class__.__name__}")

    def _scan(self, embedding: list[float], top_k: int, filters: MatchFilter | None) -> list[VectorMatch]:
        query_vec = np.asarray(embedding, dtype=np.float32)
        employer = filters.employer if filters is not None else None

        matches: list[VectorMatch] = []
        skipped = 0
        for item_id, blob, metadata in self.repository.iter_vectors(self.item_type, employer=employer):
            if len(blob) % 4 != 0:
                skipped += 1
                continue
            stored = np.frombuffer(blob, dtype=np.float32)
            if stored.shape[0] != query_vec.shape[0]:
                skipped += 1
                continue
            score = cosine_similarity(query_vec, stored)
            if math.isnan(score):
                skipped += 1
                continue
            try:
                meta = VectorMetadata(**{**metadata, "id": metadata.get("id", item_id)})
            except ValidationError:
                skipped += 1
                continue
            matches.append(
                VectorMatch(id=f"{self.item_type}-{item_id}", score=score, metadata=meta, source=self.name)
            )

        if skipped:
            self.logger.warning("vectors_skipped", count=skipped, item_type=self.item_type)

        matches.sort(key=lambda m: m.score, reverse=True)
        return matches[:top_k]

    async def query(
        self,
        embedding: list[float],
        top_k: int,
        filters: MatchFilter | None = None,
    ) -> list[VectorMatch]:
        return await asyncio.to_thread(self._scan, embedding, top_k, filters)

    async def upsert(self, vectors: list[EmbeddingVector]) -> None:
        if vectors:
            await asyncio.to_thread(self.repository.save_vectors, vectors)

    async def health(self) -> bool:
        return await asyncio.to_thread(self.repository.health)

    def info(self) -> dict[str, Any]:
        return {"type": self.name, "item_type": self.item_type}


class CompositeVectorStore:
    """Primary-then-secondary vector search with provenance tagging.

    A missing primary (``None``) is treated like any other primary failure.
    """

    def __init__(
        self,
        primary: VectorStore | None,
        secondary: VectorStore,
        timeout: float = 5.0,
    ):
        self.primary = primary
        self.secondary = secondary
        self.timeout = timeout
        self.name = f"{primary.name if primary else 'none'} (fallback: {secondary.name})"
        self.logger = get_logger(f"{__name__}.{self.__class__.__name__}")

    async def _call_primary(self, op: str, coro_factory) -> Any:
        if self.primary is None:
            raise BackendUnavailable("primary", detail="missing configuration")
        try:
            return await asyncio.wait_for(coro_factory(self.primary), timeout=self.timeout)
        except asyncio.TimeoutError as exc:
            raise BackendUnavailable(self.primary.name, detail=f"{op} timed out after {self.timeout}s") from exc
        except Exception as exc:
            raise BackendUnavailable(self.primary.name, detail=str(exc)) from exc

    async def query(
        self,
        embedding: list[float],
        top_k: int,
        filters: MatchFilter | None = None,
    ) -> list[VectorMatch]:
        try:
            matches = await self._call_primary("query", lambda b: b.query(embedding, top_k, filters))
            self.logger.info("vector_query_complete", source=self.primary.name, count=len(matches))
            return matches
        except BackendUnavailable as exc:
            self.logger.warning(
                "primary_backend_failed",
                backend=exc.backend,
                detail=exc.detail,
                fallback=self.secondary.name,
            )

        try:
            matches = await asyncio.wait_for(
                self.secondary.query(embedding, top_k, filters), timeout=self.timeout
            )
        except Exception as exc:
            self.logger.error("all_backends_failed", error=str(exc), exc_info=True)
            raise SearchUnavailable("Search is temporarily unavailable. Please try again later.") from exc

        self.logger.info("vector_query_complete", source=self.secondary.name, count=len(matches))
        return matches

    async def upsert(self, vectors: list[EmbeddingVector]) -> None:
        try:
            await self._call_primary("upsert", lambda b: b.upsert(vectors))
            return
        except BackendUnavailable as exc:
            self.logger.warning("primary_upsert_failed", backend=exc.backend, detail=exc.detail)
        try:
            await self.secondary.upsert(vectors)
        except Exception as exc:
            self.logger.error("all_backends_upsert_failed", error=str(exc), exc_info=True)
            raise SearchUnavailable("Vector storage is unavailable.") from exc

    async def health(self) -> bool:
        if self.primary is not None:
            try:
                if await asyncio.wait_for(self.primary.health(), timeout=self.timeout):
                    return True
            except Exception as exc:
                self.logger.warning("primary_health_failed", error=str(exc))
        return await self.secondary.health()

    def info(self) -> dict[str, Any]:
        return {
            "type": self.name,
            "primary": self.primary.info() if self.primary else None,
            "secondary": self.secondary.info(),
        }
