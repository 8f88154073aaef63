"""Embedding generator for queries and skill records."""

import asyncio
from typing import Protocol

from ...core.models.skill import EmbeddingVector, SkillRecord, VectorMetadata
from ...observability.logger import get_logger

logger = get_logger(__name__)


class TextEmbedder(Protocol):
    async def embed(self, text: str) -> list[float]: ...


class EmbeddingGenerator:
    """Turn text and skill records into vectors via any ``TextEmbedder``."""

    def __init__(self, embedder: TextEmbedder, concurrency: int = 4):
        """Initialize embedding generator.

        Args:
            embedder: Object exposing ``async embed(text) -> list[float]``
            concurrency: Maximum in-flight embedding calls per batch
        """
        self.embedder = embedder
        self.concurrency = concurrency
        self.logger = get_logger(f"{__name__}.{self.__class__.__name__}")

    async def embed_query(self, text: str) -> list[float]:
        return await self.embedder.embed(text)

    async def embed_records(
        self,
        records: list[SkillRecord],
        version: int,
        item_type: str = "skills",
    ) -> list[EmbeddingVector]:
        """Embed a batch of skill records.

        Args:
            records: Skills to embed
            version: Index version stamped into each vector's metadata
            item_type: Vector namespace

        Returns:
            One vector per record, in input order
        """
        semaphore = asyncio.Semaphore(self.concurrency)

        async def _one(record: SkillRecord) -> EmbeddingVector:
            async with semaphore:
                values = await self.embedder.embed(record.embedding_text())
            return EmbeddingVector(
                item_id=record.id,
                item_type=item_type,
                values=values,
                metadata=VectorMetadata.from_record(record, version),
            )

        vectors = await asyncio.gather(*(_one(r) for r in records))
        self.logger.info("records_embedded", count=len(vectors), version=version)
        return list(vectors)
