"""Lock-guarded, checkpointed re-embedding of skill records.

A run takes an exclusive TTL lock per item type, works through the skills
table in fixed-size batches and stores a checkpoint after every batch.
A run that stops early (``max_batches``, crash, lock expiry) is resumed by
the next run from the stored offset under the same index version.
"""

from __future__ import annotations

import asyncio
import uuid

from ...core.config.settings import IndexingSettings
from ...core.errors import IndexingConflict
from ...core.models.base import utc_now
from ...core.models.enums import IndexStatus
from ...core.models.indexing import BatchFailure, IndexCheckpoint, IndexingResult
from ...core.storage.kv_store import KeyValueStore
from ...core.storage.skill_repository import SkillRepository
from ...kb.storage.vector_store import VectorStore
from ...observability.logger import get_logger
from .embedder import EmbeddingGenerator

logger = get_logger(__name__)


class ReindexJob:
    """Re-embed every record of an item type into the vector store."""

    def __init__(
        self,
        repository: SkillRepository,
        vector_store: VectorStore,
        embedder: EmbeddingGenerator,
        kv: KeyValueStore,
        settings: IndexingSettings | None = None,
    ):
        self.repository = repository
        self.vector_store = vector_store
        self.embedder = embedder
        self.kv = kv
        self.settings = settings or IndexingSettings()
        self.logger = get_logger(f"{__name__}.{self.__class__.__name__}")

    # ------------------------------------------------------------------
    # Keys
    # ------------------------------------------------------------------
    @staticmethod
    def lock_key(item_type: str) -> str:
        return f"index:lock:{item_type}"

    @staticmethod
    def checkpoint_key(item_type: str) -> str:
        return f"index:checkpoint:{item_type}"

    @staticmethod
    def version_key(item_type: str) -> str:
        return f"index:meta:{item_type}:version"

    # ------------------------------------------------------------------
    # Checkpoints
    # ------------------------------------------------------------------
    def progress(self, item_type: str = "skills") -> IndexCheckpoint | None:
        data = self.kv.get(self.checkpoint_key(item_type))
        return IndexCheckpoint.model_validate(data) if data else None

    def _save(self, checkpoint: IndexCheckpoint) -> None:
        checkpoint.updated_at = utc_now()
        self.kv.put(self.checkpoint_key(checkpoint.item_type), checkpoint.model_dump(mode="json"))

    def _start(self, item_type: str, batch_size: int, restart: bool) -> tuple[IndexCheckpoint, bool]:
        existing = self.progress(item_type)
        if existing is not None and existing.status == IndexStatus.IN_PROGRESS and not restart:
            self.logger.info(
                "reindex_resuming",
                item_type=item_type,
                version=existing.version,
                offset=existing.next_offset,
            )
            return existing, True

        version = int(self.kv.increment(self.version_key(item_type), 1))
        checkpoint = IndexCheckpoint(item_type=item_type, version=version, batch_size=batch_size)
        self._save(checkpoint)
        self.logger.info("reindex_started", item_type=item_type, version=version, batch_size=batch_size)
        return checkpoint, False

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------
    async def run(
        self,
        item_type: str = "skills",
        batch_size: int | None = None,
        max_batches: int | None = None,
        restart: bool = False,
    ) -> IndexingResult:
        """Index (or resume indexing) one item type.

        Args:
            item_type: Vector namespace
            batch_size: Records per batch for a new run (a resumed run keeps its own)
            max_batches: Stop after this many batches, leaving the run resumable
            restart: Ignore an unfinished checkpoint and start a new version

        Returns:
            IndexingResult for this invocation

        Raises:
            IndexingConflict: If another run holds the lock
        """
        lock_key = self.lock_key(item_type)
        token = f"{uuid.uuid4().hex}@{utc_now().isoformat()}"
        if not self.kv.put_if_absent(lock_key, token, ttl=self.settings.lock_ttl_seconds):
            self.logger.warning("reindex_conflict", item_type=item_type)
            raise IndexingConflict(item_type)

        try:
            checkpoint, resumed = self._start(item_type, batch_size or self.settings.batch_size, restart)
            return await self._run_batches(checkpoint, resumed, max_batches)
        finally:
            # An expired lock may already belong to another run
            if not self.kv.delete_if_equals(lock_key, token):
                self.logger.warning("reindex_lock_lost", item_type=item_type)

    async def _run_batches(
        self,
        checkpoint: IndexCheckpoint,
        resumed: bool,
        max_batches: int | None,
    ) -> IndexingResult:
        result = IndexingResult(
            item_type=checkpoint.item_type,
            version=checkpoint.version,
            status=checkpoint.status,
            start_offset=checkpoint.next_offset,
            next_offset=checkpoint.next_offset,
            resumed=resumed,
        )
        total = await asyncio.to_thread(self.repository.count_skills)

        while checkpoint.next_offset < total:
            if max_batches is not None and result.batches_run >= max_batches:
                break

            offset = checkpoint.next_offset
            result.batches_run += 1
            try:
                records = await asyncio.to_thread(self.repository.list_skills, checkpoint.batch_size, offset)
                vectors = await self.embedder.embed_records(records, checkpoint.version, checkpoint.item_type)
                await asyncio.to_thread(self.repository.save_vectors, vectors)
                await self.vector_store.upsert(vectors)
            except Exception as exc:
                result.batches_failed += 1
                result.errors.append(f"offset {offset}: {exc}")
                checkpoint.failures.append(BatchFailure(offset=offset, error=str(exc)))
                checkpoint.consecutive_failures += 1
                self.logger.error(
                    "reindex_batch_failed",
                    item_type=checkpoint.item_type,
                    offset=offset,
                    consecutive=checkpoint.consecutive_failures,
                    error=str(exc),
                    exc_info=True,
                )
                if checkpoint.consecutive_failures >= self.settings.max_consecutive_failures:
                    checkpoint.status = IndexStatus.ABORTED
                    self._save(checkpoint)
                    self.logger.error(
                        "reindex_aborted",
                        item_type=checkpoint.item_type,
                        version=checkpoint.version,
                        offset=offset,
                    )
                    break
            else:
                checkpoint.processed += len(vectors)
                checkpoint.batches_completed += 1
                checkpoint.consecutive_failures = 0
                result.processed += len(vectors)
                self.logger.info(
                    "reindex_batch_complete",
                    item_type=checkpoint.item_type,
                    offset=offset,
                    count=len(vectors),
                )

            # Failed batches are skipped, not retried
            checkpoint.next_offset = offset + checkpoint.batch_size
            self._save(checkpoint)

        if checkpoint.status != IndexStatus.ABORTED and checkpoint.next_offset >= total:
            checkpoint.status = IndexStatus.COMPLETED
            self._save(checkpoint)
            self.logger.info(
                "reindex_completed",
                item_type=checkpoint.item_type,
                version=checkpoint.version,
                processed=checkpoint.processed,
                failures=len(checkpoint.failures),
            )

        result.status = checkpoint.status
        result.next_offset = checkpoint.next_offset
        return result
