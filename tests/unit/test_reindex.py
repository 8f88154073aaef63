"""Checkpointed, lock-guarded reindexing."""

import asyncio

import pytest

from cvassist.core.config.settings import IndexingSettings
from cvassist.core.errors import IndexingConflict
from cvassist.core.models.enums import IndexStatus
from cvassist.core.models.skill import SkillRecord
from cvassist.core.storage.skill_repository import SkillRepository
from cvassist.kb.ingestion.embedder import EmbeddingGenerator
from cvassist.kb.ingestion.indexer import ReindexJob
from cvassist.kb.storage.vector_store import SqliteScanVectorStore

from conftest import FakeEmbedder


@pytest.fixture
def ten_skills(tmp_path):
    repo = SkillRepository(tmp_path / "skills.db")
    repo.ensure_schema()
    repo.save_skills(
        [
            SkillRecord(id=i, name=f"skill-{i}", years_of_experience=i, proficiency_level="Advanced")
            for i in range(1, 11)
        ]
    )
    return repo


def _job(repo, kv, embedder, batch_size=2):
    return ReindexJob(
        repo,
        SqliteScanVectorStore(repo),
        EmbeddingGenerator(embedder, concurrency=2),
        kv,
        IndexingSettings(batch_size=batch_size),
    )


def test_interrupted_run_resumes_from_checkpoint(ten_skills, kv):
    embedder = FakeEmbedder()
    job = _job(ten_skills, kv, embedder)

    first = asyncio.run(job.run(max_batches=2))

    assert first.status == IndexStatus.IN_PROGRESS
    assert first.has_more
    assert first.processed == 4
    assert first.next_offset == 4
    assert job.progress().next_offset == 4

    embedder.calls.clear()
    second = asyncio.run(job.run())

    assert second.resumed
    assert second.version == first.version
    assert second.start_offset == 4
    assert second.batches_run == 3
    assert second.processed == 6
    assert second.status == IndexStatus.COMPLETED
    assert sorted(int(text.split()[0].split("-")[1]) for text in embedder.calls) == list(range(5, 11))
    assert ten_skills.count_vectors() == 10
    assert job.progress().processed == 10


def test_completed_run_starts_new_version(ten_skills, kv):
    job = _job(ten_skills, kv, FakeEmbedder(), batch_size=5)
    first = asyncio.run(job.run())
    second = asyncio.run(job.run())
    assert first.status == IndexStatus.COMPLETED
    assert not second.resumed
    assert second.version == first.version + 1
    assert second.start_offset == 0


def test_restart_discards_unfinished_checkpoint(ten_skills, kv):
    job = _job(ten_skills, kv, FakeEmbedder())
    first = asyncio.run(job.run(max_batches=1))
    restarted = asyncio.run(job.run(restart=True))
    assert restarted.version == first.version + 1
    assert restarted.start_offset == 0
    assert restarted.processed == 10


def test_lock_prevents_concurrent_runs(ten_skills, kv):
    job = _job(ten_skills, kv, FakeEmbedder())
    kv.put_if_absent(ReindexJob.lock_key("skills"), "someone-else", ttl=120)

    with pytest.raises(IndexingConflict):
        asyncio.run(job.run())

    kv.delete(ReindexJob.lock_key("skills"))
    asyncio.run(job.run())
    assert kv.get(ReindexJob.lock_key("skills")) is None


def test_failed_batch_is_recorded_and_skipped(ten_skills, kv):
    job = _job(ten_skills, kv, FakeEmbedder(fail_on="skill-3 "))

    result = asyncio.run(job.run())

    assert result.status == IndexStatus.COMPLETED
    assert result.batches_failed == 1
    assert result.processed == 8
    checkpoint = job.progress()
    assert [f.offset for f in checkpoint.failures] == [2]
    assert checkpoint.consecutive_failures == 0


def test_consecutive_failures_abort_the_run(ten_skills, kv):
    job = _job(ten_skills, kv, FakeEmbedder(fail_on="skill-"))

    result = asyncio.run(job.run())

    assert result.status == IndexStatus.ABORTED
    assert result.batches_failed == 3
    assert result.processed == 0
    assert job.progress().status == IndexStatus.ABORTED
    assert kv.get(ReindexJob.lock_key("skills")) is None


class LockStealingStore(SqliteScanVectorStore):
    """Simulates the run's lock expiring and another run taking it mid-batch."""

    def __init__(self, repo, kv):
        super().__init__(repo)
        self.kv = kv

    async def upsert(self, vectors):
        self.kv.put(ReindexJob.lock_key("skills"), "next-run", ttl=120)
        await super().upsert(vectors)


def test_expired_lock_is_not_released_for_its_new_holder(ten_skills, kv):
    job = ReindexJob(
        ten_skills,
        LockStealingStore(ten_skills, kv),
        EmbeddingGenerator(FakeEmbedder(), concurrency=2),
        kv,
        IndexingSettings(batch_size=5),
    )

    result = asyncio.run(job.run())

    assert result.status == IndexStatus.COMPLETED
    assert kv.get(ReindexJob.lock_key("skills")) == "next-run"
