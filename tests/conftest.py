"""Shared fixtures and fakes for cvassist tests."""

from datetime import datetime, timezone

import pytest

from cvassist.core.config.settings import Settings, get_settings
from cvassist.core.models.skill import SkillRecord
from cvassist.core.storage.kv_store import MemoryKeyValueStore
from cvassist.core.storage.skill_repository import SkillRepository
from cvassist.integrations.openai_client import hashed_embedding

# Wednesday 10:00 UTC (11:00 BST)
OPEN_HOURS = datetime(2025, 6, 11, 10, 0, tzinfo=timezone.utc)


class FakeEmbedder:
    """Deterministic embedder; records every text it embeds."""

    def __init__(self, dimensions: int = 64, fail_on: str | None = None):
        self.dimensions = dimensions
        self.fail_on = fail_on
        self.calls: list[str] = []

    async def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        if self.fail_on and self.fail_on in text:
            raise RuntimeError(f"embedding failed for {self.fail_on}")
        return hashed_embedding(text, self.dimensions)


class FakeCompletion:
    """Completion model returning a fixed reply, optionally streamed or failing."""

    def __init__(
        self,
        reply: str = "I engineered Python services at Acme.",
        stream: bool = False,
        error: Exception | None = None,
    ):
        self.reply = reply
        self.stream = stream
        self.error = error
        self.calls: list[tuple[str, str]] = []

    async def complete(self, system_prompt, user_prompt, max_tokens=80, stop=None):
        self.calls.append((system_prompt, user_prompt))
        if self.error is not None:
            raise self.error
        if not self.stream:
            return self.reply
        return self._chunks()

    async def _chunks(self):
        for word in self.reply.split(" "):
            yield word + " "


class FailingBackend:
    """Vector backend that always fails."""

    name = "chroma"

    def __init__(self, error: Exception | None = None):
        self.error = error or ConnectionError("index unreachable")
        self.queries = 0

    async def query(self, embedding, top_k, filters=None):
        self.queries += 1
        raise self.error

    async def upsert(self, vectors):
        raise self.error

    async def health(self):
        return False

    def info(self):
        return {"type": self.name}


SAMPLE_SKILLS = [
    SkillRecord(
        id=1,
        name="Python",
        category="Backend",
        years_of_experience=12,
        proficiency_level="Advanced",
        action="Built data ingestion services",
        effect="Cut batch latency",
        outcome="Reduced nightly processing time by 60%",
        related_project="Ledger platform",
        employer="Acme",
    ),
    SkillRecord(
        id=2,
        name="Terraform",
        category="Cloud",
        years_of_experience=3,
        proficiency_level="Intermediate",
        action="Codified cloud infrastructure",
        outcome="Provisioning time down 85%",
        employer="Globex",
    ),
    SkillRecord(
        id=3,
        name="PostgreSQL",
        category="Database",
        years_of_experience=15,
        proficiency_level="Expert",
        action="Tuned relational databases",
        outcome="Query latency halved",
        employer="Acme",
    ),
    SkillRecord(
        id=4,
        name="React",
        category="Frontend",
        years_of_experience=5,
        proficiency_level="Advanced",
        action="Delivered dashboard interfaces",
        outcome="95% user satisfaction",
        employer="Globex",
    ),
]


@pytest.fixture
def settings() -> Settings:
    return get_settings(
        {
            "window": {"enabled": False},
            "openai": {"embedding_dimensions": 64},
            "projects": [
                {"pattern": r"\b(at|in|for|during|with)\s+(acme)\b", "name": "Acme"},
                {"pattern": r"\b(acme)\b", "name": "Acme"},
            ],
        }
    )


@pytest.fixture
def kv() -> MemoryKeyValueStore:
    return MemoryKeyValueStore()


@pytest.fixture
def repository(tmp_path) -> SkillRepository:
    repo = SkillRepository(tmp_path / "skills.db")
    repo.ensure_schema()
    repo.save_skills(SAMPLE_SKILLS)
    return repo
