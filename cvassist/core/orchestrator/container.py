"""Wires configured components into an orchestrator and reindex job."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ..config.settings import Settings, get_settings
from ..storage.kv_store import SqliteKeyValueStore
from ..storage.skill_repository import SkillRepository
from ...integrations.inference import InferenceService
from ...integrations.openai_client import OpenAIClient
from ...kb.ingestion.embedder import EmbeddingGenerator
from ...kb.ingestion.indexer import ReindexJob
from ...kb.storage.chroma_client import get_chroma_client
from ...kb.storage.vector_store import (
    ChromaVectorStore,
    CompositeVectorStore,
    SqliteScanVectorStore,
)
from ...kb.utils.quota_breaker import QuotaCircuitBreaker
from ...observability.logger import get_logger
from ...search.cache import QueryCache
from ...search.ranker import SimilarityRanker
from ...search.service import SearchService
from .query_pipeline import QueryOrchestrator

logger = get_logger(__name__)


@dataclass
class ServiceContainer:
    settings: Settings
    kv: SqliteKeyValueStore
    repository: SkillRepository
    vector_store: CompositeVectorStore
    quota: QuotaCircuitBreaker
    orchestrator: QueryOrchestrator
    reindex: ReindexJob


def _build_primary(settings: Settings) -> ChromaVectorStore | None:
    """Chroma backend, or None when it cannot be configured (the composite falls back)."""
    try:
        client = get_chroma_client(settings.storage)
    except (ImportError, ValueError) as exc:
        logger.warning("chroma_init_failed", error=str(exc))
        return None
    return ChromaVectorStore(client, dimensions=settings.openai.embedding_dimensions)


def build_container(config: dict[str, Any] | None = None, openai_client: Any | None = None) -> ServiceContainer:
    """Build every service from configuration.

    Args:
        config: Loaded config dict (the config hierarchy is loaded if omitted)
        openai_client: Optional client exposing ``embed`` and ``complete``

    Returns:
        ServiceContainer
    """
    settings = get_settings(config)

    kv = SqliteKeyValueStore(settings.storage.kv_path)
    repository = SkillRepository(settings.storage.database_path)
    repository.ensure_schema()

    vector_store = CompositeVectorStore(
        primary=_build_primary(settings),
        secondary=SqliteScanVectorStore(repository),
        timeout=settings.search.backend_timeout_seconds,
    )

    client = openai_client or OpenAIClient(
        chat_model=settings.openai.chat_model,
        embedding_model=settings.openai.embedding_model,
        embedding_dimensions=settings.openai.embedding_dimensions,
        timeout=settings.openai.timeout,
        max_retries=settings.openai.max_retries,
    )
    embedder = EmbeddingGenerator(client)
    quota = QuotaCircuitBreaker(kv, settings.quota)

    orchestrator = QueryOrchestrator(
        settings=settings,
        embedder=embedder,
        search=SearchService(vector_store, repository, SimilarityRanker(settings.ranking), settings.search),
        cache=QueryCache(kv, settings.cache),
        quota=quota,
        inference=InferenceService(client, settings.response),
    )
    reindex = ReindexJob(repository, vector_store, embedder, kv, settings.indexing)

    logger.info("container_built", vector_store=vector_store.name)
    return ServiceContainer(
        settings=settings,
        kv=kv,
        repository=repository,
        vector_store=vector_store,
        quota=quota,
        orchestrator=orchestrator,
        reindex=reindex,
    )
