"""ChromaDB collection wrapper for the approximate skill index.

Vectors live in a cosine-space collection. Query results come back as
``ChromaHit`` tuples; converting distances to similarities is left to the
vector store.
"""

from typing import Any, NamedTuple

try:
    import chromadb
    CHROMADB_AVAILABLE = True
except ImportError:
    CHROMADB_AVAILABLE = False

from ...core.config.settings import StorageSettings
from ...observability.logger import get_logger

logger = get_logger(__name__)

_COSINE = {"hnsw:space": "cosine"}


class ChromaHit(NamedTuple):
    id: str
    distance: float | None
    metadata: dict[str, Any]


class ChromaClientWrapper:
    """One Chroma collection, ephemeral or on disk."""

    def __init__(
        self,
        mode: str = "memory",
        persist_directory: str | None = None,
        collection_name: str = "skills",
    ):
        """Open (or create) the collection.

        Args:
            mode: "memory" for an ephemeral client or "persistent" for disk storage
            persist_directory: Directory for persistent storage
            collection_name: Name of the collection

        Raises:
            ImportError: If chromadb is not installed
            ValueError: If persistent mode has no directory
        """
        if not CHROMADB_AVAILABLE:
            raise ImportError("ChromaDB not installed. Install with: pip install chromadb")
        if mode not in ("memory", "persistent"):
            raise ValueError(f"Unknown chroma mode: {mode}")
        if mode == "persistent" and not persist_directory:
            raise ValueError("persist_directory required for persistent mode")

        self.mode = mode
        self.persist_directory = persist_directory
        self.collection_name = collection_name
        self.logger = get_logger(f"{__name__}.{self.__class__.__name__}")

        if mode == "memory":
            self.client = chromadb.EphemeralClient()
        else:
            self.client = chromadb.PersistentClient(path=persist_directory)
        self.collection = self.client.get_or_create_collection(name=collection_name, metadata=_COSINE)

        self.logger.info(
            "chroma_collection_ready",
            mode=mode,
            directory=persist_directory,
            collection=collection_name,
        )

    def upsert(
        self,
        ids: list[str],
        embeddings: list[list[float]],
        metadatas: list[dict[str, Any]],
    ) -> None:
        """Insert or replace vectors keyed by ``<item_type>-<item_id>``."""
        try:
            self.collection.upsert(ids=ids, embeddings=embeddings, metadatas=metadatas)
        except Exception as e:
            self.logger.error("chroma_upsert_failed", count=len(ids), error=str(e), exc_info=True)
            raise
        self.logger.info("chroma_upserted", count=len(ids))

    def query(
        self,
        embedding: list[float],
        n_results: int,
        where: dict[str, Any] | None = None,
    ) -> list[ChromaHit]:
        """Nearest neighbours of one embedding, closest first.

        Args:
            embedding: Query vector
            n_results: Maximum hits to return
            where: Optional metadata filter (e.g. ``{"employer_key": "acme"}``)

        Returns:
            Hits with cosine distance and the stored metadata
        """
        kwargs: dict[str, Any] = {
            "query_embeddings": [embedding],
            "n_results": n_results,
            "include": ["distances", "metadatas"],
        }
        if where:
            kwargs["where"] = where

        try:
            results = self.collection.query(**kwargs)
        except Exception as e:
            self.logger.error("chroma_query_failed", error=str(e), exc_info=True)
            raise

        ids = (results.get("ids") or [[]])[0]
        distances = (results.get("distances") or [[]])[0]
        metadatas = (results.get("metadatas") or [[]])[0]
        hits = [
            ChromaHit(vid, dist, dict(meta or {}))
            for vid, dist, meta in zip(ids, distances, metadatas)
        ]
        self.logger.debug("chroma_query_complete", hits=len(hits), filtered=bool(where))
        return hits

    def count(self) -> int:
        return self.collection.count()


def get_chroma_client(storage: StorageSettings) -> ChromaClientWrapper:
    """Build the collection wrapper described by the storage settings."""
    return ChromaClientWrapper(
        mode=storage.chroma_mode,
        persist_directory=storage.chroma_directory,
        collection_name=storage.chroma_collection,
    )
