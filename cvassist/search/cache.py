"""Best-effort memoization of full query responses."""

from __future__ import annotations

import hashlib
import re

from ..core.config.settings import CacheSettings
from ..core.models.query import QueryResponse
from ..core.storage.kv_store import KeyValueStore
from ..observability.logger import get_logger

logger = get_logger(__name__)

_WHITESPACE = re.compile(r"\s+")


def normalize_query(text: str) -> str:
    """Lowercase, collapse whitespace and trim."""
    return _WHITESPACE.sub(" ", text.lower()).strip()


class QueryCache:
    """Response cache keyed by ``query:<sha256(normalized text)>``.

    Read and write failures are logged and treated as a miss; the cache is
    never required for a correct answer.
    """

    def __init__(self, store: KeyValueStore, settings: CacheSettings | None = None):
        self.store = store
        self.settings = settings or CacheSettings()
        self.logger = get_logger(f"{__name__}.{self.__class__.__name__}")

    def key_for(self, query: str) -> str:
        digest = hashlib.sha256(normalize_query(query).encode("utf-8")).hexdigest()
        return f"{self.settings.prefix}{digest}"

    def get(self, query: str) -> QueryResponse | None:
        if not self.settings.enabled:
            return None
        key = self.key_for(query)
        try:
            data = self.store.get(key)
        except Exception as exc:
            self.logger.warning("cache_read_failed", key=key, error=str(exc))
            return None
        if data is None:
            return None
        try:
            response = QueryResponse.model_validate(data)
        except ValueError as exc:
            self.logger.warning("cache_entry_invalid", key=key, error=str(exc))
            return None
        self.logger.info("cache_hit", key=key)
        return response.model_copy(update={"cached": True})

    def put(self, query: str, response: QueryResponse) -> None:
        if not self.settings.enabled:
            return
        key = self.key_for(query)
        payload = response.model_copy(update={"cached": False}).model_dump(mode="json")
        try:
            self.store.put(key, payload, ttl=self.settings.ttl_seconds)
        except Exception as exc:
            self.logger.warning("cache_write_failed", key=key, error=str(exc))
