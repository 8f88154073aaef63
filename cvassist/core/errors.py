"""Exception types raised across the query pipeline.

Only ``SearchUnavailable`` reaches callers of ``answer_query`` as a hard
failure; every other category is folded into a structured response.
"""

from .models.enums import ErrorCategory


class CVAssistError(Exception):
    """Base class for cvassist errors."""

    category: ErrorCategory | None = None

    def __init__(self, message: str = "", *, detail: str | None = None):
        super().__init__(message)
        self.message = message
        # Internal detail is logged, never returned to callers
        self.detail = detail


class BackendUnavailable(CVAssistError):
    """A single vector backend failed (timeout, misconfiguration, error)."""

    category = ErrorCategory.SEARCH_UNAVAILABLE

    def __init__(self, backend: str, message: str = "", *, detail: str | None = None):
        super().__init__(message or f"{backend} backend unavailable", detail=detail)
        self.backend = backend


class SearchUnavailable(CVAssistError):
    """Every vector backend failed."""

    category = ErrorCategory.SEARCH_UNAVAILABLE


class InferenceFailed(CVAssistError):
    """The completion model raised or timed out."""

    category = ErrorCategory.INFERENCE_FAILED


class QuotaExhausted(CVAssistError):
    """The daily inference budget is spent."""

    category = ErrorCategory.QUOTA_EXHAUSTED


class IndexingConflict(CVAssistError):
    """Another reindex job holds the lock for this item type."""

    category = ErrorCategory.INDEXING_CONFLICT

    def __init__(self, item_type: str):
        super().__init__(f"Reindex already running for '{item_type}'")
        self.item_type = item_type
