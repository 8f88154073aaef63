"""cvassist data models for skills, vectors, queries, quota and indexing."""

from .base import CVBaseModel, utc_now
from .enums import (
    ConfidenceTier,
    ErrorCategory,
    IndexStatus,
    ResponseStatus,
    Seniority,
)
from .indexing import BatchFailure, IndexCheckpoint, IndexingResult
from .query import ProjectContext, QueryError, QueryResponse, RankedMatch
from .quota import QuotaStatus
from .skill import (
    EmbeddingVector,
    MatchFilter,
    SkillRecord,
    VectorMatch,
    VectorMetadata,
)

__all__ = [
    # Base
    "CVBaseModel",
    "utc_now",
    # Enums
    "ConfidenceTier",
    "ErrorCategory",
    "IndexStatus",
    "ResponseStatus",
    "Seniority",
    # Skills & vectors
    "SkillRecord",
    "VectorMetadata",
    "EmbeddingVector",
    "VectorMatch",
    "MatchFilter",
    # Query
    "ProjectContext",
    "RankedMatch",
    "QueryError",
    "QueryResponse",
    # Quota
    "QuotaStatus",
    # Indexing
    "BatchFailure",
    "IndexCheckpoint",
    "IndexingResult",
]
