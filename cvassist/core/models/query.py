"""Query request/response models for the answer pipeline (Pydantic only)."""

from datetime import datetime

from pydantic import Field

from .base import CVBaseModel, utc_now
from .enums import ConfidenceTier, ErrorCategory, ResponseStatus
from .skill import SkillRecord


class ProjectContext(CVBaseModel):
    """Project scoping derived from the query text (never persisted)."""

    is_project_specific: bool = False
    project_name: str | None = None
    clean_query: str


class RankedMatch(CVBaseModel):
    """Skill hit after clamp + experience boost."""

    skill: SkillRecord
    score: float = Field(..., ge=0.0, le=1.0, description="Boosted, clamped score")
    raw_score: float = Field(..., ge=-1.0, le=1.0, description="Backend similarity")
    boost: float = Field(1.0, ge=1.0, description="Experience boost factor applied")
    source: str = Field("", description="Vector backend provenance")

    @property
    def name(self) -> str:
        return self.skill.name


class QueryError(CVBaseModel):
    """Structured error returned to callers (never carries internal detail)."""

    category: ErrorCategory
    message: str
    suggestion: str | None = None


class QueryResponse(CVBaseModel):
    """Structured result of answer_query."""

    query: str
    status: ResponseStatus = ResponseStatus.ANSWERED
    matches: list[RankedMatch] = Field(default_factory=list)
    reply: str = ""
    cached: bool = False
    quota_exceeded: bool | None = None
    source: str | None = Field(None, description="Vector backend that answered")
    project: str | None = None
    confidence: ConfidenceTier | None = None
    error: QueryError | None = None
    timestamp: datetime = Field(default_factory=utc_now)

    @property
    def ok(self) -> bool:
        return self.error is None
