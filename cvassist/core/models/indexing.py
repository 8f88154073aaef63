"""Reindex checkpoint and result models (Pydantic only)."""

from datetime import datetime

from pydantic import Field

from .base import CVBaseModel, utc_now
from .enums import IndexStatus


class BatchFailure(CVBaseModel):
    """A batch that failed and was skipped."""

    offset: int = Field(..., ge=0)
    error: str
    failed_at: datetime = Field(default_factory=utc_now)


class IndexCheckpoint(CVBaseModel):
    """Resumable progress of a reindex job for one item type."""

    item_type: str
    version: int = Field(..., ge=1)
    next_offset: int = Field(0, ge=0)
    batch_size: int = Field(..., ge=1)
    processed: int = Field(0, ge=0)
    batches_completed: int = Field(0, ge=0)
    consecutive_failures: int = Field(0, ge=0)
    failures: list[BatchFailure] = Field(default_factory=list)
    status: IndexStatus = IndexStatus.IN_PROGRESS
    started_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class IndexingResult(CVBaseModel):
    """Outcome of a single ReindexJob.run call."""

    item_type: str
    version: int
    status: IndexStatus
    processed: int = Field(0, ge=0, description="Vectors upserted during this run")
    batches_run: int = Field(0, ge=0, description="Batches attempted during this run")
    batches_failed: int = Field(0, ge=0)
    start_offset: int = Field(0, ge=0)
    next_offset: int = Field(0, ge=0)
    resumed: bool = False
    errors: list[str] = Field(default_factory=list)

    @property
    def has_more(self) -> bool:
        return self.status == IndexStatus.IN_PROGRESS
