"""Inference budget models (Pydantic only)."""

from datetime import datetime

from pydantic import Field

from .base import CVBaseModel


class QuotaStatus(CVBaseModel):
    """Snapshot of the daily inference budget."""

    date: str = Field(..., description="UTC day (YYYY-MM-DD)")
    used: float = Field(0.0, ge=0.0, description="Accumulated cost units")
    limit: float = Field(..., gt=0.0, description="Daily cost limit")
    remaining: float = Field(0.0, ge=0.0)
    inference_count: int = Field(0, ge=0)
    reset_at: datetime = Field(..., description="Next UTC midnight")

    @property
    def is_exceeded(self) -> bool:
        return self.used >= self.limit
