"""Enumeration types for cvassist models."""

from enum import Enum


class ErrorCategory(str, Enum):
    """Machine-distinguishable failure categories of the query pipeline."""

    INPUT_REJECTED = "input_rejected"
    WINDOW_CLOSED = "window_closed"
    SEARCH_UNAVAILABLE = "search_unavailable"
    QUOTA_EXHAUSTED = "quota_exhausted"
    INFERENCE_FAILED = "inference_failed"
    INDEXING_CONFLICT = "indexing_conflict"


class ResponseStatus(str, Enum):
    """Outcome of a single answer_query call."""

    ANSWERED = "answered"
    NO_DATA = "no_data"
    QUOTA_EXHAUSTED = "quota_exhausted"
    INFERENCE_FAILED = "inference_failed"
    INPUT_REJECTED = "input_rejected"
    WINDOW_CLOSED = "window_closed"
    SEARCH_UNAVAILABLE = "search_unavailable"


class ConfidenceTier(str, Enum):
    """Confidence derived from the top match score."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class IndexStatus(str, Enum):
    """Reindex job status."""

    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    ABORTED = "aborted"


class Seniority(str, Enum):
    """Seniority bands used when classifying years of experience."""

    JUNIOR = "Junior"
    MID = "Mid-level"
    SENIOR = "Senior"
    PRINCIPAL = "Principal/Lead"
