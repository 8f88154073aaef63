"""Base Pydantic schemas and helpers for cvassist models."""

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict


# =============================================================================
# Pydantic Base Classes
# =============================================================================


class CVBaseModel(BaseModel):
    """Base Pydantic model for all schemas with common configuration."""

    model_config = ConfigDict(
        # Allow construction from sqlite3.Row-like objects
        from_attributes=True,
        # Validate on assignment
        validate_assignment=True,
        # Use enum values instead of enum members
        use_enum_values=True,
        str_strip_whitespace=True,
    )


# =============================================================================
# Utility Functions
# =============================================================================


def utc_now() -> datetime:
    """Get current UTC datetime.

    Returns:
        Current datetime in UTC timezone
    """
    return datetime.now(timezone.utc)
