"""Skill records and vector models (Pydantic only)."""

from pydantic import Field

from .base import CVBaseModel


# =============================================================================
# Pydantic Schemas
# =============================================================================


class SkillRecord(CVBaseModel):
    """Curated professional skill with outcome-driven narrative."""

    id: int = Field(..., description="Skill identifier")
    name: str = Field(..., description="Skill or technology name")
    category: str | None = Field(None, description="Category (Backend, Cloud, ...)")
    years_of_experience: float = Field(0.0, ge=0.0, description="Total career years")
    proficiency_level: str = Field("", description="Beginner/Intermediate/Advanced/Expert")
    narrative_summary: str | None = Field(None, description="Outcome-driven summary")

    # Outcome triple
    action: str | None = Field(None, description="What was done with this skill")
    effect: str | None = Field(None, description="Operational or technical effect")
    outcome: str | None = Field(None, description="Business outcome or measurable result")

    related_project: str | None = Field(None, description="Project/context anchor")
    employer: str | None = Field(None, description="Organisation the outcome is attributed to")
    recency: str | None = Field(None, description="Recency marker, e.g. 'current'")

    def embedding_text(self) -> str:
        """Rich text representation used for embedding generation."""
        parts = [self.name]
        if self.proficiency_level:
            parts.append(f"{self.proficiency_level} level")
        if self.years_of_experience:
            parts.append(f"{self.years_of_experience:g} years of experience")
        if self.category:
            parts.append(f"in {self.category}")
        for extra in (
            self.narrative_summary,
            self.action,
            self.effect,
            self.outcome,
            self.related_project,
        ):
            if extra:
                parts.append(extra)
        return " ".join(parts)


class VectorMetadata(CVBaseModel):
    """Denormalized snapshot stored next to each embedding."""

    id: int = Field(..., description="Skill identifier")
    version: int = Field(0, ge=0, description="Index version that produced the vector")
    name: str = Field("", description="Skill name")
    years: float = Field(0.0, ge=0.0, description="Years of experience")
    level: str = Field("", description="Proficiency level")
    category: str = Field("", description="Category")
    employer: str = Field("", description="Employer")

    @classmethod
    def from_record(cls, record: SkillRecord, version: int) -> "VectorMetadata":
        return cls(
            id=record.id,
            version=version,
            name=record.name,
            years=record.years_of_experience,
            level=record.proficiency_level or "",
            category=record.category or "",
            employer=record.employer or "",
        )


class EmbeddingVector(CVBaseModel):
    """Vector tied 1:1 to a record by (item_id, item_type)."""

    item_id: int
    item_type: str = "skills"
    values: list[float]
    metadata: VectorMetadata

    @property
    def key(self) -> str:
        return f"{self.item_type}-{self.item_id}"


class VectorMatch(CVBaseModel):
    """Single hit from a vector backend (higher score = more similar)."""

    id: str
    score: float
    metadata: VectorMetadata
    source: str = Field("", description="Backend that answered (provenance)")


class MatchFilter(CVBaseModel):
    """Narrowing applied before vector search."""

    employer: str | None = None

    def is_empty(self) -> bool:
        return not self.employer
