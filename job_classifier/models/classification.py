"""Classification result types."""

from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class SecondaryCategory(BaseModel):
    """A runner-up category with its own confidence."""

    model_config = ConfigDict(frozen=True)

    category: str
    confidence: int = Field(ge=0, le=100)


class ClassificationFlags(BaseModel):
    """Quality flags attached to a classification."""

    model_config = ConfigDict(frozen=True)

    low_confidence: bool = False
    ambiguous: bool = False
    emerging_terms: tuple[str, ...] = ()
    hybrid_candidate: bool = False
    hybrid_pattern: str | None = None
    hybrid_display_name: str | None = None


class ClassificationResult(BaseModel):
    """Outcome of classifying one job. Immutable once created."""

    model_config = ConfigDict(frozen=True)

    primary: str = Field(description="Primary category id")
    confidence: int = Field(ge=0, le=100, description="Strength of the primary match")
    secondary: tuple[SecondaryCategory, ...] = ()
    reasoning: tuple[str, ...] = ()
    flags: ClassificationFlags = Field(default_factory=ClassificationFlags)

    @property
    def secondary_ids(self) -> list[str]:
        return [s.category for s in self.secondary]

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-friendly dictionary."""
        return self.model_dump(mode="json")


@dataclass
class CategoryScore:
    """Raw score of one category for one job, plus the evidence behind it."""

    category_id: str
    score: float
    matches: list[str] = field(default_factory=list)
    title_matches: list[str] = field(default_factory=list)
    label_matches: list[str] = field(default_factory=list)


@dataclass
class EmergingTerm:
    """A vocabulary term seen often across a corpus but absent from the dictionary."""

    term: str
    frequency: int

    def to_dict(self) -> dict[str, Any]:
        return {"term": self.term, "frequency": self.frequency}


@dataclass
class CategoryOverlap:
    """A recurring combination of strong categories across a corpus."""

    categories: list[str]
    frequency: int
    avg_confidence: int
    examples: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "categories": self.categories,
            "frequency": self.frequency,
            "avg_confidence": self.avg_confidence,
            "examples": self.examples,
        }


@dataclass
class ReviewItem:
    """A job whose classification should be checked by a human."""

    job_id: str
    title: str
    reason: str
    confidence: int
    suggested_action: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "job_id": self.job_id,
            "title": self.title,
            "reason": self.reason,
            "confidence": self.confidence,
            "suggested_action": self.suggested_action,
        }
