"""Feedback data models for learning from user corrections."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any
from uuid import uuid4

from ..exceptions import ValidationError
from .category import ContextPair, KeywordTier

FEEDBACK_STATUSES = ("pending", "analyzed", "applied")


class SuggestionAction(str, Enum):
    """Kinds of dictionary change a suggestion can propose."""

    ADD_CORE_KEYWORD = "add_core_keyword"
    ADD_SUPPORT_KEYWORD = "add_support_keyword"
    ADD_CONTEXT_PAIR = "add_context_pair"

    @property
    def tier(self) -> KeywordTier:
        return {
            SuggestionAction.ADD_CORE_KEYWORD: KeywordTier.CORE,
            SuggestionAction.ADD_SUPPORT_KEYWORD: KeywordTier.SUPPORT,
            SuggestionAction.ADD_CONTEXT_PAIR: KeywordTier.CONTEXT_PAIR,
        }[self]


@dataclass
class DictionaryUpdateSuggestion:
    """A proposed dictionary change derived from feedback."""

    category_id: str
    action: SuggestionAction
    keyword: str
    confidence: float
    supporting_feedback: list[str] = field(default_factory=list)
    frequency: int = 0
    context_pair: ContextPair | None = None

    @property
    def key(self) -> tuple[str, str, str]:
        """Identity used to de-duplicate proposals."""
        return (self.category_id, self.action.value, self.keyword.lower())

    def to_dict(self) -> dict[str, Any]:
        return {
            "category_id": self.category_id,
            "action": self.action.value,
            "keyword": self.keyword,
            "confidence": round(self.confidence, 4),
            "supporting_feedback": list(self.supporting_feedback),
            "frequency": self.frequency,
            "context_pair": list(self.context_pair) if self.context_pair else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DictionaryUpdateSuggestion":
        pair = data.get("context_pair")
        return cls(
            category_id=data["category_id"],
            action=SuggestionAction(data["action"]),
            keyword=data["keyword"],
            confidence=float(data.get("confidence", 0.0)),
            supporting_feedback=list(data.get("supporting_feedback", [])),
            frequency=int(data.get("frequency", 0)),
            context_pair=(pair[0], pair[1]) if pair else None,
        )


@dataclass
class FeedbackRecord:
    """A human judgement about one job's classification.

    Either ``confirmed_correct`` is True, or ``corrected_primary`` names the
    category the job should have received.
    """

    job_id: str
    job_title: str
    original_primary: str
    job_description: str = ""
    job_labels: str = ""
    original_confidence: float = 0.0
    confirmed_correct: bool = False
    corrected_primary: str | None = None
    reason: str = ""
    id: str = field(default_factory=lambda: f"feedback-{uuid4().hex[:12]}")
    timestamp: datetime = field(default_factory=datetime.now)

    # Filled during processing
    extracted_keywords: list[str] = field(default_factory=list)
    suggested_changes: list[DictionaryUpdateSuggestion] = field(default_factory=list)
    status: str = "pending"

    def __post_init__(self) -> None:
        """Validate feedback data after initialization"""
        if self.status not in FEEDBACK_STATUSES:
            raise ValidationError(f"Invalid feedback status: {self.status}")
        # Missing text is treated as empty
        self.job_title = self.job_title or ""
        self.job_description = self.job_description or ""
        self.job_labels = self.job_labels or ""

    @property
    def is_correction(self) -> bool:
        return not self.confirmed_correct

    @property
    def final_primary(self) -> str | None:
        """The category the human says this job belongs to."""
        if self.confirmed_correct:
            return self.original_primary
        return self.corrected_primary

    @property
    def title_and_labels(self) -> str:
        return f"{self.job_title} {self.job_labels}".lower()

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "job_id": self.job_id,
            "job_title": self.job_title,
            "job_description": self.job_description,
            "job_labels": self.job_labels,
            "original_primary": self.original_primary,
            "original_confidence": self.original_confidence,
            "confirmed_correct": self.confirmed_correct,
            "corrected_primary": self.corrected_primary,
            "reason": self.reason,
            "timestamp": self.timestamp.isoformat(),
            "extracted_keywords": list(self.extracted_keywords),
            "suggested_changes": [s.to_dict() for s in self.suggested_changes],
            "status": self.status,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FeedbackRecord":
        """Create a FeedbackRecord from a persisted or user-supplied dictionary."""
        timestamp = data.get("timestamp")
        labels = data.get("job_labels") or ""
        if isinstance(labels, list | tuple):
            labels = ", ".join(str(label) for label in labels)
        record = cls(
            job_id=str(data.get("job_id") or ""),
            job_title=data.get("job_title") or "",
            original_primary=data.get("original_primary") or "",
            job_description=data.get("job_description") or "",
            job_labels=labels,
            original_confidence=float(data.get("original_confidence") or 0.0),
            confirmed_correct=bool(data.get("confirmed_correct", False)),
            corrected_primary=data.get("corrected_primary"),
            reason=data.get("reason") or "",
            extracted_keywords=list(data.get("extracted_keywords") or []),
            suggested_changes=[
                DictionaryUpdateSuggestion.from_dict(s)
                for s in data.get("suggested_changes") or []
            ],
            status=data.get("status", "pending"),
        )
        if data.get("id"):
            record.id = data["id"]
        if timestamp:
            record.timestamp = datetime.fromisoformat(timestamp)
        return record


@dataclass
class LearnedPattern:
    """Reinforcement state for one (category, keyword) pair."""

    category_id: str
    keyword: str
    confidence: float
    occurrences: int = 1
    last_seen: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "category_id": self.category_id,
            "keyword": self.keyword,
            "confidence": round(self.confidence, 4),
            "occurrences": self.occurrences,
            "last_seen": self.last_seen.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LearnedPattern":
        return cls(
            category_id=data["category_id"],
            keyword=data["keyword"],
            confidence=float(data["confidence"]),
            occurrences=int(data.get("occurrences", 1)),
            last_seen=datetime.fromisoformat(data["last_seen"]),
        )
