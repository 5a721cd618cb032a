"""Audit trail data models for dictionary learning."""

import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any
from uuid import uuid4

from .category import ContextPair


class LearningActionType(str, Enum):
    """Kinds of learning event recorded in the audit trail."""

    KEYWORD_ADDITION = "keyword_addition"
    PATTERN_RECOGNITION = "pattern_recognition"
    CATEGORY_UPDATE = "category_update"
    POSITIVE_REINFORCEMENT = "positive_reinforcement"


def generate_action_id() -> str:
    """Create an id of the form ``action-<epoch ms>-<random>``."""
    return f"action-{int(time.time() * 1000)}-{uuid4().hex[:9]}"


@dataclass
class LearningAction:
    """Represents a single learning audit entry."""

    action_type: LearningActionType
    category_id: str
    description: str
    confidence: float
    supporting_jobs: list[str] = field(default_factory=list)
    auto_applied: bool = False
    id: str = field(default_factory=generate_action_id)
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for CSV export.

        Returns:
            Dictionary with all fields formatted for export

        """
        return {
            'id': self.id,
            'timestamp': self.timestamp.strftime('%Y-%m-%d %H:%M:%S'),
            'type': self.action_type.value,
            'category': self.category_id,
            'description': self.description,
            'confidence': f"{self.confidence:.2f}",
            'supporting_jobs': ';'.join(self.supporting_jobs),
            'auto_applied': 'yes' if self.auto_applied else 'no',
        }

    def to_record(self) -> dict[str, Any]:
        """Lossless form used for persistence."""
        return {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "action_type": self.action_type.value,
            "category_id": self.category_id,
            "description": self.description,
            "confidence": self.confidence,
            "supporting_jobs": list(self.supporting_jobs),
            "auto_applied": self.auto_applied,
        }

    @classmethod
    def from_record(cls, data: dict[str, Any]) -> "LearningAction":
        return cls(
            action_type=LearningActionType(data["action_type"]),
            category_id=data["category_id"],
            description=data.get("description", ""),
            confidence=float(data.get("confidence", 0.0)),
            supporting_jobs=list(data.get("supporting_jobs", [])),
            auto_applied=bool(data.get("auto_applied", False)),
            id=data["id"],
            timestamp=datetime.fromisoformat(data["timestamp"]),
        )


@dataclass
class DictionaryUpdate:
    """Log entry describing a change applied to one category."""

    category_id: str
    confidence: float
    new_core_keywords: list[str] = field(default_factory=list)
    new_support_keywords: list[str] = field(default_factory=list)
    new_context_pairs: list[ContextPair] = field(default_factory=list)
    source: str = "feedback_learning"
    timestamp: datetime = field(default_factory=datetime.now)

    def to_record(self) -> dict[str, Any]:
        return {
            "category_id": self.category_id,
            "confidence": self.confidence,
            "new_core_keywords": list(self.new_core_keywords),
            "new_support_keywords": list(self.new_support_keywords),
            "new_context_pairs": [list(p) for p in self.new_context_pairs],
            "source": self.source,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_record(cls, data: dict[str, Any]) -> "DictionaryUpdate":
        return cls(
            category_id=data["category_id"],
            confidence=float(data.get("confidence", 0.0)),
            new_core_keywords=list(data.get("new_core_keywords", [])),
            new_support_keywords=list(data.get("new_support_keywords", [])),
            new_context_pairs=[(p[0], p[1]) for p in data.get("new_context_pairs", [])],
            source=data.get("source", "feedback_learning"),
            timestamp=datetime.fromisoformat(data["timestamp"]),
        )
