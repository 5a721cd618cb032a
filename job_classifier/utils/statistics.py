"""Utility functions for calculating classification and learning statistics."""

from collections import defaultdict
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from ..models.classification import ClassificationResult
from ..models.feedback import FeedbackRecord


@dataclass
class CategoryPerformance:
    """Per-category slice of the learning metrics."""

    category: str
    avg_confidence: int
    ambiguity_rate: int
    volume: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "category": self.category,
            "avg_confidence": self.avg_confidence,
            "ambiguity_rate": self.ambiguity_rate,
            "volume": self.volume,
        }


@dataclass
class LearningMetrics:
    """Container for classification quality statistics."""

    total_classifications: int
    avg_confidence: int
    ambiguous_rate: int
    low_confidence_rate: int
    new_terms_detected: int
    last_learning_update: datetime = field(default_factory=datetime.now)
    category_performance: list[CategoryPerformance] = field(default_factory=list)

    def to_display_string(self) -> str:
        """Format metrics as a one-line summary."""
        return (
            f"Total: {self.total_classifications} | Avg confidence: {self.avg_confidence}% | "
            f"Ambiguous: {self.ambiguous_rate}% | Low confidence: {self.low_confidence_rate}% | "
            f"New terms: {self.new_terms_detected}"
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_classifications": self.total_classifications,
            "avg_confidence": self.avg_confidence,
            "ambiguous_rate": self.ambiguous_rate,
            "low_confidence_rate": self.low_confidence_rate,
            "new_terms_detected": self.new_terms_detected,
            "last_learning_update": self.last_learning_update.isoformat(),
            "category_performance": [c.to_dict() for c in self.category_performance],
        }


def _round(value: float) -> int:
    return int(value + 0.5) if value >= 0 else -int(-value + 0.5)


def compute_learning_metrics(
    results: Sequence[ClassificationResult], new_terms_detected: int = 0
) -> LearningMetrics:
    """Calculate statistics for a list of classification results.

    Args:
        results: Classification results to analyze
        new_terms_detected: Size of the emerging-term cache

    Returns:
        LearningMetrics object containing calculated statistics

    """
    total = len(results)

    if total == 0:
        return LearningMetrics(
            total_classifications=0,
            avg_confidence=0,
            ambiguous_rate=0,
            low_confidence_rate=0,
            new_terms_detected=new_terms_detected,
        )

    avg_confidence = sum(r.confidence for r in results) / total
    ambiguous_rate = sum(1 for r in results if r.flags.ambiguous) / total * 100
    low_confidence_rate = sum(1 for r in results if r.flags.low_confidence) / total * 100

    per_category: dict[str, dict[str, float]] = defaultdict(
        lambda: {"confidence_sum": 0.0, "count": 0, "ambiguous": 0}
    )
    for r in results:
        stats = per_category[r.primary]
        stats["confidence_sum"] += r.confidence
        stats["count"] += 1
        if r.flags.ambiguous:
            stats["ambiguous"] += 1

    performance = [
        CategoryPerformance(
            category=category,
            avg_confidence=_round(stats["confidence_sum"] / stats["count"]),
            ambiguity_rate=_round(stats["ambiguous"] / stats["count"] * 100),
            volume=int(stats["count"]),
        )
        for category, stats in per_category.items()
    ]

    return LearningMetrics(
        total_classifications=total,
        avg_confidence=_round(avg_confidence),
        ambiguous_rate=_round(ambiguous_rate),
        low_confidence_rate=_round(low_confidence_rate),
        new_terms_detected=new_terms_detected,
        category_performance=performance,
    )


def calculate_accuracy(records: Sequence[FeedbackRecord]) -> float:
    """Share of records whose original primary survived human review."""
    if not records:
        return 0.0
    correct = sum(1 for r in records if r.original_primary == r.final_primary)
    return correct / len(records)


def calculate_accuracy_improvement(
    records: Sequence[FeedbackRecord], window: int = 50, min_records: int = 10
) -> float:
    """Accuracy of the newest ``window`` records minus that of the oldest ``window``.

    Returns 0 until ``min_records`` records exist.
    """
    if len(records) < min_records:
        return 0.0
    recent = list(records)[-window:]
    older = list(records)[:window]
    return calculate_accuracy(recent) - calculate_accuracy(older)


def calculate_category_accuracy(
    records: Sequence[FeedbackRecord], category_ids: Sequence[str]
) -> dict[str, float]:
    """Per original category, the share of records the reviewer kept there."""
    accuracy = {}
    for category_id in category_ids:
        category_records = [r for r in records if r.original_primary == category_id]
        if category_records:
            correct = sum(1 for r in category_records if r.final_primary == category_id)
            accuracy[category_id] = correct / len(category_records)
    return accuracy
