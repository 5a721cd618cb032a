"""Manages feedback history and learned keyword patterns."""

import logging
from collections import defaultdict, deque
from datetime import datetime
from typing import Any

from ..config import LEARNING_CONFIG, RETENTION_LIMITS
from ..models.feedback import FeedbackRecord, LearnedPattern

logger = logging.getLogger(__name__)


class FeedbackManager:
    """Keeps the bounded feedback history and the learned-pattern table."""

    def __init__(self, max_feedback: int = RETENTION_LIMITS["feedback"]) -> None:
        # Oldest records drop off once the cap is reached
        self._feedback: deque[FeedbackRecord] = deque(maxlen=max_feedback)
        # (category_id, keyword) -> pattern
        self._patterns: dict[tuple[str, str], LearnedPattern] = {}

    def add_feedback(self, record: FeedbackRecord) -> FeedbackRecord:
        """Append a feedback record to the history.

        Args:
            record: The feedback record

        Returns:
            The stored record

        """
        self._feedback.append(record)
        if record.is_correction:
            logger.info(
                f"Recorded feedback for {record.job_id}: "
                f"{record.original_primary} -> {record.corrected_primary}"
            )
        else:
            logger.info(f"Recorded confirmation for {record.job_id}: {record.original_primary}")
        return record

    def remove_feedback(self, record: FeedbackRecord) -> None:
        """Drop a record (by identity) from the history if it is still there."""
        kept = [f for f in self._feedback if f is not record]
        if len(kept) != len(self._feedback):
            self._feedback = deque(kept, maxlen=self._feedback.maxlen)

    def get_all_feedback(self) -> list[FeedbackRecord]:
        """Get the retained feedback, oldest first."""
        return list(self._feedback)

    def get_feedback_for(self, category_id: str) -> list[FeedbackRecord]:
        """Records whose final (corrected or confirmed) primary is ``category_id``."""
        return [f for f in self._feedback if f.final_primary == category_id]

    def find_jobs_with_keyword(self, category_id: str, keyword: str) -> list[FeedbackRecord]:
        """Feedback for a category whose extracted keywords include ``keyword``."""
        return [
            f for f in self.get_feedback_for(category_id)
            if keyword in f.extracted_keywords
        ]

    def find_jobs_with_context_pair(
        self, category_id: str, first: str, second: str
    ) -> list[FeedbackRecord]:
        """Feedback for a category whose title and labels mention both words."""
        return [
            f for f in self.get_feedback_for(category_id)
            if first in f.title_and_labels and second in f.title_and_labels
        ]

    def keyword_usage(self, category_id: str, keyword: str) -> dict[str, float]:
        """How often a keyword was extracted for this category vs. all others.

        Args:
            category_id: Category of interest
            keyword: Candidate keyword

        Returns:
            Dict with hit counts (``in_category``, ``in_others``), the number
            of records on each side and the matching rates (0 when a side is
            empty)

        """
        in_category = self.get_feedback_for(category_id)
        others = [f for f in self._feedback if f.final_primary != category_id]

        category_hits = sum(1 for f in in_category if keyword in f.extracted_keywords)
        other_hits = sum(1 for f in others if keyword in f.extracted_keywords)

        return {
            "in_category": category_hits,
            "in_others": other_hits,
            "category_total": len(in_category),
            "other_total": len(others),
            "category_rate": category_hits / len(in_category) if in_category else 0.0,
            "other_rate": other_hits / len(others) if others else 0.0,
        }

    def reinforce_pattern(self, category_id: str, keyword: str) -> LearnedPattern:
        """Strengthen an existing pattern or seed a new one."""
        key = (category_id, keyword)
        pattern = self._patterns.get(key)
        if pattern:
            pattern.confidence = min(
                1.0, pattern.confidence + float(LEARNING_CONFIG["reinforcement_step"])
            )
            pattern.occurrences += 1
            pattern.last_seen = datetime.now()
        else:
            pattern = LearnedPattern(
                category_id=category_id,
                keyword=keyword,
                confidence=float(LEARNING_CONFIG["positive_seed_confidence"]),
            )
            self._patterns[key] = pattern
        return pattern

    def get_pattern(self, category_id: str, keyword: str) -> LearnedPattern | None:
        return self._patterns.get((category_id, keyword))

    def get_patterns(self) -> list[LearnedPattern]:
        return list(self._patterns.values())

    def get_statistics(self) -> dict[str, Any]:
        """Get statistics about the retained feedback.

        Returns:
            Dictionary with statistics about feedback

        """
        if not self._feedback:
            return {
                "total_feedback": 0,
                "total_corrections": 0,
                "most_corrected_type": "N/A",
            }

        corrections: dict[str, int] = defaultdict(int)
        for f in self._feedback:
            if f.is_correction:
                corrections[f"{f.original_primary} → {f.corrected_primary}"] += 1

        most_common = max(corrections.items(), key=lambda x: x[1]) if corrections else ("N/A", 0)

        return {
            "total_feedback": len(self._feedback),
            "total_corrections": sum(corrections.values()),
            "most_corrected_type": most_common[0],
            "correction_counts": dict(corrections),
        }

    def has_feedback(self) -> bool:
        return len(self._feedback) > 0

    def clear(self) -> None:
        """Clear all feedback and learned patterns."""
        count = len(self._feedback)
        self._feedback.clear()
        self._patterns.clear()
        logger.info(f"Cleared {count} feedback entries")

    def to_records(self) -> dict[str, Any]:
        """Serializable form of the history and the pattern table."""
        return {
            "feedback": [f.to_dict() for f in self._feedback],
            "patterns": [p.to_dict() for p in self._patterns.values()],
        }

    def load_records(
        self, feedback: list[dict[str, Any]], patterns: list[dict[str, Any]]
    ) -> None:
        """Restore history and patterns from their serialized form."""
        self._feedback.clear()
        for item in feedback:
            self._feedback.append(FeedbackRecord.from_dict(item))
        self._patterns = {}
        for item in patterns:
            pattern = LearnedPattern.from_dict(item)
            self._patterns[(pattern.category_id, pattern.keyword)] = pattern
