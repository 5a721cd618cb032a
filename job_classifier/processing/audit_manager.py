"""Audit manager for learning actions and applied dictionary updates.
"""
import csv
import logging
from collections import deque
from pathlib import Path
from typing import Any

from ..config import RETENTION_LIMITS
from ..models.audit import DictionaryUpdate, LearningAction, LearningActionType

logger = logging.getLogger(__name__)


class AuditManager:
    """Manages the learning audit trail and export."""

    def __init__(
        self,
        max_actions: int = RETENTION_LIMITS["learning_actions"],
        max_updates: int = RETENTION_LIMITS["dictionary_updates"],
    ) -> None:
        """Initialize empty, capped audit logs."""
        self._actions: deque[LearningAction] = deque(maxlen=max_actions)
        self._updates: deque[DictionaryUpdate] = deque(maxlen=max_updates)

    def log_action(
        self,
        action_type: LearningActionType,
        category_id: str,
        description: str,
        confidence: float,
        supporting_jobs: list[str] | None = None,
        auto_applied: bool = False,
    ) -> LearningAction:
        """Log a learning action.

        Args:
            action_type: Kind of learning event
            category_id: Category the event concerns
            description: Human readable summary
            confidence: Confidence of the event (0-1)
            supporting_jobs: Job ids that support it
            auto_applied: Whether the dictionary was changed automatically

        Returns:
            The logged action

        """
        action = LearningAction(
            action_type=action_type,
            category_id=category_id,
            description=description,
            confidence=confidence,
            supporting_jobs=list(supporting_jobs or []),
            auto_applied=auto_applied,
        )
        self._actions.append(action)
        return action

    def log_update(self, update: DictionaryUpdate) -> None:
        """Log a dictionary change that was applied."""
        self._updates.append(update)

    def get_actions(
        self,
        category_id: str | None = None,
        action_type: LearningActionType | None = None,
    ) -> list[LearningAction]:
        """Get learning actions with optional filtering, oldest first."""
        actions = list(self._actions)

        if category_id:
            actions = [a for a in actions if a.category_id == category_id]

        if action_type:
            actions = [a for a in actions if a.action_type == action_type]

        return actions

    def get_updates(self, category_id: str | None = None) -> list[DictionaryUpdate]:
        updates = list(self._updates)
        if category_id:
            updates = [u for u in updates if u.category_id == category_id]
        return updates

    def recent_actions(self, limit: int = 20) -> list[LearningAction]:
        return list(self._actions)[-limit:]

    def recent_updates(self, limit: int = 10) -> list[DictionaryUpdate]:
        return list(self._updates)[-limit:]

    def auto_applied_count(self) -> int:
        return sum(1 for a in self._actions if a.auto_applied)

    def clear(self) -> None:
        self._actions.clear()
        self._updates.clear()

    def to_records(self) -> dict[str, Any]:
        return {
            "actions": [a.to_record() for a in self._actions],
            "updates": [u.to_record() for u in self._updates],
        }

    def load_records(
        self, actions: list[dict[str, Any]], updates: list[dict[str, Any]]
    ) -> None:
        self._actions.clear()
        self._updates.clear()
        for item in actions:
            self._actions.append(LearningAction.from_record(item))
        for item in updates:
            self._updates.append(DictionaryUpdate.from_record(item))

    def export_csv(self, filepath: Path) -> None:
        """Export all learning actions to CSV file.

        Args:
            filepath: Path to save the CSV file

        """
        # Sort entries chronologically
        actions = sorted(self._actions, key=lambda a: a.timestamp)

        with open(filepath, 'w', newline='', encoding='utf-8') as f:
            fieldnames = ['id', 'timestamp', 'type', 'category', 'description',
                          'confidence', 'supporting_jobs', 'auto_applied']
            writer = csv.DictWriter(f, fieldnames=fieldnames)

            writer.writeheader()

            for action in actions:
                writer.writerow(action.to_dict())

        logger.info(f"Exported {len(actions)} learning actions to {filepath}")
