"""Dictionary learning engine: turns feedback into durable dictionary changes."""

import logging
import threading
from collections import OrderedDict, defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from ..config import FORBIDDEN_LEARNING_KEYWORDS, LEARNING_CONFIG, RETENTION_LIMITS
from ..exceptions import FeedbackError
from ..models.audit import DictionaryUpdate, LearningAction, LearningActionType
from ..models.category import KeywordTier
from ..models.feedback import DictionaryUpdateSuggestion, FeedbackRecord, SuggestionAction
from ..models.rules import TaxonomyRules
from ..services.persistence import (
    ACTIONS_KEY,
    FEEDBACK_KEY,
    PATTERNS_KEY,
    PROPOSALS_KEY,
    UPDATES_KEY,
    LearningStatePersister,
)
from ..utils.statistics import calculate_accuracy_improvement, calculate_category_accuracy
from .audit_manager import AuditManager
from .dictionary_store import DictionaryStore, UpdateOutcome
from .feedback_manager import FeedbackManager
from .feedback_processor import FeedbackProcessor

logger = logging.getLogger(__name__)

AUTO_APPLY_SOURCE = "auto_apply"
MANUAL_SOURCE = "manual"


@dataclass
class LearningInsights:
    """Read-only report computed from the retained learning history."""

    total_feedback: int
    accuracy_improvement: float
    category_accuracy: dict[str, float]
    common_misclassifications: list[dict[str, Any]]
    suggested_keywords: list[dict[str, Any]]
    actions: list[LearningAction] = field(default_factory=list)
    updates: list[DictionaryUpdate] = field(default_factory=list)
    last_updated: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_feedback": self.total_feedback,
            "accuracy_improvement": self.accuracy_improvement,
            "category_accuracy": self.category_accuracy,
            "common_misclassifications": self.common_misclassifications,
            "suggested_keywords": self.suggested_keywords,
            "actions": [a.to_record() for a in self.actions],
            "updates": [u.to_record() for u in self.updates],
            "last_updated": self.last_updated.isoformat(),
        }


class DictionaryLearningEngine:
    """Aggregates feedback, proposes changes and auto-applies confident ones.

    All mutating operations are serialized by one re-entrant lock, so two
    feedback events never interleave their history updates or dictionary
    merges. The dictionary store has its own lock for readers on other
    threads.
    """

    def __init__(
        self,
        store: DictionaryStore,
        rules: TaxonomyRules,
        persister: LearningStatePersister | None = None,
        feedback_manager: FeedbackManager | None = None,
        audit_manager: AuditManager | None = None,
    ) -> None:
        self.store = store
        self.rules = rules
        self.persister = persister
        self.feedback_manager = feedback_manager or FeedbackManager()
        self.audit_manager = audit_manager or AuditManager()
        self.processor = FeedbackProcessor(self.feedback_manager, self.audit_manager, rules)
        self._pending: OrderedDict[tuple[str, str, str], DictionaryUpdateSuggestion] = OrderedDict()
        self._lock = threading.RLock()

        if self.persister is not None:
            self._load_persisted()

    # Feedback

    def _validate(self, record: FeedbackRecord) -> None:
        """Normalize category ids and reject unusable records before any mutation."""
        if not record.job_id:
            raise FeedbackError("Feedback record has no job id")

        original = self.rules.canonical_category(record.original_primary)
        corrected = record.corrected_primary
        if record.is_correction:
            if not corrected:
                raise FeedbackError(
                    f"Feedback for job {record.job_id} is neither a confirmation nor a correction"
                )
            corrected = self.rules.canonical_category(corrected)

        target = corrected if record.is_correction else original
        if not target or self.store.get_snapshot().get(target) is None:
            raise FeedbackError(f"Unknown category '{target}' in feedback for job {record.job_id}")

        record.original_primary = original
        record.corrected_primary = corrected

    def process_feedback(self, record: FeedbackRecord) -> list[DictionaryUpdateSuggestion]:
        """Learn from one human judgement.

        The record is stored in the bounded history, keywords are extracted,
        and either the reinforcement path (confirmation) or the suggestion
        path (correction) runs. Suggestions at or above the auto-apply
        threshold are merged into the dictionary right away; the rest are
        kept as pending proposals.

        Args:
            record: Feedback record

        Returns:
            All suggestions produced, applied or not

        Raises:
            FeedbackError: If the record is malformed or names an unknown category

        """
        with self._lock:
            self._validate(record)
            logger.info(
                f"🧠 Processing {'confirmation' if record.confirmed_correct else 'correction'} "
                f"feedback for job {record.job_id}"
            )

            self.feedback_manager.add_feedback(record)
            category = self.store.get_snapshot().get(record.final_primary or "")

            try:
                keywords = self.processor.extract_keywords(record, category)
                record.extracted_keywords = keywords

                if record.confirmed_correct:
                    suggestions = self.processor.process_positive(record, keywords)
                else:
                    suggestions = self.processor.process_correction(record, keywords, category)
            except Exception:
                # A record that could not be analyzed is not kept in the history
                self.feedback_manager.remove_feedback(record)
                record.extracted_keywords = []
                raise

            record.suggested_changes = suggestions
            record.status = "analyzed"

            threshold = float(LEARNING_CONFIG["auto_apply_threshold"])
            for suggestion in suggestions:
                if suggestion.confidence >= threshold:
                    self._apply(suggestion, auto_applied=True)
                else:
                    self._add_pending(suggestion)

            self._persist()
            return suggestions

    def _add_pending(self, suggestion: DictionaryUpdateSuggestion) -> None:
        # Newer evidence replaces an older proposal for the same change
        self._pending.pop(suggestion.key, None)
        self._pending[suggestion.key] = suggestion
        while len(self._pending) > RETENTION_LIMITS["pending_proposals"]:
            self._pending.popitem(last=False)

    def _discard_pending(self, category_id: str, keyword: str) -> None:
        # Any proposal for the same keyword is settled once one of them is applied
        stale = [k for k in self._pending if k[0] == category_id and k[2] == keyword.lower()]
        for key in stale:
            del self._pending[key]

    def _apply(self, suggestion: DictionaryUpdateSuggestion, auto_applied: bool) -> UpdateOutcome:
        tier = suggestion.action.tier
        if tier is KeywordTier.CONTEXT_PAIR:
            if suggestion.context_pair is None:
                raise FeedbackError(f"Context pair suggestion '{suggestion.keyword}' has no pair")
            value: Any = suggestion.context_pair
        else:
            value = suggestion.keyword

        outcome = self.store.apply_update(suggestion.category_id, tier, value)
        self._discard_pending(suggestion.category_id, suggestion.keyword)
        if outcome is not UpdateOutcome.APPLIED:
            logger.debug(f"Skipped {suggestion.action.value} '{suggestion.keyword}': {outcome.value}")
            return outcome

        action = suggestion.action
        self.audit_manager.log_update(DictionaryUpdate(
            category_id=suggestion.category_id,
            confidence=suggestion.confidence,
            new_core_keywords=[suggestion.keyword] if action is SuggestionAction.ADD_CORE_KEYWORD else [],
            new_support_keywords=[suggestion.keyword] if action is SuggestionAction.ADD_SUPPORT_KEYWORD else [],
            new_context_pairs=[suggestion.context_pair] if suggestion.context_pair else [],
            source=AUTO_APPLY_SOURCE if auto_applied else MANUAL_SOURCE,
        ))

        verb = "Auto-applied" if auto_applied else "Applied"
        self.audit_manager.log_action(
            LearningActionType.CATEGORY_UPDATE,
            suggestion.category_id,
            f'{verb} {action.value.replace("_", " ")}: "{suggestion.keyword}"',
            suggestion.confidence,
            supporting_jobs=suggestion.supporting_feedback,
            auto_applied=auto_applied,
        )
        logger.info(
            f"🚀 {verb}: {action.value} \"{suggestion.keyword}\" to {suggestion.category_id} "
            f"(confidence: {round(suggestion.confidence * 100)}%)"
        )
        return outcome

    # Proposals

    def get_pending_proposals(self, limit: int | None = None) -> list[DictionaryUpdateSuggestion]:
        """Below-threshold suggestions awaiting review, highest confidence first."""
        with self._lock:
            proposals = sorted(self._pending.values(), key=lambda s: s.confidence, reverse=True)
        return proposals[:limit] if limit is not None else proposals

    def apply_suggestion(self, suggestion: DictionaryUpdateSuggestion) -> UpdateOutcome:
        """Apply a suggestion on explicit request (e.g. a reviewer accepting a proposal).

        Args:
            suggestion: Suggestion to merge into the dictionary

        Returns:
            UpdateOutcome from the dictionary store

        """
        with self._lock:
            outcome = self._apply(suggestion, auto_applied=False)
            self._persist()
            return outcome

    # Reporting

    def _suggested_keywords(self, records: list[FeedbackRecord]) -> list[dict[str, Any]]:
        counts: dict[str, dict[str, int]] = defaultdict(lambda: defaultdict(int))
        for record in records:
            category_id = record.final_primary
            if not category_id:
                continue
            for keyword in record.extracted_keywords:
                counts[category_id][keyword] += 1

        min_support = int(LEARNING_CONFIG["min_feedback_threshold"])
        suggestions = []
        for category_id, keywords in counts.items():
            for keyword, count in keywords.items():
                if keyword.lower() in FORBIDDEN_LEARNING_KEYWORDS:
                    continue
                specificity = self.processor.calculate_category_specificity(keyword, category_id)
                confidence = min(count / min_support, 1.0) * specificity
                if (
                    count >= min_support
                    and confidence > float(LEARNING_CONFIG["insight_min_confidence"])
                    and specificity > float(LEARNING_CONFIG["insight_min_specificity"])
                ):
                    suggestions.append({
                        "category": category_id,
                        "keyword": keyword,
                        "confidence": confidence,
                        "supporting_jobs": count,
                        "category_specificity": specificity,
                    })

        suggestions.sort(key=lambda s: s["confidence"], reverse=True)
        return suggestions[:15]

    def get_learning_insights(self) -> LearningInsights:
        """Compute accuracy, misclassification and keyword reports from the history."""
        with self._lock:
            records = self.feedback_manager.get_all_feedback()
            category_ids = self.store.get_snapshot().category_ids

            misclassifications: dict[tuple[str, str], dict[str, Any]] = {}
            for record in records:
                source, target = record.original_primary, record.final_primary
                if not target or source == target:
                    continue
                entry = misclassifications.setdefault(
                    (source, target), {"count": 0, "keywords": []}
                )
                entry["count"] += 1
                for keyword in record.extracted_keywords:
                    if keyword not in entry["keywords"]:
                        entry["keywords"].append(keyword)

            common = sorted(
                (
                    {
                        "from_category": source,
                        "to_category": target,
                        "frequency": data["count"],
                        "common_keywords": data["keywords"][:5],
                    }
                    for (source, target), data in misclassifications.items()
                ),
                key=lambda m: m["frequency"],
                reverse=True,
            )[:10]

            return LearningInsights(
                total_feedback=len(records),
                accuracy_improvement=calculate_accuracy_improvement(records),
                category_accuracy=calculate_category_accuracy(records, category_ids),
                common_misclassifications=common,
                suggested_keywords=self._suggested_keywords(records),
                actions=self.audit_manager.recent_actions(20),
                updates=self.audit_manager.recent_updates(10),
            )

    def get_stats(self) -> dict[str, Any]:
        """Summary counters of the learning state."""
        with self._lock:
            updates = self.audit_manager.get_updates()
            return {
                "total_feedback": len(self.feedback_manager.get_all_feedback()),
                "total_patterns": len(self.feedback_manager.get_patterns()),
                "total_updates": len(updates),
                "total_actions": len(self.audit_manager.get_actions()),
                "auto_applied_updates": sum(1 for u in updates if u.source == AUTO_APPLY_SOURCE),
                "pending_proposals": len(self._pending),
                "recent_actions": [a.to_record() for a in self.audit_manager.recent_actions(5)],
            }

    def clear_all_data(self) -> None:
        """Forget all feedback, patterns, proposals and audit history.

        The dictionary itself is left untouched.
        """
        with self._lock:
            self.feedback_manager.clear()
            self.audit_manager.clear()
            self._pending.clear()
            if self.persister is not None:
                self.persister.clear(
                    [FEEDBACK_KEY, PATTERNS_KEY, UPDATES_KEY, ACTIONS_KEY, PROPOSALS_KEY]
                )
        logger.info("🗑️ Cleared all learning data")

    # Persistence

    def _persist(self) -> None:
        """Best-effort write of the learning state; never undoes in-memory changes."""
        if self.persister is None:
            return
        feedback_state = self.feedback_manager.to_records()
        audit_state = self.audit_manager.to_records()
        self.persister.save({
            FEEDBACK_KEY: feedback_state["feedback"],
            PATTERNS_KEY: feedback_state["patterns"],
            UPDATES_KEY: audit_state["updates"],
            ACTIONS_KEY: audit_state["actions"],
            PROPOSALS_KEY: [s.to_dict() for s in self._pending.values()],
        })

    def _load_persisted(self) -> None:
        if self.persister is None:
            return
        try:
            self.feedback_manager.load_records(
                self.persister.load(FEEDBACK_KEY, []), self.persister.load(PATTERNS_KEY, [])
            )
            self.audit_manager.load_records(
                self.persister.load(ACTIONS_KEY, []), self.persister.load(UPDATES_KEY, [])
            )
            for item in self.persister.load(PROPOSALS_KEY, []):
                self._add_pending(DictionaryUpdateSuggestion.from_dict(item))
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"⚠️ Failed to load learning data, starting empty: {e!s}")
            self.feedback_manager.clear()
            self.audit_manager.clear()
            self._pending.clear()
            return

        logger.info(
            f"✅ Loaded learning data: {len(self.feedback_manager.get_all_feedback())} feedback, "
            f"{len(self.feedback_manager.get_patterns())} patterns, "
            f"{len(self.audit_manager.get_actions())} actions"
        )
