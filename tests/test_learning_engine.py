"""Tests for the DictionaryLearningEngine."""

from unittest.mock import patch

import pytest

from job_classifier.exceptions import FeedbackError, PersistenceError
from job_classifier.models.audit import LearningActionType
from job_classifier.models.feedback import FeedbackRecord, SuggestionAction
from job_classifier.processing.dictionary_store import DictionaryStore, UpdateOutcome
from job_classifier.processing.learning_engine import DictionaryLearningEngine
from job_classifier.services.persistence import (
    DICTIONARY_KEY,
    FEEDBACK_KEY,
    InMemoryKeyValueStore,
    LearningStatePersister,
)


class BrokenStore(InMemoryKeyValueStore):
    """Store that refuses every write."""

    def set(self, key, value):
        raise PersistenceError("store offline")


@pytest.fixture
def engine(bundled_store, bundled_rules):
    return DictionaryLearningEngine(bundled_store, bundled_rules)


def feed(engine, make_correction, title, count, prefix="job"):
    """Process ``count`` identical corrections and return the last result."""
    result = []
    for i in range(count):
        result = engine.process_feedback(make_correction(f"{prefix}-{i}", title))
    return result


def digital_core(engine):
    return engine.store.get_snapshot().get("digital-technology").core_keywords


class TestValidation:
    """Test suite for feedback validation."""

    def test_unknown_category(self, engine, make_correction):
        with pytest.raises(FeedbackError):
            engine.process_feedback(make_correction("1", "Developer", corrected="space-exploration"))

        assert engine.feedback_manager.get_all_feedback() == []

    def test_missing_job_id(self, engine, make_correction):
        with pytest.raises(FeedbackError):
            engine.process_feedback(make_correction("", "Developer"))

    def test_correction_without_target(self, engine, make_correction):
        with pytest.raises(FeedbackError):
            engine.process_feedback(make_correction("1", "Developer", corrected=None))

    def test_aliases_are_canonicalized(self, engine, make_correction):
        record = make_correction("1", "Fleet Driver", corrected="operations-logistics")

        engine.process_feedback(record)

        assert record.corrected_primary == "operations-administration"

    def test_rejected_record_is_left_unchanged(self, engine, make_correction):
        record = make_correction(
            "1", "Fleet Driver", corrected="space-exploration", original="operations-logistics"
        )

        with pytest.raises(FeedbackError):
            engine.process_feedback(record)

        assert record.original_primary == "operations-logistics"
        assert record.corrected_primary == "space-exploration"

    def test_null_text_fields_are_tolerated(self, engine):
        record = FeedbackRecord.from_dict({
            "job_id": "1",
            "job_title": None,
            "job_description": None,
            "job_labels": None,
            "original_primary": "operations-administration",
            "corrected_primary": "digital-technology",
        })

        assert engine.process_feedback(record) == []
        assert record.status == "analyzed"
        assert engine.feedback_manager.get_all_feedback() == [record]

    def test_failed_analysis_is_not_kept(self, engine, make_correction):
        record = make_correction("1", "Blockchain Developer")

        with patch.object(engine.processor, "extract_keywords", side_effect=RuntimeError("boom")):
            with pytest.raises(RuntimeError):
                engine.process_feedback(record)

        assert engine.feedback_manager.get_all_feedback() == []
        assert engine.audit_manager.get_actions() == []


class TestConfirmations:
    """Test suite for confirmation feedback."""

    def test_confirmation_reinforces_without_suggestions(self, engine, make_confirmation):
        first = make_confirmation("1", "Software Developer")

        assert engine.process_feedback(first) == []
        engine.process_feedback(make_confirmation("2", "Software Developer"))

        pattern = engine.feedback_manager.get_pattern("digital-technology", "developer")
        assert pattern.confidence == pytest.approx(0.7)
        assert pattern.occurrences == 2
        assert first.status == "analyzed"
        assert first.extracted_keywords == ["developer"]
        assert engine.store.version == 1


class TestCorrections:
    """Test suite for correction feedback."""

    def test_no_suggestions_below_support(self, engine, make_correction):
        for count in range(1, 5):
            result = engine.process_feedback(make_correction(f"job-{count}", "Blockchain Developer"))
            assert result == []

    def test_support_suggestions_become_proposals(self, engine, make_correction):
        suggestions = feed(engine, make_correction, "Blockchain Developer", 5)

        assert {s.keyword for s in suggestions} == {"blockchain developer", "blockchain", "developer"}
        assert all(s.action is SuggestionAction.ADD_SUPPORT_KEYWORD for s in suggestions)
        assert all(s.confidence == pytest.approx(0.5) for s in suggestions)

        # Nothing is auto-applied below the threshold
        assert engine.store.version == 1
        assert len(engine.get_pending_proposals()) == 3
        assert engine.audit_manager.get_updates() == []

    def test_confident_suggestions_are_auto_applied(self, engine, make_correction):
        suggestions = feed(engine, make_correction, "Solidity Engineer", 8)

        assert {s.keyword for s in suggestions} == {"solidity engineer", "solidity", "engineer"}
        assert all(s.action is SuggestionAction.ADD_CORE_KEYWORD for s in suggestions)
        assert {"solidity", "engineer", "solidity engineer"} <= set(digital_core(engine))
        assert engine.store.version == 4

        updates = engine.audit_manager.get_updates()
        assert len(updates) == 3
        assert all(u.source == "auto_apply" for u in updates)

        applied = engine.audit_manager.get_actions(action_type=LearningActionType.CATEGORY_UPDATE)
        assert 'Auto-applied add core keyword: "solidity"' in [a.description for a in applied]
        assert all(a.auto_applied for a in applied)

        # Earlier support proposals for the same keywords are settled
        assert engine.get_pending_proposals() == []

    def test_existing_keyword_is_not_logged_as_update(self, engine, make_correction):
        feed(engine, make_correction, "Blockchain Developer", 8)

        # "blockchain" and "developer" are already core keywords
        updates = engine.audit_manager.get_updates()
        assert [u.new_core_keywords for u in updates] == [["blockchain developer"]]
        assert engine.store.version == 2

    def test_apply_suggestion_manually(self, engine, make_correction):
        feed(engine, make_correction, "Blockchain Developer", 5)
        proposal = next(p for p in engine.get_pending_proposals() if p.keyword == "blockchain developer")

        outcome = engine.apply_suggestion(proposal)

        assert outcome is UpdateOutcome.APPLIED
        support = engine.store.get_snapshot().get("digital-technology").support_keywords
        assert "blockchain developer" in support
        update = engine.audit_manager.get_updates()[-1]
        assert update.source == "manual"
        assert update.new_support_keywords == ["blockchain developer"]
        action = engine.audit_manager.get_actions()[-1]
        assert action.description == 'Applied add support keyword: "blockchain developer"'
        assert not action.auto_applied
        assert len(engine.get_pending_proposals()) == 2

    def test_applying_twice(self, engine, make_correction):
        feed(engine, make_correction, "Blockchain Developer", 5)
        proposal = engine.get_pending_proposals()[0]

        engine.apply_suggestion(proposal)

        assert engine.apply_suggestion(proposal) is UpdateOutcome.ALREADY_PRESENT


class TestReporting:
    """Test suite for insights and statistics."""

    def test_learning_insights(self, engine, make_correction):
        feed(engine, make_correction, "Blockchain Developer", 5)

        insights = engine.get_learning_insights()

        assert insights.total_feedback == 5
        assert insights.common_misclassifications == [{
            "from_category": "operations-administration",
            "to_category": "digital-technology",
            "frequency": 5,
            "common_keywords": ["blockchain developer", "blockchain", "developer"],
        }]
        assert insights.category_accuracy == {"operations-administration": 0.0}
        assert insights.accuracy_improvement == 0.0
        assert [s["keyword"] for s in insights.suggested_keywords] == ["developer", "blockchain developer"]

    def test_stats(self, engine, make_correction, make_confirmation):
        feed(engine, make_correction, "Blockchain Developer", 5)
        engine.process_feedback(make_confirmation("ok-1", "Software Developer"))

        stats = engine.get_stats()

        assert stats["total_feedback"] == 6
        assert stats["total_patterns"] == 1
        assert stats["total_updates"] == 0
        assert stats["pending_proposals"] == 3
        # Pattern recognition at 3, 4 and 5 supporters, plus one reinforcement
        assert stats["total_actions"] == 4
        assert len(stats["recent_actions"]) == 4

    def test_clear_all_data_keeps_dictionary(self, engine, make_correction):
        feed(engine, make_correction, "Solidity Engineer", 8)

        engine.clear_all_data()

        stats = engine.get_stats()
        assert stats["total_feedback"] == 0
        assert stats["total_actions"] == 0
        assert "solidity" in digital_core(engine)


class TestPersistence:
    """Test suite for persisted learning state."""

    def test_state_survives_restart(self, bundled_snapshot, bundled_rules, make_correction):
        persister = LearningStatePersister(InMemoryKeyValueStore())
        engine = DictionaryLearningEngine(
            DictionaryStore(bundled_snapshot, persister), bundled_rules, persister=persister
        )
        feed(engine, make_correction, "Solidity Engineer", 8)

        restarted = DictionaryLearningEngine(
            DictionaryStore.from_persisted(persister, bundled_snapshot), bundled_rules, persister=persister
        )

        assert len(restarted.feedback_manager.get_all_feedback()) == 8
        assert len(restarted.audit_manager.get_updates()) == 3
        assert "solidity" in digital_core(restarted)

    def test_pending_proposals_survive_restart(self, bundled_store, bundled_rules, make_correction):
        persister = LearningStatePersister(InMemoryKeyValueStore())
        engine = DictionaryLearningEngine(bundled_store, bundled_rules, persister=persister)
        feed(engine, make_correction, "Blockchain Developer", 5)

        restarted = DictionaryLearningEngine(bundled_store, bundled_rules, persister=persister)

        assert len(restarted.get_pending_proposals()) == 3

    def test_storage_failure_keeps_in_memory_changes(self, bundled_snapshot, bundled_rules, make_correction):
        persister = LearningStatePersister(BrokenStore())
        store = DictionaryStore(bundled_snapshot, persister)
        engine = DictionaryLearningEngine(store, bundled_rules, persister=persister)

        feed(engine, make_correction, "Solidity Engineer", 8)

        assert "solidity" in digital_core(engine)
        assert store.version == 4
        assert DICTIONARY_KEY in persister.pending_keys
        assert FEEDBACK_KEY in persister.pending_keys

    def test_corrupt_state_starts_empty(self, bundled_store, bundled_rules, caplog):
        kv = InMemoryKeyValueStore()
        kv.set(FEEDBACK_KEY, [{"timestamp": "not a date"}])

        engine = DictionaryLearningEngine(bundled_store, bundled_rules, persister=LearningStatePersister(kv))

        assert engine.feedback_manager.get_all_feedback() == []
        assert "Failed to load learning data" in caplog.text
