"""Tests for the JobClassifier facade."""

import pytest

from job_classifier.exceptions import DictionaryUnavailableError
from job_classifier.models.category import Category, DictionarySnapshot, KeywordTier
from job_classifier.models.job import JobPosting
from job_classifier.processing.dictionary_store import DictionaryStore
from job_classifier.services.classification_service import JobClassifier
from job_classifier.services.persistence import (
    DICTIONARY_KEY,
    InMemoryKeyValueStore,
    LearningStatePersister,
)


@pytest.fixture
def classifier(small_store, small_rules):
    return JobClassifier(small_store, small_rules)


class TestClassify:
    """Test suite for single-job classification."""

    def test_classify_fields(self, classifier):
        result = classifier.classify(
            "Software Developer", "Build python services in the cloud", "digital"
        )

        assert result.primary == "digital-technology"
        assert result.confidence == 100

    def test_deterministic(self, classifier):
        first = classifier.classify("Finance Clerk", "procurement and budget")
        second = classifier.classify("Finance Clerk", "procurement and budget")

        assert first == second

    def test_history_is_bounded(self, small_store, small_rules):
        classifier = JobClassifier(small_store, small_rules, history_size=2)

        for title in ("Developer", "Medical Officer", "Finance Assistant"):
            classifier.classify(title)

        history = classifier.get_history()
        assert len(history) == 2
        assert history[-1].primary == "operations-administration"

    def test_empty_dictionary_raises(self, small_rules):
        classifier = JobClassifier(DictionaryStore(DictionarySnapshot()), small_rules)

        with pytest.raises(DictionaryUnavailableError):
            classifier.classify("Developer")

    def test_dictionary_without_core_keywords_raises(self, small_rules):
        snapshot = DictionarySnapshot(categories=(Category(id="a", name="A", support_keywords=("x",)),))
        classifier = JobClassifier(DictionaryStore(snapshot), small_rules)

        with pytest.raises(DictionaryUnavailableError):
            classifier.classify("Developer")

    def test_classify_batch_in_process(self, classifier):
        jobs = [JobPosting(title="Developer"), JobPosting(title="Medical Officer")]
        progress = []

        results = classifier.classify_batch(jobs, num_workers=1, progress_callback=lambda d, t: progress.append((d, t)))

        assert [r.primary for r in results] == ["digital-technology", "health-medical"]
        assert progress == [(1, 2), (2, 2)]
        assert len(classifier.get_history()) == 2


class TestBundledTaxonomy:
    """End-to-end checks against the shipped dictionary and rules."""

    @pytest.fixture
    def classifier(self, bundled_store, bundled_rules):
        return JobClassifier(bundled_store, bundled_rules)

    def test_software_developer(self, classifier):
        result = classifier.classify(
            "Senior Software Developer",
            "Design and build applications with Python, databases and cloud computing.",
            "digital, technology",
        )

        assert result.primary == "digital-technology"
        assert result.confidence > 50
        assert not result.flags.low_confidence

    def test_director_grade_override(self, classifier):
        result = classifier.classify("Regional Coordinator", grade="D2")

        assert result.primary == "leadership-executive"
        assert result.confidence == 95

    def test_non_leadership_grade_disables_title_override(self, classifier):
        result = classifier.classify("Country Director", grade="NPSA-9")

        # Scored as leadership on keywords, not forced by the override
        assert result.primary == "leadership-executive"
        assert result.reasoning[0].startswith("Classified as")

    def test_leadership_title_without_grade(self, classifier):
        result = classifier.classify("Country Director")

        assert result.primary == "leadership-executive"
        assert result.reasoning == ('Leadership override: Leadership title "country director" detected',)

    def test_from_files_prefers_persisted_dictionary(self, bundled_snapshot):
        persister = LearningStatePersister(InMemoryKeyValueStore())
        store = DictionaryStore(bundled_snapshot, persister)
        store.apply_update("digital-technology", KeywordTier.CORE, "solidity")

        classifier = JobClassifier.from_files(persister=persister)

        digital = classifier.store.get_snapshot().get("digital-technology")
        assert "solidity" in digital.core_keywords
        assert persister.load(DICTIONARY_KEY)["version"] == bundled_snapshot.version + 1


class TestCorpusAnalysis:
    """Test suite for emerging terms, overlaps and review queues."""

    def test_detect_emerging_terms(self, classifier):
        jobs = [
            JobPosting(title="Rust Developer", description="rust and kotlin"),
            JobPosting(title="Rust Engineer", description="kotlin services"),
            JobPosting(title="Rust Analyst"),
        ]

        terms = classifier.detect_emerging_terms(jobs, threshold=2)

        assert [(t.term, t.frequency) for t in terms] == [
            ("rust", 4),
            ("kotlin", 2),
        ]

    def test_emerging_terms_feed_metrics(self, classifier):
        jobs = [JobPosting(title="Solidity Engineer") for _ in range(3)]

        classifier.detect_emerging_terms(jobs)
        metrics = classifier.compute_learning_metrics()

        assert metrics.new_terms_detected == 2

    def test_analyze_category_overlaps(self, classifier):
        jobs = [JobPosting(title=f"Health Software Developer {i}") for i in range(3)]
        jobs.append(JobPosting(title="Developer"))

        overlaps = classifier.analyze_category_overlaps(jobs)

        assert len(overlaps) == 1
        assert overlaps[0].categories == ["digital-technology", "health-medical"]
        assert overlaps[0].frequency == 3
        assert overlaps[0].avg_confidence == 100
        assert overlaps[0].examples == [
            "Health Software Developer 0",
            "Health Software Developer 1",
            "Health Software Developer 2",
        ]

    def test_overlaps_need_minimum_frequency(self, classifier):
        jobs = [JobPosting(title="Health Software Developer") for _ in range(2)]

        assert classifier.analyze_category_overlaps(jobs) == []

    def test_jobs_needing_review(self, classifier):
        jobs = [
            JobPosting(id="clear", title="Software Developer"),
            JobPosting(id="weak", title="Gardener", description="budget"),
            JobPosting(id="tie", title="Finance and Health Officer"),
            JobPosting(id="novel", title="Developer", description="kotlin swift flutter"),
        ]

        items = classifier.get_jobs_needing_review(jobs)

        by_id = {i.job_id: i for i in items}
        assert set(by_id) == {"weak", "tie", "novel"}
        assert by_id["weak"].reason == "Low classification confidence"
        assert by_id["weak"].suggested_action == "Review keywords and add missing terms to dictionary"
        assert by_id["tie"].reason == "Ambiguous between multiple categories"
        assert by_id["novel"].reason == "Contains multiple unrecognized terms"
        assert [i.job_id for i in items][0] == "weak"
        assert items == sorted(items, key=lambda i: i.confidence)

    def test_review_does_not_touch_history(self, classifier):
        classifier.get_jobs_needing_review([JobPosting(title="Gardener")])

        assert classifier.get_history() == []


class TestLearningMetrics:
    """Test suite for compute_learning_metrics."""

    def test_empty_history(self, classifier):
        metrics = classifier.compute_learning_metrics()

        assert metrics.total_classifications == 0
        assert metrics.avg_confidence == 0

    def test_metrics_over_history(self, classifier):
        classifier.classify("Software Developer")  # 100
        classifier.classify("Gardener", "budget")  # 3, low and ambiguous

        metrics = classifier.compute_learning_metrics()

        assert metrics.total_classifications == 2
        assert metrics.avg_confidence == 52
        assert metrics.low_confidence_rate == 50
        assert metrics.ambiguous_rate == 50
        performance = {p.category: p for p in metrics.category_performance}
        assert performance["digital-technology"].volume == 1
        assert performance["operations-administration"].avg_confidence == 3
