"""Job classification facade: single-job, batch and corpus-level analyses."""

import logging
import threading
from collections import deque
from collections.abc import Callable, Iterable
from pathlib import Path

from ..config import (
    EMERGING_TERM_THRESHOLD,
    MAX_CORPUS_EMERGING_TERMS,
    RETENTION_LIMITS,
    SECONDARY_MIN_SCORE,
    STOP_WORDS,
)
from ..langgraph.nodes.content_extractor import build_content_bundle
from ..langgraph.workflow import classify_job
from ..models.classification import (
    CategoryOverlap,
    ClassificationResult,
    EmergingTerm,
    ReviewItem,
)
from ..models.job import JobPosting
from ..models.rules import TaxonomyRules
from ..processing.dictionary_store import DictionaryStore
from ..utils.statistics import LearningMetrics, compute_learning_metrics
from ..utils.text import significant_terms
from .persistence import LearningStatePersister
from .taxonomy_loader import load_dictionary, load_rules

logger = logging.getLogger(__name__)

REVIEW_LIMIT = 50
OVERLAP_MIN_FREQUENCY = 3
OVERLAP_LIMIT = 10


class JobClassifier:
    """Classifies job postings against the shared category dictionary.

    Each call reads one immutable dictionary snapshot, so classification is
    deterministic for a given snapshot and safe to run from many threads.
    """

    def __init__(
        self,
        store: DictionaryStore,
        rules: TaxonomyRules,
        history_size: int = RETENTION_LIMITS["classification_history"],
    ) -> None:
        self.store = store
        self.rules = rules
        self._history: deque[ClassificationResult] = deque(maxlen=history_size)
        self._emerging_cache: dict[str, int] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_files(
        cls,
        dictionary_path: Path | str | None = None,
        rules_path: Path | str | None = None,
        persister: LearningStatePersister | None = None,
    ) -> "JobClassifier":
        """Build a classifier from taxonomy files.

        When a persister is given, a previously persisted dictionary takes
        precedence over the file.
        """
        snapshot = load_dictionary(dictionary_path)
        rules = load_rules(rules_path)
        if persister is not None:
            store = DictionaryStore.from_persisted(persister, snapshot)
        else:
            store = DictionaryStore(snapshot)
        return cls(store, rules)

    def classify(
        self,
        title: str,
        description: str = "",
        job_labels: str = "",
        grade: str | None = None,
        affiliation: str | None = None,
    ) -> ClassificationResult:
        """Classify one job from its raw fields.

        Never fails on bad job content: scoring failures yield the fallback
        result.

        Raises:
            DictionaryUnavailableError: If there is no usable dictionary

        """
        job = JobPosting(
            title=title,
            description=description,
            job_labels=job_labels,
            grade=grade,
            affiliation=affiliation,
        )
        return self.classify_job(job)

    def classify_job(self, job: JobPosting) -> ClassificationResult:
        """Classify a JobPosting and keep the result in the bounded history."""
        result = self._classify(job)
        with self._lock:
            self._history.append(result)
        return result

    def _classify(self, job: JobPosting) -> ClassificationResult:
        snapshot = self.store.get_snapshot()
        return classify_job(job, snapshot, self.rules)

    def classify_batch(
        self,
        jobs: list[JobPosting],
        num_workers: int | None = None,
        progress_callback: Callable[[int, int], None] | None = None,
    ) -> list[ClassificationResult]:
        """Classify many jobs, in worker processes when more than one worker is used.

        Args:
            jobs: Jobs to classify
            num_workers: Worker processes (1 runs in-process)
            progress_callback: Called with (done, total)

        Returns:
            Results in the same order as ``jobs``

        """
        if num_workers == 1 or len(jobs) <= 1:
            results = []
            for index, job in enumerate(jobs, 1):
                results.append(self._classify(job))
                if progress_callback:
                    progress_callback(index, len(jobs))
        else:
            # Imported lazily, multiprocessing is only needed for real batches
            from ..processing.parallel_worker import ParallelJobClassifier

            processor = ParallelJobClassifier(num_workers=num_workers)
            if progress_callback:
                processor.set_progress_callback(progress_callback)
            results = processor.classify_jobs(jobs, self.store.get_snapshot(), self.rules)

        with self._lock:
            self._history.extend(results)
        return results

    def get_history(self) -> list[ClassificationResult]:
        with self._lock:
            return list(self._history)

    def detect_emerging_terms(
        self,
        jobs: Iterable[JobPosting],
        threshold: int = EMERGING_TERM_THRESHOLD,
        limit: int = MAX_CORPUS_EMERGING_TERMS,
    ) -> list[EmergingTerm]:
        """Find frequent words across a corpus that no category knows.

        Args:
            jobs: Corpus of jobs
            threshold: Minimum number of occurrences
            limit: Maximum number of terms to report

        Returns:
            Terms sorted by frequency, highest first

        """
        known_terms = self.store.get_snapshot().known_terms
        frequency: dict[str, int] = {}

        for job in jobs:
            content = build_content_bundle(job.title, job.description, job.job_labels)
            for word in significant_terms(content.combined):
                lowered = word.lower()
                if lowered in known_terms or lowered in STOP_WORDS:
                    continue
                frequency[word] = frequency.get(word, 0) + 1

        frequent = [(term, count) for term, count in frequency.items() if count >= threshold]
        frequent.sort(key=lambda item: item[1], reverse=True)
        emerging = [EmergingTerm(term=term, frequency=count) for term, count in frequent[:limit]]

        with self._lock:
            for term in emerging:
                self._emerging_cache[term.term] = term.frequency

        logger.info(f"Detected {len(emerging)} emerging terms")
        return emerging

    def analyze_category_overlaps(
        self,
        jobs: Iterable[JobPosting],
        min_frequency: int = OVERLAP_MIN_FREQUENCY,
        limit: int = OVERLAP_LIMIT,
    ) -> list[CategoryOverlap]:
        """Find category combinations that keep appearing together.

        Each job is re-classified; its primary plus every secondary above the
        secondary threshold form a combination.
        """
        patterns: dict[tuple[str, ...], dict] = {}

        for job in jobs:
            result = self._classify(job)
            strong = [result.primary] + [
                s.category for s in result.secondary if s.confidence > SECONDARY_MIN_SCORE
            ]
            if len(strong) < 2:
                continue

            key = tuple(sorted(strong))
            pattern = patterns.setdefault(key, {"count": 0, "confidence_sum": 0, "examples": []})
            pattern["count"] += 1
            pattern["confidence_sum"] += result.confidence
            if len(pattern["examples"]) < 3:
                pattern["examples"].append(job.title)

        overlaps = [
            CategoryOverlap(
                categories=list(key),
                frequency=data["count"],
                avg_confidence=int(data["confidence_sum"] / data["count"] + 0.5),
                examples=data["examples"],
            )
            for key, data in patterns.items()
            if data["count"] >= min_frequency
        ]
        overlaps.sort(key=lambda o: o.frequency, reverse=True)
        return overlaps[:limit]

    def get_jobs_needing_review(
        self, jobs: Iterable[JobPosting], limit: int = REVIEW_LIMIT
    ) -> list[ReviewItem]:
        """Jobs whose classification looks unreliable, least confident first."""
        candidates = []

        for job in jobs:
            result = self._classify(job)

            if result.flags.low_confidence:
                reason = "Low classification confidence"
                action = "Review keywords and add missing terms to dictionary"
            elif result.flags.ambiguous:
                reason = "Ambiguous between multiple categories"
                action = "Clarify category boundaries or create hybrid category"
            elif len(result.flags.emerging_terms) > 2:
                reason = "Contains multiple unrecognized terms"
                action = "Evaluate new terms for addition to dictionary"
            else:
                continue

            candidates.append(ReviewItem(
                job_id=job.id,
                title=job.title,
                reason=reason,
                confidence=result.confidence,
                suggested_action=action,
            ))

        candidates.sort(key=lambda c: c.confidence)
        return candidates[:limit]

    def compute_learning_metrics(
        self, results: list[ClassificationResult] | None = None
    ) -> LearningMetrics:
        """Quality metrics over the given results, or over the retained history."""
        if results is None:
            results = self.get_history()
        with self._lock:
            new_terms = len(self._emerging_cache)
        return compute_learning_metrics(results, new_terms_detected=new_terms)
