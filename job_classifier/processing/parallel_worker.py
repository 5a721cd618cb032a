"""Parallel job classification module for large batches."""

import logging
import multiprocessing as mp
import time
from collections.abc import Callable
from dataclasses import dataclass
from multiprocessing import Queue
from queue import Empty

from ..models.category import DictionarySnapshot
from ..models.classification import ClassificationResult
from ..models.job import JobPosting
from ..models.rules import TaxonomyRules

logger = logging.getLogger(__name__)


@dataclass
class ClassificationTask:
    """Represents one job to classify in a worker process."""

    job: JobPosting
    task_id: int
    snapshot: DictionarySnapshot
    rules: TaxonomyRules


@dataclass
class ClassificationTaskResult:
    """Represents the result of a classification task."""

    task_id: int
    job_id: str
    result: ClassificationResult
    error: str | None = None
    processing_time: float = 0.0


class ParallelJobClassifier:
    """Manages parallel classification of jobs using multiprocessing.

    Every task carries the same dictionary snapshot, so all jobs of a batch
    are scored against one dictionary version.
    """

    def __init__(
        self,
        num_workers: int | None = None,
        batch_size: int | None = None,
    ) -> None:
        """Initialize the parallel classifier.

        Args:
            num_workers: Number of worker processes (defaults to min(4, CPU count - 1))
            batch_size: Maximum jobs per batch (defaults to dynamic)

        """
        self.num_workers = num_workers or min(4, max(1, mp.cpu_count() - 1))
        self.batch_size = batch_size
        self._progress_callback: Callable[[int, int], None] | None = None
        self._error_callback: Callable[[str], None] | None = None
        self._result_callback: Callable[[ClassificationTaskResult], None] | None = None
        self._jobs_processed = 0
        self._total_jobs = 0
        self._start_time: float | None = None

    def set_progress_callback(self, callback: Callable[[int, int], None]) -> None:
        """Set the progress callback function."""
        self._progress_callback = callback

    def set_error_callback(self, callback: Callable[[str], None]) -> None:
        """Set the error callback function."""
        self._error_callback = callback

    def set_result_callback(self, callback: Callable[[ClassificationTaskResult], None]) -> None:
        """Set the per-job completion callback function."""
        self._result_callback = callback

    def classify_jobs(
        self,
        jobs: list[JobPosting],
        snapshot: DictionarySnapshot,
        rules: TaxonomyRules,
    ) -> list[ClassificationResult]:
        """Classify multiple jobs in parallel.

        Args:
            jobs: Jobs to classify
            snapshot: Dictionary snapshot shared by all tasks
            rules: Curated rule tables

        Returns:
            Classification results in the order of ``jobs``

        """
        self._jobs_processed = 0
        self._total_jobs = len(jobs)
        self._start_time = time.time()

        if not jobs:
            return []

        tasks = [
            ClassificationTask(job=job, task_id=idx, snapshot=snapshot, rules=rules)
            for idx, job in enumerate(jobs)
        ]

        batches = self._create_batches(tasks)
        task_results = self._process_batches(batches)

        # Restore input order
        task_results.sort(key=lambda r: r.task_id)
        for task_result in task_results:
            if task_result.error and self._error_callback:
                self._error_callback(
                    f"Error classifying job {task_result.job_id}: {task_result.error}"
                )

        logger.info(
            f"⚡ Classified {len(task_results)} jobs with {self.num_workers} workers "
            f"({self.get_processing_rate():.0f} jobs/min)"
        )
        return [r.result for r in task_results]

    def _calculate_optimal_batch_size(self, total_tasks: int) -> int:
        """Calculate optimal batch size based on number of tasks and workers."""
        if total_tasks <= self.num_workers:
            return 1
        elif total_tasks <= self.num_workers * 4:
            return 2
        else:
            return max(1, total_tasks // (self.num_workers * 4))

    def _create_batches(
        self, tasks: list[ClassificationTask]
    ) -> list[list[ClassificationTask]]:
        """Divide tasks into batches for processing."""
        batch_size = self.batch_size or self._calculate_optimal_batch_size(len(tasks))
        return [tasks[i : i + batch_size] for i in range(0, len(tasks), batch_size)]

    def _process_batches(
        self, batches: list[list[ClassificationTask]]
    ) -> list[ClassificationTaskResult]:
        """Process batches of jobs using a worker pool."""
        task_queue: Queue = mp.Queue()  # type: ignore
        result_queue: Queue = mp.Queue()  # type: ignore

        workers = []
        for _ in range(self.num_workers):
            worker = mp.Process(target=classify_job_batch, args=(task_queue, result_queue))
            worker.start()
            workers.append(worker)

        for batch in batches:
            task_queue.put(batch)

        # One sentinel per worker
        for _ in range(self.num_workers):
            task_queue.put(None)

        results: list[ClassificationTaskResult] = []
        reported_dead: set[int] = set()
        expected_results = sum(len(batch) for batch in batches)

        while len(results) < expected_results:
            try:
                result = result_queue.get(timeout=1.0)
            except Empty:
                dead = [w for w in workers if not w.is_alive() and w.exitcode != 0]
                for worker in dead:
                    if worker.pid in reported_dead:
                        continue
                    reported_dead.add(worker.pid)
                    message = f"Worker process died with exit code {worker.exitcode}"
                    logger.error(f"❌ {message}")
                    if self._error_callback:
                        self._error_callback(message)
                if dead and all(not w.is_alive() for w in workers):
                    break
                continue

            results.append(result)
            self._jobs_processed += 1

            if self._progress_callback:
                self._progress_callback(self._jobs_processed, self._total_jobs)
            if self._result_callback:
                self._result_callback(result)

        for worker in workers:
            worker.join(timeout=5.0)
            if worker.is_alive():
                worker.terminate()
                worker.join()

        if len(results) < expected_results:
            results.extend(self._fallback_for_missing(batches, results))

        return results

    def _fallback_for_missing(
        self,
        batches: list[list[ClassificationTask]],
        results: list[ClassificationTaskResult],
    ) -> list[ClassificationTaskResult]:
        """Fallback results for tasks lost with a dead worker."""
        from ..utils.error_handling import create_fallback_result

        done = {r.task_id for r in results}
        missing = []
        for batch in batches:
            for task in batch:
                if task.task_id not in done:
                    missing.append(ClassificationTaskResult(
                        task_id=task.task_id,
                        job_id=task.job.id,
                        result=create_fallback_result(task.rules.fallback_category),
                        error="Worker process exited before classifying the job",
                    ))
        logger.warning(f"⚠️ {len(missing)} jobs lost with dead workers, using fallback")
        return missing

    def get_processing_rate(self) -> float:
        """Get the current processing rate in jobs per minute."""
        if not self._start_time or self._jobs_processed == 0:
            return 0.0

        elapsed_time = time.time() - self._start_time
        if elapsed_time == 0:
            return 0.0

        return (self._jobs_processed / elapsed_time) * 60


def classify_task(task: ClassificationTask) -> ClassificationTaskResult:
    """Classify one task, turning any failure into the fallback result."""
    # Import here to avoid pickling issues
    from ..langgraph.workflow import process_job
    from ..utils.error_handling import check_state_for_errors, create_fallback_result

    start_time = time.time()
    error: str | None = None
    try:
        state = process_job(task.job, task.snapshot, task.rules)
        if check_state_for_errors(state) or state.get("result") is None:
            error = state.get("error") or "Workflow produced no result"
            result = create_fallback_result(task.rules.fallback_category)
        else:
            result = state["result"]
    except Exception as e:
        error = str(e)
        result = create_fallback_result(task.rules.fallback_category)

    return ClassificationTaskResult(
        task_id=task.task_id,
        job_id=task.job.id,
        result=result,
        error=error,
        processing_time=time.time() - start_time,
    )


def classify_job_batch(task_queue: Queue, result_queue: Queue) -> None:
    """Worker function to classify batches of jobs.

    Args:
        task_queue: Queue to receive batches of tasks (None stops the worker)
        result_queue: Queue to send results

    """
    while True:
        try:
            batch = task_queue.get(timeout=1.0)
        except Empty:
            continue

        if batch is None:
            break

        for task in batch:
            result_queue.put(classify_task(task))
