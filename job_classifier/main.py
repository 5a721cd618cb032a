import json
import logging
import sys
from pathlib import Path
from typing import Any

import click
from dotenv import load_dotenv

from .config import DATA_DIR, DEFAULT_WORKERS, LOG_FORMAT, LOG_LEVEL
from .exceptions import JobClassifierError
from .models.feedback import FeedbackRecord
from .models.job import JobPosting
from .processing.learning_engine import DictionaryLearningEngine
from .services.classification_service import JobClassifier
from .services.persistence import JsonFileKeyValueStore, LearningStatePersister

# Configure logging
logging.basicConfig(
    level=LOG_LEVEL,
    format=LOG_FORMAT,
    stream=sys.stdout,
)

# Suppress chatty third-party loggers
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("langgraph").setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


class AppContext:
    """Lazily built classifier and learning engine shared by the subcommands."""

    def __init__(
        self,
        data_dir: Path,
        dictionary_path: str | None,
        rules_path: str | None,
    ) -> None:
        self.data_dir = data_dir
        self.dictionary_path = dictionary_path
        self.rules_path = rules_path
        self._persister: LearningStatePersister | None = None
        self._classifier: JobClassifier | None = None
        self._engine: DictionaryLearningEngine | None = None

    @property
    def persister(self) -> LearningStatePersister:
        if self._persister is None:
            self._persister = LearningStatePersister(JsonFileKeyValueStore(self.data_dir))
        return self._persister

    @property
    def classifier(self) -> JobClassifier:
        if self._classifier is None:
            self._classifier = JobClassifier.from_files(
                self.dictionary_path, self.rules_path, persister=self.persister
            )
        return self._classifier

    @property
    def engine(self) -> DictionaryLearningEngine:
        if self._engine is None:
            classifier = self.classifier
            self._engine = DictionaryLearningEngine(
                classifier.store, classifier.rules, persister=self.persister
            )
        return self._engine

    def close(self) -> None:
        if self._persister is not None:
            self._persister.close()


def _read_records(path: str, key: str) -> list[dict[str, Any]]:
    """Read a JSON file holding a list of records, or an object wrapping one under ``key``."""
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise click.ClickException(f"Invalid JSON in {path}: {e!s}")

    if isinstance(data, dict):
        data = data.get(key, [])
    if not isinstance(data, list):
        raise click.ClickException(f"Expected a list of {key} in {path}")
    return data


def _load_jobs(path: str) -> list[JobPosting]:
    return [JobPosting.from_dict(item) for item in _read_records(path, "jobs")]


def _emit(payload: Any, output: str | None) -> None:
    text = json.dumps(payload, indent=2, ensure_ascii=False)
    if output:
        Path(output).write_text(text + "\n", encoding="utf-8")
        click.echo(f"Wrote {output}")
    else:
        click.echo(text)


@click.group()
@click.version_option(package_name="job-category-classifier", prog_name="job-classifier")
@click.option(
    "--data-dir",
    type=click.Path(file_okay=False, path_type=Path),
    envvar="JOB_CLASSIFIER_DATA_DIR",
    default=DATA_DIR,
    show_default=True,
    help="Directory for persisted learning state",
)
@click.option(
    "--dictionary",
    "dictionary_path",
    type=click.Path(exists=True, dir_okay=False),
    help="Category dictionary JSON (defaults to the bundled dictionary)",
)
@click.option(
    "--rules",
    "rules_path",
    type=click.Path(exists=True, dir_okay=False),
    help="Taxonomy rules JSON (defaults to the bundled rules)",
)
@click.pass_context
def cli(ctx: click.Context, data_dir: Path, dictionary_path: str | None, rules_path: str | None) -> None:
    """Job Category Classifier - classify job postings and learn from feedback."""
    app = AppContext(data_dir, dictionary_path, rules_path)
    ctx.obj = app
    ctx.call_on_close(app.close)


@cli.command()
@click.argument("jobs_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--output", "-o", type=click.Path(dir_okay=False), help="Write results to this file")
@click.option(
    "--workers",
    "-w",
    type=click.IntRange(min=1),
    default=DEFAULT_WORKERS,
    help="Worker processes for large batches (1 classifies in-process)",
)
@click.pass_obj
def classify(app: AppContext, jobs_file: str, output: str | None, workers: int | None) -> None:
    """Classify every job in JOBS_FILE."""
    jobs = _load_jobs(jobs_file)
    try:
        results = app.classifier.classify_batch(jobs, num_workers=workers or 1)
    except JobClassifierError as e:
        raise click.ClickException(str(e))

    _emit(
        [
            {"job_id": job.id, "title": job.title, **result.to_dict()}
            for job, result in zip(jobs, results, strict=True)
        ],
        output,
    )
    metrics = app.classifier.compute_learning_metrics(results)
    click.echo(metrics.to_display_string(), err=True)


@cli.command()
@click.argument("jobs_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--threshold", type=click.IntRange(min=1), default=3, show_default=True)
@click.option("--limit", type=click.IntRange(min=1), default=20, show_default=True)
@click.option("--output", "-o", type=click.Path(dir_okay=False))
@click.pass_obj
def emerging(app: AppContext, jobs_file: str, threshold: int, limit: int, output: str | None) -> None:
    """Report frequent terms in JOBS_FILE that no category knows."""
    try:
        terms = app.classifier.detect_emerging_terms(_load_jobs(jobs_file), threshold, limit)
    except JobClassifierError as e:
        raise click.ClickException(str(e))
    _emit([t.to_dict() for t in terms], output)


@cli.command()
@click.argument("jobs_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--output", "-o", type=click.Path(dir_okay=False))
@click.pass_obj
def overlaps(app: AppContext, jobs_file: str, output: str | None) -> None:
    """Report category combinations that recur in JOBS_FILE."""
    try:
        found = app.classifier.analyze_category_overlaps(_load_jobs(jobs_file))
    except JobClassifierError as e:
        raise click.ClickException(str(e))
    _emit([o.to_dict() for o in found], output)


@cli.command()
@click.argument("jobs_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--limit", type=click.IntRange(min=1), default=50, show_default=True)
@click.option("--output", "-o", type=click.Path(dir_okay=False))
@click.pass_obj
def review(app: AppContext, jobs_file: str, limit: int, output: str | None) -> None:
    """List jobs in JOBS_FILE whose classification needs a human look."""
    try:
        items = app.classifier.get_jobs_needing_review(_load_jobs(jobs_file), limit)
    except JobClassifierError as e:
        raise click.ClickException(str(e))
    _emit([i.to_dict() for i in items], output)


@cli.command()
@click.argument("feedback_file", type=click.Path(exists=True, dir_okay=False))
@click.pass_obj
def feedback(app: AppContext, feedback_file: str) -> None:
    """Learn from the feedback records in FEEDBACK_FILE.

    Confident suggestions are applied to the persisted dictionary; the rest
    are kept as pending proposals.
    """
    records = _read_records(feedback_file, "feedback")
    engine = app.engine

    processed = 0
    suggestions = []
    for item in records:
        try:
            record = FeedbackRecord.from_dict(item)
            suggestions.extend(engine.process_feedback(record))
        except JobClassifierError as e:
            click.echo(f"Skipped feedback for job {item.get('job_id')}: {e!s}", err=True)
            continue
        processed += 1

    _emit(
        {
            "processed": processed,
            "skipped": len(records) - processed,
            "suggestions": [s.to_dict() for s in suggestions],
            "dictionary_version": engine.store.version,
        },
        None,
    )


@cli.command()
@click.option("--output", "-o", type=click.Path(dir_okay=False))
@click.pass_obj
def insights(app: AppContext, output: str | None) -> None:
    """Show learning insights and pending proposals."""
    engine = app.engine
    payload = engine.get_learning_insights().to_dict()
    payload["stats"] = engine.get_stats()
    payload["pending_proposals"] = [s.to_dict() for s in engine.get_pending_proposals(20)]
    _emit(payload, output)


@cli.command("export-audit")
@click.argument("output", type=click.Path(dir_okay=False, path_type=Path))
@click.pass_obj
def export_audit(app: AppContext, output: Path) -> None:
    """Export the learning audit trail to a CSV file."""
    app.engine.audit_manager.export_csv(output)
    click.echo(f"Wrote {output}")


def main() -> None:
    """Launch the job classifier command line."""
    load_dotenv()
    cli()


if __name__ == "__main__":
    main()
