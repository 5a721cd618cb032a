import logging
from functools import lru_cache
from typing import Any, cast

from langgraph.graph import StateGraph
from langgraph.graph.state import CompiledStateGraph

from ..models.category import DictionarySnapshot
from ..models.classification import ClassificationResult
from ..models.job import JobPosting
from ..models.rules import TaxonomyRules
from ..utils.error_handling import check_state_for_errors, create_fallback_result
from .nodes.category_scorer import score_categories
from .nodes.content_extractor import extract_content
from .nodes.leadership_override import check_leadership_override
from .nodes.pattern_detector import detect_patterns
from .state import ClassificationState

logger = logging.getLogger(__name__)


def route_after_leadership_check(state: ClassificationState) -> str:
    """Route based on whether the override already produced a result."""
    # Overridden or failed jobs skip scoring
    if state.get("result") is not None or state.get("error"):
        return "end"
    return "score"


@lru_cache(maxsize=1)
def get_compiled_workflow() -> CompiledStateGraph[ClassificationState, Any]:
    """Get or create the compiled workflow.

    Returns:
        Compiled LangGraph workflow

    """
    # Create a new graph
    workflow = StateGraph(ClassificationState)

    # Add nodes
    workflow.add_node("extract_content", extract_content)
    workflow.add_node("check_leadership", check_leadership_override)
    workflow.add_node("score_categories", score_categories)
    workflow.add_node("detect_patterns", detect_patterns)

    workflow.add_edge("extract_content", "check_leadership")

    workflow.add_conditional_edges(
        "check_leadership",
        route_after_leadership_check,
        {
            "score": "score_categories",
            "end": "__end__",
        },
    )

    workflow.add_edge("score_categories", "detect_patterns")

    # Set the entry point
    workflow.set_entry_point("extract_content")

    # Set the finish point (for scored jobs)
    workflow.set_finish_point("detect_patterns")

    return workflow.compile()


def create_initial_state(
    job: JobPosting, snapshot: DictionarySnapshot, rules: TaxonomyRules
) -> ClassificationState:
    """Create initial state for classifying one job.

    Args:
        job: Job posting to classify
        snapshot: Dictionary snapshot to score against
        rules: Curated rule tables

    Returns:
        Initial classification state

    """
    return {
        "title": job.title,
        "description": job.description,
        "job_labels": job.job_labels,
        "grade": job.grade,
        "affiliation": job.affiliation,
        "snapshot": snapshot,
        "rules": rules,
        "content": None,
        "leadership_reason": None,
        "category_scores": None,
        "result": None,
        "error": None,
    }


def process_job(
    job: JobPosting, snapshot: DictionarySnapshot, rules: TaxonomyRules
) -> ClassificationState:
    """Run a single job through the workflow.

    Args:
        job: Job posting to classify
        snapshot: Dictionary snapshot to score against
        rules: Curated rule tables

    Returns:
        Classification state after processing

    """
    app = get_compiled_workflow()
    initial_state = create_initial_state(job, snapshot, rules)
    result = app.invoke(initial_state)
    return cast(ClassificationState, result)


def classify_job(
    job: JobPosting, snapshot: DictionarySnapshot, rules: TaxonomyRules
) -> ClassificationResult:
    """Classify one job, substituting the fallback result on any failure.

    Args:
        job: Job posting to classify
        snapshot: Dictionary snapshot to score against
        rules: Curated rule tables

    Returns:
        The classification, or the fallback classification if scoring failed

    """
    try:
        state = process_job(job, snapshot, rules)
    except Exception as e:
        logger.error(f"❌ Classification failed for job {job.id}: {e!s}, using fallback")
        return create_fallback_result(rules.fallback_category)

    if check_state_for_errors(state) or state.get("result") is None:
        logger.error(
            f"❌ Classification failed for job {job.id}: {state.get('error')}, using fallback"
        )
        return create_fallback_result(rules.fallback_category)

    return state["result"]
