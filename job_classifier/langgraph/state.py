from typing import TypedDict

from ..models.category import DictionarySnapshot
from ..models.classification import CategoryScore, ClassificationResult
from ..models.content import ContentBundle
from ..models.rules import TaxonomyRules


class ClassificationState(TypedDict):
    """State that flows through the LangGraph workflow."""

    # Input fields
    title: str
    description: str
    job_labels: str
    grade: str | None
    affiliation: str | None

    # Read-only context for this run
    snapshot: DictionarySnapshot
    rules: TaxonomyRules

    # Derived content
    content: ContentBundle | None

    # Leadership override
    leadership_reason: str | None

    # Scoring
    category_scores: list[CategoryScore] | None  # Sorted, highest first

    # Output
    result: ClassificationResult | None

    # Workflow control
    error: str | None
