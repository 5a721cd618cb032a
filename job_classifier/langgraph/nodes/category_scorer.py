import logging

from ...config import SCORING_WEIGHTS
from ...exceptions import ClassificationError
from ...models.category import Category, DictionarySnapshot
from ...models.classification import CategoryScore
from ...models.content import ContentBundle
from ...models.rules import TaxonomyRules
from ...utils.error_handling import create_error_response
from ..state import ClassificationState

logger = logging.getLogger(__name__)


def score_category(category: Category, content: ContentBundle) -> CategoryScore:
    """Score one category against a job's content.

    Core and support keywords are matched as substrings in the labels, the
    title and the description, each field with its own weight. Title hits on
    core keywords get the full title multiplier, support keywords half of it.
    Context pairs add a fixed bonus when both words occur in the combined
    text, and emerging keywords add the description weight. Weak signals do
    not score.

    Args:
        category: Category to score
        content: Normalized job content

    Returns:
        CategoryScore with the raw (non-negative) score and matched evidence

    """
    w = SCORING_WEIGHTS
    score = 0.0
    title_matches: list[str] = []
    label_matches: list[str] = []

    core_title_weight = w["title"] * w["core_keyword_multiplier"] * w["title_keyword_multiplier"]
    support_title_weight = (
        w["title"] * w["support_keyword_multiplier"] * (w["title_keyword_multiplier"] * 0.5)
    )

    for keyword in category.core_keywords:
        kw = keyword.lower()
        if not kw:
            continue
        if content.label_contains(kw):
            score += w["job_labels"] * w["core_keyword_multiplier"]
            label_matches.append(keyword)
        if kw in content.title:
            score += core_title_weight
            title_matches.append(keyword)
        if kw in content.description:
            score += w["description"] * w["core_keyword_multiplier"]

    for keyword in category.support_keywords:
        kw = keyword.lower()
        if not kw:
            continue
        if content.label_contains(kw):
            score += w["job_labels"] * w["support_keyword_multiplier"]
        if kw in content.title:
            score += support_title_weight
        if kw in content.description:
            score += w["description"] * w["support_keyword_multiplier"]

    for first, second in category.context_pairs:
        if first.lower() in content.combined and second.lower() in content.combined:
            score += w["context_bonus"]

    for keyword in category.emerging_keywords:
        if keyword and keyword.lower() in content.combined:
            score += w["description"]

    matches = [
        keyword
        for keyword in category.core_keywords + category.support_keywords + category.emerging_keywords
        if keyword and keyword.lower() in content.combined
    ]

    return CategoryScore(
        category_id=category.id,
        score=max(0.0, score),
        matches=matches,
        title_matches=title_matches,
        label_matches=label_matches,
    )


def score_all_categories(
    content: ContentBundle,
    snapshot: DictionarySnapshot,
    rules: TaxonomyRules,
    affiliation: str | None = None,
) -> list[CategoryScore]:
    """Score every scoreable category and sort the scores, highest first.

    The affiliation prior is added after the zero floor. Ties keep the
    dictionary order.

    Args:
        content: Normalized job content
        snapshot: Dictionary snapshot to score against
        rules: Rule tables (affiliation boosts)
        affiliation: Optional organizational affiliation hint

    Returns:
        Sorted category scores

    Raises:
        ClassificationError: If the snapshot has no scoreable category

    """
    categories = snapshot.scoreable_categories
    if not categories:
        raise ClassificationError("No scoreable categories in dictionary snapshot")

    scores = []
    for category in categories:
        category_score = score_category(category, content)
        category_score.score += rules.affiliation_boost(affiliation, category.id)
        scores.append(category_score)

    return sorted(scores, key=lambda s: s.score, reverse=True)


def score_categories(state: ClassificationState) -> dict:
    """Score all dictionary categories for the job in the state."""
    if state.get("error"):
        return {}

    try:
        scores = score_all_categories(
            state["content"], state["snapshot"], state["rules"], state.get("affiliation")
        )
        logger.debug(
            f"Top score for '{state.get('title')}': {scores[0].category_id} ({scores[0].score:.1f})"
        )
        return {"category_scores": scores}

    except ClassificationError as e:
        return create_error_response(e)
    except Exception as e:
        return create_error_response(f"Unexpected error scoring categories: {e!s}")
