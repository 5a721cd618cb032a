import logging
import math

from ...config import (
    AMBIGUITY_THRESHOLD,
    CONFIDENCE_THRESHOLDS,
    HYBRID_MIN_SCORE,
    HYBRID_STRONG_SCORE,
    MAX_EMERGING_TERMS_PER_JOB,
    MAX_SECONDARY_CATEGORIES,
    SECONDARY_MIN_SCORE,
    STOP_WORDS,
)
from ...models.category import DictionarySnapshot
from ...models.classification import (
    CategoryScore,
    ClassificationFlags,
    ClassificationResult,
    SecondaryCategory,
)
from ...models.rules import HybridPattern
from ...utils.error_handling import create_error_response
from ...utils.text import significant_terms
from ..state import ClassificationState

logger = logging.getLogger(__name__)


def to_confidence(score: float) -> int:
    """Round a raw score half-up and clamp it to 0-100."""
    return max(0, min(100, int(math.floor(score + 0.5))))


def find_emerging_terms(
    combined: str, known_terms: frozenset[str], limit: int = MAX_EMERGING_TERMS_PER_JOB
) -> list[str]:
    """Words of a job that no category knows about.

    Args:
        combined: Lowercased combined job text
        known_terms: Lowercased dictionary phrases
        limit: Maximum number of terms to return

    Returns:
        Up to ``limit`` distinct unknown words, in order of appearance

    """
    found: list[str] = []
    for term in significant_terms(combined):
        lowered = term.lower()
        if len(term) <= 3 or lowered in known_terms or lowered in STOP_WORDS:
            continue
        if lowered not in found:
            found.append(lowered)
        if len(found) >= limit:
            break
    return found


def detect_hybrid_pattern(
    scores: list[CategoryScore], patterns: tuple[HybridPattern, ...]
) -> HybridPattern | None:
    """Return the first registered pattern whose two categories both score well.

    Both categories must score above the low bound and at least one above the
    strong bound.
    """
    by_id = {s.category_id: s.score for s in scores}
    for pattern in patterns:
        pattern_scores = [by_id.get(category_id, 0.0) for category_id in pattern.categories]
        if all(s > HYBRID_MIN_SCORE for s in pattern_scores) and any(
            s > HYBRID_STRONG_SCORE for s in pattern_scores
        ):
            return pattern
    return None


def build_reasoning(
    primary: CategoryScore, snapshot: DictionarySnapshot
) -> list[str]:
    """Human readable explanation of the primary category decision."""
    category = snapshot.get(primary.category_id)
    if category is None:
        return ["Classification failed to find matching category"]

    reasoning = [f'Classified as "{category.name}" with {primary.score:.1f} points']
    if primary.matches:
        reasoning.append(f"Key matches: {', '.join(primary.matches[:5])}")
    if primary.title_matches:
        reasoning.append(f"Strong title indicators: {', '.join(primary.title_matches[:3])}")
    if primary.label_matches:
        reasoning.append(f"Job label matches: {', '.join(primary.label_matches[:3])}")
    return reasoning


def build_result(
    scores: list[CategoryScore],
    snapshot: DictionarySnapshot,
    hybrid_patterns: tuple[HybridPattern, ...],
    combined: str,
    fallback_category: str | None = None,
) -> ClassificationResult:
    """Turn sorted category scores into a classification result.

    A job that matches nothing at all is assigned ``fallback_category``
    (when given) instead of whichever category happens to sort first.

    Args:
        scores: Category scores sorted highest first
        snapshot: Dictionary snapshot used for scoring
        hybrid_patterns: Registered hybrid patterns
        combined: Lowercased combined job text
        fallback_category: Category for jobs without any keyword match

    Returns:
        ClassificationResult with secondaries, flags and reasoning

    """
    primary = scores[0]
    top_score = primary.score
    unmatched = (
        top_score <= 0
        and fallback_category is not None
        and snapshot.get(fallback_category) is not None
    )
    if unmatched:
        primary = CategoryScore(category_id=fallback_category, score=0.0)
    second_score = scores[1].score if len(scores) > 1 else 0.0

    secondary = tuple(
        SecondaryCategory(category=s.category_id, confidence=to_confidence(s.score))
        for s in scores[1 : MAX_SECONDARY_CATEGORIES + 1]
        if s.score > SECONDARY_MIN_SCORE
    )

    reasoning = build_reasoning(primary, snapshot)
    if unmatched:
        reasoning.append("No category keywords matched, assigned the default category")

    hybrid = detect_hybrid_pattern(scores, hybrid_patterns)
    hybrid_display_name = None
    if hybrid:
        reasoning.append(f"Detected hybrid pattern: {hybrid.name}")
        hybrid_display_name = " + ".join(
            snapshot.display_name(category_id) for category_id in hybrid.categories
        )

    flags = ClassificationFlags(
        low_confidence=top_score < CONFIDENCE_THRESHOLDS["medium"],
        ambiguous=(top_score - second_score) <= AMBIGUITY_THRESHOLD,
        emerging_terms=tuple(find_emerging_terms(combined, snapshot.known_terms)),
        hybrid_candidate=hybrid is not None,
        hybrid_pattern=hybrid.name if hybrid else None,
        hybrid_display_name=hybrid_display_name,
    )

    return ClassificationResult(
        primary=primary.category_id,
        confidence=to_confidence(top_score),
        secondary=secondary,
        reasoning=tuple(reasoning),
        flags=flags,
    )


def detect_patterns(state: ClassificationState) -> dict:
    """Flag ambiguity, emerging vocabulary and hybrid patterns, then build the result."""
    if state.get("error"):
        return {}

    scores = state.get("category_scores")
    if not scores:
        return create_error_response("No category scores to analyze")

    try:
        result = build_result(
            scores,
            state["snapshot"],
            state["rules"].hybrid_patterns,
            state["content"].combined,
            fallback_category=state["rules"].fallback_category,
        )
        logger.debug(
            f"Classified '{state.get('title')}' as {result.primary} ({result.confidence}%)"
        )
        return {"result": result}

    except Exception as e:
        return create_error_response(f"Unexpected error detecting patterns: {e!s}")
