import logging

from ...config import CONFIDENCE_THRESHOLDS, LEADERSHIP_CONFIDENCE
from ...models.classification import ClassificationFlags, ClassificationResult
from ...models.rules import LeadershipRules
from ...utils.error_handling import create_error_response
from ..state import ClassificationState

logger = logging.getLogger(__name__)


def find_leadership_reason(
    rules: LeadershipRules, grade: str | None, title: str
) -> str | None:
    """Decide whether a job must be forced into the leadership category.

    An explicit grade is authoritative: a leadership grade triggers the
    override and any other grade disables it, even when the title reads like
    a senior post. Title indicators are only consulted when no grade is given.

    Args:
        rules: Leadership rule table
        grade: Seniority grade, if known
        title: Lowercased job title

    Returns:
        Human readable reason, or None when no override applies

    """
    if grade and grade.strip():
        if rules.is_leadership_grade(grade):
            return f"Leadership grade {grade} detected"
        return None

    indicator = rules.find_title_indicator(title)
    if indicator:
        return f'Leadership title "{indicator}" detected'

    return None


def check_leadership_override(state: ClassificationState) -> dict:
    """Short-circuit classification for leadership posts."""
    if state.get("error"):
        return {}

    try:
        rules = state["rules"]
        content = state["content"]
        reason = find_leadership_reason(rules.leadership, state.get("grade"), content.title)
        if reason is None:
            return {"leadership_reason": None}

        logger.info(f"👔 Leadership override for '{state.get('title')}': {reason}")
        result = ClassificationResult(
            primary=rules.leadership_category,
            confidence=LEADERSHIP_CONFIDENCE,
            secondary=(),
            reasoning=(f"Leadership override: {reason}",),
            flags=ClassificationFlags(
                low_confidence=LEADERSHIP_CONFIDENCE < CONFIDENCE_THRESHOLDS["medium"]
            ),
        )
        return {"leadership_reason": reason, "result": result}

    except Exception as e:
        return create_error_response(f"Leadership check failed: {e!s}")
