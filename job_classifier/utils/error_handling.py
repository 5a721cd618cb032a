"""Standardized error handling utilities for the job classifier."""

from typing import Any

from ..config import FALLBACK_CONFIDENCE
from ..models.classification import ClassificationFlags, ClassificationResult

FALLBACK_REASONING = "Classification failed - using fallback category"


def create_error_response(error: Exception | str) -> dict[str, Any]:
    """Create a standardized error response for LangGraph nodes.

    Args:
        error: The error that occurred

    Returns:
        Dictionary with error information and no result

    """
    error_message = str(error) if isinstance(error, Exception) else error

    return {
        "error": error_message,
        "result": None,
    }


def check_state_for_errors(state: dict[str, Any]) -> bool:
    """Check if a state contains errors.

    Args:
        state: The classification state to check

    Returns:
        True if state contains errors, False otherwise

    """
    return bool(state.get("error"))


def create_fallback_result(fallback_category: str) -> ClassificationResult:
    """Result substituted when scoring a job fails.

    Args:
        fallback_category: Generic category id to assign

    Returns:
        Low-confidence classification explaining the fallback

    """
    return ClassificationResult(
        primary=fallback_category,
        confidence=FALLBACK_CONFIDENCE,
        secondary=(),
        reasoning=(FALLBACK_REASONING,),
        flags=ClassificationFlags(low_confidence=True),
    )
