"""Job Category Classifier - keyword-based job posting classification that learns from feedback."""

from .config import LEARNING_CONFIG, SCORING_WEIGHTS
from .exceptions import (
    ClassificationError,
    DictionaryLoadError,
    DictionaryUnavailableError,
    FeedbackError,
    JobClassifierError,
    PersistenceError,
    ValidationError,
)

__version__ = "0.1.0"
__all__ = [
    "LEARNING_CONFIG",
    "SCORING_WEIGHTS",
    "ClassificationError",
    "DictionaryLoadError",
    "DictionaryUnavailableError",
    "FeedbackError",
    "JobClassifierError",
    "PersistenceError",
    "ValidationError",
]
