"""Custom exceptions for the job category classifier."""


class JobClassifierError(Exception):
    """Base exception for the job category classifier."""

    pass


class DictionaryUnavailableError(JobClassifierError):
    """Raised when no usable category dictionary snapshot exists."""

    pass


class DictionaryLoadError(DictionaryUnavailableError):
    """Raised when a taxonomy file or persisted dictionary cannot be parsed."""

    pass


class ClassificationError(JobClassifierError):
    """Raised when scoring a job fails."""

    pass


class FeedbackError(JobClassifierError):
    """Raised when a feedback record cannot be processed."""

    pass


class PersistenceError(JobClassifierError):
    """Raised when the key-value store cannot read or write."""

    pass


class ValidationError(JobClassifierError):
    """Raised when input validation fails."""

    pass
