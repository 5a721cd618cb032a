"""LangGraph workflow components for job classification."""

from .state import ClassificationState
from .workflow import classify_job, get_compiled_workflow, process_job

__all__ = ["ClassificationState", "classify_job", "get_compiled_workflow", "process_job"]
