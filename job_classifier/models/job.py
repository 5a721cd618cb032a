"""Job posting data model."""

from dataclasses import dataclass, field
from typing import Any
from uuid import uuid4


@dataclass
class JobPosting:
    """Represents a single job posting to classify."""

    title: str = ""
    description: str = ""
    job_labels: str = ""  # Comma-separated label string
    grade: str | None = None
    affiliation: str | None = None
    id: str = field(default_factory=lambda: str(uuid4()))

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "JobPosting":
        """Create a JobPosting from a raw record.

        Accepts both the field names used here and the column names of the
        job feed (``up_grade``, ``short_agency``). Missing text fields become
        empty strings.

        Args:
            data: Raw job record

        Returns:
            JobPosting instance

        """
        labels = data.get("job_labels") or ""
        if isinstance(labels, list | tuple):
            labels = ", ".join(str(label) for label in labels)

        job_id = data.get("id")
        return cls(
            title=str(data.get("title") or ""),
            description=str(data.get("description") or ""),
            job_labels=str(labels),
            grade=data.get("grade") or data.get("up_grade"),
            affiliation=data.get("affiliation") or data.get("short_agency"),
            id=str(job_id) if job_id is not None else str(uuid4()),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "job_labels": self.job_labels,
            "grade": self.grade,
            "affiliation": self.affiliation,
        }
