"""Normalized job content used for scoring."""

from dataclasses import dataclass


@dataclass(frozen=True)
class ContentBundle:
    """Lowercased job text. Derived per classification, never persisted."""

    title: str = ""
    description: str = ""
    labels: tuple[str, ...] = ()
    combined: str = ""

    def label_contains(self, phrase: str) -> bool:
        """Check whether any label contains the phrase."""
        return any(phrase in label for label in self.labels)
