"""Curated classification rule tables (leadership, hybrids, affiliations, domains)."""

import re

from pydantic import BaseModel, ConfigDict, Field


class LeadershipRules(BaseModel):
    """Rules that decide whether a grade or title denotes a leadership post."""

    model_config = ConfigDict(frozen=True)

    excluded_grade_markers: tuple[str, ...] = Field(
        description="Grade substrings that can never denote leadership (consultants, interns...)"
    )
    executive_grades: tuple[str, ...] = Field(description="Exact executive grade codes")
    director_grade_pattern: str = Field(description="Regex for director grades")
    professional_grade_pattern: str = Field(
        description="Regex for professional grades, first group is the level"
    )
    min_professional_level: int = Field(default=5, ge=1)
    title_indicators: tuple[str, ...] = Field(
        description="Title phrases that imply leadership when no grade is known"
    )

    def is_leadership_grade(self, grade: str | None) -> bool:
        """Check whether a grade code is a leadership grade.

        Args:
            grade: Raw grade value such as "D2", "P-5" or "NPSA-9"

        Returns:
            True if the grade denotes a leadership post

        """
        if not grade:
            return False

        normalized = grade.strip().upper()
        if not normalized:
            return False

        if any(marker in normalized for marker in self.excluded_grade_markers):
            return False

        if normalized in self.executive_grades:
            return True

        if re.match(self.director_grade_pattern, normalized):
            return True

        match = re.match(self.professional_grade_pattern, normalized)
        if match:
            return int(match.group(1)) >= self.min_professional_level

        return False

    def find_title_indicator(self, title: str) -> str | None:
        """Return the first leadership indicator contained in a lowercased title."""
        for indicator in self.title_indicators:
            if indicator.lower() in title:
                return indicator
        return None


class HybridPattern(BaseModel):
    """A named pairing of two categories that often co-occur in postings."""

    model_config = ConfigDict(frozen=True)

    name: str
    categories: tuple[str, str]
    indicators: tuple[str, ...] = ()


class TaxonomyRules(BaseModel):
    """All curated lookup tables used by the scorer and the feedback processor."""

    model_config = ConfigDict(frozen=True)

    leadership_category: str
    fallback_category: str
    leadership: LeadershipRules
    hybrid_patterns: tuple[HybridPattern, ...] = ()
    affiliation_boosts: dict[str, dict[str, float]] = Field(default_factory=dict)
    category_aliases: dict[str, str] = Field(default_factory=dict)
    domain_terms: dict[str, tuple[str, ...]] = Field(default_factory=dict)
    domain_pairs: dict[str, tuple[str, ...]] = Field(default_factory=dict)

    def canonical_category(self, category_id: str) -> str:
        """Map a retired category id onto its current id."""
        return self.category_aliases.get(category_id, category_id)

    def affiliation_boost(self, affiliation: str | None, category_id: str) -> float:
        """Additive score prior for an (affiliation, category) pair."""
        if not affiliation:
            return 0.0
        boosts = self.affiliation_boosts.get(affiliation.strip().lower(), {})
        return float(boosts.get(category_id, 0))
