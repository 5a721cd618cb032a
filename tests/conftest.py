"""Shared fixtures for the job classifier tests."""

import pytest

from job_classifier.models.category import Category, DictionarySnapshot
from job_classifier.models.feedback import FeedbackRecord
from job_classifier.models.rules import HybridPattern, LeadershipRules, TaxonomyRules
from job_classifier.processing.dictionary_store import DictionaryStore
from job_classifier.services.taxonomy_loader import load_dictionary, load_rules


@pytest.fixture
def leadership_rules():
    """Leadership rules mirroring the bundled rule file."""
    return LeadershipRules(
        excluded_grade_markers=("NPSA", "PSA", "CONSULT", "IC", "UNV", "INTERN"),
        executive_grades=("ASG", "USG"),
        director_grade_pattern=r"^D-?[12]$",
        professional_grade_pattern=r"^P-?(\d+)$",
        min_professional_level=5,
        title_indicators=("country director", "resident coordinator"),
    )


@pytest.fixture
def small_rules(leadership_rules):
    """Compact rule tables for hand-checked scoring tests."""
    return TaxonomyRules(
        leadership_category="leadership-executive",
        fallback_category="operations-administration",
        leadership=leadership_rules,
        hybrid_patterns=(
            HybridPattern(name="Digital Health", categories=("digital-technology", "health-medical")),
        ),
        affiliation_boosts={"who": {"health-medical": 20}},
        category_aliases={"operations-logistics": "operations-administration"},
        domain_terms={
            "digital-technology": ("developer", "software", "database"),
            "health-medical": ("medical", "health", "clinical"),
        },
        domain_pairs={
            "digital-technology": ("software development", "data science"),
        },
    )


@pytest.fixture
def small_snapshot():
    """Five categories, one of them without core keywords."""
    return DictionarySnapshot(
        categories=(
            Category(id="leadership-executive", name="Leadership", core_keywords=("director",)),
            Category(
                id="digital-technology",
                name="Digital & Technology",
                core_keywords=("software", "developer"),
                support_keywords=("python", "cloud"),
                context_pairs=(("machine", "learning"),),
                weak_signals=("quantum",),
            ),
            Category(
                id="health-medical",
                name="Health & Medical",
                core_keywords=("health", "medical"),
                support_keywords=("clinic",),
            ),
            Category(
                id="operations-administration",
                name="Operations & Administration",
                core_keywords=("procurement", "finance"),
                support_keywords=("budget",),
            ),
            Category(id="unscored", name="Unscored", support_keywords=("misc",)),
        ),
        version=1,
    )


@pytest.fixture
def small_store(small_snapshot):
    return DictionaryStore(small_snapshot)


@pytest.fixture(scope="session")
def bundled_snapshot():
    """The dictionary shipped with the package."""
    return load_dictionary()


@pytest.fixture(scope="session")
def bundled_rules():
    """The rule tables shipped with the package."""
    return load_rules()


@pytest.fixture
def bundled_store(bundled_snapshot):
    return DictionaryStore(bundled_snapshot)


@pytest.fixture
def make_correction():
    """Factory for correction feedback records."""

    def _make(job_id, title, corrected="digital-technology", original="operations-administration", **kwargs):
        return FeedbackRecord(
            job_id=job_id,
            job_title=title,
            original_primary=original,
            corrected_primary=corrected,
            confirmed_correct=False,
            **kwargs,
        )

    return _make


@pytest.fixture
def make_confirmation():
    """Factory for confirmation feedback records."""

    def _make(job_id, title, primary="digital-technology", **kwargs):
        return FeedbackRecord(
            job_id=job_id,
            job_title=title,
            original_primary=primary,
            confirmed_correct=True,
            **kwargs,
        )

    return _make
