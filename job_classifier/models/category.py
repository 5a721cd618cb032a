"""Category taxonomy data models."""

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from functools import cached_property
from typing import Any

ContextPair = tuple[str, str]


class KeywordTier(str, Enum):
    """Keyword tiers a dictionary update can target."""

    CORE = "core_keywords"
    SUPPORT = "support_keywords"
    EMERGING = "emerging_keywords"
    WEAK_SIGNAL = "weak_signals"
    CONTEXT_PAIR = "context_pairs"

    @classmethod
    def from_string(cls, value: str) -> "KeywordTier":
        """Resolve a tier from its value or its short name (``core``, ``support``...)."""
        normalized = value.strip().lower()
        for tier in cls:
            if normalized in (tier.value, tier.name.lower()):
                return tier
        raise ValueError(f"Unknown keyword tier: {value}")


def _contains_ci(values: tuple[str, ...], candidate: str) -> bool:
    lowered = candidate.strip().lower()
    return any(v.lower() == lowered for v in values)


def _contains_pair(pairs: tuple[ContextPair, ...], candidate: ContextPair) -> bool:
    first, second = candidate[0].strip().lower(), candidate[1].strip().lower()
    return any(a.lower() == first and b.lower() == second for a, b in pairs)


@dataclass(frozen=True)
class Category:
    """A single taxonomy category with its tiered keyword sets.

    Instances are immutable. Dictionary mutations produce a new Category via
    :meth:`with_keyword` or :meth:`with_context_pair`.
    """

    id: str
    name: str
    description: str = ""
    color: str = "#6B7280"
    core_keywords: tuple[str, ...] = ()
    support_keywords: tuple[str, ...] = ()
    emerging_keywords: tuple[str, ...] = ()
    weak_signals: tuple[str, ...] = ()
    context_pairs: tuple[ContextPair, ...] = ()
    last_updated: str = ""

    @property
    def is_scoreable(self) -> bool:
        """A category needs at least one core keyword to be scored."""
        return len(self.core_keywords) > 0

    def keywords_for(self, tier: KeywordTier) -> tuple[str, ...]:
        """Return the keyword tuple for a keyword tier."""
        if tier is KeywordTier.CONTEXT_PAIR:
            raise ValueError("Context pairs are not a keyword tier")
        return getattr(self, tier.value)

    def has_keyword(self, keyword: str, tier: KeywordTier | None = None) -> bool:
        """Check case-insensitively whether a keyword is already present.

        Args:
            keyword: Keyword phrase to look for
            tier: Restrict the lookup to one tier (all keyword tiers when None)

        Returns:
            True if the keyword exists

        """
        tiers = [tier] if tier else [
            KeywordTier.CORE, KeywordTier.SUPPORT,
            KeywordTier.EMERGING, KeywordTier.WEAK_SIGNAL,
        ]
        return any(_contains_ci(self.keywords_for(t), keyword) for t in tiers)

    def has_context_pair(self, pair: ContextPair) -> bool:
        return _contains_pair(self.context_pairs, pair)

    def with_keyword(self, tier: KeywordTier, keyword: str, timestamp: str) -> "Category":
        values = self.keywords_for(tier) + (keyword.strip(),)
        return replace(self, **{tier.value: values, "last_updated": timestamp})

    def with_context_pair(self, pair: ContextPair, timestamp: str) -> "Category":
        cleaned = (pair[0].strip(), pair[1].strip())
        return replace(
            self, context_pairs=self.context_pairs + (cleaned,), last_updated=timestamp
        )

    def related_terms(self) -> list[str]:
        """Lowercased core and support keywords used for relatedness checks."""
        return [k.lower() for k in self.core_keywords + self.support_keywords]

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "color": self.color,
            "core_keywords": list(self.core_keywords),
            "support_keywords": list(self.support_keywords),
            "emerging_keywords": list(self.emerging_keywords),
            "weak_signals": list(self.weak_signals),
            "context_pairs": [list(p) for p in self.context_pairs],
            "last_updated": self.last_updated,
        }


@dataclass(frozen=True)
class DictionarySnapshot:
    """Point-in-time, immutable view of the whole category dictionary."""

    categories: tuple[Category, ...] = field(default_factory=tuple)
    version: int = 0
    created_at: datetime = field(default_factory=datetime.now)

    def __len__(self) -> int:
        return len(self.categories)

    @cached_property
    def _by_id(self) -> dict[str, Category]:
        return {c.id: c for c in self.categories}

    @cached_property
    def known_terms(self) -> frozenset[str]:
        """Every lowercased phrase present in any keyword tier of any category."""
        terms: set[str] = set()
        for category in self.categories:
            for keyword in (
                category.core_keywords
                + category.support_keywords
                + category.emerging_keywords
                + category.weak_signals
            ):
                terms.add(keyword.lower())
        return frozenset(terms)

    @property
    def category_ids(self) -> list[str]:
        return [c.id for c in self.categories]

    @property
    def scoreable_categories(self) -> list[Category]:
        return [c for c in self.categories if c.is_scoreable]

    def get(self, category_id: str) -> Category | None:
        """Get a category by id, or None if it does not exist."""
        return self._by_id.get(category_id)

    def display_name(self, category_id: str) -> str:
        category = self.get(category_id)
        return category.name if category else category_id

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "categories": [c.to_dict() for c in self.categories],
        }
