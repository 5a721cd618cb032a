"""Load and validate the category dictionary and the curated rule tables."""

import json
import logging
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from ..config import DEFAULT_DICTIONARY_PATH, DEFAULT_RULES_PATH, DICTIONARY_PATH_OVERRIDE
from ..exceptions import DictionaryLoadError
from ..models.category import Category, DictionarySnapshot
from ..models.rules import TaxonomyRules

logger = logging.getLogger(__name__)


def _dedupe(values: list[str]) -> list[str]:
    seen: set[str] = set()
    unique = []
    for value in values:
        cleaned = value.strip()
        if cleaned and cleaned.lower() not in seen:
            seen.add(cleaned.lower())
            unique.append(cleaned)
    return unique


class CategorySchema(BaseModel):
    """Schema for one category entry of a dictionary file."""

    id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    description: str = ""
    color: str = "#6B7280"
    core_keywords: list[str] = Field(default_factory=list)
    support_keywords: list[str] = Field(default_factory=list)
    emerging_keywords: list[str] = Field(default_factory=list)
    weak_signals: list[str] = Field(default_factory=list)
    context_pairs: list[tuple[str, str]] = Field(default_factory=list)
    last_updated: str = ""

    @field_validator("core_keywords", "support_keywords", "emerging_keywords", "weak_signals")
    @classmethod
    def unique_within_tier(cls, values: list[str]) -> list[str]:
        """Keyword phrases are unique (case-insensitively) within a tier."""
        return _dedupe(values)

    def to_category(self) -> Category:
        return Category(
            id=self.id,
            name=self.name,
            description=self.description,
            color=self.color,
            core_keywords=tuple(self.core_keywords),
            support_keywords=tuple(self.support_keywords),
            emerging_keywords=tuple(self.emerging_keywords),
            weak_signals=tuple(self.weak_signals),
            context_pairs=tuple((a.strip(), b.strip()) for a, b in self.context_pairs),
            last_updated=self.last_updated,
        )


class DictionarySchema(BaseModel):
    """Schema for a whole dictionary file."""

    version: int = Field(default=0, ge=0)
    categories: list[CategorySchema] = Field(min_length=1)

    @model_validator(mode="after")
    def unique_ids(self) -> "DictionarySchema":
        ids = [c.id for c in self.categories]
        duplicates = {i for i in ids if ids.count(i) > 1}
        if duplicates:
            raise ValueError(f"Duplicate category ids: {', '.join(sorted(duplicates))}")
        return self


def _read_json(path: Path) -> Any:
    try:
        with open(path, encoding="utf-8") as f:
            return json.load(f)
    except FileNotFoundError:
        raise DictionaryLoadError(f"File not found: {path}")
    except json.JSONDecodeError as e:
        raise DictionaryLoadError(f"Invalid JSON in {path}: {e!s}")
    except OSError as e:
        raise DictionaryLoadError(f"Unable to read {path}: {e!s}")


def snapshot_from_payload(payload: Any) -> DictionarySnapshot:
    """Validate a raw dictionary payload and build a snapshot from it.

    Args:
        payload: Parsed JSON (a dict with ``categories``)

    Returns:
        DictionarySnapshot

    Raises:
        DictionaryLoadError: If the payload does not validate

    """
    try:
        schema = DictionarySchema.model_validate(payload)
    except PydanticValidationError as e:
        raise DictionaryLoadError(f"Invalid dictionary data: {e!s}")

    categories = tuple(c.to_category() for c in schema.categories)
    unscoreable = [c.id for c in categories if not c.is_scoreable]
    if unscoreable:
        logger.warning(f"⚠️ Categories without core keywords will not be scored: {unscoreable}")

    return DictionarySnapshot(categories=categories, version=schema.version)


def load_dictionary(path: Path | str | None = None) -> DictionarySnapshot:
    """Load the category dictionary from a JSON file.

    Args:
        path: Dictionary file (defaults to the env override, then the bundled file)

    Returns:
        DictionarySnapshot

    Raises:
        DictionaryLoadError: If the file is missing or invalid

    """
    dictionary_path = Path(path or DICTIONARY_PATH_OVERRIDE or DEFAULT_DICTIONARY_PATH)
    snapshot = snapshot_from_payload(_read_json(dictionary_path))
    logger.info(f"📚 Loaded {len(snapshot)} categories from {dictionary_path}")
    return snapshot


def load_rules(path: Path | str | None = None) -> TaxonomyRules:
    """Load the curated rule tables from a JSON file.

    Args:
        path: Rules file (defaults to the bundled file)

    Returns:
        TaxonomyRules

    Raises:
        DictionaryLoadError: If the file is missing or invalid

    """
    rules_path = Path(path or DEFAULT_RULES_PATH)
    try:
        return TaxonomyRules.model_validate(_read_json(rules_path))
    except PydanticValidationError as e:
        raise DictionaryLoadError(f"Invalid taxonomy rules in {rules_path}: {e!s}")
