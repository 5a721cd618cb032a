"""
Shared category dictionary with snapshot reads and serialized merge writes.
"""

import logging
import threading
from datetime import datetime
from enum import Enum

from ..exceptions import DictionaryLoadError, DictionaryUnavailableError, PersistenceError
from ..models.category import ContextPair, DictionarySnapshot, KeywordTier
from ..services.persistence import DICTIONARY_KEY, LearningStatePersister
from ..services.taxonomy_loader import snapshot_from_payload

logger = logging.getLogger(__name__)


class UpdateOutcome(str, Enum):
    """Result of an ApplyUpdate call."""

    APPLIED = "applied"
    ALREADY_PRESENT = "already_present"
    UNKNOWN_CATEGORY = "unknown_category"


class DictionaryStore:
    """Holds the category dictionary.

    Readers get an immutable snapshot; writers are serialized by a lock and
    publish a new snapshot per change, so a reader never sees a half-applied
    update. Mutations only ever append to a tier.
    """

    def __init__(
        self,
        snapshot: DictionarySnapshot,
        persister: LearningStatePersister | None = None,
    ) -> None:
        self._snapshot = snapshot
        self._lock = threading.Lock()
        self._persister = persister

    @classmethod
    def from_persisted(
        cls, persister: LearningStatePersister, default: DictionarySnapshot
    ) -> "DictionaryStore":
        """Create a store from the persisted dictionary, or ``default`` if none was saved.

        Raises:
            DictionaryLoadError: If a persisted dictionary exists but is unreadable or invalid

        """
        # Unreadable saved state is never replaced by the default
        try:
            payload = persister.store.get(DICTIONARY_KEY)
        except PersistenceError as e:
            raise DictionaryLoadError(f"Persisted dictionary is unreadable: {e!s}")
        if payload is None:
            return cls(default, persister)
        snapshot = snapshot_from_payload(payload)
        logger.info(f"📚 Restored persisted dictionary (version {snapshot.version})")
        return cls(snapshot, persister)

    def get_snapshot(self) -> DictionarySnapshot:
        """Get the current point-in-time dictionary.

        Raises:
            DictionaryUnavailableError: If no category data is available

        """
        snapshot = self._snapshot
        if snapshot is None or not snapshot.scoreable_categories:
            raise DictionaryUnavailableError("Category dictionary is empty or unavailable")
        return snapshot

    @property
    def version(self) -> int:
        return self._snapshot.version if self._snapshot else 0

    def apply_update(
        self, category_id: str, tier: KeywordTier, value: str | ContextPair
    ) -> UpdateOutcome:
        """Merge a keyword or context pair into a category.

        Idempotent: adding something already present (case-insensitively) is
        a no-op reported as ALREADY_PRESENT.

        Args:
            category_id: Target category id
            tier: Keyword tier, or KeywordTier.CONTEXT_PAIR
            value: Keyword phrase, or a (word, word) pair for context pairs

        Returns:
            UpdateOutcome

        """
        with self._lock:
            snapshot = self._snapshot
            category = snapshot.get(category_id)
            if category is None:
                return UpdateOutcome.UNKNOWN_CATEGORY

            timestamp = datetime.now().isoformat()
            if tier is KeywordTier.CONTEXT_PAIR:
                if isinstance(value, str):
                    raise ValueError("Context pair updates need a (word, word) pair")
                if category.has_context_pair(value):
                    return UpdateOutcome.ALREADY_PRESENT
                updated = category.with_context_pair(value, timestamp)
            else:
                if not isinstance(value, str) or not value.strip():
                    raise ValueError("Keyword updates need a non-empty string")
                if category.has_keyword(value, tier):
                    return UpdateOutcome.ALREADY_PRESENT
                updated = category.with_keyword(tier, value, timestamp)

            self._snapshot = DictionarySnapshot(
                categories=tuple(
                    updated if c.id == category_id else c for c in snapshot.categories
                ),
                version=snapshot.version + 1,
            )
            new_snapshot = self._snapshot
            # Staged under the writer lock so versions reach storage in order
            if self._persister is not None:
                self._persister.stage({DICTIONARY_KEY: new_snapshot.to_dict()})

        logger.info(f"✏️ Dictionary v{new_snapshot.version}: added {value!r} to {category_id}.{tier.value}")
        if self._persister is not None:
            self._persister.request_flush()
        return UpdateOutcome.APPLIED

    def replace(self, snapshot: DictionarySnapshot) -> None:
        """Swap in a whole new dictionary (e.g. after reloading from disk)."""
        with self._lock:
            self._snapshot = snapshot
