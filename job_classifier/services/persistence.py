"""Key-value persistence for learning state.

Persisted learning state (feedback history, learned patterns, audit logs) is a
cache of what happened, not the source of truth: the in-memory dictionary is.
Writes are therefore best effort. A failed write is logged and retried on the
next flush, and never rolls back in-memory state.
"""

import json
import logging
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Any

from ..config import RETENTION_LIMITS
from ..exceptions import PersistenceError

logger = logging.getLogger(__name__)

FEEDBACK_KEY = "feedback"
PATTERNS_KEY = "patterns"
UPDATES_KEY = "updates"
ACTIONS_KEY = "actions"
PROPOSALS_KEY = "proposals"
DICTIONARY_KEY = "dictionary"

# Lists stored under these keys keep only their most recent entries
KEY_LIMITS: dict[str, int] = {
    FEEDBACK_KEY: RETENTION_LIMITS["feedback"],
    UPDATES_KEY: RETENTION_LIMITS["dictionary_updates"],
    ACTIONS_KEY: RETENTION_LIMITS["learning_actions"],
    PROPOSALS_KEY: RETENTION_LIMITS["pending_proposals"],
}


class KeyValueStore(ABC):
    """Durable string-keyed store of JSON-serializable values."""

    @abstractmethod
    def get(self, key: str) -> Any | None:
        """Return the value for a key, or None when absent."""

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        """Store a value. Raises PersistenceError on failure."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove a key if present."""

    @abstractmethod
    def keys(self) -> list[str]:
        """List stored keys."""


class InMemoryKeyValueStore(KeyValueStore):
    """Process-local store, mainly for tests and one-shot CLI runs."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Any | None:
        with self._lock:
            raw = self._data.get(key)
        return json.loads(raw) if raw is not None else None

    def set(self, key: str, value: Any) -> None:
        try:
            raw = json.dumps(value)
        except (TypeError, ValueError) as e:
            raise PersistenceError(f"Value for '{key}' is not serializable: {e!s}")
        with self._lock:
            self._data[key] = raw

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._data)


class JsonFileKeyValueStore(KeyValueStore):
    """Stores each key as ``<directory>/<key>.json``, replaced atomically."""

    def __init__(self, directory: Path | str) -> None:
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def get(self, key: str) -> Any | None:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            with open(path, encoding="utf-8") as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise PersistenceError(f"Unable to read '{key}' from {path}: {e!s}")

    def set(self, key: str, value: Any) -> None:
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=f".{key}.", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(value, f, indent=2)
                os.replace(tmp_name, self._path(key))
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except (OSError, TypeError, ValueError) as e:
            raise PersistenceError(f"Unable to write '{key}' to {self.directory}: {e!s}")

    def delete(self, key: str) -> None:
        try:
            self._path(key).unlink(missing_ok=True)
        except OSError as e:
            raise PersistenceError(f"Unable to delete '{key}': {e!s}")

    def keys(self) -> list[str]:
        if not self.directory.exists():
            return []
        return sorted(p.stem for p in self.directory.glob("*.json"))


def truncate_for_key(key: str, value: Any) -> Any:
    """Apply the retention cap for a key, keeping the newest entries."""
    limit = KEY_LIMITS.get(key)
    if limit is not None and isinstance(value, list) and len(value) > limit:
        return value[-limit:]
    return value


class LearningStatePersister:
    """Best-effort writer of learning state to a key-value store.

    Values are staged, then flushed. Keys that fail to write stay staged and
    are retried by the next flush. With ``background=True`` flushes run on a
    single worker thread so callers never wait on storage.
    """

    def __init__(self, store: KeyValueStore, background: bool = False) -> None:
        self.store = store
        self._pending: dict[str, Any] = {}
        self._lock = threading.Lock()
        self._executor = (
            ThreadPoolExecutor(max_workers=1, thread_name_prefix="learning-persist")
            if background
            else None
        )

    @property
    def pending_keys(self) -> list[str]:
        with self._lock:
            return list(self._pending)

    def stage(self, values: dict[str, Any]) -> None:
        """Queue values for the next flush (newer values replace older ones)."""
        with self._lock:
            for key, value in values.items():
                self._pending[key] = truncate_for_key(key, value)

    def save(self, values: dict[str, Any]) -> Future | bool:
        """Stage values and flush them.

        Returns:
            The flush outcome, or a Future of it when flushing in the background

        """
        self.stage(values)
        return self.request_flush()

    def request_flush(self) -> Future | bool:
        """Flush staged values, on the background worker if there is one."""
        if self._executor is not None:
            return self._executor.submit(self.flush)
        return self.flush()

    def flush(self) -> bool:
        """Write all staged values.

        Returns:
            True if every staged value was written

        """
        with self._lock:
            for key in list(self._pending):
                try:
                    self.store.set(key, self._pending[key])
                except PersistenceError as e:
                    logger.warning(f"⚠️ Failed to persist '{key}', will retry on next flush: {e!s}")
                    continue
                del self._pending[key]
            return not self._pending

    def load(self, key: str, default: Any = None) -> Any:
        """Read a persisted value, returning ``default`` if absent or unreadable."""
        try:
            value = self.store.get(key)
        except PersistenceError as e:
            logger.error(f"❌ Failed to load '{key}': {e!s}")
            return default
        return default if value is None else value

    def clear(self, keys: list[str]) -> None:
        """Delete keys from the store and drop any staged values for them."""
        with self._lock:
            for key in keys:
                self._pending.pop(key, None)
                try:
                    self.store.delete(key)
                except PersistenceError as e:
                    logger.warning(f"⚠️ Failed to delete '{key}': {e!s}")

    def close(self) -> None:
        """Flush remaining values and stop the background worker."""
        if self._executor is not None:
            self._executor.shutdown(wait=True)
        self.flush()
