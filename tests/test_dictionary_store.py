"""Tests for the DictionaryStore and the taxonomy loader."""

import json
import threading
import time

import pytest

from job_classifier.exceptions import DictionaryLoadError, DictionaryUnavailableError
from job_classifier.models.category import DictionarySnapshot, KeywordTier
from job_classifier.processing.dictionary_store import DictionaryStore, UpdateOutcome
from job_classifier.services.persistence import (
    DICTIONARY_KEY,
    InMemoryKeyValueStore,
    JsonFileKeyValueStore,
    LearningStatePersister,
)
from job_classifier.services.taxonomy_loader import load_dictionary, load_rules, snapshot_from_payload


class SlowStagingPersister(LearningStatePersister):
    """Persister that stalls while staging dictionary version 2."""

    def __init__(self, store):
        super().__init__(store)
        self.staging_second_version = threading.Event()

    def stage(self, values):
        payload = values.get(DICTIONARY_KEY)
        if payload is not None and payload["version"] == 2:
            self.staging_second_version.set()
            time.sleep(0.2)
        super().stage(values)


class TestDictionaryStore:
    """Test suite for DictionaryStore."""

    def test_apply_update_adds_keyword(self, small_store):
        outcome = small_store.apply_update("digital-technology", KeywordTier.CORE, "solidity")

        assert outcome is UpdateOutcome.APPLIED
        digital = small_store.get_snapshot().get("digital-technology")
        assert digital.core_keywords[-1] == "solidity"
        assert digital.last_updated != ""
        assert small_store.version == 2

    def test_apply_update_is_idempotent(self, small_store):
        small_store.apply_update("digital-technology", KeywordTier.SUPPORT, "rust")

        outcome = small_store.apply_update("digital-technology", KeywordTier.SUPPORT, "RUST")

        assert outcome is UpdateOutcome.ALREADY_PRESENT
        assert small_store.get_snapshot().get("digital-technology").support_keywords.count("rust") == 1
        assert small_store.version == 2

    def test_existing_keyword_is_already_present(self, small_store):
        outcome = small_store.apply_update("digital-technology", KeywordTier.CORE, "Software")

        assert outcome is UpdateOutcome.ALREADY_PRESENT
        assert small_store.version == 1

    def test_unknown_category(self, small_store):
        outcome = small_store.apply_update("space-exploration", KeywordTier.CORE, "rocket")

        assert outcome is UpdateOutcome.UNKNOWN_CATEGORY

    def test_context_pair_update(self, small_store):
        outcome = small_store.apply_update(
            "digital-technology", KeywordTier.CONTEXT_PAIR, ("smart", "contract")
        )
        again = small_store.apply_update(
            "digital-technology", KeywordTier.CONTEXT_PAIR, ("Smart", "Contract")
        )

        assert outcome is UpdateOutcome.APPLIED
        assert again is UpdateOutcome.ALREADY_PRESENT
        assert ("smart", "contract") in small_store.get_snapshot().get("digital-technology").context_pairs

    def test_invalid_values(self, small_store):
        with pytest.raises(ValueError):
            small_store.apply_update("digital-technology", KeywordTier.CONTEXT_PAIR, "smart contract")
        with pytest.raises(ValueError):
            small_store.apply_update("digital-technology", KeywordTier.CORE, "  ")

    def test_snapshots_are_not_mutated(self, small_store):
        before = small_store.get_snapshot()

        small_store.apply_update("health-medical", KeywordTier.CORE, "nurse")

        assert "nurse" not in before.get("health-medical").core_keywords
        assert "nurse" not in before.known_terms
        assert "nurse" in small_store.get_snapshot().known_terms

    def test_empty_store_is_unavailable(self):
        with pytest.raises(DictionaryUnavailableError):
            DictionaryStore(DictionarySnapshot()).get_snapshot()

    def test_concurrent_updates_are_serialized(self, small_store):
        keywords = [f"term{i}" for i in range(20)]
        threads = [
            threading.Thread(
                target=small_store.apply_update,
                args=("digital-technology", KeywordTier.SUPPORT, kw),
            )
            for kw in keywords
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        support = small_store.get_snapshot().get("digital-technology").support_keywords
        assert set(keywords) <= set(support)
        assert small_store.version == 21

    def test_updates_are_persisted(self, small_snapshot):
        persister = LearningStatePersister(InMemoryKeyValueStore())
        store = DictionaryStore(small_snapshot, persister)

        store.apply_update("digital-technology", KeywordTier.CORE, "solidity")

        restored = DictionaryStore.from_persisted(persister, small_snapshot)
        assert "solidity" in restored.get_snapshot().get("digital-technology").core_keywords
        assert restored.version == 2

    def test_from_persisted_without_data_uses_default(self, small_snapshot):
        persister = LearningStatePersister(InMemoryKeyValueStore())

        store = DictionaryStore.from_persisted(persister, small_snapshot)

        assert store.get_snapshot() is small_snapshot

    def test_from_persisted_rejects_invalid_data(self, small_snapshot):
        kv = InMemoryKeyValueStore()
        kv.set(DICTIONARY_KEY, {"version": 3, "categories": []})

        with pytest.raises(DictionaryLoadError):
            DictionaryStore.from_persisted(LearningStatePersister(kv), small_snapshot)

    def test_from_persisted_rejects_unreadable_file(self, small_snapshot, tmp_path):
        persister = LearningStatePersister(JsonFileKeyValueStore(tmp_path))
        DictionaryStore(small_snapshot, persister).apply_update("digital-technology", KeywordTier.CORE, "solidity")
        path = tmp_path / "dictionary.json"
        truncated = path.read_bytes()[:200]
        path.write_bytes(truncated)

        with pytest.raises(DictionaryLoadError):
            DictionaryStore.from_persisted(LearningStatePersister(JsonFileKeyValueStore(tmp_path)), small_snapshot)

        # The saved file is left for recovery
        assert path.read_bytes() == truncated

    def test_persisted_version_follows_memory(self, small_snapshot):
        kv = InMemoryKeyValueStore()
        persister = SlowStagingPersister(kv)
        store = DictionaryStore(small_snapshot, persister)

        first = threading.Thread(
            target=store.apply_update, args=("digital-technology", KeywordTier.CORE, "solidity")
        )
        first.start()
        assert persister.staging_second_version.wait(timeout=5.0)
        second = threading.Thread(
            target=store.apply_update, args=("digital-technology", KeywordTier.CORE, "rust")
        )
        second.start()
        first.join()
        second.join()

        assert store.version == 3
        assert kv.get(DICTIONARY_KEY)["version"] == 3


class TestTaxonomyLoader:
    """Test suite for loading dictionaries and rules."""

    def test_bundled_dictionary(self, bundled_snapshot):
        assert len(bundled_snapshot) == 17
        assert "digital-technology" in bundled_snapshot.category_ids
        assert "blockchain" in bundled_snapshot.get("digital-technology").core_keywords

    def test_bundled_rules(self, bundled_rules):
        assert bundled_rules.leadership_category == "leadership-executive"
        assert bundled_rules.fallback_category == "operations-administration"
        assert bundled_rules.canonical_category("operations-logistics") == "operations-administration"
        assert bundled_rules.affiliation_boost("WHO", "health-medical") == 20

    def test_duplicate_keywords_are_merged(self):
        snapshot = snapshot_from_payload({
            "version": 1,
            "categories": [{
                "id": "a",
                "name": "A",
                "core_keywords": ["Data", "data", "cloud"],
                "context_pairs": [["big", "data"]],
            }],
        })

        assert snapshot.get("a").core_keywords == ("Data", "cloud")
        assert snapshot.get("a").context_pairs == (("big", "data"),)

    def test_duplicate_category_ids(self):
        payload = {"categories": [{"id": "a", "name": "A"}, {"id": "a", "name": "B"}]}

        with pytest.raises(DictionaryLoadError):
            snapshot_from_payload(payload)

    def test_missing_file(self, tmp_path):
        with pytest.raises(DictionaryLoadError, match="File not found"):
            load_dictionary(tmp_path / "missing.json")

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "dictionary.json"
        path.write_text("{not json")

        with pytest.raises(DictionaryLoadError, match="Invalid JSON"):
            load_dictionary(path)

    def test_load_from_path(self, tmp_path):
        path = tmp_path / "dictionary.json"
        path.write_text(json.dumps({
            "version": 4,
            "categories": [{"id": "a", "name": "A", "core_keywords": ["x"]}],
        }))

        snapshot = load_dictionary(path)

        assert snapshot.version == 4
        assert snapshot.category_ids == ["a"]

    def test_invalid_rules(self, tmp_path):
        path = tmp_path / "rules.json"
        path.write_text(json.dumps({"leadership_category": "x"}))

        with pytest.raises(DictionaryLoadError):
            load_rules(path)
