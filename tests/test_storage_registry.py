import json

import pytest

from webfuzzer.core.registry import ComponentRegistry
from webfuzzer.core.storage import JsonFileStore, MemoryStore


def test_memory_store():
    store = MemoryStore()
    assert store.get("missing", "dflt") == "dflt"
    store.set("k", [1, 2])
    assert store.get("k") == [1, 2]
    store.delete("k")
    store.delete("k")
    assert store.get("k") is None


def test_json_file_store_persists_with_prefix(tmp_path):
    path = tmp_path / "cache.json"
    store = JsonFileStore(str(path))
    store.set("payloads:url", [["a", "base"]])

    assert json.loads(path.read_text()) == {"wf_payloads:url": [["a", "base"]]}
    assert JsonFileStore(str(path)).get("payloads:url") == [["a", "base"]]

    store.delete("payloads:url")
    assert JsonFileStore(str(path)).get("payloads:url") is None


def test_registry_builds_once():
    calls = []
    registry = ComponentRegistry()
    registry.register("thing", lambda: calls.append(1) or object())

    assert "thing" in registry
    assert registry.built() == {}
    first = registry.get("thing")
    assert registry.get("thing") is first
    assert calls == [1]


def test_registry_errors():
    registry = ComponentRegistry()
    with pytest.raises(KeyError):
        registry.get("nope")

    registry.register("thing", object)
    registry.register("thing", dict)
    assert registry.get("thing") == {}
    with pytest.raises(ValueError):
        registry.register("thing", list)
