"""Key-value persistence used to cache generated payload sets and settings."""

import json
import os
from typing import Any, Dict


class KeyValueStore:
    """Interface: get/set/delete. Values must be JSON-serialisable."""

    def get(self, key: str, default: Any = None) -> Any:
        raise NotImplementedError

    def set(self, key: str, value: Any) -> None:
        raise NotImplementedError

    def delete(self, key: str) -> None:
        raise NotImplementedError


class MemoryStore(KeyValueStore):
    def __init__(self):
        self._data: Dict[str, Any] = {}

    def get(self, key, default=None):
        return self._data.get(key, default)

    def set(self, key, value):
        self._data[key] = value

    def delete(self, key):
        self._data.pop(key, None)


class JsonFileStore(KeyValueStore):
    """Single JSON document on disk; every key is namespaced with *prefix*."""

    def __init__(self, path: str, prefix: str = "wf_"):
        self.path = path
        self.prefix = prefix
        self._data: Dict[str, Any] = {}
        if os.path.exists(path):
            with open(path, "r", encoding="utf-8") as f:
                self._data = json.load(f)

    def _flush(self):
        tmp = self.path + ".tmp"
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(self._data, f, indent=2)
        os.replace(tmp, self.path)

    def get(self, key, default=None):
        return self._data.get(self.prefix + key, default)

    def set(self, key, value):
        self._data[self.prefix + key] = value
        self._flush()

    def delete(self, key):
        if self._data.pop(self.prefix + key, None) is not None:
            self._flush()
