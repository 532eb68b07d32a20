"""User payload library.

Custom and imported payloads live in the KeyValueStore next to the cached
payload sets, so a JsonFileStore keeps them between runs. The generator
merges the entries matching a context into its base stage.
"""

import hashlib
import json
from dataclasses import asdict, dataclass, field
from typing import Dict, Iterable, List, Optional

from webfuzzer.core.errors import ConfigurationError
from webfuzzer.core.models import Context, Risk, iso_now, new_id
from webfuzzer.core.storage import KeyValueStore, MemoryStore
from webfuzzer.reporters.console import NullLog

STORE_KEY = "custom_payloads"
EXPORT_VERSION = "1.0"


@dataclass
class LibraryEntry:
    id: str
    content: str
    contexts: List[str] = field(default_factory=list)    # empty: every context
    severity: str = Risk.HIGH.value
    description: str = ""
    source: str = "custom"                               # custom | imported
    added: str = field(default_factory=iso_now)

    def matches(self, context: str) -> bool:
        return not self.contexts or context in self.contexts

    def to_dict(self) -> Dict:
        return asdict(self)


def _check(content: str, contexts: Iterable[str], severity: str) -> List[str]:
    errors = []
    if not content:
        errors.append("payload content must not be empty")
    known = {c.value for c in Context}
    errors += [f"unknown context {c!r}" for c in contexts if c not in known]
    if severity not in {r.value for r in Risk}:
        errors.append(f"unknown severity {severity!r}")
    return errors


class PayloadLibrary:
    """
    Usage:
        library = PayloadLibrary(JsonFileStore("fuzzer.json"))
        entry = library.add("FUZZMARK<marquee onstart=alert(1)>", contexts=["html"])
        library.search("marquee")
        library.remove(entry.id)
    """

    def __init__(self, store: Optional[KeyValueStore] = None, logger=None):
        self.store = store or MemoryStore()
        self.logger = logger or NullLog()
        self.entries: Dict[str, LibraryEntry] = {
            raw["id"]: LibraryEntry(**raw) for raw in self.store.get(STORE_KEY, [])
        }

    def _save(self) -> None:
        self.store.set(STORE_KEY, [e.to_dict() for e in self.entries.values()])

    def add(self, content: str, contexts: Iterable[str] = (), severity: str = "high",
            description: str = "", source: str = "custom") -> LibraryEntry:
        contexts = list(contexts)
        errors = _check(content, contexts, severity)
        if errors:
            raise ConfigurationError("; ".join(errors))
        entry = LibraryEntry(new_id(f"{source}_"), content, contexts, severity,
                             description, source)
        self.entries[entry.id] = entry
        self._save()
        self.logger.debug(f"Library: added {entry.id} {content!r}")
        return entry

    def remove(self, entry_id: str) -> bool:
        if self.entries.pop(entry_id, None) is None:
            return False
        self._save()
        return True

    def for_context(self, context: str) -> List[LibraryEntry]:
        return [e for e in self.entries.values() if e.matches(context)]

    def severity(self, content: str) -> Risk:
        for entry in self.entries.values():
            if entry.content == content:
                return Risk(entry.severity)
        return Risk.HIGH

    def search(self, query: str = "", context: Optional[str] = None,
               severity: Optional[str] = None, source: Optional[str] = None
               ) -> List[LibraryEntry]:
        """Case-insensitive text search over content and description, then filters."""
        q = query.lower()
        out = []
        for entry in self.entries.values():
            if q and q not in entry.content.lower() and q not in entry.description.lower():
                continue
            if context and not entry.matches(context):
                continue
            if severity and entry.severity != severity:
                continue
            if source and entry.source != source:
                continue
            out.append(entry)
        return out

    def fingerprint(self) -> str:
        """Changes whenever the set of entries does; part of the generator cache key."""
        if not self.entries:
            return "-"
        digest = hashlib.sha1("\n".join(sorted(self.entries)).encode())
        return digest.hexdigest()[:12]

    # ── exchange format ────────────────────────────────────────

    def export_json(self, context: Optional[str] = None) -> str:
        entries = self.for_context(context) if context else list(self.entries.values())
        return json.dumps({
            "version": EXPORT_VERSION,
            "exported": iso_now(),
            "context": context,
            "payloads": [e.to_dict() for e in entries],
        }, indent=2)

    def import_json(self, text: str) -> int:
        """Add every payload of an exported document; returns how many were new.

        Entries whose content is already in the library are skipped.
        """
        try:
            data = json.loads(text)
        except ValueError as exc:
            raise ConfigurationError(f"payload import: invalid JSON: {exc}") from exc
        if not isinstance(data, dict) or not isinstance(data.get("payloads"), list):
            raise ConfigurationError("payload import: expected an object with a 'payloads' list")

        known = {e.content for e in self.entries.values()}
        imported = 0
        for raw in data["payloads"]:
            content = raw.get("content", "") if isinstance(raw, dict) else str(raw)
            if not content or content in known:
                continue
            meta = raw if isinstance(raw, dict) else {}
            self.add(content, meta.get("contexts", ()), meta.get("severity", "high"),
                     meta.get("description", ""), source="imported")
            known.add(content)
            imported += 1
        self.logger.info(f"Imported {imported} payloads into the library")
        return imported
