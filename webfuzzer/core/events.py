"""Typed publish/subscribe channel owned by a Session."""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from webfuzzer.reporters.console import NullLog


class EventKind(str, Enum):
    SESSION_STARTED = "session-started"
    SESSION_PAUSED = "session-paused"
    SESSION_RESUMED = "session-resumed"
    SESSION_STOPPED = "session-stopped"
    DISCOVERY_COMPLETE = "discovery-complete"
    UNIT_DISPATCHED = "unit-dispatched"
    UNIT_COMPLETED = "unit-completed"
    UNIT_RETRIED = "unit-retried"
    UNIT_FAILED = "unit-failed"
    VULNERABILITY_FOUND = "vulnerability-found"


@dataclass
class Event:
    kind: EventKind
    data: Dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)


Handler = Callable[[Event], None]


class EventBus:
    def __init__(self, logger=None):
        self.logger = logger or NullLog()
        self._subs: Dict[Optional[EventKind], List[Handler]] = {}

    def subscribe(self, handler: Handler, kind: Optional[EventKind] = None) -> Callable[[], None]:
        """Register *handler* for *kind* (None → every event). Returns an unsubscribe callable."""
        self._subs.setdefault(kind, []).append(handler)

        def unsubscribe():
            handlers = self._subs.get(kind, [])
            if handler in handlers:
                handlers.remove(handler)

        return unsubscribe

    def publish(self, kind: EventKind, **data) -> Event:
        event = Event(kind, data)
        for handler in self._subs.get(kind, []) + self._subs.get(None, []):
            try:
                handler(event)
            except Exception as exc:
                # a broken subscriber must not take the scan down
                self.logger.warn(f"Event handler for {kind.value} failed: {exc}")
        return event
