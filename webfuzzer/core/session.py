"""Session: run state, live queue, metrics and the event channel.

State machine:
    idle ──start──▶ running ◀──resume── paused
                      │  └────pause────▶  │
                      └──stop / queue empty──▶ stopped ──start──▶ running
    idle ──finish_empty (nothing to test)──▶ stopped
"""

import asyncio
import time
from collections import deque
from dataclasses import dataclass, replace
from enum import Enum
from typing import Deque, Dict, Iterable, List, Optional

from webfuzzer.core.errors import ConfigurationError
from webfuzzer.core.events import EventBus, EventKind
from webfuzzer.core.models import (
    DispatchOutcome, ScanReport, TestUnit, UnitStatus, VulnRecord, new_id,
)
from webfuzzer.reporters.console import NullLog


class SessionState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    STOPPED = "stopped"


@dataclass
class Metrics:
    total_tests: int = 0
    successful_tests: int = 0     # vulnerable outcomes
    failed_tests: int = 0         # permanent errors
    avg_duration: float = 0.0     # seconds, exponential moving average
    alpha: float = 0.2

    def record(self, status: UnitStatus, duration: float) -> None:
        self.total_tests += 1
        if status is UnitStatus.VULNERABLE:
            self.successful_tests += 1
        elif status is UnitStatus.ERROR:
            self.failed_tests += 1
        if self.total_tests == 1:
            self.avg_duration = duration
        else:
            self.avg_duration = self.alpha * duration + (1 - self.alpha) * self.avg_duration

    def throughput(self, elapsed: float) -> float:
        return self.total_tests / elapsed if elapsed > 0 else 0.0


class Session:
    def __init__(self, session_id: Optional[str] = None, logger=None):
        self.id = session_id or new_id("s_")
        self.logger = logger or NullLog()
        self.events = EventBus(self.logger)
        self.state = SessionState.IDLE
        self.queue: Deque[TestUnit] = deque()
        self.metrics = Metrics()
        self.final_metrics: Optional[Metrics] = None
        self.started_at: Optional[float] = None
        self.ended_at: Optional[float] = None
        self.dispatched = 0
        self.vulnerabilities: List[VulnRecord] = []
        self.completed: List[TestUnit] = []
        self._resumed = asyncio.Event()
        self._resumed.set()

    # ── state machine ──────────────────────────────────────────

    def start(self, config, units: Iterable[TestUnit]) -> None:
        """Validate *config*, load *units* and enter RUNNING.

        Raises ConfigurationError (state unchanged) for bad parameters or an
        empty unit list, RuntimeError if the session is already active.
        """
        if self.state in (SessionState.RUNNING, SessionState.PAUSED):
            raise RuntimeError(f"Session {self.id} already {self.state.value}")
        config.validate()
        units = list(units)
        if not units:
            raise ConfigurationError("empty target list: nothing to test")
        if len({u.marker for u in units}) != len(units):
            raise ConfigurationError("test unit markers must be unique within a session")

        self.queue = deque(units)
        self.metrics = Metrics()
        self.final_metrics = None
        self.dispatched = 0
        self.vulnerabilities = []
        self.completed = []
        self.started_at = time.monotonic()
        self.ended_at = None
        self._resumed.set()
        self.state = SessionState.RUNNING
        self.events.publish(EventKind.SESSION_STARTED, session=self.id, units=len(units))

    def pause(self) -> bool:
        if self.state is not SessionState.RUNNING:
            return False
        self.state = SessionState.PAUSED
        self._resumed.clear()
        self.events.publish(EventKind.SESSION_PAUSED, session=self.id, pending=len(self.queue))
        return True

    def resume(self) -> bool:
        if self.state is not SessionState.PAUSED:
            return False
        self.state = SessionState.RUNNING
        self._resumed.set()
        self.events.publish(EventKind.SESSION_RESUMED, session=self.id, pending=len(self.queue))
        return True

    def stop(self) -> bool:
        """Always succeeds; a second call changes nothing."""
        if self.state in (SessionState.RUNNING, SessionState.PAUSED):
            self.state = SessionState.STOPPED
            self.ended_at = time.monotonic()
            self.final_metrics = replace(self.metrics)
            self._resumed.set()
            self.events.publish(EventKind.SESSION_STOPPED, session=self.id,
                                pending=len(self.queue), tested=self.metrics.total_tests)
        return True

    async def wait_resumed(self) -> None:
        await self._resumed.wait()

    def finish_run(self) -> None:
        """Called by the scheduler once its loop exits: fold in-flight results into the snapshot."""
        if self.state is SessionState.STOPPED:
            self.ended_at = time.monotonic()
            self.final_metrics = replace(self.metrics)

    def finish_empty(self) -> None:
        """Close a scan that had nothing to test: straight to STOPPED with a zeroed snapshot."""
        if self.state in (SessionState.RUNNING, SessionState.PAUSED):
            raise RuntimeError(f"Session {self.id} already {self.state.value}")
        self.queue = deque()
        self.metrics = Metrics()
        self.final_metrics = replace(self.metrics)
        self.dispatched = 0
        self.vulnerabilities = []
        self.completed = []
        self.started_at = self.ended_at = time.monotonic()
        self.state = SessionState.STOPPED
        self.events.publish(EventKind.SESSION_STOPPED, session=self.id, pending=0, tested=0)

    # ── queue access (scheduler only) ──────────────────────────

    def next_batch(self, size: int) -> List[TestUnit]:
        return [self.queue.popleft() for _ in range(min(size, len(self.queue)))]

    def mark_dispatched(self, unit: TestUnit) -> None:
        self.dispatched += 1
        self.events.publish(EventKind.UNIT_DISPATCHED, marker=unit.marker,
                            endpoint=unit.endpoint.name, attempt=unit.attempts + 1)

    def requeue(self, unit: TestUnit, outcome: DispatchOutcome) -> None:
        unit.status = UnitStatus.PENDING
        self.queue.append(unit)
        self.events.publish(EventKind.UNIT_RETRIED, marker=unit.marker,
                            attempts=unit.attempts, detail=outcome.detail)

    def record(self, unit: TestUnit, outcome: DispatchOutcome) -> None:
        """Account for a terminal outcome."""
        self.metrics.record(outcome.status, outcome.duration)
        self.completed.append(unit)

        if outcome.status is UnitStatus.ERROR:
            self.events.publish(EventKind.UNIT_FAILED, marker=unit.marker,
                                attempts=unit.attempts, detail=outcome.detail)
            return

        self.events.publish(EventKind.UNIT_COMPLETED, marker=unit.marker,
                            status=outcome.status.value, duration=outcome.duration)
        if outcome.status is UnitStatus.VULNERABLE:
            det = outcome.detection
            record = VulnRecord(
                url=outcome.url or unit.endpoint.location,
                endpoint_name=unit.endpoint.name,
                payload=unit.payload.content,
                target_file=unit.payload.target,
                confidence=det.confidence if det else 0.0,
                matched_signatures=list(det.matched_signatures) if det else [],
                sensitive_data=list(det.sensitive_data) if det else [],
            )
            self.vulnerabilities.append(record)
            self.events.publish(EventKind.VULNERABILITY_FOUND, record=record)

    # ── read side ──────────────────────────────────────────────

    @property
    def vulnerable_count(self) -> int:
        return len(self.vulnerabilities)

    def elapsed(self) -> float:
        if self.started_at is None:
            return 0.0
        end = self.ended_at if self.ended_at is not None else time.monotonic()
        return end - self.started_at

    def status(self) -> Dict:
        metrics = self.final_metrics or self.metrics
        elapsed = self.elapsed()
        return {
            "id": self.id,
            "state": self.state.value,
            "pending": len(self.queue),
            "dispatched": self.dispatched,
            "tested": metrics.total_tests,
            "vulnerable": metrics.successful_tests,
            "failed": metrics.failed_tests,
            "avg_duration": round(metrics.avg_duration, 4),
            "throughput": round(metrics.throughput(elapsed), 2),
            "elapsed": round(elapsed, 2),
        }

    def report(self) -> ScanReport:
        metrics = self.final_metrics or self.metrics
        return ScanReport(
            tested=metrics.total_tests,
            vulnerable=list(self.vulnerabilities),
            errors=metrics.failed_tests,
            duration_ms=int(self.elapsed() * 1000),
        )
