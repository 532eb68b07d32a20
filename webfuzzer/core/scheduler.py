"""Priority scheduling and the batch dispatch loop."""

import asyncio
import math
import secrets
import time
from collections import deque
from typing import Deque, Dict, Iterable, List, Sequence

from webfuzzer.core.models import (
    DispatchOutcome, Endpoint, Payload, Risk, TestUnit, UnitStatus,
)
from webfuzzer.core.session import SessionState
from webfuzzer.reporters.console import NullLog

RISK_BASE = {Risk.CRITICAL: 100, Risk.HIGH: 75, Risk.MEDIUM: 50, Risk.LOW: 25}
CONTEXT_BONUS = {"javascript": 20, "html": 15, "svg": 10}
MAX_LENGTH_PENALTY = 20


def priority(risk, context, payload: str) -> int:
    """Pure score in [0, 100]: risk base + context bonus - length penalty."""
    base = RISK_BASE[Risk(risk)]
    bonus = CONTEXT_BONUS.get(getattr(context, "value", context), 0)
    penalty = min(len(payload) / 10, MAX_LENGTH_PENALTY)
    score = math.floor(base + bonus - penalty + 0.5)
    return max(0, min(100, score))


class Scheduler:
    """
    Usage:
        queue = scheduler.build(endpoints, payloads_by_context, config)
        session.start(config, queue)
        await scheduler.run(session, config)
    """

    def __init__(self, dispatcher, logger=None):
        self.dispatcher = dispatcher
        self.logger = logger or NullLog()

    # ── queue construction ─────────────────────────────────────

    def build(self, endpoints: Iterable[Endpoint],
              payloads_by_context: Dict[str, Sequence[Payload]], config) -> Deque[TestUnit]:
        markers = set()
        units: List[TestUnit] = []
        for endpoint in endpoints:
            if not endpoint.testable:
                continue
            for payload in payloads_by_context.get(endpoint.context.value, ()):
                units.append(TestUnit(
                    endpoint=endpoint,
                    payload=payload,
                    marker=self._new_marker(markers),
                    priority=priority(endpoint.risk, endpoint.context, payload.content),
                ))

        # list.sort is stable, so equal priorities keep insertion order
        units.sort(key=lambda u: u.priority, reverse=True)
        if config.max_tests:
            units = units[:config.max_tests]
        self.logger.debug(f"Queue built: {len(units)} test units")
        return deque(units)

    @staticmethod
    def _new_marker(taken: set) -> str:
        while True:
            marker = "fz" + secrets.token_hex(8)
            if marker not in taken:
                taken.add(marker)
                return marker

    # ── dispatch loop ──────────────────────────────────────────

    async def run(self, session, config) -> None:
        """Drain session.queue in batches of at most config.max_concurrent."""
        active = (SessionState.RUNNING, SessionState.PAUSED)
        while session.state in active and session.queue:
            if session.state is SessionState.PAUSED:
                await session.wait_resumed()
                continue

            batch = session.next_batch(config.max_concurrent)
            wait = max(u.not_before for u in batch) - time.monotonic()
            if wait > 0:
                await asyncio.sleep(wait)

            for unit in batch:
                session.mark_dispatched(unit)
            outcomes = await asyncio.gather(
                *(self.dispatcher.inject_and_observe(u, config) for u in batch),
                return_exceptions=True,
            )
            for unit, outcome in zip(batch, outcomes):
                self._process(session, unit, outcome, config)

            if config.test_delay and session.queue and session.state in active:
                await asyncio.sleep(config.test_delay)

        if session.state in active:
            self.logger.ok(f"Queue exhausted after {session.metrics.total_tests} tests")
            session.stop()
        session.finish_run()

    def _process(self, session, unit: TestUnit, outcome, config) -> None:
        if isinstance(outcome, BaseException):
            outcome = DispatchOutcome(UnitStatus.ERROR, 0.0,
                                      f"{type(outcome).__name__}: {outcome}")

        if outcome.status is UnitStatus.ERROR:
            unit.attempts += 1
            if outcome.retryable and unit.attempts < config.max_retries:
                if config.retry_backoff:
                    unit.not_before = time.monotonic() + config.retry_backoff * 2 ** (unit.attempts - 1)
                self.logger.debug(
                    f"Retry {unit.attempts}/{config.max_retries} for {unit.endpoint.name}: {outcome.detail}")
                session.requeue(unit, outcome)
                return
            self.logger.warn(f"Giving up on {unit.endpoint.name} after {unit.attempts} attempts: "
                             f"{outcome.detail}")

        unit.status = outcome.status
        session.record(unit, outcome)
        if outcome.status is UnitStatus.VULNERABLE:
            det = outcome.detection
            self.logger.finding(unit.endpoint.risk.value, unit.endpoint.name,
                                outcome.url or unit.endpoint.location, unit.payload.content,
                                det.confidence if det else 0.0,
                                det.matched_signatures if det else ())
