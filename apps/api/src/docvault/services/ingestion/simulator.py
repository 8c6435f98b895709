"""Background progress simulation for started ingestion processes.

Each started process gets its own daemon thread and a cancel event. The thread
never holds on to a record: every tick goes back through the callbacks, which
re-read the current row and only write while it is still ``processing``.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone
from random import Random
from threading import Event, Lock, Thread
from time import monotonic
from typing import Callable

from docvault.observability import get_logger

logger = get_logger(__name__)

MAX_RECORDED_FAILURES = 100

AdvanceFn = Callable[[str, int], bool]
FinishFn = Callable[[str], bool]
FailFn = Callable[[str, str], bool]


@dataclass(frozen=True)
class SimulationTimings:
    initial_delay_seconds: float = 0.1
    tick_seconds: float = 0.5
    min_duration_seconds: float = 1.0
    max_duration_seconds: float = 3.0
    max_items_per_tick: int = 9


@dataclass(frozen=True)
class SimulationFailure:
    process_id: str
    error: str
    recorded: bool
    occurred_at: datetime


class ProgressSimulator:
    def __init__(
        self,
        *,
        advance: AdvanceFn,
        finish: FinishFn,
        fail: FailFn,
        timings: SimulationTimings | None = None,
        rng: Random | None = None,
        max_failures: int = MAX_RECORDED_FAILURES,
    ) -> None:
        self._advance = advance
        self._finish = finish
        self._fail = fail
        self._timings = timings or SimulationTimings()
        self._rng = rng or Random()
        self._lock = Lock()
        self._tasks: dict[str, tuple[Thread, Event]] = {}
        self._failures: deque[SimulationFailure] = deque(maxlen=max_failures)

    @property
    def failures(self) -> list[SimulationFailure]:
        with self._lock:
            return list(self._failures)

    def is_running(self, process_id: str) -> bool:
        with self._lock:
            task = self._tasks.get(process_id)
        return task is not None and task[0].is_alive()

    def submit(self, process_id: str) -> None:
        stop_event = Event()
        thread = Thread(
            target=self._run,
            args=(process_id, stop_event),
            name=f"ingestion-sim-{process_id}",
            daemon=True,
        )
        with self._lock:
            previous = self._tasks.get(process_id)
            if previous is not None:
                previous[1].set()
            self._tasks[process_id] = (thread, stop_event)
        thread.start()
        logger.debug("simulation submitted", process_id=process_id)

    def cancel(self, process_id: str) -> bool:
        with self._lock:
            task = self._tasks.pop(process_id, None)
        if task is None:
            return False
        task[1].set()
        logger.debug("simulation cancelled", process_id=process_id)
        return True

    def wait(self, process_id: str, timeout: float | None = None) -> bool:
        """Block until the task for ``process_id`` exits. Returns False on timeout."""
        with self._lock:
            task = self._tasks.get(process_id)
        if task is None:
            return True
        task[0].join(timeout)
        return not task[0].is_alive()

    def shutdown(self, timeout: float = 1.0) -> None:
        with self._lock:
            tasks = list(self._tasks.values())
            self._tasks.clear()
        for _, stop_event in tasks:
            stop_event.set()
        for thread, _ in tasks:
            thread.join(timeout)

    def _run(self, process_id: str, stop_event: Event) -> None:
        timings = self._timings
        try:
            if stop_event.wait(timings.initial_delay_seconds):
                return

            duration = self._rng.uniform(
                timings.min_duration_seconds, timings.max_duration_seconds
            )
            deadline = monotonic() + duration
            while True:
                remaining = deadline - monotonic()
                if remaining <= 0:
                    break
                if stop_event.wait(min(timings.tick_seconds, remaining)):
                    return
                if monotonic() >= deadline:
                    break
                step = self._rng.randint(0, timings.max_items_per_tick)
                if not self._advance(process_id, step):
                    logger.info("simulation stopped, process left processing", process_id=process_id)
                    return

            if stop_event.is_set():
                return
            if self._finish(process_id):
                logger.info("simulation completed", process_id=process_id)
        except Exception as exc:
            self._record_failure(process_id, exc)
        finally:
            self._forget(process_id, stop_event)

    def _record_failure(self, process_id: str, exc: Exception) -> None:
        message = str(exc) or "Unknown error occurred"
        logger.exception("simulation failed", process_id=process_id, error=message)
        try:
            recorded = self._fail(process_id, message)
        except Exception as save_exc:
            logger.exception(
                "simulation failure could not be persisted",
                process_id=process_id,
                error=message,
                save_error=str(save_exc),
            )
            recorded = False

        with self._lock:
            self._failures.append(
                SimulationFailure(
                    process_id=process_id,
                    error=message,
                    recorded=recorded,
                    occurred_at=datetime.now(timezone.utc),
                )
            )

    def _forget(self, process_id: str, stop_event: Event) -> None:
        with self._lock:
            task = self._tasks.get(process_id)
            if task is not None and task[1] is stop_event:
                del self._tasks[process_id]
