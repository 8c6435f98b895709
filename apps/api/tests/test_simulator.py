from random import Random
from threading import Event
from time import monotonic, sleep

import pytest

from conftest import actor_for
from docvault.db import get_session_factory
from docvault.enums import IngestionStatus, IngestionType, UserRole
from docvault.services.ingestion import IngestionService, ProgressSimulator, SimulationTimings

FAST = SimulationTimings(
    initial_delay_seconds=0.001,
    tick_seconds=0.005,
    min_duration_seconds=0.02,
    max_duration_seconds=0.05,
    max_items_per_tick=9,
)
SLOW = SimulationTimings(
    initial_delay_seconds=0.001,
    tick_seconds=0.01,
    min_duration_seconds=30.0,
    max_duration_seconds=30.0,
    max_items_per_tick=1,
)


class ExplodingIngestionService(IngestionService):
    def _advance_progress(self, process_id: str, step: int) -> bool:
        raise RuntimeError("disk full")


def _make_service(timings: SimulationTimings, cls=IngestionService) -> IngestionService:
    return cls(get_session_factory(), simulator_enabled=True, timings=timings, rng=Random(7))


def test_simulated_process_completes_with_all_items(engine, make_user) -> None:
    service = _make_service(FAST)
    editor = make_user(UserRole.EDITOR)
    actor = actor_for(editor)
    process = service.create(type=IngestionType.BATCH_IMPORT, actor_id=editor.id, total_items=100)

    service.start(process.id, actor)
    assert service.simulator.wait(process.id, timeout=5)

    finished = service.get_one(process.id, actor)
    assert finished.status == IngestionStatus.COMPLETED.value
    assert finished.processed_items == 100
    assert finished.progress == 100
    assert finished.completed_at is not None
    assert finished.result == {
        "success": True,
        "message": "Ingestion completed successfully",
        "processed_items": 100,
    }
    assert service.simulator.failures == []
    service.shutdown()


def test_progress_never_decreases_while_simulating(engine, make_user) -> None:
    timings = SimulationTimings(
        initial_delay_seconds=0.001,
        tick_seconds=0.005,
        min_duration_seconds=0.3,
        max_duration_seconds=0.3,
        max_items_per_tick=9,
    )
    service = _make_service(timings)
    editor = make_user(UserRole.EDITOR)
    actor = actor_for(editor)
    process = service.create(type=IngestionType.BATCH_IMPORT, actor_id=editor.id, total_items=200)
    service.start(process.id, actor)

    seen: list[int] = []
    deadline = monotonic() + 5
    while service.simulator.is_running(process.id) and monotonic() < deadline:
        seen.append(service.get_one(process.id, actor).progress)
        sleep(0.01)
    assert service.simulator.wait(process.id, timeout=5)
    seen.append(service.get_one(process.id, actor).progress)

    assert len(seen) > 2
    assert seen == sorted(seen)
    assert seen[-1] == 100
    service.shutdown()


def test_manual_completion_is_not_overwritten(engine, make_user) -> None:
    service = _make_service(SLOW)
    editor = make_user(UserRole.EDITOR)
    actor = actor_for(editor)
    process = service.create(type=IngestionType.API_SYNC, actor_id=editor.id, total_items=50)
    service.start(process.id, actor)
    assert service.simulator.is_running(process.id)

    service.complete(process.id, {"source": "operator"}, actor)

    assert not service.simulator.is_running(process.id)
    finished = service.get_one(process.id, actor)
    assert finished.status == IngestionStatus.COMPLETED.value
    assert finished.result == {"source": "operator"}
    service.shutdown()


def test_simulation_error_marks_process_failed(engine, make_user) -> None:
    service = _make_service(FAST, ExplodingIngestionService)
    editor = make_user(UserRole.EDITOR)
    actor = actor_for(editor)
    process = service.create(type=IngestionType.API_SYNC, actor_id=editor.id, total_items=10)

    service.start(process.id, actor)
    assert service.simulator.wait(process.id, timeout=5)

    failed = service.get_one(process.id, actor)
    assert failed.status == IngestionStatus.FAILED.value
    assert failed.error_message == "disk full"
    assert failed.completed_at is not None
    [failure] = service.simulator.failures
    assert failure.process_id == process.id
    assert failure.recorded is True
    service.shutdown()


def test_completed_simulation_can_be_removed(engine, make_user) -> None:
    service = _make_service(FAST)
    editor = make_user(UserRole.EDITOR)
    actor = actor_for(editor)
    process = service.create(type=IngestionType.DOCUMENT_UPLOAD, actor_id=editor.id, total_items=5)
    service.start(process.id, actor)
    assert service.simulator.wait(process.id, timeout=5)

    service.remove(process.id, actor)

    assert service.stats(actor).total == 0
    service.shutdown()


def test_simulator_advances_in_bounded_steps_then_finishes() -> None:
    steps: list[int] = []
    finished = Event()
    simulator = ProgressSimulator(
        advance=lambda process_id, step: steps.append(step) or True,
        finish=lambda process_id: finished.set() or True,
        fail=lambda process_id, error: True,
        timings=FAST,
        rng=Random(3),
    )

    simulator.submit("p-1")

    assert simulator.wait("p-1", timeout=5)
    assert finished.is_set()
    assert steps
    assert all(0 <= step <= FAST.max_items_per_tick for step in steps)


def test_simulator_stops_when_process_leaves_processing() -> None:
    finish_calls: list[str] = []
    simulator = ProgressSimulator(
        advance=lambda process_id, step: False,
        finish=lambda process_id: finish_calls.append(process_id) or True,
        fail=lambda process_id, error: True,
        timings=FAST,
    )

    simulator.submit("p-2")

    assert simulator.wait("p-2", timeout=5)
    assert finish_calls == []
    assert simulator.failures == []


def test_failure_is_kept_when_it_cannot_be_persisted() -> None:
    def broken_fail(process_id: str, error: str) -> bool:
        raise RuntimeError("database gone")

    def broken_advance(process_id: str, step: int) -> bool:
        raise ValueError("bad step")

    simulator = ProgressSimulator(
        advance=broken_advance,
        finish=lambda process_id: True,
        fail=broken_fail,
        timings=FAST,
    )

    simulator.submit("p-3")

    assert simulator.wait("p-3", timeout=5)
    [failure] = simulator.failures
    assert failure.error == "bad step"
    assert failure.recorded is False


@pytest.mark.parametrize("use_cancel", [True, False])
def test_cancel_and_shutdown_stop_running_tasks(use_cancel: bool) -> None:
    simulator = ProgressSimulator(
        advance=lambda process_id, step: True,
        finish=lambda process_id: True,
        fail=lambda process_id, error: True,
        timings=SLOW,
    )
    simulator.submit("p-4")
    assert simulator.is_running("p-4")

    if use_cancel:
        assert simulator.cancel("p-4") is True
    else:
        simulator.shutdown(timeout=1.0)

    assert not simulator.is_running("p-4")
    assert simulator.cancel("p-4") is False


def test_recorded_failures_are_capped() -> None:
    def broken_advance(process_id: str, step: int) -> bool:
        raise RuntimeError(f"{process_id} exploded")

    simulator = ProgressSimulator(
        advance=broken_advance,
        finish=lambda process_id: True,
        fail=lambda process_id, error: True,
        timings=FAST,
        max_failures=2,
    )

    for process_id in ("p-5", "p-6", "p-7"):
        simulator.submit(process_id)
        assert simulator.wait(process_id, timeout=5)

    assert [failure.process_id for failure in simulator.failures] == ["p-6", "p-7"]
