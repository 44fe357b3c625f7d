from __future__ import annotations

import asyncio

from conftest import EventRecorder

from simples_worker.core.cancellation import CancellationToken
from simples_worker.core.errors import StopRequestedError
from simples_worker.jobs.pool import WorkerPool
from simples_worker.schemas.job import LookupOutcome, ResultStatus
from simples_worker.services.job_events import JobReporter


def cnpjs(count: int) -> list[str]:
    return [f"{index:014d}" for index in range(1, count + 1)]


async def answer_yes(cnpj: str) -> LookupOutcome:
    await asyncio.sleep(0.001)
    return LookupOutcome(ResultStatus.YES, "ok", "receitaws")


def test_pool_never_exceeds_worker_count(cancel: CancellationToken) -> None:
    pool = WorkerPool(answer_yes, workers=3, cancel=cancel)

    results = asyncio.run(pool.run(cnpjs(20)))

    assert len(results) == 20
    assert pool.max_in_flight == 3
    assert pool.completed == 20
    assert pool.in_flight == 0


def test_pool_does_not_start_more_workers_than_items(cancel: CancellationToken) -> None:
    pool = WorkerPool(answer_yes, workers=8, cancel=cancel)

    results = asyncio.run(pool.run(cnpjs(2)))

    assert len(results) == 2
    assert pool.max_in_flight <= 2


def test_pool_handles_empty_input(cancel: CancellationToken) -> None:
    pool = WorkerPool(answer_yes, workers=4, cancel=cancel)

    assert asyncio.run(pool.run([])) == {}


def test_unexpected_exception_becomes_error_outcome(cancel: CancellationToken) -> None:
    async def resolve(cnpj: str) -> LookupOutcome:
        if cnpj.endswith("2"):
            raise RuntimeError("kaput")
        return LookupOutcome(ResultStatus.NO, "ok", "minhareceita")

    pool = WorkerPool(resolve, workers=1, cancel=cancel)
    results = asyncio.run(pool.run(cnpjs(3)))

    failed = results["00000000000002"]
    assert failed.status is ResultStatus.ERROR
    assert failed.provider == "worker"
    assert failed.detail == "worker-1: exception kaput"
    assert results["00000000000003"].status is ResultStatus.NO


def test_stop_leaves_unfinished_identifiers_without_result(cancel: CancellationToken) -> None:
    calls: list[str] = []

    async def resolve(cnpj: str) -> LookupOutcome:
        calls.append(cnpj)
        if len(calls) == 3:
            cancel.cancel()
            raise StopRequestedError()
        return LookupOutcome(ResultStatus.YES, "ok", "receitaws")

    pool = WorkerPool(resolve, workers=1, cancel=cancel)
    results = asyncio.run(pool.run(cnpjs(10)))

    assert sorted(results) == cnpjs(2)
    assert len(calls) == 3


def test_progress_logged_every_step_and_completion_hook(cancel: CancellationToken, recorder: EventRecorder) -> None:
    completed: list[str] = []
    pool = WorkerPool(
        answer_yes,
        workers=2,
        cancel=cancel,
        reporter=JobReporter(recorder),
        progress_step=2,
    )

    asyncio.run(pool.run(cnpjs(5), on_complete=lambda cnpj, outcome: completed.append(cnpj)))

    progress_lines = [message for message in recorder.messages if message.startswith("round progress")]
    assert sorted(completed) == cnpjs(5)
    assert [line.split(" | ")[0] for line in progress_lines] == [
        "round progress: 2/5 identifiers queried",
        "round progress: 4/5 identifiers queried",
        "round progress: 5/5 identifiers queried",
    ]


def test_heartbeat_reports_slow_rounds(cancel: CancellationToken, recorder: EventRecorder) -> None:
    async def slow(cnpj: str) -> LookupOutcome:
        await asyncio.sleep(0.2)
        return LookupOutcome(ResultStatus.YES, "ok", "receitaws")

    pool = WorkerPool(slow, workers=1, cancel=cancel, reporter=JobReporter(recorder), heartbeat_seconds=0.05)
    asyncio.run(pool.run(cnpjs(1)))

    assert "round status: completed=0/1 | in flight=1 | pending=1" in recorder.messages
