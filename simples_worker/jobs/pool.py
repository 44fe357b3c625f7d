from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from contextlib import suppress

from simples_worker.core.cancellation import CancellationToken
from simples_worker.core.errors import StopRequestedError
from simples_worker.schemas.job import LookupOutcome, ResultStatus
from simples_worker.services.job_events import JobReporter

logger = logging.getLogger(__name__)

ResolveFn = Callable[[str], Awaitable[LookupOutcome]]
CompletionFn = Callable[[str, LookupOutcome], None]


class WorkerPool:
    def __init__(
        self,
        resolve: ResolveFn,
        *,
        workers: int,
        cancel: CancellationToken,
        reporter: JobReporter | None = None,
        heartbeat_seconds: float = 5.0,
        progress_step: int = 10,
    ) -> None:
        self.resolve = resolve
        self.workers = max(1, workers)
        self.cancel = cancel
        self.reporter = reporter or JobReporter()
        self.heartbeat_seconds = heartbeat_seconds
        self.progress_step = max(1, progress_step)
        self.total = 0
        self.completed = 0
        self.in_flight = 0
        self.max_in_flight = 0

    async def run(
        self,
        cnpjs: Sequence[str],
        on_complete: CompletionFn | None = None,
    ) -> dict[str, LookupOutcome]:
        queue: asyncio.Queue[str] = asyncio.Queue()
        for cnpj in cnpjs:
            queue.put_nowait(cnpj)

        self.total = len(cnpjs)
        self.completed = 0
        self.in_flight = 0
        results: dict[str, LookupOutcome] = {}
        step = min(self.progress_step, self.total or 1)
        worker_count = max(1, min(self.workers, self.total))

        heartbeat = asyncio.create_task(self._heartbeat())
        try:
            await asyncio.gather(
                *(
                    self._worker(worker_id, queue, results, step, on_complete)
                    for worker_id in range(1, worker_count + 1)
                )
            )
        finally:
            heartbeat.cancel()
            with suppress(asyncio.CancelledError):
                await heartbeat
        return results

    async def _worker(
        self,
        worker_id: int,
        queue: asyncio.Queue[str],
        results: dict[str, LookupOutcome],
        step: int,
        on_complete: CompletionFn | None,
    ) -> None:
        while not self.cancel.cancelled:
            try:
                cnpj = queue.get_nowait()
            except asyncio.QueueEmpty:
                return

            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
            try:
                outcome = await self.resolve(cnpj)
            except StopRequestedError:
                return
            except Exception as exc:
                logger.exception("worker-%s failed on %s", worker_id, cnpj)
                outcome = LookupOutcome(ResultStatus.ERROR, f"worker-{worker_id}: exception {exc}", "worker")
            finally:
                self.in_flight -= 1

            results[cnpj] = outcome
            self.completed += 1
            if on_complete is not None:
                on_complete(cnpj, outcome)
            if self.completed % step == 0 or self.completed == self.total:
                self.reporter.log(
                    "round progress: %s/%s identifiers queried | in flight=%s",
                    self.completed,
                    self.total,
                    self.in_flight,
                )

    async def _heartbeat(self) -> None:
        while True:
            await asyncio.sleep(self.heartbeat_seconds)
            if self.cancel.cancelled or self.completed >= self.total:
                continue
            self.reporter.log(
                "round status: completed=%s/%s | in flight=%s | pending=%s",
                self.completed,
                self.total,
                self.in_flight,
                max(self.total - self.completed, 0),
            )
