from __future__ import annotations

from collections.abc import Iterable

from opentelemetry import trace

from simples_worker.core.cancellation import CancellationToken
from simples_worker.core.errors import StopRequestedError
from simples_worker.jobs.ledger import JobLedger
from simples_worker.jobs.pool import WorkerPool

tracer = trace.get_tracer(__name__)


class RoundOrchestrator:
    """Runs the worker pool round after round over the identifiers still pending.

    Definitive answers settle at once. Soft errors go back to the pending set
    while rounds remain; on the last round (or once a stop is requested) they
    settle as ERRO. Identifiers left over after a stop are reported PENDENTE.
    """

    def __init__(
        self,
        pool: WorkerPool,
        *,
        max_rounds: int,
        cancel: CancellationToken,
        backoff_base_seconds: float = 2.0,
        backoff_max_seconds: float = 8.0,
    ) -> None:
        self.pool = pool
        self.max_rounds = max(1, max_rounds)
        self.cancel = cancel
        self.backoff_base_seconds = backoff_base_seconds
        self.backoff_max_seconds = backoff_max_seconds

    def wait_before(self, round_index: int) -> float:
        return min(self.backoff_base_seconds * round_index, self.backoff_max_seconds)

    async def run(self, pending: Iterable[str], ledger: JobLedger) -> set[str]:
        reporter = ledger.reporter
        remaining = set(pending)
        interrupted = False

        for round_index in range(1, self.max_rounds + 1):
            if not remaining:
                break
            if self.cancel.cancelled:
                interrupted = True
                reporter.log("[STOPPING] stop requested at %s/%s rows", ledger.processed, ledger.total)
                break

            round_list = sorted(remaining)
            reporter.log("[ROUND] %s/%s | querying %s CNPJs", round_index, self.max_rounds, len(round_list))
            ledger.progress.begin_round()
            with tracer.start_as_current_span("job.round") as span:
                span.set_attribute("round.index", round_index)
                span.set_attribute("round.pending", len(round_list))
                results = await self.pool.run(
                    round_list,
                    on_complete=lambda cnpj, _outcome: ledger.record_round_progress(cnpj),
                )

            next_pending: set[str] = set()
            resolved = reprocess = finalized = 0
            for cnpj in round_list:
                outcome = results.get(cnpj)
                if outcome is None:
                    next_pending.add(cnpj)
                    reprocess += 1
                    continue

                if outcome.status.is_definitive:
                    ledger.record_resolved(cnpj, outcome)
                    resolved += 1
                    continue

                if round_index < self.max_rounds and not self.cancel.cancelled:
                    next_pending.add(cnpj)
                    reprocess += 1
                    reporter.log(
                        "[RETRY] CNPJ %s | attempt=%s/%s | status=%s | detail=%s",
                        cnpj,
                        round_index,
                        self.max_rounds,
                        outcome.status.value,
                        outcome.detail,
                    )
                    continue

                ledger.record_final_error(cnpj, outcome)
                finalized += 1

            remaining = next_pending

            if self.cancel.cancelled:
                interrupted = True
                reporter.log(
                    "[STOPPING] stop requested at %s/%s rows; keeping partial progress of this round",
                    ledger.processed,
                    ledger.total,
                )
                break

            reporter.log(
                "[ROUND_SUMMARY] %s/%s | resolved=%s | reprocess=%s | finalized_with_error=%s",
                round_index,
                self.max_rounds,
                resolved,
                reprocess,
                finalized,
            )

            if remaining and round_index < self.max_rounds:
                wait_seconds = self.wait_before(round_index)
                reporter.log("[RETRY] waiting %ss before next round (%s pending)", f"{wait_seconds:g}", len(remaining))
                try:
                    await self.cancel.sleep(wait_seconds)
                except StopRequestedError:
                    interrupted = True
                    break

        if interrupted:
            for cnpj in sorted(remaining):
                ledger.record_pending(cnpj)
        else:
            for cnpj in sorted(remaining):
                ledger.record_exhausted(cnpj)
            remaining = set()

        ledger.interrupted = interrupted
        return remaining
