from __future__ import annotations

from collections.abc import Callable, Sequence

from simples_worker.core.cnpj import sanitize_cnpj
from simples_worker.schemas.job import JobRow, LookupOutcome, ProcessResult, ResultStatus
from simples_worker.services.job_events import JobReporter
from simples_worker.services.progress import ProgressTracker
from simples_worker.services.report import ReportBuilder, ReportOrigin

StatusWriter = Callable[[int, str], None]

EXHAUSTED_DETAIL = "no response after reprocessing"
INTERRUPTED_DETAIL = "processing interrupted before completion"


class JobLedger:
    def __init__(
        self,
        rows: Sequence[JobRow],
        *,
        max_rounds: int,
        cache: dict[str, ResultStatus],
        reporter: JobReporter,
        set_status: StatusWriter | None = None,
    ) -> None:
        self.reporter = reporter
        self.cache = cache
        self.report = ReportBuilder()
        self.total = len(rows)
        self.progress = ProgressTracker(self.total, max_rounds, reporter.progress)
        self._set_status = set_status

        self.original_by_row: dict[int, str] = {}
        self.rows_by_cnpj: dict[str, list[int]] = {}
        self.invalid_rows: list[JobRow] = []
        for row in rows:
            self.original_by_row[row.row_number] = row.raw_cnpj
            cnpj = sanitize_cnpj(row.raw_cnpj)
            if cnpj is None:
                self.invalid_rows.append(row)
            else:
                self.rows_by_cnpj.setdefault(cnpj, []).append(row.row_number)

        self.outcomes: dict[str, LookupOutcome] = {}
        self.processed = 0
        self.success = 0
        self.sem_dado = 0
        self.erro = 0
        self.invalid = 0
        self.cache_hits = 0
        self.interrupted = False

    @property
    def unique_valid(self) -> int:
        return len(self.rows_by_cnpj)

    @property
    def uncached(self) -> list[str]:
        return sorted(cnpj for cnpj in self.rows_by_cnpj if cnpj not in self.cache)

    def rows_for(self, cnpj: str) -> list[int]:
        return self.rows_by_cnpj.get(cnpj, [])

    def apply_validation(self) -> None:
        for row in self.invalid_rows:
            self._write(row.row_number, ResultStatus.INVALID)
            self.report.add(
                row.row_number,
                row.raw_cnpj,
                "",
                ResultStatus.INVALID,
                ReportOrigin.VALIDATION,
                "VALIDACAO",
                "invalid CNPJ",
            )
            self.processed += 1
            self.invalid += 1
            self.reporter.log("[FAILURE] row %s | raw CNPJ=%r | result=%s", row.row_number, row.raw_cnpj, "CNPJ_INVALIDO")
            self.progress.advance(1)

    def apply_cache(self) -> list[str]:
        """Settle cache hits; returns the identifiers that still need a lookup."""
        pending: list[str] = []
        for cnpj, rows in self.rows_by_cnpj.items():
            cached = self.cache.get(cnpj)
            if cached is None or not cached.is_definitive:
                pending.append(cnpj)
                continue
            outcome = LookupOutcome(cached, "cached value", "CACHE")
            self._settle(cnpj, outcome, ReportOrigin.CACHE)
            self.success += len(rows)
            self.cache_hits += len(rows)
            self.reporter.log("[SUCCESS] CNPJ %s | result=%s | origin=CACHE | rows=%s", cnpj, cached.value, len(rows))
            self.progress.advance(len(rows))
        return sorted(pending)

    def record_round_progress(self, cnpj: str) -> None:
        self.progress.round_completed(cnpj, len(self.rows_for(cnpj)))

    def record_resolved(self, cnpj: str, outcome: LookupOutcome) -> None:
        rows = self.rows_for(cnpj)
        self._settle(cnpj, outcome, ReportOrigin.API)
        self.cache[cnpj] = outcome.status
        self.success += len(rows)
        self.progress.finalize(cnpj, len(rows))
        self.reporter.log(
            "[SUCCESS] CNPJ %s | result=%s | origin=%s | rows=%s | detail=%s",
            cnpj,
            outcome.status.value,
            outcome.provider,
            len(rows),
            outcome.detail,
        )

    def record_final_error(self, cnpj: str, outcome: LookupOutcome) -> None:
        """Settle an identifier that ran out of rounds.

        An error stays ERRO; any other non-definitive status is written as NÃO
        without caching and counted as no data.
        """
        rows = self.rows_for(cnpj)
        is_error = outcome.status is ResultStatus.ERROR
        final = LookupOutcome(ResultStatus.ERROR if is_error else ResultStatus.NO, outcome.detail, outcome.provider)
        self._settle(cnpj, final, ReportOrigin.API)
        if is_error:
            self.erro += len(rows)
        else:
            self.sem_dado += len(rows)
        self.progress.finalize(cnpj, len(rows))
        self.reporter.log(
            "[%s] CNPJ %s | result=%s | origin=%s | rows=%s | detail=%s",
            "FAILURE" if is_error else "WARNING",
            cnpj,
            final.status.value,
            outcome.provider,
            len(rows),
            outcome.detail,
        )

    def record_exhausted(self, cnpj: str) -> None:
        outcome = LookupOutcome(ResultStatus.ERROR, EXHAUSTED_DETAIL, "fallback")
        self._settle(cnpj, outcome, ReportOrigin.FINAL_REPROCESS)
        self._count_error(cnpj)
        self.reporter.log("[FAILURE] CNPJ %s | result=ERRO | detail=%s", cnpj, EXHAUSTED_DETAIL)

    def record_pending(self, cnpj: str) -> None:
        # report-only: the spreadsheet cell keeps whatever it had
        for row in self.rows_for(cnpj):
            self.report.add(
                row,
                self.original_by_row.get(row, ""),
                cnpj,
                ResultStatus.PENDING,
                ReportOrigin.INTERRUPTED,
                "NAO_CONCLUIDO",
                INTERRUPTED_DETAIL,
            )

    def result(self, *, output_file: str | None = None, report_file: str | None = None) -> ProcessResult:
        return ProcessResult(
            output_file=output_file,
            report_file=report_file,
            processed=self.processed,
            total=self.total,
            success=self.success,
            failed=self.invalid + self.erro + self.sem_dado,
            sem_dado=self.sem_dado,
            erro=self.erro,
            invalid=self.invalid,
            interrupted=self.interrupted,
        )

    def _settle(self, cnpj: str, outcome: LookupOutcome, origin: ReportOrigin) -> None:
        rows = self.rows_for(cnpj)
        for row in rows:
            self._write(row, outcome.status)
            self.report.add(
                row,
                self.original_by_row.get(row, ""),
                cnpj,
                outcome.status,
                origin,
                outcome.provider,
                outcome.detail,
            )
        self.processed += len(rows)
        self.outcomes[cnpj] = outcome

    def _count_error(self, cnpj: str) -> None:
        rows = self.rows_for(cnpj)
        self.erro += len(rows)
        self.progress.finalize(cnpj, len(rows))

    def _write(self, row: int, status: ResultStatus) -> None:
        if self._set_status is not None:
            self._set_status(row, status.value)
