from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path

import httpx
from opentelemetry import trace

from simples_worker.core.cancellation import CancellationToken
from simples_worker.core.config import Settings, get_settings
from simples_worker.core.errors import FatalInputError
from simples_worker.core.telemetry import annotate_job_result
from simples_worker.jobs.ledger import JobLedger, StatusWriter
from simples_worker.jobs.pool import WorkerPool
from simples_worker.jobs.resolver import SimplesResolver
from simples_worker.jobs.rounds import RoundOrchestrator
from simples_worker.schemas.job import JobOptions, JobRow, ProcessResult
from simples_worker.services.breaker import ProviderBreaker
from simples_worker.services.cache_store import CacheStore
from simples_worker.services.job_events import JobReporter
from simples_worker.services.provider_client import ProviderClient, ProviderSpec, default_providers
from simples_worker.services.rate_limiter import ProviderRateLimiter

tracer = trace.get_tracer(__name__)


def format_duration(seconds: float) -> str:
    total = max(0, int(seconds))
    hours, rem = divmod(total, 3600)
    minutes, secs = divmod(rem, 60)
    if hours:
        return f"{hours:02d}:{minutes:02d}:{secs:02d}"
    return f"{minutes:02d}:{secs:02d}"


async def execute_job(
    rows: Sequence[JobRow],
    options: JobOptions,
    *,
    cache_store: CacheStore,
    report_path: Path | str,
    reporter: JobReporter,
    cancel: CancellationToken,
    set_status: StatusWriter | None = None,
    output_file: str | None = None,
    settings: Settings | None = None,
    providers: Sequence[ProviderSpec] | None = None,
    client: httpx.AsyncClient | None = None,
) -> ProcessResult:
    """Resolve the Simples Nacional status of every row and persist cache and report.

    Rows are expected in sheet order with a non-empty raw identifier. Cache
    hits and invalid identifiers never reach the network.
    """
    settings = settings or get_settings()
    providers = list(providers) if providers is not None else default_providers(settings)
    selected = list(rows) if options.max_rows is None else list(rows)[: options.max_rows]
    max_rounds = options.max_rounds
    base_delay = max(options.delay_seconds, settings.min_delay_seconds)

    with tracer.start_as_current_span("job.execute") as span:
        span.set_attribute("job.rows", len(selected))
        span.set_attribute("job.workers", options.workers)

        reporter.log("parallel workers: %s", options.workers)
        reporter.log("rounds: %s (1 initial + %s retries)", max_rounds, options.reprocess_rounds)
        reporter.log("base delay per provider: %.2fs", base_delay)
        reporter.log("provider fallback: %s", " -> ".join(provider.name for provider in providers))

        ledger = JobLedger(
            selected,
            max_rounds=max_rounds,
            cache=cache_store.load(),
            reporter=reporter,
            set_status=set_status,
        )
        ledger.progress.start()

        uncached = len(ledger.uncached)
        reporter.log("rows selected for processing: %s", ledger.total)
        reporter.log(
            "unique valid CNPJs: %s | new for API: %s | invalid: %s",
            ledger.unique_valid,
            uncached,
            len(ledger.invalid_rows),
        )
        estimate = uncached * base_delay / max(1, min(options.workers, len(providers)))
        reporter.log("initial time estimate (approx): %s", format_duration(estimate))

        ledger.apply_validation()
        pending = ledger.apply_cache()

        if pending:
            limiter = ProviderRateLimiter(
                base_delay,
                rate_factors={provider.name: provider.rate_factor for provider in providers},
                floor_seconds=settings.min_delay_seconds,
                tick_seconds=settings.limiter_tick_seconds,
            )
            breaker = ProviderBreaker(
                failure_threshold=settings.provider_failure_threshold,
                cooldown_seconds=settings.provider_cooldown_seconds,
            )
            async with ProviderClient(
                limiter=limiter,
                breaker=breaker,
                cancel=cancel,
                client=client,
                timeout_seconds=settings.request_timeout_seconds,
                max_retries=settings.max_retries,
                backoff_base_seconds=settings.provider_backoff_base_seconds,
                backoff_max_seconds=settings.provider_backoff_max_seconds,
                user_agent=settings.user_agent,
            ) as provider_client:
                resolver = SimplesResolver(provider_client, providers)
                pool = WorkerPool(
                    resolver.resolve,
                    workers=options.workers,
                    cancel=cancel,
                    reporter=reporter,
                    heartbeat_seconds=settings.heartbeat_seconds,
                    progress_step=settings.round_progress_step,
                )
                orchestrator = RoundOrchestrator(
                    pool,
                    max_rounds=max_rounds,
                    cancel=cancel,
                    backoff_base_seconds=settings.round_backoff_base_seconds,
                    backoff_max_seconds=settings.round_backoff_max_seconds,
                )
                await orchestrator.run(pending, ledger)

        report_file = Path(report_path)
        try:
            saved = cache_store.save(ledger.cache)
            ledger.report.write(report_file)
        except OSError as exc:
            raise FatalInputError(f"could not write job outputs: {exc}") from exc

        reporter.log(
            "[SUMMARY] rows=%s/%s | success=%s | no_data=%s | error=%s | invalid=%s | cache=%s",
            ledger.processed,
            ledger.total,
            ledger.success,
            ledger.sem_dado,
            ledger.erro,
            ledger.invalid,
            ledger.cache_hits,
        )
        reporter.log("[SUMMARY] unique CNPJs resolved=%s/%s", len(ledger.outcomes), ledger.unique_valid)
        reporter.log("[SUMMARY] cache entries saved=%s", saved)
        reporter.log("[SUMMARY] detailed report: %s", report_file)

        if ledger.interrupted:
            reporter.log("processing interrupted. rows processed: %s/%s", ledger.processed, ledger.total)
        else:
            ledger.progress.complete()
            reporter.log("finished. rows processed: %s/%s", ledger.processed, ledger.total)

        result = ledger.result(output_file=output_file, report_file=str(report_file))
        annotate_job_result(span, result)
        return result
