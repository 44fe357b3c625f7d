from __future__ import annotations

import argparse
import asyncio
import signal
from collections.abc import Sequence
from contextlib import suppress

from simples_worker.core.cancellation import CancellationToken
from simples_worker.core.config import get_settings
from simples_worker.core.telemetry import configure_worker_logging, setup_worker_telemetry
from simples_worker.jobs.workbook_job import run_workbook_job
from simples_worker.schemas.job import JobEvent
from simples_worker.services.job_events import JobReporter


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Fill the SIMPLES NACIONAL column of a CNPJ spreadsheet.")
    parser.add_argument("input_file", help="XLSX file with 'Criterio de pesquisa 1' and 'SIMPLES NACIONAL' columns")
    parser.add_argument("--delay", type=float, default=0.5, help="Base delay between requests per provider (s)")
    parser.add_argument("--workers", type=int, default=4, help="Concurrent lookups (1-32)")
    parser.add_argument("--reprocess-rounds", type=int, default=2, help="Extra rounds for failed CNPJs (0-10)")
    parser.add_argument("--max-rows", type=int, default=None, help="Only process the first N rows")
    return parser


def print_event(event: JobEvent) -> None:
    print(event.model_dump_json(), flush=True)


async def run_cli(args: argparse.Namespace) -> int:
    settings = get_settings()
    configure_worker_logging(settings)
    telemetry_runtime = setup_worker_telemetry(settings)
    cancel = CancellationToken(tick_seconds=settings.limiter_tick_seconds)

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        with suppress(NotImplementedError):
            loop.add_signal_handler(sig, cancel.cancel)

    try:
        result = await run_workbook_job(
            {
                "input_file": args.input_file,
                "delay_seconds": args.delay,
                "workers": args.workers,
                "reprocess_rounds": args.reprocess_rounds,
                "max_rows": args.max_rows,
            },
            reporter=JobReporter(print_event),
            cancel=cancel,
            settings=settings,
        )
    finally:
        telemetry_runtime.shutdown()
    return 0 if result is not None else 1


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    return asyncio.run(run_cli(args))


if __name__ == "__main__":
    raise SystemExit(main())
