from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Any

import httpx
from pydantic import ValidationError

from simples_worker.core.cancellation import CancellationToken
from simples_worker.core.config import Settings, get_settings
from simples_worker.core.errors import FatalInputError
from simples_worker.jobs.executor import execute_job
from simples_worker.schemas.job import JobStartRequest, ProcessResult
from simples_worker.services.cache_store import CacheStore
from simples_worker.services.job_events import JobReporter
from simples_worker.services.report import report_path_for
from simples_worker.services.workbook import WorkbookSession, build_output_path

logger = logging.getLogger(__name__)


def validate_request(payload: JobStartRequest | dict[str, Any]) -> JobStartRequest:
    try:
        request = payload if isinstance(payload, JobStartRequest) else JobStartRequest.model_validate(payload)
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}" for error in exc.errors()
        )
        raise FatalInputError(f"invalid job request: {problems}") from exc

    source = Path(request.input_file)
    if source.suffix.lower() != ".xlsx":
        raise FatalInputError("select a valid .xlsx file")
    if not source.is_file():
        raise FatalInputError(f"input file not found: {source}")
    return request


async def run_workbook_job(
    payload: JobStartRequest | dict[str, Any],
    *,
    reporter: JobReporter,
    cancel: CancellationToken,
    settings: Settings | None = None,
    client: httpx.AsyncClient | None = None,
    now: datetime | None = None,
) -> ProcessResult | None:
    """Run one spreadsheet job end to end; ends with exactly one done or error event."""
    settings = settings or get_settings()
    try:
        request = validate_request(payload)
        source = Path(request.input_file)
        output_path = build_output_path(source, settings.output_infix, now=now)

        reporter.log("opening workbook: %s", source)
        session = WorkbookSession.open(
            source,
            cnpj_header=settings.cnpj_header,
            result_header=settings.result_header,
        )
        reporter.log("selected sheet: %s", session.sheet_name)

        result = await execute_job(
            session.rows(request.max_rows),
            request,
            cache_store=CacheStore(source.with_name(settings.cache_file_name)),
            report_path=report_path_for(output_path, settings.report_suffix),
            reporter=reporter,
            cancel=cancel,
            set_status=session.set_status,
            output_file=str(output_path),
            settings=settings,
            client=client,
        )

        reporter.log("saving output file: %s", output_path)
        session.save(output_path)
    except FatalInputError as exc:
        reporter.error(str(exc))
        return None
    except Exception as exc:  # pragma: no cover - last-resort job boundary
        logger.exception("workbook job crashed")
        reporter.error(str(exc) or type(exc).__name__)
        return None

    reporter.done(result)
    return result
