import logging

import pytest
from conftest import EventRecorder
from pydantic import TypeAdapter

from simples_worker.schemas.job import JobEvent, JobOptions, ProcessResult
from simples_worker.services.job_events import JobReporter


def test_log_formats_message_and_emits_event(recorder: EventRecorder, caplog: pytest.LogCaptureFixture) -> None:
    reporter = JobReporter(recorder)

    with caplog.at_level(logging.INFO, logger="simples_worker.services.job_events"):
        reporter.log("rows selected for processing: %s", 3)

    assert recorder.messages == ["rows selected for processing: 3"]
    assert "rows selected for processing: 3" in caplog.text


def test_progress_and_error_events(recorder: EventRecorder) -> None:
    reporter = JobReporter(recorder)

    reporter.progress(1, 4)
    reporter.error("input file not found: x.xlsx")

    assert recorder.progress == [(1, 4)]
    assert [event.type for event in recorder.events] == ["progress", "error"]


def test_events_serialize_with_type_discriminator() -> None:
    adapter = TypeAdapter(JobEvent)
    result = ProcessResult(
        processed=1, total=1, success=1, failed=0, sem_dado=0, erro=0, invalid=0, interrupted=False
    )

    event = adapter.validate_python({"type": "done", "result": result.model_dump()})

    assert event.type == "done"
    assert adapter.validate_json('{"type": "progress", "done": 2, "total": 5}').done == 2


def test_job_options_bounds() -> None:
    assert JobOptions(delay_seconds=0.5, workers=32, reprocess_rounds=10).max_rounds == 11
    with pytest.raises(ValueError):
        JobOptions(delay_seconds=0, workers=4, reprocess_rounds=2)
    with pytest.raises(ValueError):
        JobOptions(delay_seconds=0.5, workers=33, reprocess_rounds=2)
    with pytest.raises(ValueError):
        JobOptions(delay_seconds=0.5, workers=4, reprocess_rounds=11)
