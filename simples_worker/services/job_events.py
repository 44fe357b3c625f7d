from __future__ import annotations

import logging
from collections.abc import Callable

from simples_worker.schemas.job import DoneEvent, ErrorEvent, JobEvent, LogEvent, ProcessResult, ProgressEvent

EventSink = Callable[[JobEvent], None]

logger = logging.getLogger(__name__)


class JobReporter:
    def __init__(self, sink: EventSink | None = None, *, log: logging.Logger | None = None) -> None:
        self._sink = sink
        self._logger = log or logger

    def log(self, message: str, *args: object, level: int = logging.INFO) -> None:
        text = message % args if args else message
        self._logger.log(level, text)
        self._emit(LogEvent(message=text))

    def progress(self, done: int, total: int) -> None:
        self._emit(ProgressEvent(done=done, total=total))

    def done(self, result: ProcessResult) -> None:
        self._emit(DoneEvent(result=result))

    def error(self, message: str) -> None:
        self._logger.error("job failed: %s", message)
        self._emit(ErrorEvent(message=message))

    def _emit(self, event: JobEvent) -> None:
        if self._sink is not None:
            self._sink(event)
