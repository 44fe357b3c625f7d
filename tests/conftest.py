from __future__ import annotations

from typing import Any

import pytest

from simples_worker.core.cancellation import CancellationToken
from simples_worker.core.config import Settings
from simples_worker.schemas.job import DoneEvent, ErrorEvent, JobEvent, JobRow, LogEvent, ProgressEvent

PROVIDER_HOSTS = {
    "www.receitaws.com.br": "receitaws",
    "minhareceita.org": "minhareceita",
    "brasilapi.com.br": "brasilapi",
    "publica.cnpj.ws": "cnpjws",
}


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class EventRecorder:
    def __init__(self) -> None:
        self.events: list[JobEvent] = []

    def __call__(self, event: JobEvent) -> None:
        self.events.append(event)

    @property
    def messages(self) -> list[str]:
        return [event.message for event in self.events if isinstance(event, LogEvent)]

    @property
    def progress(self) -> list[tuple[int, int]]:
        return [(event.done, event.total) for event in self.events if isinstance(event, ProgressEvent)]

    @property
    def terminal(self) -> list[Any]:
        return [event for event in self.events if isinstance(event, (DoneEvent, ErrorEvent))]


def make_rows(raw_values: list[str]) -> list[JobRow]:
    return [JobRow(row_number=index + 2, raw_cnpj=raw) for index, raw in enumerate(raw_values)]


def provider_of(url_host: str) -> str:
    return PROVIDER_HOSTS[url_host]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def recorder() -> EventRecorder:
    return EventRecorder()


@pytest.fixture
def cancel() -> CancellationToken:
    return CancellationToken(tick_seconds=0.01)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        otel_enabled=False,
        min_delay_seconds=0.0,
        limiter_tick_seconds=0.001,
        provider_backoff_base_seconds=0.0,
        round_backoff_base_seconds=0.0,
        heartbeat_seconds=0.05,
    )
