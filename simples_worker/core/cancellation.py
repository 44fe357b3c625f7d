from __future__ import annotations

import asyncio
import threading
from collections.abc import Awaitable
from contextlib import suppress
from typing import TypeVar

from simples_worker.core.errors import StopRequestedError

T = TypeVar("T")


class CancellationToken:
    def __init__(self, *, tick_seconds: float = 0.25) -> None:
        self.tick_seconds = max(tick_seconds, 0.001)
        self._flag = threading.Event()

    @property
    def cancelled(self) -> bool:
        return self._flag.is_set()

    def cancel(self) -> None:
        self._flag.set()

    def raise_if_cancelled(self) -> None:
        if self._flag.is_set():
            raise StopRequestedError()

    async def sleep(self, seconds: float) -> None:
        remaining = max(seconds, 0.0)
        self.raise_if_cancelled()
        while remaining > 0:
            step = min(self.tick_seconds, remaining)
            await asyncio.sleep(step)
            remaining -= step
            self.raise_if_cancelled()

    async def wait(self) -> None:
        while not self._flag.is_set():
            await asyncio.sleep(self.tick_seconds)

    async def guard(self, awaitable: Awaitable[T]) -> T:
        """Await ``awaitable`` but abort it as soon as a stop is requested."""
        self.raise_if_cancelled()
        task = asyncio.ensure_future(awaitable)
        watcher = asyncio.ensure_future(self.wait())
        try:
            await asyncio.wait({task, watcher}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            watcher.cancel()
            if not task.done():
                task.cancel()
                with suppress(asyncio.CancelledError):
                    await task
        if task.cancelled():
            raise StopRequestedError()
        return task.result()
