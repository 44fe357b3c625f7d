from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable, Mapping

from pyrate_limiter import AbstractClock, Limiter, Rate

from simples_worker.core.cancellation import CancellationToken


class MillisecondClock(AbstractClock):
    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock

    def now(self) -> int:
        return round(self._clock() * 1000)


class ProviderRateLimiter:
    def __init__(
        self,
        base_delay_seconds: float,
        *,
        rate_factors: Mapping[str, float],
        floor_seconds: float = 0.1,
        tick_seconds: float = 0.25,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.floor_seconds = floor_seconds
        self.base_delay_seconds = max(base_delay_seconds, floor_seconds)
        self.tick_seconds = tick_seconds
        self._rate_factors = dict(rate_factors)
        self._clock = clock
        self._sleep = sleep
        self._limiter_clock = MillisecondClock(clock)
        self._limiters: dict[str, Limiter | None] = {}
        self._last_acquired: dict[str, float] = {}

    def interval_for(self, provider: str) -> float:
        factor = self._rate_factors.get(provider, 1.0)
        return max(self.base_delay_seconds * factor, self.floor_seconds)

    def limiter_for(self, provider: str) -> Limiter | None:
        if provider not in self._limiters:
            interval_ms = round(self.interval_for(provider) * 1000)
            # sub-millisecond spacing is no limit at all
            self._limiters[provider] = (
                Limiter([Rate(1, interval_ms)], clock=self._limiter_clock, raise_when_fail=False, max_delay=None)
                if interval_ms >= 1
                else None
            )
        return self._limiters[provider]

    async def wait_turn(self, provider: str, *, cancel: CancellationToken | None = None) -> None:
        limiter = self.limiter_for(provider)
        interval = self.interval_for(provider)
        while True:
            if cancel is not None:
                cancel.raise_if_cancelled()
            if limiter is None or limiter.try_acquire(provider):
                self._last_acquired[provider] = self._clock()
                return
            # the window is inclusive at its edge, so aim one millisecond past it
            last = self._last_acquired.get(provider, self._clock())
            remaining = last + interval - self._clock() + 0.001
            await self._sleep(min(max(remaining, 0.001), self.tick_seconds))
