from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass


@dataclass(slots=True)
class ProviderState:
    consecutive_failures: int = 0
    cooldown_until: float | None = None


class ProviderBreaker:
    def __init__(
        self,
        *,
        failure_threshold: int = 4,
        cooldown_seconds: float = 45.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.failure_threshold = max(1, failure_threshold)
        self.cooldown_seconds = cooldown_seconds
        self._clock = clock
        self._states: dict[str, ProviderState] = {}

    def state(self, provider: str) -> ProviderState:
        return self._states.setdefault(provider, ProviderState())

    def cooldown_remaining(self, provider: str) -> float:
        cooldown_until = self.state(provider).cooldown_until
        if cooldown_until is None:
            return 0.0
        return max(0.0, cooldown_until - self._clock())

    def record_success(self, provider: str) -> None:
        state = self.state(provider)
        state.consecutive_failures = 0
        state.cooldown_until = None

    def record_failure(self, provider: str) -> float | None:
        """Count one failure; returns the cooldown length when the breaker trips."""
        state = self.state(provider)
        state.consecutive_failures += 1
        if state.consecutive_failures < self.failure_threshold:
            return None
        state.consecutive_failures = 0
        state.cooldown_until = self._clock() + self.cooldown_seconds
        return self.cooldown_seconds
