from __future__ import annotations

from collections.abc import Callable
from fractions import Fraction


class ProgressTracker:
    """Weighted row progress for identifiers that may span several rounds.

    Each identifier is worth its row count. A round completion credits
    ``rows / max_rounds`` once per round; finishing the identifier credits
    whatever round-weight is left, so every identifier contributes its full
    weight exactly once. Events are emitted only when the integer value grows.
    """

    def __init__(self, total: int, max_rounds: int, emit: Callable[[int, int], None]) -> None:
        self.total = max(0, total)
        self.max_rounds = max(1, max_rounds)
        self._emit = emit
        self._value = Fraction(0)
        self._reported = 0
        self._credited_rounds: dict[str, int] = {}
        self._round_seen: set[str] = set()

    @property
    def done(self) -> int:
        return self._reported

    def start(self) -> None:
        self._emit(0, self.total)

    def advance(self, rows: int) -> None:
        self._value += rows
        self._publish()

    def begin_round(self) -> None:
        self._round_seen.clear()

    def round_completed(self, key: str, rows: int) -> None:
        if key in self._round_seen or rows <= 0:
            return
        self._round_seen.add(key)
        credited = self._credited_rounds.get(key, 0)
        if credited >= self.max_rounds:
            return
        self._credited_rounds[key] = credited + 1
        self._value += Fraction(rows, self.max_rounds)
        self._publish()

    def finalize(self, key: str, rows: int) -> None:
        credited = self._credited_rounds.get(key, 0)
        remaining = self.max_rounds - credited
        if remaining <= 0 or rows <= 0:
            return
        self._credited_rounds[key] = self.max_rounds
        self._value += Fraction(rows * remaining, self.max_rounds)
        self._publish()

    def complete(self) -> None:
        self._value = Fraction(self.total)
        self._publish()

    def _publish(self) -> None:
        done = max(0, min(self.total, int(self._value)))
        if done <= self._reported:
            return
        self._reported = done
        self._emit(done, self.total)
