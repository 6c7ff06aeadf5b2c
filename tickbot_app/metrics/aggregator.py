"""Rolling digit statistics over a fixed-capacity tick window"""

from collections import deque
from typing import Optional

import structlog

from ..data.models import Tick
from ..models.metrics import DigitSnapshot

logger = structlog.get_logger(__name__)


class DigitStatsAggregator:
    """
    Fixed-capacity ring buffer of ticks with incremental digit counts.

    Each push updates counts in O(1): the incoming digit is added and, once the
    window is full, the evicted tick's digit is subtracted.
    """

    def __init__(self, capacity: int = 100):
        if capacity <= 0:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self.capacity = capacity
        self._ticks: deque[Tick] = deque()
        self._counts = [0] * 10
        self._low_sum = 0

    def push(self, tick: Tick) -> Optional[Tick]:
        """
        Append a tick, evicting the oldest when full.

        Returns:
            The evicted tick, or None when the window had room
        """
        evicted = None
        if len(self._ticks) == self.capacity:
            evicted = self._ticks.popleft()
            self._counts[evicted.digit] -= 1
            if evicted.digit < 5:
                self._low_sum -= 1

        self._ticks.append(tick)
        self._counts[tick.digit] += 1
        if tick.digit < 5:
            self._low_sum += 1

        return evicted

    def snapshot(self) -> DigitSnapshot:
        total = len(self._ticks)
        return DigitSnapshot(
            counts=tuple(self._counts),
            total=total,
            capacity=self.capacity,
            low_sum=self._low_sum,
            high_sum=total - self._low_sum,
        )

    def recent_ticks(self) -> tuple[Tick, ...]:
        """Ticks in the window, oldest first"""
        return tuple(self._ticks)

    def last_digits(self, n: int) -> tuple[int, ...]:
        """Up to ``n`` most recent digits, oldest first"""
        if n <= 0:
            return ()
        return tuple(t.digit for t in list(self._ticks)[-n:])

    def clear(self) -> None:
        self._ticks.clear()
        self._counts = [0] * 10
        self._low_sum = 0
        logger.debug("Digit window cleared", capacity=self.capacity)

    def __len__(self) -> int:
        return len(self._ticks)
