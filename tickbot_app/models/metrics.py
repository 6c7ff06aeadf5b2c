"""Data models for digit statistics"""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class DigitSnapshot:
    """Digit distribution over the current rolling window"""
    counts: tuple[int, ...]            # Index = digit 0-9
    total: int                         # Ticks currently held
    capacity: int
    low_sum: int                       # Digits 0-4
    high_sum: int                      # Digits 5-9

    def percentage(self, digit: int) -> float:
        """Share of ``digit`` in the window, 0.0 for an empty window"""
        if self.total == 0:
            return 0.0
        return self.counts[digit] / self.total * 100.0

    @property
    def percentages(self) -> tuple[float, ...]:
        return tuple(self.percentage(d) for d in range(10))

    @property
    def low_pct(self) -> float:
        return self.low_sum / self.total * 100.0 if self.total else 0.0

    @property
    def high_pct(self) -> float:
        return self.high_sum / self.total * 100.0 if self.total else 0.0

    @property
    def even_count(self) -> int:
        return sum(self.counts[d] for d in range(0, 10, 2))

    @property
    def odd_count(self) -> int:
        return sum(self.counts[d] for d in range(1, 10, 2))

    @property
    def even_pct(self) -> float:
        return self.even_count / self.total * 100.0 if self.total else 0.0

    @property
    def odd_pct(self) -> float:
        return self.odd_count / self.total * 100.0 if self.total else 0.0

    @property
    def most_frequent(self) -> Optional[int]:
        """Most frequent digit (lowest wins ties), None when empty"""
        if self.total == 0:
            return None
        return max(range(10), key=lambda d: (self.counts[d], -d))

    @property
    def least_frequent(self) -> Optional[int]:
        """Least frequent digit (lowest wins ties), None when empty"""
        if self.total == 0:
            return None
        return min(range(10), key=lambda d: (self.counts[d], d))

    def is_full(self) -> bool:
        return self.total >= self.capacity

    def to_dict(self) -> dict:
        return {
            "counts": list(self.counts),
            "total": self.total,
            "capacity": self.capacity,
            "low_sum": self.low_sum,
            "high_sum": self.high_sum,
            "low_pct": round(self.low_pct, 2),
            "high_pct": round(self.high_pct, 2),
            "even_pct": round(self.even_pct, 2),
            "odd_pct": round(self.odd_pct, 2),
            "most_frequent": self.most_frequent,
            "least_frequent": self.least_frequent,
        }
