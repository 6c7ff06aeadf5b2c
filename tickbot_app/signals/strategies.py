"""
Digit strategies.

Each strategy looks at the newest tick and the current digit window and
either proposes one contract or stays silent. Thresholds are plain
percentages of the window; nothing here claims an edge.
"""

from abc import ABC, abstractmethod
from typing import Optional

from ..config.defaults import StrategyParams
from ..data.models import Tick
from ..models.metrics import DigitSnapshot
from ..models.trading import Signal


class DigitStrategy(ABC):
    """Base class for strategies driven by the digit window."""

    name = "base"

    def __init__(self, min_ticks: int = 20):
        self.min_ticks = min_ticks

    def evaluate(self, tick: Tick, snapshot: DigitSnapshot) -> Optional[Signal]:
        """Propose a contract for ``tick`` or return None."""
        if snapshot.total < self.min_ticks:
            return None
        return self._evaluate(tick, snapshot)

    @abstractmethod
    def _evaluate(self, tick: Tick, snapshot: DigitSnapshot) -> Optional[Signal]:
        ...


class EvenOddStrategy(DigitStrategy):
    """Follow the parity that holds at least ``bias_pct`` of the window."""

    name = "even_odd"

    def __init__(self, min_ticks: int = 20, bias_pct: float = 55.0):
        super().__init__(min_ticks)
        self.bias_pct = bias_pct

    def _evaluate(self, tick: Tick, snapshot: DigitSnapshot) -> Optional[Signal]:
        if snapshot.even_pct >= self.bias_pct:
            return Signal("DIGITEVEN", entry_price=tick.price, symbol=tick.symbol,
                          reason=f"even {snapshot.even_pct:.1f}%")
        if snapshot.odd_pct >= self.bias_pct:
            return Signal("DIGITODD", entry_price=tick.price, symbol=tick.symbol,
                          reason=f"odd {snapshot.odd_pct:.1f}%")
        return None


class OverUnderStrategy(DigitStrategy):
    """
    Follow the side of ``barrier`` that holds at least ``bias_pct`` of the window.

    Digits above the barrier favour DIGITOVER with the barrier as prediction;
    digits at or below it favour DIGITUNDER with ``barrier + 1``.
    """

    name = "over_under"

    def __init__(self, min_ticks: int = 20, bias_pct: float = 55.0, barrier: int = 4):
        super().__init__(min_ticks)
        if not 0 <= barrier <= 8:
            raise ValueError(f"barrier must be between 0 and 8, got {barrier}")
        self.bias_pct = bias_pct
        self.barrier = barrier

    def _evaluate(self, tick: Tick, snapshot: DigitSnapshot) -> Optional[Signal]:
        over = sum(snapshot.counts[self.barrier + 1:])
        over_pct = over / snapshot.total * 100.0
        under_pct = 100.0 - over_pct

        if over_pct >= self.bias_pct:
            return Signal("DIGITOVER", prediction=self.barrier, entry_price=tick.price,
                          symbol=tick.symbol, reason=f"over {over_pct:.1f}%")
        if under_pct >= self.bias_pct:
            return Signal("DIGITUNDER", prediction=self.barrier + 1, entry_price=tick.price,
                          symbol=tick.symbol, reason=f"under {under_pct:.1f}%")
        return None


class DiffersStrategy(DigitStrategy):
    """Bet that the next digit differs from the rarest digit in the window."""

    name = "differs"

    def __init__(self, min_ticks: int = 20, max_pct: float = 5.0):
        super().__init__(min_ticks)
        self.max_pct = max_pct

    def _evaluate(self, tick: Tick, snapshot: DigitSnapshot) -> Optional[Signal]:
        digit = snapshot.least_frequent
        if digit is None:
            return None

        pct = snapshot.percentage(digit)
        if pct > self.max_pct:
            return None

        return Signal("DIGITDIFF", prediction=digit, entry_price=tick.price,
                      symbol=tick.symbol, reason=f"digit {digit} at {pct:.1f}%")


def build_strategy(params: StrategyParams) -> DigitStrategy:
    """Strategy named by the configuration."""
    if params.name == "even_odd":
        return EvenOddStrategy(params.min_ticks, params.bias_pct)
    if params.name == "over_under":
        return OverUnderStrategy(params.min_ticks, params.bias_pct, params.barrier)
    if params.name == "differs":
        return DiffersStrategy(params.min_ticks, params.differs_max_pct)
    raise ValueError(f"Unknown strategy: {params.name!r}")
