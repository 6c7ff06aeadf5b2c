"""Stake progression policies"""

from abc import ABC, abstractmethod
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

import structlog

from ..models.trading import TradeResult
from .models import SessionConfig

logger = structlog.get_logger(__name__)

_CENT = Decimal("0.01")


def round_stake(value: Decimal) -> Decimal:
    """Round a stake to two decimals."""
    return Decimal(value).quantize(_CENT, rounding=ROUND_HALF_UP)


class StakeProgression(ABC):
    """Decides the next stake from the previous one and the last result."""

    def __init__(self, initial_stake: Decimal):
        self.initial_stake = round_stake(initial_stake)

    @abstractmethod
    def next_stake(self, previous_stake: Decimal, last_result: TradeResult) -> Decimal:
        ...


class FlatStake(StakeProgression):
    """Always stakes the initial amount."""

    def next_stake(self, previous_stake: Decimal, last_result: TradeResult) -> Decimal:
        return self.initial_stake


class Martingale(StakeProgression):
    """
    Multiply the stake after a loss, return to the initial stake after a win.

    When the multiplied stake would exceed ``max_stake`` it is either capped
    at ``max_stake`` (``on_ceiling="cap"``) or reset to the initial stake
    (``on_ceiling="reset"``).
    """

    def __init__(self, initial_stake: Decimal, multiplier: Decimal = Decimal("2"),
                 max_stake: Optional[Decimal] = None, on_ceiling: str = "cap"):
        super().__init__(initial_stake)
        if on_ceiling not in ("cap", "reset"):
            raise ValueError(f"on_ceiling must be 'cap' or 'reset', got {on_ceiling!r}")
        self.multiplier = Decimal(multiplier)
        self.max_stake = round_stake(max_stake) if max_stake is not None else None
        self.on_ceiling = on_ceiling

    def next_stake(self, previous_stake: Decimal, last_result: TradeResult) -> Decimal:
        if last_result is not TradeResult.LOSS:
            return self.initial_stake

        stake = round_stake(Decimal(previous_stake) * self.multiplier)

        if self.max_stake is not None and stake > self.max_stake:
            logger.info(
                "Stake ceiling reached",
                proposed_stake=str(stake),
                max_stake=str(self.max_stake),
                on_ceiling=self.on_ceiling,
            )
            return self.max_stake if self.on_ceiling == "cap" else self.initial_stake

        return stake


def build_progression(config: SessionConfig) -> StakeProgression:
    """Progression policy named by a session config."""
    if config.progression == "flat":
        return FlatStake(config.initial_stake)
    if config.progression == "martingale":
        return Martingale(
            config.initial_stake,
            multiplier=config.martingale_multiplier,
            max_stake=config.max_stake,
            on_ceiling=config.on_ceiling,
        )
    raise ValueError(f"Unknown progression: {config.progression!r}")
