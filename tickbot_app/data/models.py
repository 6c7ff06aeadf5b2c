"""
Canonical data models for normalized market data.

This module defines immutable data structures that represent clean, validated
ticks after decoding from the venue's wire format.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum


class Direction(str, Enum):
    """Price move relative to the previous tick of the same symbol."""
    UP = "up"
    DOWN = "down"
    FLAT = "flat"


@dataclass(frozen=True)
class Tick:
    """One timestamped price update with its last significant digit."""
    timestamp: datetime     # UTC venue timestamp
    symbol: str
    price: Decimal          # Quantized to the symbol's display precision
    digit: int              # Last decimal digit at display precision, 0-9
    direction: Direction
    delta: Decimal          # price - previous price, 0 for the first tick

    @property
    def is_even(self) -> bool:
        return self.digit % 2 == 0
