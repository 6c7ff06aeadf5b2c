"""
Signal generation.

Strategies turn the digit window into contract proposals for the trading
session controller.
"""

from .strategies import DiffersStrategy, DigitStrategy, EvenOddStrategy, OverUnderStrategy, build_strategy

__all__ = [
    "DigitStrategy",
    "EvenOddStrategy",
    "OverUnderStrategy",
    "DiffersStrategy",
    "build_strategy",
]
