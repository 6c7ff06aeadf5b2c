"""Digit statistics over the rolling tick window"""

from .aggregator import DigitStatsAggregator

__all__ = [
    "DigitStatsAggregator",
]
