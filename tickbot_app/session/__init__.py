"""
Trading session management.

A single session at a time: placements driven by signals, settlements
applied to an immutable session snapshot, stake progression and
take-profit / stop-loss enforcement.
"""

from .controller import TradingSessionController
from .models import SessionConfig, SessionStatus, TradingSession
from .progression import FlatStake, Martingale, StakeProgression, build_progression, round_stake

__all__ = [
    "TradingSessionController",
    "SessionConfig",
    "SessionStatus",
    "TradingSession",
    "StakeProgression",
    "FlatStake",
    "Martingale",
    "build_progression",
    "round_stake",
]
