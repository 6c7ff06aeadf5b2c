"""
Time semantics utilities for venue vs wall-clock time handling.

Tick timestamps come from the venue epoch; wall-clock time is only used
when a frame carries none, and for latency monitoring.
"""

from datetime import datetime, timezone
from typing import Optional


def now_utc() -> datetime:
    """Current wall-clock time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def epoch_to_market_time(epoch: Optional[float]) -> datetime:
    """
    Convert a venue epoch (seconds) to a UTC datetime.

    Args:
        epoch: Seconds since the Unix epoch, as sent on tick frames

    Returns:
        UTC datetime, falling back to wall-clock time if epoch is missing
    """
    if epoch is None:
        return now_utc()
    return datetime.fromtimestamp(float(epoch), tz=timezone.utc)


def calculate_latency(market_ts: datetime, wall_clock_ts: Optional[datetime] = None) -> float:
    """
    Calculate latency between venue timestamp and wall-clock receive time.

    Args:
        market_ts: Venue timestamp from the tick frame
        wall_clock_ts: Wall-clock receive time, defaults to now

    Returns:
        Latency in seconds (positive means venue time is older)
    """
    if wall_clock_ts is None:
        wall_clock_ts = now_utc()

    return (wall_clock_ts - market_ts).total_seconds()


def format_market_time(market_ts: datetime) -> str:
    """Format a timestamp as ISO8601 for logs and sink payloads."""
    return market_ts.isoformat()
