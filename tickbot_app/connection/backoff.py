"""Bounded exponential reconnect backoff with jitter"""

import random
from typing import Optional

from ..config.defaults import BackoffParams


class ExponentialBackoff:
    """
    Delay schedule for reconnect attempts.

    The n-th delay (0-based) is ``base * multiplier ** n`` capped at
    ``cap_seconds``, then scaled by a uniform factor in
    ``[1 - jitter_ratio, 1 + jitter_ratio]`` and capped again.
    """

    def __init__(self, params: Optional[BackoffParams] = None, rng: Optional[random.Random] = None):
        self.params = params or BackoffParams()
        self._rng = rng or random.Random()
        self._attempts = 0

    @property
    def attempts(self) -> int:
        return self._attempts

    def exhausted(self) -> bool:
        max_retries = self.params.max_retries
        return max_retries is not None and self._attempts >= max_retries

    def next_delay(self) -> Optional[float]:
        """
        Delay before the next attempt, or None once the retry bound is spent.
        """
        if self.exhausted():
            return None

        p = self.params
        raw = min(p.cap_seconds, p.base_seconds * (p.multiplier ** self._attempts))
        self._attempts += 1

        if p.jitter_ratio > 0:
            raw *= 1.0 + self._rng.uniform(-p.jitter_ratio, p.jitter_ratio)

        return max(0.0, min(p.cap_seconds, raw))

    def reset(self) -> None:
        self._attempts = 0
