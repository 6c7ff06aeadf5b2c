"""
Last-digit extraction and tick construction.

Digits are read from the price rendered at the venue's fixed display
precision, so a quote of 1234.5 on a two-decimal symbol has digit 0.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Optional

from .models import Direction, Tick
from .parsers import TickFrame
from ..utils.time import epoch_to_market_time

DEFAULT_DECIMALS = 2

# Display precision of synthetic indices; anything not listed uses 2 decimals
SYMBOL_DECIMALS: dict[str, int] = {
    "R_50": 4,
    "R_75": 4,
    "1HZ30V": 4,
    "1HZ50V": 4,
    "1HZ75V": 4,
    "1HZ90V": 4,
}


def get_symbol_decimals(symbol: str) -> int:
    """Display precision for a symbol."""
    return SYMBOL_DECIMALS.get(symbol, DEFAULT_DECIMALS)


def quantize_price(price: Decimal, decimals: int) -> Decimal:
    """Round a price to ``decimals`` places."""
    return price.quantize(Decimal(1).scaleb(-decimals), rounding=ROUND_HALF_UP)


def extract_last_digit(price: Decimal, decimals: int) -> int:
    """
    Return the last decimal digit of ``price`` at ``decimals`` precision.

    Non-positive or non-finite prices yield 0.
    """
    try:
        if not price.is_finite() or price <= 0:
            return 0
        rendered = str(quantize_price(price, decimals))
    except InvalidOperation:
        return 0
    return int(rendered[-1])


class TickBuilder:
    """Builds ticks from decoded frames, tracking the previous price per symbol."""

    def __init__(self, decimals_override: Optional[dict[str, int]] = None):
        self.decimals_override = decimals_override or {}
        self._last_price: dict[str, Decimal] = {}

    def decimals_for(self, frame: TickFrame) -> int:
        if frame.symbol in self.decimals_override:
            return self.decimals_override[frame.symbol]
        if frame.pip_size is not None:
            return frame.pip_size
        return get_symbol_decimals(frame.symbol)

    def build(self, frame: TickFrame) -> Tick:
        decimals = self.decimals_for(frame)
        price = quantize_price(frame.price, decimals)
        previous = self._last_price.get(frame.symbol)

        if previous is None:
            delta = Decimal(0)
            direction = Direction.FLAT
        else:
            delta = price - previous
            if delta > 0:
                direction = Direction.UP
            elif delta < 0:
                direction = Direction.DOWN
            else:
                direction = Direction.FLAT

        self._last_price[frame.symbol] = price

        return Tick(
            timestamp=epoch_to_market_time(frame.epoch),
            symbol=frame.symbol,
            price=price,
            digit=extract_last_digit(price, decimals),
            direction=direction,
            delta=delta,
        )

    def reset(self, symbol: Optional[str] = None) -> None:
        """Forget previous prices, for one symbol or all."""
        if symbol is None:
            self._last_price.clear()
        else:
            self._last_price.pop(symbol, None)
