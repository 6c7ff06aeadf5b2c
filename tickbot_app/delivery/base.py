"""Base classes for notification sinks.

A sink is the UI-facing collaborator: it receives immutable values (ticks,
digit snapshots, session snapshots, trade log entries, connection
transitions and balances) and renders them somewhere. A failing sink never
disturbs the dispatch loop.
"""

from abc import ABC, abstractmethod
from typing import Any

import structlog

from ..connection.models import ConnectionState
from ..data.models import Tick
from ..data.parsers import BalanceFrame
from ..models.metrics import DigitSnapshot
from ..persistence.trade_log import TradeLogEntry
from ..session.models import TradingSession
from ..utils.time import format_market_time


class BaseNotificationSink(ABC):
    """Base class for notification sinks."""

    def __init__(self, name: str):
        self.name = name
        self.logger = structlog.get_logger(f"tickbot.delivery.{name}")
        self._delivery_count = 0
        self._error_count = 0

    @abstractmethod
    def notify(self, kind: str, payload: dict[str, Any]) -> None:
        """
        Render one notification.

        Args:
            kind: Notification kind (tick, snapshot, session, trade, connection, balance)
            payload: JSON-compatible description of the value
        """

    def on_tick(self, tick: Tick) -> None:
        self._emit("tick", {
            "symbol": tick.symbol,
            "timestamp": format_market_time(tick.timestamp),
            "price": str(tick.price),
            "digit": tick.digit,
            "direction": tick.direction.value,
            "delta": str(tick.delta),
        })

    def on_snapshot(self, snapshot: DigitSnapshot) -> None:
        self._emit("snapshot", snapshot.to_dict())

    def on_session(self, session: TradingSession) -> None:
        self._emit("session", session.to_dict())

    def on_trade(self, entry: TradeLogEntry) -> None:
        self._emit("trade", entry.to_dict())

    def on_connection_state(self, old: ConnectionState, new: ConnectionState, reason: str) -> None:
        self._emit("connection", {"from": old.value, "to": new.value, "reason": reason})

    def on_balance(self, balance: BalanceFrame) -> None:
        self._emit("balance", {"amount": str(balance.amount), "currency": balance.currency})

    def _emit(self, kind: str, payload: dict[str, Any]) -> None:
        try:
            self.notify(kind, payload)
            self._delivery_count += 1
        except Exception:
            self._error_count += 1
            self.logger.exception("Notification failed", sink=self.name, kind=kind)

    def get_stats(self) -> dict[str, Any]:
        """Get delivery statistics."""
        total = self._delivery_count + self._error_count
        return {
            "name": self.name,
            "delivery_count": self._delivery_count,
            "error_count": self._error_count,
            "success_rate": self._delivery_count / total if total > 0 else 0.0,
        }

    def reset_stats(self) -> None:
        self._delivery_count = 0
        self._error_count = 0


class NullSink(BaseNotificationSink):
    """Discards every notification."""

    def __init__(self, name: str = "null"):
        super().__init__(name)

    def notify(self, kind: str, payload: dict[str, Any]) -> None:
        pass


class LoggingSink(BaseNotificationSink):
    """Writes notifications to the structured log. Ticks and snapshots go to DEBUG."""

    _QUIET_KINDS = frozenset({"tick", "snapshot"})

    def __init__(self, name: str = "log"):
        super().__init__(name)

    def notify(self, kind: str, payload: dict[str, Any]) -> None:
        log = self.logger.debug if kind in self._QUIET_KINDS else self.logger.info
        log("Notification", kind=kind, **payload)
