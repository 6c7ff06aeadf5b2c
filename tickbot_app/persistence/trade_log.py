"""In-memory trade log with derived statistics."""

import threading
from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

import structlog

from ..errors import DuplicateTradeError, TradeLogError, UnknownTradeError
from ..models.trading import TradeResult

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class TradeLogEntry:
    """One contract placed by the trading session."""
    id: str                                   # Venue contract id
    timestamp: datetime
    symbol: str
    contract_type: str
    stake: Decimal
    prediction: Optional[int] = None
    entry_price: Optional[Decimal] = None
    exit_price: Optional[Decimal] = None      # Set on settlement
    result: TradeResult = TradeResult.PENDING
    profit_loss: Decimal = Decimal("0")
    duration: Optional[str] = None            # e.g. "5t"

    @property
    def is_settled(self) -> bool:
        return self.result is not TradeResult.PENDING

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "symbol": self.symbol,
            "contract_type": self.contract_type,
            "prediction": self.prediction,
            "stake": str(self.stake),
            "entry_price": str(self.entry_price) if self.entry_price is not None else None,
            "exit_price": str(self.exit_price) if self.exit_price is not None else None,
            "result": self.result.value,
            "profit_loss": str(self.profit_loss),
            "duration": self.duration,
        }


@dataclass(frozen=True)
class TradeLogStats:
    """Aggregates computed from the log on read."""
    total: int
    wins: int
    losses: int
    pending: int
    win_rate: float                           # Percent of settled trades, 0.0 when none
    total_profit_loss: Decimal


class TradeLog:
    """Ordered, in-memory record of every contract of the process lifetime."""

    def __init__(self):
        self._entries: dict[str, TradeLogEntry] = {}
        self._lock = threading.Lock()

    def record(self, entry: TradeLogEntry) -> TradeLogEntry:
        """
        Append a pending entry.

        Raises:
            DuplicateTradeError: If an entry with the same id exists
            TradeLogError: If the entry is already settled
        """
        if entry.is_settled:
            raise TradeLogError("Only pending trades can be recorded", trade_id=entry.id)

        with self._lock:
            if entry.id in self._entries:
                raise DuplicateTradeError(f"Trade {entry.id} already recorded", trade_id=entry.id)
            self._entries[entry.id] = entry

        logger.info(
            "Trade recorded",
            trade_id=entry.id,
            contract_type=entry.contract_type,
            stake=str(entry.stake),
            prediction=entry.prediction,
        )
        return entry

    def settle(self, trade_id: str, exit_price: Optional[Decimal], result: TradeResult,
               profit_loss: Decimal) -> TradeLogEntry:
        """
        Replace a pending entry with its settled version, keeping its position.

        Raises:
            UnknownTradeError: If no entry has this id
            TradeLogError: If the entry is already settled or result is PENDING
        """
        if result is TradeResult.PENDING:
            raise TradeLogError("Settlement result cannot be pending", trade_id=trade_id)

        with self._lock:
            entry = self._entries.get(trade_id)
            if entry is None:
                raise UnknownTradeError(f"Trade {trade_id} was never recorded", trade_id=trade_id)
            if entry.is_settled:
                raise TradeLogError(f"Trade {trade_id} already settled", trade_id=trade_id)

            settled = replace(entry, exit_price=exit_price, result=result, profit_loss=profit_loss)
            self._entries[trade_id] = settled

        logger.info(
            "Trade settled",
            trade_id=trade_id,
            result=result.value,
            profit_loss=str(profit_loss),
        )
        return settled

    def get(self, trade_id: str) -> Optional[TradeLogEntry]:
        with self._lock:
            return self._entries.get(trade_id)

    def entries(self) -> tuple[TradeLogEntry, ...]:
        """All entries in recording order."""
        with self._lock:
            return tuple(self._entries.values())

    def recent(self, limit: int = 20) -> tuple[TradeLogEntry, ...]:
        """Up to ``limit`` entries, newest first."""
        if limit <= 0:
            return ()
        with self._lock:
            ordered = list(self._entries.values())
        return tuple(reversed(ordered[-limit:]))

    def stats(self) -> TradeLogStats:
        with self._lock:
            entries = list(self._entries.values())

        wins = sum(1 for e in entries if e.result is TradeResult.WIN)
        losses = sum(1 for e in entries if e.result is TradeResult.LOSS)
        settled = wins + losses

        return TradeLogStats(
            total=len(entries),
            wins=wins,
            losses=losses,
            pending=len(entries) - settled,
            win_rate=(wins / settled * 100.0) if settled else 0.0,
            total_profit_loss=sum((e.profit_loss for e in entries), Decimal("0")),
        )

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
