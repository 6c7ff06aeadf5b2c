"""Trading contracts shared by strategies, the session controller and the trade log"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Optional


class TradeResult(str, Enum):
    """Outcome of one contract"""
    WIN = "win"
    LOSS = "loss"
    PENDING = "pending"


# Contract types whose payout depends on a predicted digit
BARRIER_CONTRACTS = frozenset({"DIGITMATCH", "DIGITDIFF", "DIGITOVER", "DIGITUNDER"})


@dataclass(frozen=True)
class Signal:
    """Request to open one contract"""
    contract_type: str
    prediction: Optional[int] = None
    entry_price: Optional[Decimal] = None
    symbol: Optional[str] = None
    reason: str = ""

    @property
    def requires_barrier(self) -> bool:
        return self.contract_type in BARRIER_CONTRACTS


@dataclass(frozen=True)
class SettlementOutcome:
    """Final result of a contract as reported by the venue"""
    contract_id: str
    profit: Decimal                    # Signed
    won: bool
    exit_price: Optional[Decimal] = None

    @property
    def result(self) -> TradeResult:
        return TradeResult.WIN if self.won else TradeResult.LOSS

    @classmethod
    def win(cls, contract_id: str, profit, exit_price: Optional[Decimal] = None) -> "SettlementOutcome":
        return cls(contract_id, Decimal(str(profit)), True, exit_price)

    @classmethod
    def loss(cls, contract_id: str, profit, exit_price: Optional[Decimal] = None) -> "SettlementOutcome":
        return cls(contract_id, Decimal(str(profit)), False, exit_price)
