"""
Trading session data models.

TradingSession is immutable; the controller replaces it on every change so
readers always hold a consistent snapshot.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from ..config.defaults import SessionParams
from ..models.trading import BARRIER_CONTRACTS, TradeResult


class SessionStatus(str, Enum):
    """Trading session lifecycle."""
    WAITING = "waiting"
    TRADING = "trading"
    COMPLETED = "completed"
    ERROR = "error"


ACTIVE_STATUSES = frozenset({SessionStatus.WAITING, SessionStatus.TRADING})


@dataclass(frozen=True)
class TradingSession:
    """Snapshot of the single trading session."""

    # Lifecycle
    status: SessionStatus
    reason: Optional[str] = None                     # Why the session ended or errored
    started_at: Optional[datetime] = None

    # Stake and thresholds
    stake: Decimal = Decimal("0")                    # Next contract's stake
    initial_stake: Decimal = Decimal("0")
    target_profit: Decimal = Decimal("0")
    stop_loss: Decimal = Decimal("0")                # Positive magnitude

    # Results
    current_profit: Decimal = Decimal("0")           # Signed, cumulative
    wins: int = 0
    losses: int = 0
    last_result: Optional[TradeResult] = None

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    @property
    def is_terminal(self) -> bool:
        return not self.is_active

    @property
    def total_trades(self) -> int:
        return self.wins + self.losses

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "reason": self.reason,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "stake": str(self.stake),
            "initial_stake": str(self.initial_stake),
            "target_profit": str(self.target_profit),
            "stop_loss": str(self.stop_loss),
            "current_profit": str(self.current_profit),
            "wins": self.wins,
            "losses": self.losses,
            "last_result": self.last_result.value if self.last_result else None,
        }


@dataclass(frozen=True)
class SessionConfig:
    """Parameters of one trading session."""
    symbol: str
    contract_type: str
    initial_stake: Decimal
    target_profit: Decimal
    stop_loss: Decimal
    prediction: Optional[int] = None
    progression: str = "martingale"
    martingale_multiplier: Decimal = Decimal("2")
    max_stake: Optional[Decimal] = None
    on_ceiling: str = "cap"
    duration: int = 5
    duration_unit: str = "t"
    currency: str = "USD"
    cooldown_seconds: float = 0.0
    settlement_timeout_seconds: float = 60.0

    def __post_init__(self):
        if self.initial_stake <= 0:
            raise ValueError(f"initial_stake must be positive, got {self.initial_stake}")
        if self.target_profit <= 0 or self.stop_loss <= 0:
            raise ValueError("target_profit and stop_loss must be positive")
        if self.settlement_timeout_seconds <= 0:
            raise ValueError("settlement_timeout_seconds must be positive")
        if self.contract_type in BARRIER_CONTRACTS and self.prediction is None:
            raise ValueError(f"{self.contract_type} requires a prediction")

    @classmethod
    def from_params(cls, params: SessionParams) -> "SessionConfig":
        return cls(
            symbol=params.symbol,
            contract_type=params.contract_type,
            initial_stake=Decimal(str(params.initial_stake)),
            target_profit=Decimal(str(params.target_profit)),
            stop_loss=Decimal(str(params.stop_loss)),
            prediction=params.prediction,
            progression=params.progression,
            martingale_multiplier=Decimal(str(params.martingale_multiplier)),
            max_stake=Decimal(str(params.max_stake)) if params.max_stake is not None else None,
            on_ceiling=params.on_ceiling,
            duration=params.duration,
            duration_unit=params.duration_unit,
            currency=params.currency,
            cooldown_seconds=params.cooldown_seconds,
            settlement_timeout_seconds=params.settlement_timeout_seconds,
        )

    def placement_request(self, stake: Decimal, contract_type: str,
                          prediction: Optional[int] = None) -> dict[str, Any]:
        """
        Build the venue buy request for one contract.

        Raises:
            ValueError: If a digit contract that needs a barrier has none
        """
        parameters: dict[str, Any] = {
            "amount": float(stake),
            "basis": "stake",
            "contract_type": contract_type,
            "currency": self.currency,
            "duration": self.duration,
            "duration_unit": self.duration_unit,
            "symbol": self.symbol,
        }

        if contract_type in BARRIER_CONTRACTS:
            if prediction is None:
                raise ValueError(f"{contract_type} requires a prediction")
            parameters["barrier"] = str(prediction)

        return {"buy": 1, "price": float(stake), "parameters": parameters}
