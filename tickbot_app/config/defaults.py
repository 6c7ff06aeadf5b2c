"""Default configuration parameters for the streaming trading engine."""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class ConnectionParams:
    """Venue endpoint and connection attempt parameters."""
    endpoint: str = "wss://ws.derivws.com/websockets/v3"
    app_id: str = "1089"
    connect_timeout_seconds: float = 10.0

    @property
    def url(self) -> str:
        """Full WebSocket URL including the app id query."""
        return f"{self.endpoint}?app_id={self.app_id}"


@dataclass(frozen=True)
class BackoffParams:
    """Reconnect backoff parameters."""
    base_seconds: float = 1.0          # First retry delay
    multiplier: float = 2.0            # Growth per attempt
    cap_seconds: float = 30.0          # Upper bound on any delay
    jitter_ratio: float = 0.2          # +/- fraction applied to each delay
    max_retries: Optional[int] = None  # None retries forever


@dataclass(frozen=True)
class HeartbeatParams:
    """Heartbeat ping parameters."""
    interval_seconds: float = 30.0     # Ping cadence
    timeout_seconds: float = 10.0      # Pong deadline, shorter than interval
    max_missed: int = 2                # Consecutive misses before reconnect


@dataclass(frozen=True)
class AggregatorParams:
    """Rolling digit window parameters."""
    window_size: int = 100


@dataclass(frozen=True)
class SessionParams:
    """Trading session parameters."""
    symbol: str = "R_100"
    contract_type: str = "DIGITEVEN"
    prediction: Optional[int] = None
    initial_stake: float = 0.35
    target_profit: float = 10.0
    stop_loss: float = 10.0
    progression: str = "martingale"    # martingale | flat
    martingale_multiplier: float = 2.0
    max_stake: float = 50.0
    on_ceiling: str = "cap"            # cap | reset
    duration: int = 5
    duration_unit: str = "t"
    currency: str = "USD"
    cooldown_seconds: float = 1.0
    settlement_timeout_seconds: float = 60.0  # Open contract with no result by then fails the session


@dataclass(frozen=True)
class StrategyParams:
    """Signal strategy parameters."""
    name: str = "even_odd"             # even_odd | over_under | differs
    min_ticks: int = 20                # Window fill required before signalling
    bias_pct: float = 55.0             # Share needed to call a side
    barrier: int = 4                   # Over/under split digit
    differs_max_pct: float = 5.0       # Least frequent digit share that triggers differs


@dataclass(frozen=True)
class DeliveryParams:
    """Notification sink parameters."""
    sink: str = "logging"              # logging | stdout | null
    format: str = "json"               # json | pretty, stdout sink only
    include_timestamp: bool = True
    snapshot_every: int = 10           # Emit a digit snapshot every N ticks, 0 disables


@dataclass(frozen=True)
class LoggingParams:
    """Logging output parameters."""
    level: str = "INFO"
    format_json: bool = False


@dataclass(frozen=True)
class DefaultConfig:
    """Complete default configuration."""
    connection: ConnectionParams
    backoff: BackoffParams
    heartbeat: HeartbeatParams
    aggregator: AggregatorParams
    session: SessionParams
    strategy: StrategyParams
    delivery: DeliveryParams
    logging: LoggingParams


def get_default_config() -> DefaultConfig:
    """Get the default configuration instance."""
    return DefaultConfig(
        connection=ConnectionParams(),
        backoff=BackoffParams(),
        heartbeat=HeartbeatParams(),
        aggregator=AggregatorParams(),
        session=SessionParams(),
        strategy=StrategyParams(),
        delivery=DeliveryParams(),
        logging=LoggingParams(),
    )
