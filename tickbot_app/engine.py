"""
Main trading engine coordinator.

Wires the connection manager, digit aggregator, strategy, session controller,
trade log and notification sink together:

Frames → Tick → Aggregator → Sink → Strategy → Controller → Placements
"""

import random
import threading
import time
from concurrent.futures import Future
from dataclasses import replace
from typing import Any, Callable, Optional

import structlog

from .config.defaults import DeliveryParams
from .config.loader import ConfigLoader
from .config.validation import ConfigValidator
from .connection.manager import ConnectionManager
from .connection.models import ConnectionState
from .connection.registry import SubscriptionKind
from .connection.scheduler import Scheduler
from .connection.transport import Transport, WebSocketTransport
from .data.digits import TickBuilder
from .data.parsers import BalanceFrame, FrameType, TickFrame
from .delivery.base import BaseNotificationSink, LoggingSink, NullSink
from .delivery.stdout_delivery import StdoutSink
from .metrics.aggregator import DigitStatsAggregator
from .persistence.trade_log import TradeLog
from .session.controller import TradingSessionController
from .session.models import SessionConfig, TradingSession
from .signals.strategies import build_strategy
from .utils.time import calculate_latency

logger = structlog.get_logger(__name__)

STALE_TICK_SECONDS = 5.0


def build_sink(params: DeliveryParams) -> BaseNotificationSink:
    """Notification sink named by the configuration."""
    if params.sink == "stdout":
        return StdoutSink(format=params.format, include_timestamp=params.include_timestamp)
    if params.sink == "null":
        return NullSink()
    return LoggingSink()


class TradingEngine:
    """
    Main coordinator for the tick streaming and trading system.

    Public methods may be called from any thread. When the dispatch loop runs
    in the background they are marshalled onto it; otherwise they run inline.
    """

    def __init__(
        self,
        config_dir: Optional[str] = None,
        overrides: Optional[dict[str, Any]] = None,
        transport: Optional[Transport] = None,
        scheduler: Optional[Scheduler] = None,
        sink: Optional[BaseNotificationSink] = None,
        rng: Optional[random.Random] = None,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Initialize the trading engine.

        Raises:
            ValueError: If the merged configuration fails validation
        """
        self.logger = logger

        # Load and validate configuration
        self.config_loader = ConfigLoader.create(config_dir)
        merged = self.config_loader.merge_config(overrides)
        validation_errors = ConfigValidator.validate_config(merged)
        if validation_errors:
            error_msgs = [f"{err.field}: {err.message} (got: {err.value})" for err in validation_errors]
            self.logger.error("Configuration validation failed", errors=error_msgs)
            raise ValueError("Invalid configuration: " + "; ".join(error_msgs))
        self.config = self.config_loader.build_config(overrides)

        # Initialize components
        self.manager = ConnectionManager(
            transport or WebSocketTransport(self.config.connection.url),
            scheduler=scheduler,
            connection_params=self.config.connection,
            backoff_params=self.config.backoff,
            heartbeat_params=self.config.heartbeat,
            rng=rng,
        )
        self.registry = self.manager.registry
        self.tick_builder = TickBuilder()
        self.aggregator = DigitStatsAggregator(self.config.aggregator.window_size)
        self.trade_log = TradeLog()
        self.controller = TradingSessionController(self.manager, self.trade_log, monotonic=monotonic)
        self.strategy = build_strategy(self.config.strategy)
        self.sink = sink or build_sink(self.config.delivery)

        self._symbol: Optional[str] = None
        self._tick_subscription: Optional[str] = None
        self._ticks_seen = 0
        self._balance: Optional[BalanceFrame] = None
        self._connected = threading.Event()

        # Wire frame flow and notifications
        self.manager.on(FrameType.TICK, self._on_tick_frame)
        self.manager.on(FrameType.BALANCE, self._on_balance_frame)
        self.manager.add_state_listener(self._on_connection_state)
        self.manager.add_state_listener(self.sink.on_connection_state)
        self.controller.add_session_listener(self.sink.on_session)
        self.controller.add_trade_listener(self.sink.on_trade)

        self.logger.info(
            "Trading engine initialized",
            endpoint=self.config.connection.endpoint,
            strategy=self.strategy.name,
            window_size=self.aggregator.capacity,
        )

    @property
    def symbol(self) -> Optional[str]:
        return self._symbol

    def start_streaming(self, symbol: Optional[str] = None) -> None:
        """Connect and subscribe to ticks for ``symbol`` plus balance and portfolio."""
        symbol = symbol or self.config.session.symbol
        self.manager.call_soon(self._subscribe_streams, symbol)
        self.manager.connect()

    def wait_for_connection(self, timeout: Optional[float] = None) -> bool:
        """Block until the connection is CONNECTED. Requires a background loop."""
        return self._connected.wait(timeout)

    def start_trading(self, config: Optional[SessionConfig] = None) -> TradingSession:
        """
        Start a trading session.

        Without an explicit config the session parameters come from the
        configuration, traded on the streamed symbol.

        Raises:
            InvalidStateError: If not connected or a session is already active
        """
        if config is None:
            params = self.config.session
            if self._symbol is not None:
                params = replace(params, symbol=self._symbol)
            config = SessionConfig.from_params(params)
        return self._run_on_loop(self.controller.start, config)

    def stop_trading(self, reason: str = "stopped_by_user") -> Optional[TradingSession]:
        return self._run_on_loop(self.controller.stop, reason)

    def shutdown(self) -> None:
        """Stop trading, disconnect and end the dispatch loop."""
        session = self.controller.session
        if session is not None and session.is_active:
            self.stop_trading("shutdown")
        self.manager.shutdown()
        self.logger.info("Trading engine shut down", sink_stats=self.sink.get_stats())

    def status(self) -> dict[str, Any]:
        """Point-in-time view of the whole engine, taken on the dispatch loop."""
        return self._run_on_loop(self._status)

    def _status(self) -> dict[str, Any]:
        session = self.controller.session
        stats = self.trade_log.stats()
        return {
            "connection": self.manager.state.value,
            "symbol": self._symbol,
            "subscriptions": [str(s.kind) for s in self.registry.active()],
            "balance": (
                {"amount": str(self._balance.amount), "currency": self._balance.currency}
                if self._balance else None
            ),
            "digits": self.aggregator.snapshot().to_dict(),
            "session": session.to_dict() if session else None,
            "trades": {
                "total": stats.total,
                "wins": stats.wins,
                "losses": stats.losses,
                "pending": stats.pending,
                "win_rate": round(stats.win_rate, 2),
                "total_profit_loss": str(stats.total_profit_loss),
            },
        }

    def _subscribe_streams(self, symbol: str) -> None:
        if symbol != self._symbol:
            if self._tick_subscription is not None:
                self.registry.unsubscribe(self._tick_subscription)
            self.aggregator.clear()
            self.tick_builder.reset()
            self._ticks_seen = 0
            self._symbol = symbol

        self._tick_subscription = self.registry.subscribe(SubscriptionKind.ticks(symbol))
        self.registry.subscribe(SubscriptionKind.balance())
        self.registry.subscribe(SubscriptionKind.portfolio())

        self.logger.info("Streaming requested", symbol=symbol)

    def _on_tick_frame(self, frame: TickFrame) -> None:
        if frame.symbol != self._symbol:
            self.logger.debug("Tick for inactive symbol ignored", symbol=frame.symbol)
            return

        tick = self.tick_builder.build(frame)
        if frame.epoch is not None:
            latency = calculate_latency(tick.timestamp)
            if latency > STALE_TICK_SECONDS:
                self.logger.warning("Stale tick", symbol=tick.symbol, latency_seconds=round(latency, 3))

        self.aggregator.push(tick)
        snapshot = self.aggregator.snapshot()
        self._ticks_seen += 1

        self.sink.on_tick(tick)
        every = self.config.delivery.snapshot_every
        if every and self._ticks_seen % every == 0:
            self.sink.on_snapshot(snapshot)

        signal = self.strategy.evaluate(tick, snapshot)
        if signal is not None:
            self.controller.on_signal(signal)

    def _on_balance_frame(self, frame: BalanceFrame) -> None:
        self._balance = frame
        self.sink.on_balance(frame)

    def _on_connection_state(self, old: ConnectionState, new: ConnectionState, reason: str) -> None:
        if new is ConnectionState.CONNECTED:
            self._connected.set()
        else:
            self._connected.clear()

    def _run_on_loop(self, fn: Callable[..., Any], *args: Any, timeout: float = 10.0) -> Any:
        if not self.manager.running_in_background or self.manager.in_loop_thread():
            return fn(*args)

        future: Future = Future()

        def call() -> None:
            if not future.set_running_or_notify_cancel():
                return
            try:
                future.set_result(fn(*args))
            except Exception as e:
                future.set_exception(e)

        self.manager.call_soon(call)
        return future.result(timeout)
