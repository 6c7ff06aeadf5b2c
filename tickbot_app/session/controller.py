"""
Trading session controller.

Turns signals into contract placements, applies settlements to the single
TradingSession and enforces take-profit / stop-loss. All methods run on the
connection manager's dispatch loop; the controller registers its own frame
handlers and state listener on the manager it is given.
"""

import time
from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Callable, Optional

from ..connection.manager import ConnectionManager
from ..connection.models import ConnectionState
from ..connection.registry import SubscriptionKind
from ..connection.scheduler import TimerHandle
from ..data.parsers import BuyFrame, ErrorFrame, FrameType, SettlementFrame
from ..errors import DuplicateTradeError, InvalidStateError, UnexpectedFrameError, UnknownSettlementError
from ..logging.config import get_session_logger, log_state_transition, log_threshold_decision
from ..models.trading import SettlementOutcome, Signal, TradeResult
from ..persistence.trade_log import TradeLog, TradeLogEntry
from ..utils.time import now_utc
from .models import SessionConfig, SessionStatus, TradingSession
from .progression import StakeProgression, build_progression, round_stake

logger = get_session_logger(__name__)

SessionListener = Callable[[TradingSession], None]
TradeListener = Callable[[TradeLogEntry], None]


@dataclass(frozen=True)
class PendingPlacement:
    """Buy request sent and not yet confirmed."""
    req_id: int
    stake: Decimal
    contract_type: str
    prediction: Optional[int]
    entry_price: Optional[Decimal]
    opening: bool                     # First contract of the session


class TradingSessionController:
    """Owns the single trading session."""

    def __init__(
        self,
        manager: ConnectionManager,
        trade_log: Optional[TradeLog] = None,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self.manager = manager
        self.trade_log = trade_log if trade_log is not None else TradeLog()
        self._monotonic = monotonic

        self._session: Optional[TradingSession] = None
        self._config: Optional[SessionConfig] = None
        self._progression: Optional[StakeProgression] = None

        self._pending: dict[int, PendingPlacement] = {}
        self._open_contracts: set[str] = set()
        self._session_number = 0
        self._contract_sessions: dict[str, int] = {}        # contract id -> session that bought it
        self._contract_subscriptions: dict[str, str] = {}   # contract id -> registry subscription id
        self._settlement_timers: dict[str, TimerHandle] = {}
        self._settled: set[str] = set()
        self._last_settled_at: Optional[float] = None

        self._session_listeners: list[SessionListener] = []
        self._trade_listeners: list[TradeListener] = []

        manager.on(FrameType.BUY, self._on_buy_frame)
        manager.on(FrameType.SETTLEMENT, self._on_settlement_frame)
        manager.on(FrameType.ERROR, self._on_error_frame)
        manager.add_state_listener(self._on_connection_state)

    @property
    def session(self) -> Optional[TradingSession]:
        return self._session

    @property
    def config(self) -> Optional[SessionConfig]:
        return self._config

    def add_session_listener(self, listener: SessionListener) -> None:
        self._session_listeners.append(listener)

    def add_trade_listener(self, listener: TradeListener) -> None:
        self._trade_listeners.append(listener)

    def start(self, config: SessionConfig) -> TradingSession:
        """
        Create a session and place its opening contract.

        The session waits in WAITING until the venue confirms the opening
        contract, then moves to TRADING.

        Raises:
            InvalidStateError: If not connected or a session is already active
        """
        if not self.manager.is_connected():
            raise InvalidStateError(
                "Cannot start a session while not connected",
                current_state=self.manager.state.value,
                required_state=ConnectionState.CONNECTED.value,
            )
        if self._session is not None and self._session.is_active:
            raise InvalidStateError(
                "A trading session is already active",
                current_state=self._session.status.value,
            )

        self._session_number += 1
        self._config = config
        self._progression = build_progression(config)
        self._pending.clear()
        self._open_contracts.clear()
        self._last_settled_at = None

        stake = round_stake(config.initial_stake)
        self._replace(
            TradingSession(
                status=SessionStatus.WAITING,
                started_at=now_utc(),
                stake=stake,
                initial_stake=stake,
                target_profit=config.target_profit,
                stop_loss=config.stop_loss,
            ),
            trigger="start",
        )

        self._place(Signal(contract_type=config.contract_type, prediction=config.prediction,
                           reason="opening_contract"), opening=True)
        return self._session

    def stop(self, reason: str = "stopped_by_user") -> Optional[TradingSession]:
        """End an active session as COMPLETED. Outstanding contracts still settle into the log."""
        if self._session is not None and self._session.is_active:
            self._replace(replace(self._session, status=SessionStatus.COMPLETED, reason=reason), trigger=reason)
        return self._session

    def on_signal(self, signal: Signal) -> bool:
        """
        Place a contract for ``signal`` if the session can trade now.

        Returns:
            True if a placement request was sent
        """
        session = self._session
        if session is None or session.status is not SessionStatus.TRADING:
            return False

        if self._pending or self._open_contracts:
            logger.debug("Signal skipped, contract outstanding", open_contracts=len(self._open_contracts))
            return False

        if self._in_cooldown():
            logger.debug("Signal skipped, cooling down")
            return False

        try:
            return self._place(signal, opening=False)
        except InvalidStateError as e:
            logger.warning("Signal dropped, connection not ready", state=e.current_state)
            return False

    def on_settlement(self, outcome: SettlementOutcome) -> None:
        """Apply one contract result. Repeated settlements of a contract are ignored."""
        contract_id = outcome.contract_id
        if contract_id in self._settled:
            logger.debug("Duplicate settlement ignored", contract_id=contract_id)
            return

        session = self._session

        try:
            owner = self._owner_of(contract_id)
        except UnknownSettlementError as error:
            if session is not None and session.is_active:
                logger.error("Session integrity violated", contract_id=error.contract_id, error=str(error))
                self._fail(f"unknown_contract:{contract_id}")
            else:
                logger.info("Settlement for foreign contract ignored", contract_id=contract_id)
            return

        self._settled.add(contract_id)
        self._release_contract(contract_id)
        self._settle_trade(outcome)

        if session is None or not session.is_active or owner != self._session_number:
            # Only the session that bought a contract may count it
            logger.info(
                "Late settlement recorded",
                contract_id=contract_id,
                profit=str(outcome.profit),
                session_status=session.status.value if session else None,
                owner_session=owner,
                current_session=self._session_number,
            )
            return

        result = outcome.result
        profit = session.current_profit + outcome.profit
        updated = replace(
            session,
            current_profit=profit,
            wins=session.wins + (1 if result is TradeResult.WIN else 0),
            losses=session.losses + (1 if result is TradeResult.LOSS else 0),
            last_result=result,
            stake=self._progression.next_stake(session.stake, result),
        )
        self._last_settled_at = self._monotonic()

        target_hit = profit >= session.target_profit
        stop_hit = profit <= -session.stop_loss
        log_threshold_decision(logger, "take_profit", target_hit, profit, session.target_profit,
                               context={"contract_id": contract_id})
        log_threshold_decision(logger, "stop_loss", stop_hit, profit, -session.stop_loss,
                               context={"contract_id": contract_id})

        if target_hit:
            updated = replace(updated, status=SessionStatus.COMPLETED, reason="target_profit_reached")
        elif stop_hit:
            updated = replace(updated, status=SessionStatus.COMPLETED, reason="stop_loss_reached")

        self._replace(updated, trigger=f"settlement:{result.value}")

    # Frame handlers

    def _on_buy_frame(self, frame: BuyFrame) -> None:
        try:
            pending = self._claim_placement(frame)
        except UnexpectedFrameError as e:
            logger.debug("Buy confirmation not issued by this session", error=str(e), **e.context)
            return

        contract_id = frame.contract_id
        self._contract_sessions[contract_id] = self._session_number
        self._open_contracts.add(contract_id)
        self._track_contract(contract_id)

        config = self._config
        entry = TradeLogEntry(
            id=contract_id,
            timestamp=now_utc(),
            symbol=config.symbol,
            contract_type=pending.contract_type,
            stake=frame.buy_price if frame.buy_price > 0 else pending.stake,
            prediction=pending.prediction,
            entry_price=pending.entry_price,
            duration=f"{config.duration}{config.duration_unit}",
        )
        try:
            self.trade_log.record(entry)
        except DuplicateTradeError:
            logger.warning("Contract already in trade log", contract_id=contract_id)
        else:
            self._notify_trade(entry)

        session = self._session
        if session is not None and session.status is SessionStatus.WAITING:
            self._replace(replace(session, status=SessionStatus.TRADING), trigger="opening_contract_confirmed")

    def _on_settlement_frame(self, frame: SettlementFrame) -> None:
        self.on_settlement(SettlementOutcome(
            contract_id=frame.contract_id,
            profit=frame.profit,
            won=frame.is_win,
            exit_price=frame.exit_price,
        ))

    def _on_error_frame(self, frame: ErrorFrame) -> None:
        if frame.req_id is None:
            return
        pending = self._pending.pop(frame.req_id, None)
        if pending is None:
            return

        logger.warning(
            "Placement rejected",
            req_id=frame.req_id,
            code=frame.code,
            message=frame.message,
            opening=pending.opening,
        )

        session = self._session
        if pending.opening and session is not None and session.status is SessionStatus.WAITING:
            self._fail(f"placement_rejected:{frame.code}")

    def _on_connection_state(self, old: ConnectionState, new: ConnectionState, reason: str) -> None:
        session = self._session
        if session is None or not session.is_active:
            return

        if new is ConnectionState.DISCONNECTED:
            self._fail(f"connection_lost:{reason}")
        elif old is ConnectionState.CONNECTED and self._pending:
            # Outcome of an unacknowledged buy cannot be known
            self._pending.clear()
            self._fail(f"placement_unacknowledged:{reason}")

    def _on_settlement_deadline(self, contract_id: str) -> None:
        self._settlement_timers.pop(contract_id, None)
        if contract_id not in self._open_contracts:
            return

        session = self._session
        if session is None or not session.is_active:
            return

        logger.error(
            "Settlement overdue",
            contract_id=contract_id,
            timeout_seconds=self._config.settlement_timeout_seconds,
        )
        self._fail(f"settlement_timeout:{contract_id}")

    # Internals

    def _place(self, signal: Signal, opening: bool) -> bool:
        config = self._config
        contract_type = signal.contract_type or config.contract_type
        prediction = signal.prediction if signal.prediction is not None else config.prediction
        stake = self._session.stake

        try:
            request = config.placement_request(stake, contract_type, prediction)
        except ValueError as e:
            logger.warning("Signal rejected", contract_type=contract_type, error=str(e))
            if opening:
                self._fail(f"invalid_placement:{e}")
            return False

        req_id = self.manager.send(request)
        self._pending[req_id] = PendingPlacement(
            req_id=req_id,
            stake=stake,
            contract_type=contract_type,
            prediction=prediction,
            entry_price=signal.entry_price,
            opening=opening,
        )

        logger.info(
            "Placement sent",
            req_id=req_id,
            contract_type=contract_type,
            prediction=prediction,
            stake=str(stake),
            reason=signal.reason,
        )
        return True

    def _claim_placement(self, frame: BuyFrame) -> PendingPlacement:
        pending = self._pending.pop(frame.req_id, None) if frame.req_id is not None else None
        if pending is None:
            raise UnexpectedFrameError(
                f"Buy confirmation for contract {frame.contract_id} matches no placement",
                frame_type=frame.type.value,
                context={"contract_id": frame.contract_id, "req_id": frame.req_id},
            )
        return pending

    def _owner_of(self, contract_id: str) -> int:
        """Number of the session that bought ``contract_id``."""
        owner = self._contract_sessions.get(contract_id)
        if owner is None:
            session = self._session
            raise UnknownSettlementError(
                f"Settlement for unknown contract {contract_id}",
                contract_id=contract_id,
                session_status=session.status.value if session else None,
            )
        return owner

    def _track_contract(self, contract_id: str) -> None:
        # Replayed on reconnect; the venue answers with the final state of a sold contract
        self._contract_subscriptions[contract_id] = self.manager.registry.subscribe(
            SubscriptionKind.contract(contract_id)
        )
        self._settlement_timers[contract_id] = self.manager.scheduler.call_later(
            self._config.settlement_timeout_seconds,
            lambda: self.manager.call_soon(self._on_settlement_deadline, contract_id),
        )

    def _release_contract(self, contract_id: str) -> None:
        self._open_contracts.discard(contract_id)
        timer = self._settlement_timers.pop(contract_id, None)
        if timer is not None:
            timer.cancel()
        sub_id = self._contract_subscriptions.pop(contract_id, None)
        if sub_id is not None:
            self.manager.registry.unsubscribe(sub_id)

    def _settle_trade(self, outcome: SettlementOutcome) -> None:
        entry = self.trade_log.get(outcome.contract_id)
        if entry is None or entry.is_settled:
            return
        settled = self.trade_log.settle(outcome.contract_id, outcome.exit_price, outcome.result, outcome.profit)
        self._notify_trade(settled)

    def _in_cooldown(self) -> bool:
        if self._last_settled_at is None or self._config is None:
            return False
        return self._monotonic() - self._last_settled_at < self._config.cooldown_seconds

    def _fail(self, reason: str) -> None:
        self._replace(replace(self._session, status=SessionStatus.ERROR, reason=reason), trigger=reason)

    def _replace(self, session: TradingSession, trigger: str) -> None:
        previous = self._session
        self._session = session

        if previous is None or previous.status is not session.status:
            log_state_transition(
                logger,
                entity="session",
                from_state=previous.status.value if previous else "none",
                to_state=session.status.value,
                trigger=trigger,
                context={
                    "current_profit": str(session.current_profit),
                    "wins": session.wins,
                    "losses": session.losses,
                    "reason": session.reason,
                },
            )
        else:
            logger.info(
                "Session updated",
                trigger=trigger,
                stake=str(session.stake),
                current_profit=str(session.current_profit),
                wins=session.wins,
                losses=session.losses,
            )

        for listener in list(self._session_listeners):
            try:
                listener(session)
            except Exception:
                logger.exception("Session listener failed")

    def _notify_trade(self, entry: TradeLogEntry) -> None:
        for listener in list(self._trade_listeners):
            try:
                listener(entry)
            except Exception:
                logger.exception("Trade listener failed", trade_id=entry.id)
