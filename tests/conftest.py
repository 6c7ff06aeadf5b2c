"""Pytest configuration and shared fixtures."""

import random
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Callable, Optional, Union

import orjson
import pytest

from tickbot_app.config.defaults import BackoffParams, HeartbeatParams
from tickbot_app.connection.manager import ConnectionManager
from tickbot_app.connection.models import ConnectionEvent, EventKind
from tickbot_app.data.models import Direction, Tick
from tickbot_app.data.parsers import decode_frame
from tickbot_app.delivery.base import BaseNotificationSink, NullSink
from tickbot_app.engine import TradingEngine
from tickbot_app.errors import TransportError


class FakeTransport:
    """In-memory transport: records writes and lets tests post lifecycle events."""

    def __init__(self) -> None:
        self.generation: Optional[int] = None
        self.post: Optional[Callable[[ConnectionEvent], None]] = None
        self.sent: list[dict[str, Any]] = []
        self.open_calls = 0
        self.close_calls = 0
        self.fail_open = False
        self.fail_send = False

    def open(self, generation: int, post: Callable[[ConnectionEvent], None]) -> None:
        self.open_calls += 1
        self.generation = generation
        self.post = post
        if self.fail_open:
            raise TransportError("connection refused", reason="refused")

    def send(self, text: str) -> None:
        if self.fail_send:
            raise TransportError("broken pipe", reason="broken_pipe")
        self.sent.append(orjson.loads(text))

    def close(self) -> None:
        self.close_calls += 1

    # Test helpers

    def open_ok(self, generation: Optional[int] = None) -> None:
        self.post(ConnectionEvent(EventKind.OPENED, generation=generation or self.generation))

    def deliver(self, payload: Union[dict, str, bytes], generation: Optional[int] = None) -> None:
        raw = orjson.dumps(payload) if isinstance(payload, dict) else payload
        self.post(ConnectionEvent(
            EventKind.FRAME,
            generation=generation or self.generation,
            frame=decode_frame(raw),
        ))

    def drop(self, reason: str = "connection reset", generation: Optional[int] = None) -> None:
        self.post(ConnectionEvent(EventKind.TRANSPORT_ERROR, generation=generation or self.generation, reason=reason))

    def remote_close(self, reason: str = "going away") -> None:
        self.post(ConnectionEvent(EventKind.CLOSED, generation=self.generation, reason=reason))

    def requests(self, key: str) -> list[dict[str, Any]]:
        """Sent requests carrying ``key``."""
        return [r for r in self.sent if key in r]


class _ManualTimer:
    def __init__(self, due: float, callback: Callable[[], None], seq: int) -> None:
        self.due = due
        self.callback = callback
        self.seq = seq
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Virtual clock. Timers fire only when the test advances time."""

    def __init__(self) -> None:
        self.now = 0.0
        self._timers: list[_ManualTimer] = []
        self._seq = 0

    def call_later(self, delay: float, callback: Callable[[], None]) -> _ManualTimer:
        self._seq += 1
        timer = _ManualTimer(self.now + delay, callback, self._seq)
        self._timers.append(timer)
        return timer

    def advance(self, seconds: float) -> None:
        target = self.now + seconds
        while True:
            due = [t for t in self._timers if not t.cancelled and t.due <= target]
            if not due:
                break
            timer = min(due, key=lambda t: (t.due, t.seq))
            self._timers.remove(timer)
            self.now = timer.due
            timer.callback()
        self.now = target

    def active(self) -> list[float]:
        """Remaining delays of uncancelled timers."""
        return sorted(t.due - self.now for t in self._timers if not t.cancelled)


@pytest.fixture
def fake_transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def manager(fake_transport: FakeTransport, scheduler: ManualScheduler) -> ConnectionManager:
    """Manager with deterministic backoff (no jitter)."""
    return ConnectionManager(
        fake_transport,
        scheduler=scheduler,
        backoff_params=BackoffParams(jitter_ratio=0.0),
        heartbeat_params=HeartbeatParams(),
        rng=random.Random(7),
    )


@pytest.fixture
def connected_manager(manager: ConnectionManager, fake_transport: FakeTransport) -> ConnectionManager:
    """Manager already CONNECTED with an empty write log."""
    manager.connect()
    manager.run_pending()
    fake_transport.open_ok()
    manager.run_pending()
    fake_transport.sent.clear()
    return manager


@pytest.fixture
def make_tick() -> Callable[..., Tick]:
    """Factory for ticks with a given digit."""
    def _make(digit: int, symbol: str = "R_100", price: Optional[Decimal] = None) -> Tick:
        return Tick(
            timestamp=datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc),
            symbol=symbol,
            price=price if price is not None else Decimal(f"1000.{digit}{digit}"),
            digit=digit,
            direction=Direction.FLAT,
            delta=Decimal("0"),
        )
    return _make


def tick_payload(symbol: str, quote: float, epoch: int = 1700000000, pip_size: Optional[int] = 2,
                 sub_id: str = "tick-sub", req_id: Optional[int] = None) -> dict[str, Any]:
    """Deriv-style tick envelope."""
    tick: dict[str, Any] = {"symbol": symbol, "quote": quote, "epoch": epoch}
    if pip_size is not None:
        tick["pip_size"] = pip_size
    payload: dict[str, Any] = {"msg_type": "tick", "tick": tick, "subscription": {"id": sub_id}}
    if req_id is not None:
        payload["req_id"] = req_id
    return payload


@pytest.fixture
def tick_frame_payload() -> Callable[..., dict[str, Any]]:
    return tick_payload


@pytest.fixture
def make_engine(fake_transport: FakeTransport, scheduler: ManualScheduler, tmp_path) -> Callable[..., TradingEngine]:
    """Factory for engines on the fake transport and virtual clock, ignoring settings.yaml."""
    def _make(overrides: Optional[dict[str, Any]] = None, sink: Optional[BaseNotificationSink] = None,
              monotonic: Callable[[], float] = lambda: 0.0) -> TradingEngine:
        merged: dict[str, Any] = {
            "backoff": {"jitter_ratio": 0.0},
            "session": {"cooldown_seconds": 0.0},
        }
        for section, values in (overrides or {}).items():
            merged[section] = {**merged.get(section, {}), **values}
        return TradingEngine(
            config_dir=tmp_path,
            overrides=merged,
            transport=fake_transport,
            scheduler=scheduler,
            sink=sink or NullSink(),
            rng=random.Random(7),
            monotonic=monotonic,
        )
    return _make
