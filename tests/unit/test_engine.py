"""Unit tests for the trading engine wiring."""

import time
from decimal import Decimal

import pytest

from tickbot_app.config.defaults import DeliveryParams
from tickbot_app.connection.models import ConnectionState
from tickbot_app.delivery.base import BaseNotificationSink, LoggingSink, NullSink
from tickbot_app.delivery.stdout_delivery import StdoutSink
from tickbot_app.engine import build_sink
from tickbot_app.errors import InvalidStateError
from tickbot_app.session.models import SessionStatus


class RecordingSink(BaseNotificationSink):
    def __init__(self):
        super().__init__("recording")
        self.received = []

    def notify(self, kind, payload):
        self.received.append((kind, payload))

    def kinds(self, kind):
        return [p for k, p in self.received if k == kind]


def stream(engine, transport, symbol="R_100"):
    """Connect the engine and open its streams."""
    engine.start_streaming(symbol)
    engine.manager.run_pending()
    transport.open_ok()
    engine.manager.run_pending()


def deliver_digits(engine, transport, tick_payload, digits, symbol="R_100"):
    for i, digit in enumerate(digits):
        transport.deliver(tick_payload(symbol, float(f"1000.0{digit}"), epoch=int(time.time()) + i))
    engine.manager.run_pending()


def confirm_buy(engine, transport, contract_id):
    engine.manager.run_pending()
    request = transport.requests("buy")[-1]
    transport.deliver({
        "msg_type": "buy",
        "buy": {"contract_id": contract_id, "buy_price": request["price"]},
        "req_id": request["req_id"],
    })
    engine.manager.run_pending()


class TestBuildSink:
    """Test sink selection from configuration."""

    def test_sink_names(self):
        """Each configured sink name maps to its class."""
        assert isinstance(build_sink(DeliveryParams(sink="stdout")), StdoutSink)
        assert isinstance(build_sink(DeliveryParams(sink="null")), NullSink)
        assert isinstance(build_sink(DeliveryParams(sink="logging")), LoggingSink)


class TestEngineConstruction:
    """Test engine initialization."""

    def test_invalid_configuration_raises(self, make_engine):
        """Configuration errors surface as ValueError."""
        with pytest.raises(ValueError, match="initial_stake"):
            make_engine({"session": {"initial_stake": -1}})

    def test_initial_status(self, make_engine):
        """A fresh engine is disconnected with an empty window."""
        status = make_engine().status()

        assert status["connection"] == "disconnected"
        assert status["session"] is None
        assert status["digits"]["total"] == 0
        assert status["trades"]["total"] == 0


class TestStreaming:
    """Test tick streaming through the engine."""

    def test_streams_subscribed_on_connect(self, make_engine, fake_transport):
        """Ticks, balance and portfolio are subscribed once connected."""
        engine = make_engine()
        stream(engine, fake_transport)

        assert engine.manager.state is ConnectionState.CONNECTED
        assert engine.wait_for_connection(0)
        assert [r.get("ticks") for r in fake_transport.requests("subscribe")] == ["R_100", None, None]
        assert engine.status()["subscriptions"] == ["ticks:R_100", "balance", "portfolio"]

    def test_ticks_fill_window_and_reach_sink(self, make_engine, fake_transport, tick_frame_payload):
        """Each tick updates the window and is forwarded to the sink."""
        sink = RecordingSink()
        engine = make_engine({"delivery": {"snapshot_every": 2}}, sink=sink)
        stream(engine, fake_transport)

        deliver_digits(engine, fake_transport, tick_frame_payload, [1, 2, 3, 4])

        assert engine.aggregator.last_digits(4) == (1, 2, 3, 4)
        assert [p["digit"] for p in sink.kinds("tick")] == [1, 2, 3, 4]
        assert len(sink.kinds("snapshot")) == 2
        assert sink.kinds("connection")[-1]["to"] == "connected"

    def test_other_symbols_ignored(self, make_engine, fake_transport, tick_frame_payload):
        """Ticks for a symbol that is not streamed are dropped."""
        engine = make_engine()
        stream(engine, fake_transport)

        deliver_digits(engine, fake_transport, tick_frame_payload, [5, 5], symbol="R_25")

        assert len(engine.aggregator) == 0

    def test_switch_symbol(self, make_engine, fake_transport, tick_frame_payload):
        """Streaming a new symbol forgets the old stream and clears the window."""
        engine = make_engine()
        stream(engine, fake_transport)
        tick_req = fake_transport.requests("ticks")[0]["req_id"]
        fake_transport.deliver(tick_frame_payload("R_100", 1000.01, req_id=tick_req))
        engine.manager.run_pending()
        assert len(engine.aggregator) == 1

        engine.start_streaming("R_50")
        engine.manager.run_pending()

        assert len(engine.aggregator) == 0
        assert engine.symbol == "R_50"
        assert fake_transport.requests("forget")[-1]["forget"] == "tick-sub"
        assert engine.status()["subscriptions"] == ["balance", "portfolio", "ticks:R_50"]

    def test_stale_tick_still_counted(self, make_engine, fake_transport, tick_frame_payload):
        """Old venue timestamps are logged but the tick is used."""
        engine = make_engine()
        stream(engine, fake_transport)

        fake_transport.deliver(tick_frame_payload("R_100", 1000.07, epoch=1600000000))
        engine.manager.run_pending()

        assert engine.aggregator.last_digits(1) == (7,)

    def test_balance_tracked(self, make_engine, fake_transport):
        """Balance updates show up in the status."""
        engine = make_engine()
        stream(engine, fake_transport)

        fake_transport.deliver({"msg_type": "balance", "balance": {"balance": 1000.5, "currency": "USD"}})
        engine.manager.run_pending()

        assert engine.status()["balance"] == {"amount": "1000.5", "currency": "USD"}


class TestTrading:
    """Test the engine-driven trading session."""

    def test_start_trading_requires_connection(self, make_engine):
        """Trading cannot start before the connection is up."""
        with pytest.raises(InvalidStateError):
            make_engine().start_trading()

    def test_session_uses_streamed_symbol(self, make_engine, fake_transport):
        """Without an explicit config the session trades the streamed symbol."""
        engine = make_engine()
        stream(engine, fake_transport, symbol="R_50")

        session = engine.start_trading()
        engine.manager.run_pending()

        assert session.status is SessionStatus.WAITING
        assert session.stake == Decimal("0.35")
        assert fake_transport.requests("buy")[-1]["parameters"]["symbol"] == "R_50"

    def test_signals_place_contracts(self, make_engine, fake_transport, tick_frame_payload):
        """A biased window produces a placement once the previous contract settled."""
        engine = make_engine({"strategy": {"name": "even_odd", "min_ticks": 5, "bias_pct": 60.0}})
        stream(engine, fake_transport)
        engine.start_trading()
        confirm_buy(engine, fake_transport, "c1")

        deliver_digits(engine, fake_transport, tick_frame_payload, [2, 4, 6, 8, 0])
        assert len(fake_transport.requests("buy")) == 1

        fake_transport.deliver({"contract_id": "c1", "profit": 0.33, "status": "won"})
        deliver_digits(engine, fake_transport, tick_frame_payload, [2])

        buys = fake_transport.requests("buy")
        assert len(buys) == 2
        assert buys[-1]["parameters"]["contract_type"] == "DIGITEVEN"
        assert engine.status()["session"]["wins"] == 1
        assert engine.status()["trades"]["win_rate"] == 100.0

    def test_stop_trading(self, make_engine, fake_transport):
        """Stopping ends the session as COMPLETED."""
        engine = make_engine()
        stream(engine, fake_transport)
        engine.start_trading()

        session = engine.stop_trading()

        assert session.status is SessionStatus.COMPLETED

    def test_shutdown(self, make_engine, fake_transport):
        """Shutdown stops the session and disconnects."""
        engine = make_engine()
        stream(engine, fake_transport)
        engine.start_trading()
        confirm_buy(engine, fake_transport, "c1")

        engine.shutdown()
        engine.manager.run_pending()

        assert engine.controller.session.reason == "shutdown"
        assert engine.manager.state is ConnectionState.DISCONNECTED


class TestBackgroundLoop:
    """Test the engine with the dispatch loop on its own thread."""

    def test_calls_marshalled_onto_loop(self, make_engine, fake_transport):
        """Public calls from another thread run on the loop and return its result."""
        engine = make_engine()
        engine.manager.start_background()
        try:
            engine.start_streaming()
            deadline = time.monotonic() + 2.0
            while fake_transport.open_calls == 0 and time.monotonic() < deadline:
                time.sleep(0.01)
            fake_transport.open_ok()
            assert engine.wait_for_connection(2.0)

            session = engine.start_trading()

            assert session.status is SessionStatus.WAITING
        finally:
            engine.shutdown()
        assert not engine.manager.running_in_background

    def test_status_built_on_loop(self, make_engine):
        """Status read from another thread is assembled on the dispatch loop."""
        engine = make_engine()
        engine.manager.start_background()
        seen = []
        build_status = engine._status

        def recording_status():
            seen.append(engine.manager.in_loop_thread())
            return build_status()

        engine._status = recording_status
        try:
            status = engine.status()
        finally:
            engine.shutdown()

        assert seen == [True]
        assert status["connection"] == "disconnected"
