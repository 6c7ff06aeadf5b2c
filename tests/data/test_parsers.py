"""Tests for venue frame decoding."""

from decimal import Decimal

import orjson
import pytest

from tickbot_app.data.parsers import (
    AckFrame,
    BalanceFrame,
    BuyFrame,
    ContractUpdateFrame,
    ErrorFrame,
    FrameType,
    MalformedFrame,
    PongFrame,
    SettlementFrame,
    TickFrame,
    UnknownFrame,
    decode_frame,
    decode_payload,
    parse_json_payload,
)
from tickbot_app.errors import MalformedFrameError


def decode(payload):
    return decode_frame(orjson.dumps(payload))


class TestParseJsonPayload:
    """Test raw JSON parsing."""

    def test_parse_valid_object(self):
        """Valid JSON objects parse to dicts."""
        assert parse_json_payload('{"pong": 1}') == {"pong": 1}

    def test_parse_bytes(self):
        """Binary frames are accepted."""
        assert parse_json_payload(b'{"a": 2}') == {"a": 2}

    def test_parse_invalid_json(self):
        """Invalid JSON raises MalformedFrameError with a preview."""
        with pytest.raises(MalformedFrameError) as exc_info:
            parse_json_payload("{not json")

        assert "Invalid JSON" in str(exc_info.value)
        assert exc_info.value.raw_data == "{not json"

    def test_parse_non_object(self):
        """JSON arrays are rejected."""
        with pytest.raises(MalformedFrameError, match="JSON object"):
            parse_json_payload("[1, 2]")


class TestTickFrames:
    """Test tick decoding."""

    def test_deriv_tick_envelope(self, tick_frame_payload):
        """Enveloped ticks carry symbol, price, epoch and subscription id."""
        frame = decode(tick_frame_payload("R_100", 1234.56, req_id=3))

        assert isinstance(frame, TickFrame)
        assert frame.type is FrameType.TICK
        assert frame.symbol == "R_100"
        assert frame.price == Decimal("1234.56")
        assert frame.epoch == 1700000000
        assert frame.pip_size == 2
        assert frame.subscription_id == "tick-sub"
        assert frame.req_id == 3

    def test_flat_tick_shape(self):
        """The flat {symbol, price, epoch} shape decodes without msg_type."""
        frame = decode({"symbol": "R_50", "price": 250.1234, "epoch": 1700000001})

        assert isinstance(frame, TickFrame)
        assert frame.price == Decimal("250.1234")
        assert frame.pip_size is None

    def test_price_keeps_decimal_text(self):
        """Prices are parsed via their text form, not binary floats."""
        frame = decode_frame('{"msg_type": "tick", "tick": {"symbol": "R_100", "quote": 1000.10, "epoch": 1}}')

        assert frame.price == Decimal("1000.1")

    def test_tick_missing_quote_is_malformed(self):
        """A tick without a price becomes a MalformedFrame."""
        frame = decode({"msg_type": "tick", "tick": {"symbol": "R_100", "epoch": 1}})

        assert isinstance(frame, MalformedFrame)
        assert "missing" in frame.reason

    def test_non_numeric_price_is_malformed(self):
        """Non-numeric or non-finite quotes are rejected."""
        assert isinstance(decode({"msg_type": "tick", "tick": {"symbol": "R", "quote": "abc"}}), MalformedFrame)
        assert isinstance(decode({"msg_type": "tick", "tick": {"symbol": "R", "quote": "NaN"}}), MalformedFrame)
        assert isinstance(decode({"msg_type": "tick", "tick": {"symbol": "R", "quote": True}}), MalformedFrame)


class TestContractFrames:
    """Test open contract and settlement decoding."""

    def test_open_contract_update(self):
        """Unsold contracts decode as updates."""
        frame = decode({
            "msg_type": "proposal_open_contract",
            "proposal_open_contract": {"contract_id": 991, "status": "open", "profit": -0.12, "is_sold": 0},
        })

        assert isinstance(frame, ContractUpdateFrame)
        assert frame.contract_id == "991"
        assert frame.profit == Decimal("-0.12")

    def test_sold_contract_is_settlement(self):
        """Sold contracts decode as settlements with entry and exit prices."""
        frame = decode({
            "msg_type": "proposal_open_contract",
            "proposal_open_contract": {
                "contract_id": 991,
                "is_sold": 1,
                "status": "won",
                "profit": 0.33,
                "entry_tick": 1000.12,
                "exit_tick": 1000.14,
            },
        })

        assert isinstance(frame, SettlementFrame)
        assert frame.profit == Decimal("0.33")
        assert frame.entry_price == Decimal("1000.12")
        assert frame.exit_price == Decimal("1000.14")
        assert frame.is_win is True

    def test_settlement_profit_from_prices(self):
        """Missing profit is derived from sell and buy prices."""
        frame = decode({
            "msg_type": "proposal_open_contract",
            "proposal_open_contract": {"contract_id": "c1", "is_sold": 1, "sell_price": 0, "buy_price": 1.5},
        })

        assert isinstance(frame, SettlementFrame)
        assert frame.profit == Decimal("-1.5")
        assert frame.is_win is False

    def test_flat_settlement_shape(self):
        """The flat {contract_id, profit, status} shape decodes as a settlement."""
        frame = decode({"contract_id": "c-7", "profit": -1, "status": "lost"})

        assert isinstance(frame, SettlementFrame)
        assert frame.is_win is False

    def test_empty_portfolio_stream_start(self):
        """An empty proposal_open_contract body is an acknowledgement."""
        frame = decode({"msg_type": "proposal_open_contract", "proposal_open_contract": {}, "req_id": 4,
                        "subscription": {"id": "poc-1"}})

        assert isinstance(frame, AckFrame)
        assert frame.subscription_id == "poc-1"


class TestOtherFrames:
    """Test the remaining frame variants."""

    def test_balance(self):
        """Balance envelopes decode amount and currency."""
        frame = decode({"msg_type": "balance", "balance": {"balance": 10000.5, "currency": "USD"}})

        assert isinstance(frame, BalanceFrame)
        assert frame.amount == Decimal("10000.5")
        assert frame.currency == "USD"

    def test_flat_balance(self):
        """The flat {amount, currency} shape decodes as balance."""
        assert isinstance(decode({"amount": 5, "currency": "EUR"}), BalanceFrame)

    def test_buy(self):
        """Buy confirmations carry the contract id and price."""
        frame = decode({"msg_type": "buy", "buy": {"contract_id": 123, "buy_price": 0.35}, "req_id": 9})

        assert isinstance(frame, BuyFrame)
        assert frame.contract_id == "123"
        assert frame.buy_price == Decimal("0.35")
        assert frame.req_id == 9

    def test_buy_without_contract_is_malformed(self):
        """A buy response without a contract id is unusable."""
        assert isinstance(decode({"msg_type": "buy", "buy": {}}), MalformedFrame)

    def test_pong_shapes(self):
        """Both the Deriv ping reply and the flat pong decode as PongFrame."""
        assert isinstance(decode({"msg_type": "ping", "ping": "pong"}), PongFrame)
        assert isinstance(decode({"pong": 1}), PongFrame)

    def test_error_takes_precedence(self):
        """Any message with an error body is an ErrorFrame."""
        frame = decode({"msg_type": "buy", "error": {"code": "InsufficientBalance", "message": "No funds"},
                        "req_id": 5})

        assert isinstance(frame, ErrorFrame)
        assert frame.code == "InsufficientBalance"
        assert frame.msg_type == "buy"
        assert frame.req_id == 5

    def test_forget_is_ack(self):
        """Forget responses are acknowledgements."""
        assert isinstance(decode({"msg_type": "forget", "forget": 1}), AckFrame)

    def test_unknown_type(self):
        """Valid messages of unhandled types are kept as UnknownFrame."""
        frame = decode({"msg_type": "website_status", "website_status": {}})

        assert isinstance(frame, UnknownFrame)
        assert frame.msg_type == "website_status"

    def test_decode_frame_never_raises(self):
        """Garbage input always yields a MalformedFrame."""
        for raw in ("", "null", "[]", b"\xff\xfe", '{"msg_type": "tick", "tick": 5}'):
            assert isinstance(decode_frame(raw), MalformedFrame)

    def test_decode_payload_raises_for_broken_known_types(self):
        """decode_payload itself reports broken frames by raising."""
        with pytest.raises(MalformedFrameError):
            decode_payload({"msg_type": "balance", "balance": {"currency": "USD"}})

    def test_bool_req_id_ignored(self):
        """Only integer req_ids are correlated."""
        assert decode({"pong": 1, "req_id": True}).req_id is None
