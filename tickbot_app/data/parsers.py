"""
Venue frame parsers for converting raw WebSocket messages to typed frames.

Every inbound message is decoded exactly once, at the connection boundary,
into one of the frame variants below. Messages that cannot be decoded become
a MalformedFrame and valid messages of an unhandled type become an
UnknownFrame, so downstream code never inspects untyped payloads.

Both the Deriv envelope (routed by ``msg_type``) and the flat shapes
``{symbol, price, epoch}``, ``{amount, currency}``, ``{contract_id, profit,
status}`` and ``{pong}`` are accepted.
"""

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, ClassVar, Optional, Union

import orjson

from ..errors import MalformedFrameError

SETTLED_STATUSES = frozenset({"won", "lost", "sold"})


class FrameType(str, Enum):
    """Inbound frame variants."""
    TICK = "tick"
    BALANCE = "balance"
    CONTRACT_UPDATE = "contract_update"
    SETTLEMENT = "settlement"
    BUY = "buy"
    PONG = "pong"
    ERROR = "error"
    ACK = "ack"
    UNKNOWN = "unknown"
    MALFORMED = "malformed"


@dataclass(frozen=True)
class TickFrame:
    """Price update for one symbol."""
    symbol: str
    price: Decimal
    epoch: Optional[int] = None
    pip_size: Optional[int] = None
    req_id: Optional[int] = None
    subscription_id: Optional[str] = None
    type: ClassVar[FrameType] = FrameType.TICK


@dataclass(frozen=True)
class BalanceFrame:
    """Account balance update."""
    amount: Decimal
    currency: str
    req_id: Optional[int] = None
    subscription_id: Optional[str] = None
    type: ClassVar[FrameType] = FrameType.BALANCE


@dataclass(frozen=True)
class ContractUpdateFrame:
    """Open contract progress that is not yet a final result."""
    contract_id: str
    status: str
    profit: Optional[Decimal] = None
    req_id: Optional[int] = None
    subscription_id: Optional[str] = None
    type: ClassVar[FrameType] = FrameType.CONTRACT_UPDATE


@dataclass(frozen=True)
class SettlementFrame:
    """Final result of a contract."""
    contract_id: str
    profit: Decimal
    status: str
    entry_price: Optional[Decimal] = None
    exit_price: Optional[Decimal] = None
    req_id: Optional[int] = None
    subscription_id: Optional[str] = None
    type: ClassVar[FrameType] = FrameType.SETTLEMENT

    @property
    def is_win(self) -> bool:
        if self.status == "won":
            return True
        if self.status == "lost":
            return False
        return self.profit > 0


@dataclass(frozen=True)
class BuyFrame:
    """Confirmation that a contract was bought."""
    contract_id: str
    buy_price: Decimal
    req_id: Optional[int] = None
    subscription_id: Optional[str] = None
    type: ClassVar[FrameType] = FrameType.BUY


@dataclass(frozen=True)
class PongFrame:
    """Heartbeat reply."""
    req_id: Optional[int] = None
    subscription_id: Optional[str] = None
    type: ClassVar[FrameType] = FrameType.PONG


@dataclass(frozen=True)
class ErrorFrame:
    """Venue-reported error, optionally answering a request."""
    code: str
    message: str
    msg_type: Optional[str] = None
    req_id: Optional[int] = None
    subscription_id: Optional[str] = None
    type: ClassVar[FrameType] = FrameType.ERROR


@dataclass(frozen=True)
class AckFrame:
    """Response without a payload of interest (forget, empty stream start)."""
    msg_type: str
    req_id: Optional[int] = None
    subscription_id: Optional[str] = None
    type: ClassVar[FrameType] = FrameType.ACK


@dataclass(frozen=True)
class UnknownFrame:
    """Valid message of a type nothing here handles."""
    msg_type: Optional[str]
    payload: dict = field(default_factory=dict, compare=False)
    req_id: Optional[int] = None
    subscription_id: Optional[str] = None
    type: ClassVar[FrameType] = FrameType.UNKNOWN


@dataclass(frozen=True)
class MalformedFrame:
    """Message that could not be decoded."""
    raw: str
    reason: str
    req_id: Optional[int] = None
    subscription_id: Optional[str] = None
    type: ClassVar[FrameType] = FrameType.MALFORMED


Frame = Union[
    TickFrame, BalanceFrame, ContractUpdateFrame, SettlementFrame, BuyFrame,
    PongFrame, ErrorFrame, AckFrame, UnknownFrame, MalformedFrame,
]


def parse_json_payload(raw_data: Union[str, bytes]) -> dict[str, Any]:
    """
    Parse raw JSON text into a dictionary.

    Args:
        raw_data: Raw message from the venue

    Returns:
        Parsed dictionary

    Raises:
        MalformedFrameError: If the message is not a JSON object
    """
    try:
        payload = orjson.loads(raw_data)
    except orjson.JSONDecodeError as e:
        raise MalformedFrameError(f"Invalid JSON: {e}", raw_data=_preview(raw_data))

    if not isinstance(payload, dict):
        raise MalformedFrameError(
            f"Frame must be a JSON object, got {type(payload).__name__}",
            raw_data=_preview(raw_data),
            expected_format="object"
        )
    return payload


def decode_frame(raw_data: Union[str, bytes]) -> Frame:
    """Decode a raw message. Never raises: failures become MalformedFrame."""
    try:
        return decode_payload(parse_json_payload(raw_data))
    except MalformedFrameError as e:
        return MalformedFrame(raw=_preview(raw_data), reason=str(e))


def decode_payload(payload: dict[str, Any]) -> Frame:
    """
    Decode a parsed message into its frame variant.

    Raises:
        MalformedFrameError: If a recognized message lacks required fields
    """
    req_id = _req_id(payload)
    sub_id = _subscription_id(payload)

    error = payload.get("error")
    if error is not None:
        if not isinstance(error, dict):
            error = {"message": str(error)}
        return ErrorFrame(
            code=str(error.get("code", "UnknownError")),
            message=str(error.get("message", "")),
            msg_type=payload.get("msg_type"),
            req_id=req_id,
            subscription_id=sub_id,
        )

    msg_type = payload.get("msg_type") or _infer_msg_type(payload)

    if msg_type == "tick":
        return _decode_tick(payload.get("tick", payload), req_id, sub_id)

    if msg_type == "balance":
        return _decode_balance(payload.get("balance", payload), req_id, sub_id)

    if msg_type == "proposal_open_contract":
        body = payload.get("proposal_open_contract", payload)
        if not body:
            # Subscription started with no open contracts yet
            return AckFrame(msg_type=msg_type, req_id=req_id, subscription_id=sub_id)
        return _decode_contract(body, req_id, sub_id)

    if msg_type == "buy":
        body = payload.get("buy")
        if not isinstance(body, dict) or "contract_id" not in body:
            raise MalformedFrameError("Buy frame missing contract_id", raw_data=str(payload)[:200])
        return BuyFrame(
            contract_id=str(body["contract_id"]),
            buy_price=_to_decimal(body.get("buy_price", 0), "buy_price"),
            req_id=req_id,
            subscription_id=sub_id,
        )

    if msg_type in ("ping", "pong"):
        return PongFrame(req_id=req_id, subscription_id=sub_id)

    if msg_type in ("forget", "forget_all"):
        return AckFrame(msg_type=msg_type, req_id=req_id, subscription_id=sub_id)

    return UnknownFrame(msg_type=msg_type, payload=payload, req_id=req_id, subscription_id=sub_id)


def _infer_msg_type(payload: dict[str, Any]) -> Optional[str]:
    """Recognize the flat frame shapes that carry no msg_type."""
    if "pong" in payload or payload.get("ping") == "pong":
        return "pong"
    if "contract_id" in payload and ("profit" in payload or "status" in payload):
        return "proposal_open_contract"
    if "symbol" in payload and "epoch" in payload and ("price" in payload or "quote" in payload):
        return "tick"
    if "amount" in payload and "currency" in payload:
        return "balance"
    return None


def _decode_tick(body: Any, req_id: Optional[int], sub_id: Optional[str]) -> TickFrame:
    if not isinstance(body, dict):
        raise MalformedFrameError("Tick body must be an object", raw_data=str(body)[:200])

    symbol = body.get("symbol")
    quote = body.get("quote", body.get("price"))
    if not symbol or quote is None:
        raise MalformedFrameError(
            "Tick frame missing symbol or quote",
            raw_data=str(body)[:200],
            expected_format="{symbol, quote|price, epoch}"
        )

    epoch = body.get("epoch")
    pip_size = body.get("pip_size")
    try:
        epoch = int(epoch) if epoch is not None else None
        pip_size = int(pip_size) if pip_size is not None else None
    except (TypeError, ValueError) as e:
        raise MalformedFrameError(f"Invalid tick epoch or pip_size: {e}", raw_data=str(body)[:200])

    return TickFrame(
        symbol=str(symbol),
        price=_to_decimal(quote, "quote"),
        epoch=epoch,
        pip_size=pip_size,
        req_id=req_id,
        subscription_id=sub_id,
    )


def _decode_balance(body: Any, req_id: Optional[int], sub_id: Optional[str]) -> BalanceFrame:
    if not isinstance(body, dict):
        raise MalformedFrameError("Balance body must be an object", raw_data=str(body)[:200])

    amount = body.get("balance", body.get("amount"))
    if amount is None:
        raise MalformedFrameError("Balance frame missing amount", raw_data=str(body)[:200])

    return BalanceFrame(
        amount=_to_decimal(amount, "balance"),
        currency=str(body.get("currency", "")),
        req_id=req_id,
        subscription_id=sub_id,
    )


def _decode_contract(body: Any, req_id: Optional[int], sub_id: Optional[str]) -> Union[SettlementFrame, ContractUpdateFrame]:
    if not isinstance(body, dict) or body.get("contract_id") is None:
        raise MalformedFrameError("Contract frame missing contract_id", raw_data=str(body)[:200])

    contract_id = str(body["contract_id"])
    status = str(body.get("status") or "open")
    profit = body.get("profit")
    settled = bool(body.get("is_sold")) or status in SETTLED_STATUSES

    if not settled:
        return ContractUpdateFrame(
            contract_id=contract_id,
            status=status,
            profit=_to_decimal(profit, "profit") if profit is not None else None,
            req_id=req_id,
            subscription_id=sub_id,
        )

    if profit is None:
        sell_price, buy_price = body.get("sell_price"), body.get("buy_price")
        if sell_price is None or buy_price is None:
            raise MalformedFrameError("Settlement frame missing profit", raw_data=str(body)[:200])
        profit_value = _to_decimal(sell_price, "sell_price") - _to_decimal(buy_price, "buy_price")
    else:
        profit_value = _to_decimal(profit, "profit")

    entry = body.get("entry_tick", body.get("entry_spot"))
    exit_ = body.get("exit_tick", body.get("exit_spot"))

    return SettlementFrame(
        contract_id=contract_id,
        profit=profit_value,
        status=status,
        entry_price=_to_decimal(entry, "entry_tick") if entry is not None else None,
        exit_price=_to_decimal(exit_, "exit_tick") if exit_ is not None else None,
        req_id=req_id,
        subscription_id=sub_id,
    )


def _to_decimal(value: Any, field_name: str) -> Decimal:
    if isinstance(value, bool):
        raise MalformedFrameError(f"Invalid {field_name}: {value!r}")
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise MalformedFrameError(f"Invalid {field_name}: {value!r} ({e})")
    if not result.is_finite():
        raise MalformedFrameError(f"Invalid {field_name}: {value!r}")
    return result


def _req_id(payload: dict[str, Any]) -> Optional[int]:
    value = payload.get("req_id")
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return None


def _subscription_id(payload: dict[str, Any]) -> Optional[str]:
    subscription = payload.get("subscription")
    if isinstance(subscription, dict) and subscription.get("id"):
        return str(subscription["id"])
    return None


def _preview(raw_data: Union[str, bytes]) -> str:
    if isinstance(raw_data, bytes):
        raw_data = raw_data.decode("utf-8", errors="replace")
    return str(raw_data)[:200]
