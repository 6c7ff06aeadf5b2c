"""
Subscription registry.

Tracks every stream the application is interested in, keyed by a local id
that stays stable across reconnects. The venue's own subscription ids change
on every connection, so they are re-bound from the acknowledgements after
each replay.
"""

import itertools
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Optional, Protocol

from ..logging.config import get_connection_logger

logger = get_connection_logger(__name__)


class SubscriptionType(str, Enum):
    """Streams the venue can push."""
    TICKS = "ticks"
    BALANCE = "balance"
    PORTFOLIO = "portfolio"
    CONTRACT = "contract"


@dataclass(frozen=True)
class SubscriptionKind:
    """What a subscription streams. Hashable; equal kinds share one subscription."""
    type: SubscriptionType
    symbol: Optional[str] = None
    contract_id: Optional[str] = None

    @classmethod
    def ticks(cls, symbol: str) -> "SubscriptionKind":
        return cls(SubscriptionType.TICKS, symbol)

    @classmethod
    def balance(cls) -> "SubscriptionKind":
        return cls(SubscriptionType.BALANCE)

    @classmethod
    def portfolio(cls) -> "SubscriptionKind":
        return cls(SubscriptionType.PORTFOLIO)

    @classmethod
    def contract(cls, contract_id: str) -> "SubscriptionKind":
        return cls(SubscriptionType.CONTRACT, contract_id=contract_id)

    def request(self) -> dict[str, Any]:
        """Venue request that opens this stream."""
        if self.type is SubscriptionType.TICKS:
            return {"ticks": self.symbol, "subscribe": 1}
        if self.type is SubscriptionType.BALANCE:
            return {"balance": 1, "subscribe": 1}
        if self.type is SubscriptionType.CONTRACT:
            # The venue answers with the final state even if the contract already sold
            contract_id = int(self.contract_id) if self.contract_id.isdigit() else self.contract_id
            return {"proposal_open_contract": 1, "contract_id": contract_id, "subscribe": 1}
        # All open contracts of the account
        return {"proposal_open_contract": 1, "subscribe": 1}

    def __str__(self) -> str:
        detail = self.symbol or self.contract_id
        return f"{self.type.value}:{detail}" if detail else self.type.value


@dataclass(frozen=True)
class Subscription:
    """One registered interest."""
    id: str
    kind: SubscriptionKind
    active: bool = True
    remote_id: Optional[str] = None


class Outbound(Protocol):
    def is_connected(self) -> bool: ...

    def send(self, request: dict[str, Any]) -> int: ...


class SubscriptionRegistry:
    """
    Active subscriptions in registration order.

    Only the connection manager's dispatch loop should call the mutating
    methods.
    """

    def __init__(self, outbound: Outbound):
        self._outbound = outbound
        self._subscriptions: dict[str, Subscription] = {}
        self._active_by_kind: dict[SubscriptionKind, str] = {}
        self._pending: dict[int, str] = {}       # req_id -> subscription id
        self._ids = itertools.count(1)

    def subscribe(self, kind: SubscriptionKind) -> str:
        """
        Register interest in ``kind``.

        Idempotent: an active subscription of the same kind is returned as is
        and no second venue request is sent.
        """
        existing = self._active_by_kind.get(kind)
        if existing is not None:
            return existing

        sub_id = f"sub-{next(self._ids)}"
        self._subscriptions[sub_id] = Subscription(id=sub_id, kind=kind)
        self._active_by_kind[kind] = sub_id

        logger.info("Subscription registered", subscription_id=sub_id, kind=str(kind))

        if self._outbound.is_connected():
            self._issue(sub_id)

        return sub_id

    def unsubscribe(self, sub_id: str) -> bool:
        """
        Mark a subscription inactive and forget it on the venue when possible.

        Returns:
            False if the id is unknown or already inactive
        """
        sub = self._subscriptions.get(sub_id)
        if sub is None or not sub.active:
            return False

        self._subscriptions[sub_id] = replace(sub, active=False)
        self._active_by_kind.pop(sub.kind, None)

        if sub.remote_id is not None and self._outbound.is_connected():
            self._outbound.send({"forget": sub.remote_id})

        logger.info("Subscription removed", subscription_id=sub_id, kind=str(sub.kind), remote_id=sub.remote_id)
        return True

    def bind_remote_id(self, req_id: int, remote_id: str) -> Optional[str]:
        """
        Associate the venue's subscription id with the request that opened it.

        Returns:
            The local subscription id, or None if ``req_id`` is not a pending
            subscribe request
        """
        sub_id = self._pending.pop(req_id, None)
        if sub_id is None:
            return None

        sub = self._subscriptions[sub_id]
        self._subscriptions[sub_id] = replace(sub, remote_id=remote_id)

        if not sub.active and self._outbound.is_connected():
            # Unsubscribed before the venue acknowledged
            self._outbound.send({"forget": remote_id})

        logger.debug("Subscription bound", subscription_id=sub_id, remote_id=remote_id, active=sub.active)
        return sub_id

    def reject(self, req_id: int, reason: str) -> Optional[str]:
        """Deactivate the subscription a failed subscribe request belonged to."""
        sub_id = self._pending.pop(req_id, None)
        if sub_id is None:
            return None

        sub = self._subscriptions[sub_id]
        if sub.active:
            self._subscriptions[sub_id] = replace(sub, active=False)
            self._active_by_kind.pop(sub.kind, None)

        logger.warning("Subscription rejected by venue", subscription_id=sub_id, kind=str(sub.kind), reason=reason)
        return sub_id

    def replay(self) -> list[str]:
        """Re-issue every active subscription in registration order."""
        self._pending.clear()
        replayed = []
        for sub_id, sub in list(self._subscriptions.items()):
            if not sub.active:
                continue
            self._subscriptions[sub_id] = replace(sub, remote_id=None)
            self._issue(sub_id)
            replayed.append(sub_id)

        if replayed:
            logger.info("Subscriptions replayed", subscription_ids=replayed)
        return replayed

    def clear(self) -> None:
        """Mark every subscription inactive (logout / shutdown)."""
        for sub_id, sub in self._subscriptions.items():
            if sub.active:
                self._subscriptions[sub_id] = replace(sub, active=False)
        self._active_by_kind.clear()
        self._pending.clear()
        logger.info("Subscriptions cleared")

    def get(self, sub_id: str) -> Optional[Subscription]:
        return self._subscriptions.get(sub_id)

    def find(self, kind: SubscriptionKind) -> Optional[Subscription]:
        sub_id = self._active_by_kind.get(kind)
        return self._subscriptions[sub_id] if sub_id else None

    def active(self) -> tuple[Subscription, ...]:
        """Active subscriptions in registration order."""
        return tuple(s for s in self._subscriptions.values() if s.active)

    def _issue(self, sub_id: str) -> None:
        req_id = self._outbound.send(self._subscriptions[sub_id].kind.request())
        self._pending[req_id] = sub_id
