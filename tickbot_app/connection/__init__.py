"""
Venue connection layer.

One persistent duplex connection, a subscription registry replayed after
every reconnect, and a single dispatch loop that owns all connection state.
"""

from .manager import ConnectionManager
from .models import ConnectionEvent, ConnectionState, EventKind
from .registry import Subscription, SubscriptionKind, SubscriptionRegistry, SubscriptionType
from .transport import Transport, WebSocketTransport

__all__ = [
    "ConnectionManager",
    "ConnectionEvent",
    "ConnectionState",
    "EventKind",
    "Subscription",
    "SubscriptionKind",
    "SubscriptionRegistry",
    "SubscriptionType",
    "Transport",
    "WebSocketTransport",
]
