"""
Connection lifecycle data models.

The manager's dispatch loop consumes ConnectionEvent values from a single
queue. Lifecycle events carry the generation of the transport attempt that
produced them so events from a superseded attempt can be recognized.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional

from ..data.parsers import Frame


class ConnectionState(str, Enum):
    """Lifecycle of the single venue connection."""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"


class EventKind(str, Enum):
    """Everything the dispatch loop reacts to."""
    CONNECT_REQUESTED = "connect_requested"
    OPENED = "opened"
    FRAME = "frame"
    CLOSED = "closed"
    TRANSPORT_ERROR = "transport_error"
    CONNECT_TIMEOUT = "connect_timeout"
    HEARTBEAT_DUE = "heartbeat_due"
    HEARTBEAT_TIMEOUT = "heartbeat_timeout"
    RECONNECT_DUE = "reconnect_due"
    FLUSH = "flush"
    CALL = "call"
    STOP_REQUESTED = "stop_requested"


# Kinds tied to a specific transport attempt
LIFECYCLE_EVENTS = frozenset({
    EventKind.OPENED,
    EventKind.CLOSED,
    EventKind.TRANSPORT_ERROR,
    EventKind.CONNECT_TIMEOUT,
    EventKind.HEARTBEAT_DUE,
    EventKind.HEARTBEAT_TIMEOUT,
    EventKind.RECONNECT_DUE,
})


@dataclass(frozen=True)
class ConnectionEvent:
    """One item on the dispatch queue."""
    kind: EventKind
    generation: int = 0
    frame: Optional[Frame] = None
    reason: Optional[str] = None
    call: Optional[Callable[..., Any]] = field(default=None, compare=False)
    args: tuple = ()
