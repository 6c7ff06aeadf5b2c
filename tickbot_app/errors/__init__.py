"""
Error classification system for the streaming and trading layers.

Errors are grouped by how they are handled: protocol faults are logged and
dropped, transport faults are recovered by reconnecting, session-integrity
faults stop the trading session, and caller misuse is raised synchronously.
"""

from .protocol import (
    ProtocolError,
    MalformedFrameError,
    UnexpectedFrameError,
)
from .system_failures import (
    SystemFailureError,
    SessionIntegrityError,
    UnknownSettlementError,
    TradeLogError,
    DuplicateTradeError,
    UnknownTradeError,
)
from .recovery import (
    RecoverableError,
    UnrecoverableError,
    TransportError,
    InvalidStateError,
)

__all__ = [
    # Protocol Errors
    "ProtocolError",
    "MalformedFrameError",
    "UnexpectedFrameError",
    # System Failures
    "SystemFailureError",
    "SessionIntegrityError",
    "UnknownSettlementError",
    "TradeLogError",
    "DuplicateTradeError",
    "UnknownTradeError",
    # Recovery Categories
    "RecoverableError",
    "UnrecoverableError",
    "TransportError",
    "InvalidStateError",
]
