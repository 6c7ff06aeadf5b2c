"""
System failure error classifications for unrecoverable errors.

These exceptions represent faults after which automated trading state can
no longer be trusted and a fresh session is required.
"""

from typing import Optional, Dict, Any


class SystemFailureError(Exception):
    """Base class for unrecoverable system failures."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.context = context or {}
        self.recoverable = False


class SessionIntegrityError(SystemFailureError):
    """Trading session state is inconsistent with what the venue reports."""

    def __init__(self, message: str, contract_id: Optional[str] = None,
                 session_status: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.contract_id = contract_id
        self.session_status = session_status


class UnknownSettlementError(SessionIntegrityError):
    """Settlement arrived for a contract this session never placed."""


class TradeLogError(SystemFailureError):
    """Trade log write rejected."""

    def __init__(self, message: str, trade_id: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.trade_id = trade_id


class DuplicateTradeError(TradeLogError):
    """An entry with the same id was already recorded."""


class UnknownTradeError(TradeLogError):
    """Settlement targets an entry that was never recorded."""
