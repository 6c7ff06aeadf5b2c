"""
Recovery strategy classifications for error handling.

These classes categorize errors by their recovery characteristics
and guide the error handling strategy.
"""

from typing import Optional


class RecoverableError(Exception):
    """Mixin for errors that can be recovered from automatically."""

    def __init__(self, message: str, retry_count: int = 0,
                 max_retries: Optional[int] = None, **kwargs):
        super().__init__(message)
        self.retry_count = retry_count
        self.max_retries = max_retries
        self.recoverable = True


class UnrecoverableError(Exception):
    """Mixin for errors that require human intervention."""

    def __init__(self, message: str, **kwargs):
        super().__init__(message)
        self.recoverable = False


class TransportError(RecoverableError):
    """Transient network fault: disconnect, timeout or failed write."""

    def __init__(self, message: str, reason: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.reason = reason or message


class InvalidStateError(UnrecoverableError):
    """Operation called in a state that does not allow it (caller misuse)."""

    def __init__(self, message: str, current_state: Optional[str] = None,
                 required_state: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.current_state = current_state
        self.required_state = required_state
