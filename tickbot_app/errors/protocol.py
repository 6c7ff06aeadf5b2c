"""
Protocol error classifications for inbound venue frames.

These exceptions describe frames that cannot be used. They are always
handled at the connection boundary: logged and dropped, never fatal.
"""

from typing import Optional, Dict, Any


class ProtocolError(Exception):
    """Base class for frame-level issues that can be handled gracefully."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.context = context or {}
        self.recoverable = True


class MalformedFrameError(ProtocolError):
    """Frame is not valid JSON or lacks the fields its type requires."""

    def __init__(self, message: str, raw_data: Optional[str] = None,
                 expected_format: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.raw_data = raw_data
        self.expected_format = expected_format


class UnexpectedFrameError(ProtocolError):
    """Frame decoded fine but arrived where it cannot be used."""

    def __init__(self, message: str, frame_type: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.frame_type = frame_type
