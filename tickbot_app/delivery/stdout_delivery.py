"""Standard output notification sink."""

import sys
from datetime import datetime, timezone
from typing import IO, Any, Optional

import orjson

from .base import BaseNotificationSink


class StdoutSink(BaseNotificationSink):
    """Prints one line per notification, JSON or human-readable."""

    def __init__(self, name: str = "stdout", format: str = "json", include_timestamp: bool = True,
                 stream: Optional[IO[str]] = None):
        super().__init__(name)
        if format not in ("json", "pretty"):
            raise ValueError(f"format must be 'json' or 'pretty', got {format!r}")
        self.format = format
        self.include_timestamp = include_timestamp
        self.stream = stream

    def notify(self, kind: str, payload: dict[str, Any]) -> None:
        stream = self.stream if self.stream is not None else sys.stdout
        print(self._format(kind, payload), file=stream, flush=True)

    def _format(self, kind: str, payload: dict[str, Any]) -> str:
        if self.format == "pretty":
            details = " ".join(f"{k}={v}" for k, v in payload.items() if not isinstance(v, (list, dict)))
            return f"[{datetime.now(timezone.utc).isoformat()}] {kind.upper()}: {details}"

        record = {"kind": kind, **payload}
        if self.include_timestamp:
            record["emitted_at"] = datetime.now(timezone.utc).isoformat()
        return orjson.dumps(record).decode()
