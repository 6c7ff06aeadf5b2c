"""
Duplex transports feeding the connection manager.

A transport opens one connection attempt per ``open`` call and reports
everything that happens to it by posting ConnectionEvent values tagged with
the attempt's generation. Inbound messages are decoded into frames on the
transport thread so the dispatch loop only ever sees typed frames.
"""

import threading
from typing import Callable, Optional, Protocol

import structlog
import websocket

from ..data.parsers import decode_frame
from ..errors import TransportError
from .models import ConnectionEvent, EventKind

logger = structlog.get_logger(__name__)

PostFn = Callable[[ConnectionEvent], None]


class Transport(Protocol):
    def open(self, generation: int, post: PostFn) -> None: ...

    def send(self, text: str) -> None: ...

    def close(self) -> None: ...


class WebSocketTransport:
    """WebSocket transport running ``WebSocketApp.run_forever`` on a daemon thread."""

    def __init__(self, url: str):
        self.url = url
        self._app: Optional[websocket.WebSocketApp] = None
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()

    def open(self, generation: int, post: PostFn) -> None:
        """
        Start a connection attempt.

        Raises:
            TransportError: If the attempt could not be started
        """
        def on_open(ws):
            post(ConnectionEvent(EventKind.OPENED, generation=generation))

        def on_message(ws, message):
            post(ConnectionEvent(EventKind.FRAME, generation=generation, frame=decode_frame(message)))

        def on_error(ws, error):
            post(ConnectionEvent(EventKind.TRANSPORT_ERROR, generation=generation, reason=str(error) or type(error).__name__))

        def on_close(ws, close_status_code, close_msg):
            post(ConnectionEvent(
                EventKind.CLOSED,
                generation=generation,
                reason=f"closed code={close_status_code} msg={close_msg or ''}".strip(),
            ))

        app = websocket.WebSocketApp(
            self.url,
            on_open=on_open,
            on_message=on_message,
            on_error=on_error,
            on_close=on_close,
        )

        with self._lock:
            self._app = app
            try:
                self._thread = threading.Thread(
                    target=app.run_forever,
                    name=f"tickbot-ws-{generation}",
                    daemon=True,
                )
                self._thread.start()
            except RuntimeError as e:
                self._app = None
                raise TransportError(f"Could not start transport thread: {e}", reason="open_failed")

        logger.debug("Transport attempt started", url=self.url, generation=generation)

    def send(self, text: str) -> None:
        """
        Write one text message.

        Raises:
            TransportError: If there is no open socket or the write fails
        """
        with self._lock:
            app = self._app

        if app is None or app.sock is None:
            raise TransportError("Transport is not open", reason="not_open")

        try:
            app.send(text)
        except (websocket.WebSocketException, OSError) as e:
            raise TransportError(f"Send failed: {e}", reason="send_failed")

    def close(self) -> None:
        with self._lock:
            app, self._app = self._app, None
            self._thread = None

        if app is not None:
            try:
                app.close()
            except (websocket.WebSocketException, OSError) as e:
                logger.debug("Transport close raised", error=str(e))
