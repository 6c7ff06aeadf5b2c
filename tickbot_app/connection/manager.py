"""
Streaming connection manager.

Owns the single venue connection and its state machine:

    DISCONNECTED -connect-> CONNECTING -opened-> CONNECTED
    CONNECTED -(heartbeat timeout | transport error | remote close)-> RECONNECTING
    RECONNECTING -backoff elapsed-> CONNECTING
    any -stop-> DISCONNECTED

Everything that can change state arrives as a ConnectionEvent on one queue
and is processed by one loop. Transports and timers run on their own threads
but only post events.
"""

import itertools
import queue
import random
import threading
from collections import defaultdict, deque
from typing import Any, Callable, Optional

import orjson

from ..config.defaults import BackoffParams, ConnectionParams, HeartbeatParams
from ..data.parsers import ErrorFrame, Frame, FrameType, MalformedFrame, PongFrame
from ..errors import InvalidStateError, TransportError
from ..logging.config import get_connection_logger, log_state_transition
from .backoff import ExponentialBackoff
from .models import LIFECYCLE_EVENTS, ConnectionEvent, ConnectionState, EventKind
from .registry import SubscriptionRegistry
from .scheduler import Scheduler, ThreadingScheduler, TimerHandle
from .transport import Transport

logger = get_connection_logger(__name__)

FrameHandler = Callable[[Frame], None]
StateListener = Callable[[ConnectionState, ConnectionState, str], None]

_CONNECT_TIMER = "connect_timeout"
_HEARTBEAT_TIMER = "heartbeat"
_PONG_TIMER = "pong_timeout"
_RECONNECT_TIMER = "reconnect"


class ConnectionManager:
    """Single-connection manager with subscription replay and heartbeat."""

    def __init__(
        self,
        transport: Transport,
        scheduler: Optional[Scheduler] = None,
        connection_params: Optional[ConnectionParams] = None,
        backoff_params: Optional[BackoffParams] = None,
        heartbeat_params: Optional[HeartbeatParams] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.transport = transport
        self.scheduler = scheduler or ThreadingScheduler()
        self.connection_params = connection_params or ConnectionParams()
        self.heartbeat_params = heartbeat_params or HeartbeatParams()
        self.backoff = ExponentialBackoff(backoff_params, rng)
        self.registry = SubscriptionRegistry(self)

        self._state = ConnectionState.DISCONNECTED
        self._events: "queue.Queue[ConnectionEvent]" = queue.Queue()
        self._outbound: deque[dict[str, Any]] = deque()
        self._handlers: dict[FrameType, list[FrameHandler]] = defaultdict(list)
        self._state_listeners: list[StateListener] = []
        self._timers: dict[str, TimerHandle] = {}
        self._req_ids = itertools.count(1)

        self._generation = 0
        self._missed_pongs = 0
        self._ping_req_id: Optional[int] = None

        self._loop_thread_id: Optional[int] = None
        self._loop_thread: Optional[threading.Thread] = None
        self._exit_requested = False

        self._event_handlers: dict[EventKind, Callable[[ConnectionEvent], None]] = {
            EventKind.CONNECT_REQUESTED: self._on_connect_requested,
            EventKind.OPENED: self._on_opened,
            EventKind.FRAME: self._on_frame,
            EventKind.CLOSED: self._on_transport_failure,
            EventKind.TRANSPORT_ERROR: self._on_transport_failure,
            EventKind.CONNECT_TIMEOUT: self._on_connect_timeout,
            EventKind.HEARTBEAT_DUE: self._on_heartbeat_due,
            EventKind.HEARTBEAT_TIMEOUT: self._on_heartbeat_timeout,
            EventKind.RECONNECT_DUE: self._on_reconnect_due,
            EventKind.FLUSH: lambda event: None,
            EventKind.CALL: self._on_call,
            EventKind.STOP_REQUESTED: self._on_stop_requested,
        }

    # Public API

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def generation(self) -> int:
        return self._generation

    def is_connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    @property
    def running_in_background(self) -> bool:
        return self._loop_thread is not None and self._loop_thread.is_alive()

    def in_loop_thread(self) -> bool:
        return threading.get_ident() == self._loop_thread_id

    def connect(self) -> None:
        """Request a connection. Transient failures are retried, never raised."""
        self._post(ConnectionEvent(EventKind.CONNECT_REQUESTED))

    def stop(self, reason: str = "stopped") -> None:
        """Disconnect, cancel timers and drop all subscriptions."""
        self._post(ConnectionEvent(EventKind.STOP_REQUESTED, reason=reason))

    def call_soon(self, fn: Callable[..., Any], *args: Any) -> None:
        """Run ``fn(*args)`` on the dispatch loop."""
        self._post(ConnectionEvent(EventKind.CALL, call=fn, args=args))

    def send(self, request: dict[str, Any]) -> int:
        """
        Queue a request for the venue.

        Returns:
            The ``req_id`` assigned to the request

        Raises:
            InvalidStateError: If the connection is not CONNECTED
        """
        if self._state is not ConnectionState.CONNECTED:
            raise InvalidStateError(
                f"Cannot send while {self._state.value}",
                current_state=self._state.value,
                required_state=ConnectionState.CONNECTED.value,
            )

        req_id = next(self._req_ids)
        self._outbound.append({**request, "req_id": req_id})

        if threading.get_ident() != self._loop_thread_id:
            self._post(ConnectionEvent(EventKind.FLUSH))

        return req_id

    def on(self, frame_type: FrameType, handler: FrameHandler) -> None:
        """Register a handler for decoded frames of ``frame_type``."""
        self._handlers[frame_type].append(handler)

    def add_state_listener(self, listener: StateListener) -> None:
        """Register ``listener(old, new, reason)`` for state transitions."""
        self._state_listeners.append(listener)

    def run(self) -> None:
        """Process events until ``shutdown`` is requested. Blocks."""
        self._loop_thread_id = threading.get_ident()
        self._exit_requested = False
        logger.info("Dispatch loop started")
        try:
            while not self._exit_requested:
                self._dispatch(self._events.get())
        finally:
            self._loop_thread_id = None
            logger.info("Dispatch loop stopped")

    def run_pending(self) -> int:
        """
        Process queued events without blocking.

        Returns:
            Number of events processed
        """
        processed = 0
        self._loop_thread_id = threading.get_ident()
        try:
            while True:
                try:
                    event = self._events.get_nowait()
                except queue.Empty:
                    break
                self._dispatch(event)
                processed += 1
        finally:
            self._loop_thread_id = None
        return processed

    def start_background(self) -> threading.Thread:
        """Run the dispatch loop on a daemon thread."""
        if self._loop_thread is not None and self._loop_thread.is_alive():
            return self._loop_thread

        self._loop_thread = threading.Thread(target=self.run, name="tickbot-dispatch", daemon=True)
        self._loop_thread.start()
        return self._loop_thread

    def shutdown(self, timeout: Optional[float] = 5.0) -> None:
        """Stop the connection and end a background dispatch loop."""
        self.stop("shutdown")
        self.call_soon(self._request_exit)

        thread = self._loop_thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
            self._loop_thread = None

    # Dispatch

    def _post(self, event: ConnectionEvent) -> None:
        self._events.put(event)

    def _dispatch(self, event: ConnectionEvent) -> None:
        if event.kind in LIFECYCLE_EVENTS and event.generation != self._generation:
            logger.debug(
                "Ignoring stale event",
                kind=event.kind.value,
                event_generation=event.generation,
                generation=self._generation,
            )
            return

        try:
            self._event_handlers[event.kind](event)
        except Exception:
            logger.exception("Event handling failed", kind=event.kind.value)

        self._flush()

    def _request_exit(self) -> None:
        self._exit_requested = True

    # Event handlers

    def _on_connect_requested(self, event: ConnectionEvent) -> None:
        if self._state is not ConnectionState.DISCONNECTED:
            logger.debug("Connect ignored", state=self._state.value)
            return

        self.backoff.reset()
        self._transition(ConnectionState.CONNECTING, "connect_requested")
        self._open_transport()

    def _on_opened(self, event: ConnectionEvent) -> None:
        if self._state is not ConnectionState.CONNECTING:
            return

        self._cancel_timer(_CONNECT_TIMER)
        self.backoff.reset()
        self._missed_pongs = 0
        self._ping_req_id = None
        self._transition(ConnectionState.CONNECTED, "opened")

    def _on_transport_failure(self, event: ConnectionEvent) -> None:
        reason = event.reason or event.kind.value
        if event.kind is EventKind.CLOSED:
            reason = f"remote_close: {reason}"
        self._fail_connection(reason)

    def _on_connect_timeout(self, event: ConnectionEvent) -> None:
        if self._state is ConnectionState.CONNECTING:
            self._fail_connection("connect_timeout")

    def _on_reconnect_due(self, event: ConnectionEvent) -> None:
        if self._state is not ConnectionState.RECONNECTING:
            return

        self._transition(ConnectionState.CONNECTING, "backoff_elapsed")
        self._open_transport()

    def _on_heartbeat_due(self, event: ConnectionEvent) -> None:
        if self._state is not ConnectionState.CONNECTED:
            return

        self._ping_req_id = self.send({"ping": 1})
        self._schedule(_PONG_TIMER, self.heartbeat_params.timeout_seconds, EventKind.HEARTBEAT_TIMEOUT)
        self._schedule(_HEARTBEAT_TIMER, self.heartbeat_params.interval_seconds, EventKind.HEARTBEAT_DUE)

    def _on_heartbeat_timeout(self, event: ConnectionEvent) -> None:
        if self._state is not ConnectionState.CONNECTED:
            return

        self._missed_pongs += 1
        self._ping_req_id = None
        logger.warning(
            "Heartbeat missed",
            missed=self._missed_pongs,
            max_missed=self.heartbeat_params.max_missed,
        )

        if self._missed_pongs >= self.heartbeat_params.max_missed:
            self._fail_connection("heartbeat_timeout")

    def _on_frame(self, event: ConnectionEvent) -> None:
        frame = event.frame
        if frame is None:
            return

        if isinstance(frame, MalformedFrame):
            logger.warning("Dropping malformed frame", reason=frame.reason, raw=frame.raw)
            return

        current = event.generation == self._generation

        if isinstance(frame, PongFrame) and current:
            self._cancel_timer(_PONG_TIMER)
            self._missed_pongs = 0
            self._ping_req_id = None

        if isinstance(frame, ErrorFrame):
            logger.warning(
                "Venue error",
                code=frame.code,
                message=frame.message,
                msg_type=frame.msg_type,
                req_id=frame.req_id,
            )
            if frame.req_id is not None:
                self.registry.reject(frame.req_id, frame.message)

        if frame.subscription_id is not None and frame.req_id is not None and current:
            self.registry.bind_remote_id(frame.req_id, frame.subscription_id)

        handlers = self._handlers.get(frame.type)
        if not handlers:
            if frame.type is FrameType.UNKNOWN:
                logger.debug("Unhandled frame", msg_type=getattr(frame, "msg_type", None))
            return

        for handler in list(handlers):
            try:
                handler(frame)
            except Exception:
                logger.exception("Frame handler failed", frame_type=frame.type.value)

    def _on_call(self, event: ConnectionEvent) -> None:
        if event.call is not None:
            event.call(*event.args)

    def _on_stop_requested(self, event: ConnectionEvent) -> None:
        self._cancel_all_timers()
        self.registry.clear()
        self._generation += 1
        self._close_transport()

        if self._outbound:
            logger.info("Discarding unsent requests on stop", count=len(self._outbound))
            self._outbound.clear()

        self._transition(ConnectionState.DISCONNECTED, event.reason or "stopped")

    # Internals

    def _open_transport(self) -> None:
        self._generation += 1
        self._schedule(_CONNECT_TIMER, self.connection_params.connect_timeout_seconds, EventKind.CONNECT_TIMEOUT)

        logger.info("Opening transport", generation=self._generation, attempt=self.backoff.attempts)
        try:
            self.transport.open(self._generation, self._post)
        except TransportError as e:
            self._fail_connection(f"open_failed: {e.reason}")

    def _close_transport(self) -> None:
        try:
            self.transport.close()
        except TransportError as e:
            logger.debug("Transport close failed", reason=e.reason)

    def _fail_connection(self, reason: str) -> None:
        """Abandon the current attempt and schedule the next one."""
        if self._state not in (ConnectionState.CONNECTING, ConnectionState.CONNECTED):
            return

        self._cancel_all_timers()
        self._generation += 1
        self._close_transport()

        delay = self.backoff.next_delay()
        if delay is None:
            logger.error("Reconnect attempts exhausted", attempts=self.backoff.attempts, last_reason=reason)
            self._transition(ConnectionState.DISCONNECTED, "retries_exhausted")
            return

        self._transition(ConnectionState.RECONNECTING, reason)
        logger.info("Reconnect scheduled", delay_seconds=round(delay, 3), attempt=self.backoff.attempts)
        self._schedule(_RECONNECT_TIMER, delay, EventKind.RECONNECT_DUE)

    def _transition(self, new_state: ConnectionState, reason: str) -> None:
        old_state = self._state
        if old_state is new_state:
            return

        self._state = new_state

        if new_state is ConnectionState.CONNECTED:
            self._prepare_connected()
            if self._state is not new_state:
                return

        log_state_transition(
            logger,
            entity="connection",
            from_state=old_state.value,
            to_state=new_state.value,
            trigger=reason,
            context={"generation": self._generation},
        )

        for listener in list(self._state_listeners):
            try:
                listener(old_state, new_state, reason)
            except Exception:
                logger.exception("State listener failed", to_state=new_state.value)

    def _prepare_connected(self) -> None:
        """Drop stale requests, replay subscriptions and flush before anyone is told."""
        if self._outbound:
            logger.warning(
                "Dropping stale unsent requests",
                count=len(self._outbound),
                req_ids=[r.get("req_id") for r in self._outbound],
            )
            self._outbound.clear()

        self._schedule(_HEARTBEAT_TIMER, self.heartbeat_params.interval_seconds, EventKind.HEARTBEAT_DUE)
        self.registry.replay()
        self._flush()

    def _flush(self) -> None:
        while self._outbound and self._state is ConnectionState.CONNECTED:
            request = self._outbound.popleft()
            try:
                self.transport.send(orjson.dumps(request).decode())
            except TransportError as e:
                logger.warning("Write failed", req_id=request.get("req_id"), reason=e.reason)
                self._fail_connection(f"send_failed: {e.reason}")
                return

    def _schedule(self, name: str, delay: float, kind: EventKind) -> None:
        self._cancel_timer(name)
        event = ConnectionEvent(kind, generation=self._generation)
        self._timers[name] = self.scheduler.call_later(delay, lambda: self._post(event))

    def _cancel_timer(self, name: str) -> None:
        handle = self._timers.pop(name, None)
        if handle is not None:
            handle.cancel()

    def _cancel_all_timers(self) -> None:
        for name in list(self._timers):
            self._cancel_timer(name)
