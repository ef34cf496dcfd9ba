# Ariwa - Vote Stream Client
"""
WebSocket client for the websockets-topgg vote stream.

Connects to wss://api.websockets-topgg.com/v0/websocket, classifies inbound
frames into ready/vote/test/reminder events, tracks the resumption marker
across reconnects and restarts, and reconnects with jittered exponential
backoff after abnormal closes.

Each connection attempt gets a fresh WebSocketApp running on its own daemon
thread. Callbacks carry the generation number of the handle they belong to;
callbacks from a superseded handle are ignored.
"""

import functools
import threading
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Dict, Optional, Union

import structlog
import websocket
from pydantic import ValidationError

from .backoff import DEFAULT_INITIAL_DELAY, DEFAULT_MAX_DELAY, ReconnectPolicy
from .checkpoint import CheckpointTracker
from .errors import DisconnectTimeoutError, FrameError
from .events import EventEmitter
from .models import (
    EVENT_DISCONNECTED,
    EVENT_ERROR,
    EVENT_OPEN,
    EVENT_UNKNOWN_OP,
    NORMAL_CLOSURE,
    VALID_EVENTS,
    Frame,
)

logger = structlog.get_logger(__name__)

WS_URL = "wss://api.websockets-topgg.com/v0/websocket"
DISCONNECT_TIMEOUT = 5.0  # seconds


class ConnectionState(str, Enum):
    IDLE = "idle"
    OPENING = "opening"
    OPEN = "open"
    CLOSING = "closing"
    CLOSED = "closed"


class VoteStreamClient:
    """WebSocket client for the websockets-topgg stream.

    Lifecycle: IDLE -> OPENING -> OPEN -> CLOSING -> CLOSED, with OPENING
    re-entered from CLOSED when a reconnect fires.

    Attributes:
        token: websockets-topgg token sent as the Authorization header
        name: Client display name sent in the handshake
        events: Registry the client emits to
        auto_reconnect: Reconnect after abnormal closes
        policy: Reconnection attempt bookkeeping
        checkpoint: Resumption marker tracker
        ws: Active WebSocketApp, if any
        last_connect_time: UTC time of the last successful open
    """

    def __init__(
        self,
        token: str,
        name: str,
        events: Optional[EventEmitter] = None,
        url: str = WS_URL,
        auto_reconnect: bool = True,
        initial_delay: float = DEFAULT_INITIAL_DELAY,
        max_delay: float = DEFAULT_MAX_DELAY,
        max_attempts: Optional[int] = None,
        persist_path: Optional[Union[str, Path]] = None,
        disconnect_timeout: float = DISCONNECT_TIMEOUT,
    ):
        """Initialize the VoteStreamClient.

        Args:
            token: websockets-topgg token
            name: Client display name
            events: Event registry (a new one is created when omitted)
            url: WebSocket endpoint
            auto_reconnect: Reconnect after abnormal closes
            initial_delay: Base reconnect delay in seconds
            max_delay: Ceiling for the exponential part of the delay
            max_attempts: Reconnect attempts before giving up (None for unbounded)
            persist_path: File to persist the resumption marker in
            disconnect_timeout: Seconds ``disconnect`` waits for the close
        """
        self.token = token
        self.name = name
        self.events = events or EventEmitter(VALID_EVENTS)
        self.url = url
        self.auto_reconnect = auto_reconnect
        self.policy = ReconnectPolicy(initial_delay=initial_delay, max_delay=max_delay, max_attempts=max_attempts)
        self.checkpoint = CheckpointTracker(persist_path)
        self.disconnect_timeout = disconnect_timeout

        self.ws: Optional[websocket.WebSocketApp] = None
        self.last_connect_time: Optional[datetime] = None
        self._state = ConnectionState.IDLE
        self._generation = 0
        self._intentional_close = False
        self._thread: Optional[threading.Thread] = None
        self._reconnect_timer: Optional[threading.Timer] = None
        self._closed = threading.Event()
        self._lock = threading.RLock()

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def last_message_timestamp(self) -> Optional[int]:
        """Most recent resumption marker seen (or loaded)."""
        return self.checkpoint.marker

    def is_connected(self) -> bool:
        return self._state == ConnectionState.OPEN

    def _build_headers(self) -> Dict[str, str]:
        """Handshake headers: token, client name and the marker if known."""
        headers = {"Authorization": self.token, "name": self.name}
        marker = self.checkpoint.marker
        if marker:
            headers["lastMessageTimestamp"] = str(marker)
        return headers

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def connect(self, last_message_timestamp: Optional[int] = None) -> None:
        """Open the stream.

        The starting marker is ``last_message_timestamp`` if given, else the
        persisted checkpoint, else none. Returns once the connection attempt has
        started; the ``open`` and ``ready`` events report success.

        Args:
            last_message_timestamp: Marker override for the handshake
        """
        with self._lock:
            if self._state in (ConnectionState.OPEN, ConnectionState.OPENING):
                logger.warning("ws_already_connecting", state=self._state.value)
                return
            self._cancel_reconnect()
            self._state = ConnectionState.OPENING

        marker = last_message_timestamp if last_message_timestamp is not None else self.checkpoint.load()

        with self._lock:
            self.checkpoint.reset(marker)
            self._intentional_close = False
            self.policy.reset()
            self._open()

    def _open(self) -> None:
        """Start a new connection handle."""
        with self._lock:
            if self._intentional_close:
                return
            self._generation += 1
            generation = self._generation
            self._state = ConnectionState.OPENING
            self._closed.clear()

            headers = self._build_headers()
            logger.info("ws_connecting", url=self.url, attempt=self.policy.attempts, has_marker="lastMessageTimestamp" in headers)

            self.ws = websocket.WebSocketApp(
                self.url,
                header=headers,
                on_open=functools.partial(self._on_open, generation),
                on_message=functools.partial(self._on_message, generation),
                on_error=functools.partial(self._on_error, generation),
                on_close=functools.partial(self._on_close, generation),
            )
            self._start(self.ws, generation)

    def _start(self, ws: websocket.WebSocketApp, generation: int) -> None:
        """Run the handle on its own daemon thread."""
        self._thread = threading.Thread(
            target=self._run,
            args=(ws, generation),
            name=f"ariwa-ws-{generation}",
            daemon=True,
        )
        self._thread.start()

    def _run(self, ws: websocket.WebSocketApp, generation: int) -> None:
        """Run one handle until it closes."""
        try:
            ws.run_forever(ping_interval=0)
        except Exception as e:
            logger.error("ws_connection_error", error=str(e), error_type=type(e).__name__)
            self._on_error(generation, ws, e)

        # run_forever normally reports the close itself; make sure a handle
        # that died without a close callback still goes through close handling.
        with self._lock:
            unhandled = generation == self._generation and self._state in (
                ConnectionState.OPENING,
                ConnectionState.OPEN,
                ConnectionState.CLOSING,
            )
        if unhandled:
            self._on_close(generation, ws, None, None)

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation

    def _on_open(self, generation: int, ws: websocket.WebSocketApp) -> None:
        # The generation check and the transition share one lock hold so a
        # concurrent disconnect cannot release the handle in between.
        with self._lock:
            current = self._is_current(generation)
            if current:
                self._state = ConnectionState.OPEN
                self.policy.reset()
                self.last_connect_time = datetime.now(timezone.utc)

        if not current:
            logger.debug("ws_stale_open_ignored", generation=generation)
            ws.close()
            return

        logger.info("ws_connected", name=self.name)
        self.events.emit(EVENT_OPEN)

    def _on_message(self, generation: int, ws: websocket.WebSocketApp, message: Union[str, bytes]) -> None:
        if not self._is_current(generation):
            return
        self._handle_message(message)

    def _handle_message(self, message: Union[str, bytes]) -> None:
        """Validate, classify and dispatch one inbound frame.

        Frames are emitted before the marker is advanced and persisted; the
        persist runs in the background and never delays the next frame.
        """
        try:
            frame = Frame.model_validate_json(message)
        except ValidationError as e:
            preview = message[:100] if isinstance(message, str) else repr(message[:100])
            logger.error("ws_invalid_frame", error=str(e), message_preview=preview)
            self.events.emit(EVENT_ERROR, FrameError(reason=str(e), raw=preview))
            return

        event = frame.event_name
        if event is not None:
            self.events.emit(event, frame.event_payload())
        else:
            logger.debug("ws_unknown_op", op=frame.op)
            self.events.emit(EVENT_UNKNOWN_OP, frame.op, frame.d)

        if frame.ts is not None:
            if self.checkpoint.advance(frame.ts):
                self.checkpoint.persist()
            else:
                logger.warning("ws_marker_regression_ignored", ts=frame.ts, current=self.checkpoint.marker)

    def _on_error(self, generation: int, ws: websocket.WebSocketApp, error: Exception) -> None:
        with self._lock:
            if not self._is_current(generation):
                return
        logger.error("ws_error", error=str(error), error_type=type(error).__name__)
        self.events.emit(EVENT_ERROR, error)

    def _on_close(
        self,
        generation: int,
        ws: websocket.WebSocketApp,
        close_status_code: Optional[int],
        close_msg: Optional[str],
    ) -> None:
        """Report the close and decide whether to reconnect.

        Close code 1000 and intentional closes never reconnect; other codes
        reconnect while auto-reconnect is on and attempts remain.
        """
        with self._lock:
            if not self._is_current(generation) or self._state == ConnectionState.CLOSED:
                return
            reconnect = (
                not self._intentional_close
                and self.auto_reconnect
                and close_status_code != NORMAL_CLOSURE
                and self.policy.can_retry()
            )
            self._state = ConnectionState.CLOSED

        reason = close_msg.decode("utf-8", "replace") if isinstance(close_msg, bytes) else (close_msg or "")
        logger.info("ws_closed", close_code=close_status_code, close_msg=reason, reconnect=reconnect)
        self.events.emit(EVENT_DISCONNECTED, close_status_code, reason)
        self._closed.set()

        if reconnect:
            self._schedule_reconnect(generation)

    def _schedule_reconnect(self, generation: int) -> None:
        """Schedule the next attempt with jittered exponential backoff."""
        with self._lock:
            if self._intentional_close or not self._is_current(generation):
                return
            delay = self.policy.next_delay()
            logger.info("ws_reconnect_scheduled", delay_seconds=round(delay, 3), attempt=self.policy.attempts)
            timer = threading.Timer(delay, self._reconnect, args=(generation,))
            timer.daemon = True
            self._reconnect_timer = timer
            timer.start()

    def _reconnect(self, generation: int) -> None:
        with self._lock:
            if self._intentional_close or not self._is_current(generation):
                return
            self._reconnect_timer = None
            self._open()

    def _cancel_reconnect(self) -> None:
        if self._reconnect_timer is not None:
            self._reconnect_timer.cancel()
            self._reconnect_timer = None

    def disconnect(self, timeout: Optional[float] = None) -> None:
        """Close the stream and stop reconnecting.

        Args:
            timeout: Seconds to wait for the close (defaults to
                ``disconnect_timeout``)

        Raises:
            DisconnectTimeoutError: The close did not complete in time
        """
        timeout = self.disconnect_timeout if timeout is None else timeout
        logger.info("ws_disconnecting")

        with self._lock:
            self._intentional_close = True
            self._cancel_reconnect()
            ws = self.ws
            established = ws is not None and self._state == ConnectionState.OPEN
            if not established:
                # Nothing established: drop any half-open handle and stop.
                self._release(ws)
            else:
                self._state = ConnectionState.CLOSING
                closed = self._closed

        if not established:
            self.checkpoint.flush()
            return

        try:
            ws.close(status=NORMAL_CLOSURE, reason=b"Client disconnect")
        except Exception as e:
            logger.error("ws_close_error", error=str(e), error_type=type(e).__name__)

        completed = closed.wait(timeout)
        with self._lock:
            self._release(ws)
        self.checkpoint.flush()

        if not completed:
            logger.error("ws_disconnect_timeout", timeout=timeout)
            raise DisconnectTimeoutError(timeout)

    def _release(self, ws: Optional[websocket.WebSocketApp]) -> None:
        """Detach a handle so none of its callbacks reach this client again."""
        self._generation += 1
        self._state = ConnectionState.CLOSED if self._state != ConnectionState.IDLE else ConnectionState.IDLE
        if ws is None:
            return
        for attr in ("on_open", "on_message", "on_error", "on_close"):
            setattr(ws, attr, None)
        if ws is self.ws:
            self.ws = None
        if ws.keep_running:
            ws.close()
