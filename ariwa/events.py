# Ariwa - Event Emitter
"""
Publish/subscribe registry for stream events.

Maps an event name to the listeners registered for it. Listeners run on the
thread that emits (the WebSocket thread for stream events), in registration
order. A listener that raises is logged and skipped; it never stops delivery
to the remaining listeners or unwinds the connection thread.
"""

import threading
from collections import defaultdict
from typing import Any, Callable, Dict, Iterable, List, Optional

import structlog

logger = structlog.get_logger(__name__)

Listener = Callable[..., Any]


class EventEmitter:
    """Thread-safe event registry.

    Args:
        events: Allowed event names; any name is accepted when omitted
    """

    def __init__(self, events: Optional[Iterable[str]] = None):
        self._allowed = frozenset(events) if events is not None else None
        self._listeners: Dict[str, List[Listener]] = defaultdict(list)
        self._lock = threading.RLock()

    def _check(self, event: str) -> None:
        if self._allowed is not None and event not in self._allowed:
            raise ValueError(f"Unknown event '{event}', expected one of {sorted(self._allowed)}")

    def on(self, event: str, listener: Listener) -> Listener:
        """Register ``listener`` for ``event`` and return it."""
        self._check(event)
        with self._lock:
            self._listeners[event].append(listener)
        return listener

    def once(self, event: str, listener: Listener) -> Listener:
        """Register ``listener`` to run on the next ``event`` only."""
        self._check(event)

        def wrapper(*args: Any) -> Any:
            self.off(event, wrapper)
            return listener(*args)

        wrapper.__wrapped__ = listener  # type: ignore[attr-defined]
        with self._lock:
            self._listeners[event].append(wrapper)
        return listener

    def off(self, event: str, listener: Listener) -> None:
        """Unregister ``listener``; no-op if it is not registered."""
        with self._lock:
            listeners = self._listeners.get(event, [])
            for registered in listeners:
                if registered is listener or getattr(registered, "__wrapped__", None) is listener:
                    listeners.remove(registered)
                    break

    def remove_all_listeners(self, event: Optional[str] = None) -> None:
        with self._lock:
            if event is None:
                self._listeners.clear()
            else:
                self._listeners.pop(event, None)

    def listener_count(self, event: str) -> int:
        with self._lock:
            return len(self._listeners.get(event, []))

    def emit(self, event: str, *args: Any) -> bool:
        """Call every listener of ``event`` with ``args``.

        Returns:
            True if the event had listeners
        """
        with self._lock:
            listeners = list(self._listeners.get(event, []))

        for listener in listeners:
            try:
                listener(*args)
            except Exception as e:
                logger.error(
                    "event_listener_error",
                    event_name=event,
                    error=str(e),
                    error_type=type(e).__name__,
                )
        return bool(listeners)
