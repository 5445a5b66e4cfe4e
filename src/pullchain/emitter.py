"""Minimal synchronous event emitter."""

from __future__ import annotations

import logging
import types
from collections import defaultdict
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)

Listener = Callable[..., Any]


class EventEmitter:
    """
    Maps event names to listeners called in subscription order.

    Listeners run synchronously inside emit(). Exceptions raised by a
    listener propagate to whoever emitted the event.

    Example:
        emitter = EventEmitter()
        emitter.on("done", lambda name: print(f"{name} finished"))
        emitter.emit("done", "my-chain")
    """

    def __init__(self) -> None:
        self._listeners: dict[str, list[Listener]] = defaultdict(list)

    def on(self, event: str, callback: Listener, scope: Optional[object] = None) -> Listener:
        """
        Subscribe to an event.

        Args:
            event: Event name
            callback: Function called with the event payload
            scope: Optional object the callback is bound to, as if the
                callback were a method of it

        Returns:
            The registered listener (bound when a scope was given)
        """
        listener = types.MethodType(callback, scope) if scope is not None else callback
        self._listeners[event].append(listener)
        return listener

    def off(self, event: str, listener: Listener) -> None:
        """Remove a listener previously returned by on()."""
        listeners = self._listeners.get(event)
        if listeners and listener in listeners:
            listeners.remove(listener)

    def emit(self, event: str, *args: Any) -> bool:
        """
        Call every listener of an event with the given payload.

        Returns:
            True if the event had listeners
        """
        listeners = list(self._listeners.get(event, ()))
        if not listeners:
            logger.debug(f"No listeners for '{event}'")
            return False
        for listener in listeners:
            listener(*args)
        return True

    def listener_count(self, event: str) -> int:
        return len(self._listeners.get(event, ()))
