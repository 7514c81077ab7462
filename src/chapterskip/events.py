from __future__ import annotations

import logging
import threading
from typing import Callable, Generic, List, TypeVar

LOGGER = logging.getLogger(__name__)

EventT = TypeVar("EventT")
Handler = Callable[[EventT], None]


class EventHook(Generic[EventT]):
    """A named list of handlers that can be attached and detached at runtime.

    Handlers are invoked in subscription order on the emitting thread. A
    failing handler is logged and does not prevent the remaining handlers
    from running.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._handlers: List[Handler] = []
        self._lock = threading.Lock()

    def subscribe(self, handler: Handler) -> None:
        with self._lock:
            if handler not in self._handlers:
                self._handlers.append(handler)

    def unsubscribe(self, handler: Handler) -> None:
        with self._lock:
            try:
                self._handlers.remove(handler)
            except ValueError:
                pass

    def __len__(self) -> int:
        with self._lock:
            return len(self._handlers)

    def emit(self, event: EventT) -> None:
        with self._lock:
            handlers = list(self._handlers)
        for handler in handlers:
            try:
                handler(event)
            except Exception:  # noqa: BLE001 - isolate handlers from each other
                LOGGER.exception("Handler %r for %s failed", handler, self.name)


__all__ = ["EventHook"]
