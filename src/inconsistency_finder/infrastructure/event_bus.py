"""Event bus infrastructure for the Inconsistency Finder.

A synchronous pub-sub bus carries status, key-state and retry events from the
core to whatever host is driving it (the CLI, a test, an embedding app).  A
failing subscriber is logged and skipped so that a broken status display can
never interrupt an analysis.
"""

from __future__ import annotations

import logging
import threading
from collections import defaultdict
from collections.abc import Callable, Sequence

from inconsistency_finder.domain.enums import RunStatus
from inconsistency_finder.domain.events import DomainEvent, StatusChanged

logger = logging.getLogger(__name__)

Handler = Callable[[DomainEvent], None]
StatusSink = Callable[[RunStatus, str], None]


# ===================================================================== #
#  Event Bus                                                             #
# ===================================================================== #

class EventBus:
    """Thread-safe synchronous pub-sub for domain events.

    Handlers run in registration order, global handlers before typed ones.

    Usage::

        bus = EventBus()
        bus.subscribe(StatusChanged, on_status)
        bus.publish(StatusChanged(state=RunStatus.RUNNING, message="..."))
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._handlers: dict[type[DomainEvent], list[Handler]] = defaultdict(list)
        self._global_handlers: list[Handler] = []

    # -- subscription -------------------------------------------------------

    def subscribe(self, event_type: type[DomainEvent], handler: Handler) -> None:
        """Register *handler* for a specific *event_type*."""
        with self._lock:
            self._handlers[event_type].append(handler)

    def subscribe_all(self, handler: Handler) -> None:
        """Register *handler* to receive every published event."""
        with self._lock:
            self._global_handlers.append(handler)

    def unsubscribe(self, event_type: type[DomainEvent], handler: Handler) -> bool:
        """Remove *handler* from *event_type*. Returns ``True`` if found."""
        with self._lock:
            handlers = self._handlers.get(event_type, [])
            if handler in handlers:
                handlers.remove(handler)
                return True
            return False

    # -- publishing ---------------------------------------------------------

    def publish(self, event: DomainEvent) -> None:
        """Publish *event* to all matching handlers."""
        with self._lock:
            handlers = list(self._global_handlers)
            handlers.extend(self._handlers.get(type(event), []))

        for handler in handlers:
            try:
                handler(event)
            except Exception:
                logger.exception(
                    "Error in handler %r for %s", handler, type(event).__name__
                )

    def handler_count(self, event_type: type[DomainEvent] | None = None) -> int:
        """Number of handlers for *event_type*, or in total when ``None``."""
        with self._lock:
            if event_type is not None:
                return len(self._handlers.get(event_type, []))
            return sum(len(hs) for hs in self._handlers.values()) + len(
                self._global_handlers
            )


def subscribe_status(bus: EventBus, sink: StatusSink) -> Handler:
    """Forward ``StatusChanged`` events to a ``(state, message)`` callable.

    Returns the registered handler so callers can unsubscribe it later.
    """

    def _handler(event: DomainEvent) -> None:
        if isinstance(event, StatusChanged):
            sink(event.state, event.message)

    bus.subscribe(StatusChanged, _handler)
    return _handler


# ===================================================================== #
#  Event Store                                                           #
# ===================================================================== #

class EventStore:
    """In-memory append-only event log.

    Wire it to a bus with ``bus.subscribe_all(store.append)`` to record
    every event a run emits.
    """

    def __init__(self, max_size: int = 0) -> None:
        self._events: list[DomainEvent] = []
        self._max_size = max_size
        self._lock = threading.Lock()

    def append(self, event: DomainEvent) -> None:
        with self._lock:
            self._events.append(event)
            if self._max_size > 0 and len(self._events) > self._max_size:
                del self._events[: len(self._events) - self._max_size]

    def query(self, event_type: type[DomainEvent] | None = None) -> Sequence[DomainEvent]:
        """Return stored events, optionally only instances of *event_type*."""
        with self._lock:
            events = list(self._events)
        if event_type is None:
            return events
        return [e for e in events if isinstance(e, event_type)]

    @property
    def latest(self) -> DomainEvent | None:
        with self._lock:
            return self._events[-1] if self._events else None

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)

    def clear(self) -> None:
        with self._lock:
            self._events.clear()
