"""Event log — bounded, thread-safe store of query-watcher events.

Thread Safety:
    All methods are protected by a ``threading.Lock``.  Events arrive from
    the event loop and, through the route-deletion listener, from other
    threads.

"""

import threading
from collections import deque

from whisker.observability.events import (
    ComponentRemoved,
    QueriesCompiled,
    QueriesReconciled,
    StackEvent,
)


class EventLog:
    """Ring buffer of events; the oldest are dropped once it is full.

    Args:
        max_events: Maximum number of events to retain.

    """

    __slots__ = ("_events", "_lock")

    def __init__(self, max_events: int = 10_000) -> None:
        self._events: deque[StackEvent] = deque(maxlen=max_events)
        self._lock = threading.Lock()

    def append(self, event: StackEvent) -> None:
        with self._lock:
            self._events.append(event)

    def query(self, *, event_type: type | None = None, limit: int = 100) -> list[StackEvent]:
        """Events of *event_type* (all when None), most recent first."""
        with self._lock:
            events = list(self._events)
        matches = [e for e in reversed(events) if event_type is None or isinstance(e, event_type)]
        return matches[:limit]

    def recent(self, n: int = 20) -> list[StackEvent]:
        """The *n* most recent events, oldest first."""
        with self._lock:
            items = list(self._events)
        return items[-n:]

    def latest(self, event_type: type) -> StackEvent | None:
        with self._lock:
            for event in reversed(self._events):
                if isinstance(event, event_type):
                    return event
        return None

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)

    def summary(self) -> dict[str, int]:
        """Totals over the retained events.

        Keys: ``cycles`` (reconciliation cycles), ``compile_failures``,
        ``queries_changed`` (static queries added, modified or removed) and
        ``components_pruned``.
        """
        with self._lock:
            events = list(self._events)

        totals = {"cycles": 0, "compile_failures": 0, "queries_changed": 0, "components_pruned": 0}
        for event in events:
            if isinstance(event, QueriesReconciled):
                totals["cycles"] += 1
                totals["queries_changed"] += event.added + event.modified + event.removed
            elif isinstance(event, QueriesCompiled) and not event.success:
                totals["compile_failures"] += 1
            elif isinstance(event, ComponentRemoved):
                totals["components_pruned"] += 1
        return totals
