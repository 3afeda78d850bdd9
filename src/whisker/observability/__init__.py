"""Observability — structured events for the query watcher.

Records what every compile, reconciliation cycle, debounced trigger and
component prune did, as frozen dataclasses with nanosecond timestamps.

Quick Start:
    >>> from whisker.observability import StackCollector, EventLog
    >>> log = EventLog()
    >>> collector = StackCollector(log)
    >>> # Pass collector to QueryWatcher(collector=...)
    >>> log.query(event_type=QueriesReconciled)

"""

from whisker.observability.collector import StackCollector
from whisker.observability.events import (
    ComponentRemoved,
    QueriesCompiled,
    QueriesReconciled,
    ReconcileTriggered,
    StackEvent,
    now_ns,
)
from whisker.observability.log import EventLog

__all__ = [
    "ComponentRemoved",
    "EventLog",
    "QueriesCompiled",
    "QueriesReconciled",
    "ReconcileTriggered",
    "StackCollector",
    "StackEvent",
    "now_ns",
]
