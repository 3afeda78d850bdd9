"""Reactive layer — when and how reconciliation runs.

Connects file changes and route deletions to reconciliation cycles through
the debounced trigger, the component sweeper, and the run queue.
"""

from whisker.reactive.pipeline import QueryWatcher
from whisker.reactive.runner import QueryQueue
from whisker.reactive.sweeper import RouteDeletionListener, clear_inactive_components
from whisker.reactive.trigger import DebouncedTrigger

__all__ = [
    "DebouncedTrigger",
    "QueryQueue",
    "QueryWatcher",
    "RouteDeletionListener",
    "clear_inactive_components",
]
