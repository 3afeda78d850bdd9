"""Query run queue — hands changed static queries to whoever executes them.

Query execution lives outside the watcher.  The coordinator enqueues the id
of every static query whose text changed and calls ``run_queued()`` once at
the end of each successful cycle; the queue then passes the batch to its
executor.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Callable


class QueryQueue:
    """Collects query ids and releases them in batches.

    Args:
        executor: Called with each non-empty batch of ids (in enqueue
            order, without duplicates).  When None, batches are only
            recorded in ``history``.
        max_history: Number of recent batches kept in ``history``.

    """

    __slots__ = ("_executor", "_pending", "history")

    def __init__(
        self,
        executor: Callable[[tuple[str, ...]], object] | None = None,
        *,
        max_history: int = 100,
    ) -> None:
        self._executor = executor
        # dict keeps insertion order and drops duplicates
        self._pending: dict[str, None] = {}
        self.history: deque[tuple[str, ...]] = deque(maxlen=max_history)

    @property
    def pending(self) -> tuple[str, ...]:
        return tuple(self._pending)

    def enqueue(self, query_id: str) -> None:
        """Mark *query_id* for re-extraction and re-run."""
        self._pending[query_id] = None

    def run_queued(self) -> tuple[str, ...]:
        """Release every pending id.  Returns the batch (possibly empty)."""
        batch = tuple(self._pending)
        self._pending.clear()
        if not batch:
            return batch
        self.history.append(batch)
        if self._executor is not None:
            self._executor(batch)
        return batch
