"""Event model for query-watcher observability.

Defines event types for compiles, reconciliation cycles, component pruning,
and debounced triggers.

All events are frozen dataclasses with:
- ``timestamp_ns``: Monotonic nanosecond timestamp
- Descriptive fields for the specific event type

Thread Safety:
    All events are frozen (immutable) and safe to share across threads.

"""

import time
from dataclasses import dataclass
from typing import Literal


# ---------------------------------------------------------------------------
# Compile events
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class QueriesCompiled:
    """The query compiler ran once.

    Attributes:
        success: False when the compiler failed or returned no queries.
        query_count: Number of queries extracted (0 on failure).
        compile_ms: Time spent compiling in milliseconds.
        reason: Failure description (empty on success).
        timestamp_ns: Monotonic nanosecond timestamp.

    """

    success: bool
    query_count: int
    compile_ms: float
    reason: str
    timestamp_ns: int


# ---------------------------------------------------------------------------
# Reconciliation events
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class QueriesReconciled:
    """A reconciliation cycle applied its changes to the store.

    Attributes:
        is_first_run: True for the bootstrap pass.
        commands: Number of store mutation commands dispatched.
        added: Number of component-scoped queries created.
        modified: Number of component-scoped queries whose text or hash changed.
        removed: Number of component-scoped queries dropped.
        queries_will_run: Number of components whose query will run.
        queries_will_not_run: Number of misplaced queries that will not run.
        duration_ms: Time from snapshot to store update in milliseconds.
        timestamp_ns: Monotonic nanosecond timestamp.

    """

    is_first_run: bool
    commands: int
    added: int
    modified: int
    removed: int
    queries_will_run: int
    queries_will_not_run: int
    duration_ms: float
    timestamp_ns: int


@dataclass(frozen=True, slots=True)
class ComponentRemoved:
    """A template component was dropped from the store.

    Attributes:
        component_path: Path of the removed component.
        reason: ``"inactive"`` from the startup sweep, ``"route_deleted"``
            after the last route using it was deleted.
        timestamp_ns: Monotonic nanosecond timestamp.

    """

    component_path: str
    reason: Literal["inactive", "route_deleted"]
    timestamp_ns: int


@dataclass(frozen=True, slots=True)
class ReconcileTriggered:
    """The debounced trigger started a reconciliation cycle.

    Attributes:
        trigger_path: Last changed file before the quiet period elapsed.
        coalesced: Number of change notifications folded into this cycle.
        follow_up: True when the cycle was queued behind a running one.
        timestamp_ns: Monotonic nanosecond timestamp.

    """

    trigger_path: str
    coalesced: int
    follow_up: bool
    timestamp_ns: int


# ---------------------------------------------------------------------------
# Union type
# ---------------------------------------------------------------------------

type StackEvent = (
    QueriesCompiled
    | QueriesReconciled
    | ComponentRemoved
    | ReconcileTriggered
)


def now_ns() -> int:
    """Return the current monotonic clock value in nanoseconds."""
    return time.monotonic_ns()
