"""Stack collector — records query-watcher events into the event log.

Provides one ``record_*`` method per event type so call sites never build
event dataclasses or timestamps themselves.

Thread Safety:
    The collector delegates to ``EventLog`` which is internally locked.
    Safe to use from the event loop and the watcher thread alike.

"""

from __future__ import annotations

from typing import TYPE_CHECKING, Literal

from whisker.observability.events import (
    ComponentRemoved,
    QueriesCompiled,
    QueriesReconciled,
    ReconcileTriggered,
    now_ns,
)
from whisker.observability.log import EventLog

if TYPE_CHECKING:
    from whisker.queries.differ import ReconcileResult


class StackCollector:
    """Event collector for compiles, reconciliation cycles and pruning.

    Args:
        log: The EventLog to store events in.

    """

    __slots__ = ("_log",)

    def __init__(self, log: EventLog | None = None) -> None:
        self._log = log if log is not None else EventLog()

    @property
    def log(self) -> EventLog:
        """The underlying event log."""
        return self._log

    # ----- Compile events -----

    def record_compile(
        self,
        *,
        success: bool,
        query_count: int = 0,
        compile_ms: float = 0.0,
        reason: str = "",
    ) -> None:
        """Record one compiler invocation."""
        self._log.append(
            QueriesCompiled(
                success=success,
                query_count=query_count,
                compile_ms=compile_ms,
                reason=reason,
                timestamp_ns=now_ns(),
            )
        )

    # ----- Reconciliation events -----

    def record_reconcile(
        self,
        result: ReconcileResult,
        *,
        is_first_run: bool = False,
        duration_ms: float = 0.0,
    ) -> None:
        """Record a completed reconciliation cycle."""
        self._log.append(
            QueriesReconciled(
                is_first_run=is_first_run,
                commands=len(result.commands),
                added=len(result.added),
                modified=len(result.modified),
                removed=len(result.removed),
                queries_will_run=len(result.queries_will_run),
                queries_will_not_run=len(result.queries_will_not_run),
                duration_ms=duration_ms,
                timestamp_ns=now_ns(),
            )
        )

    def record_component_removed(
        self,
        component_path: str,
        *,
        reason: Literal["inactive", "route_deleted"],
    ) -> None:
        """Record a component being pruned from the store."""
        self._log.append(
            ComponentRemoved(
                component_path=component_path,
                reason=reason,
                timestamp_ns=now_ns(),
            )
        )

    # ----- Trigger events -----

    def record_trigger(
        self,
        trigger_path: str,
        *,
        coalesced: int = 1,
        follow_up: bool = False,
    ) -> None:
        """Record the debounced trigger starting a cycle."""
        self._log.append(
            ReconcileTriggered(
                trigger_path=trigger_path,
                coalesced=coalesced,
                follow_up=follow_up,
                timestamp_ns=now_ns(),
            )
        )
