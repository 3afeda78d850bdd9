"""Component pruning — drop templates that no route renders anymore.

Two independent paths lead here:

- ``clear_inactive_components()`` runs once at startup.  The component
  registry may have been restored from a cache that still lists templates
  whose routes are gone.
- ``RouteDeletionListener`` reacts to routes being deleted while running
  and prunes the route's template once the last route using it is gone.
"""

from __future__ import annotations

import functools
from collections.abc import Callable
from typing import TYPE_CHECKING

from whisker._types import slash
from whisker.state.commands import RemoveComponent

if TYPE_CHECKING:
    from whisker.observability.collector import StackCollector
    from whisker.report import Reporter
    from whisker.state.store import QueryStore, RouteRemoved, Subscription


type Scheduler = Callable[[Callable[[], object]], object]


def _run_now(job: Callable[[], object]) -> object:
    return job()


def active_components(store: QueryStore) -> frozenset[str]:
    """Component paths referenced by at least one route."""
    return frozenset(slash(route.component) for route in store.routes())


def clear_inactive_components(
    store: QueryStore,
    *,
    collector: StackCollector | None = None,
    reporter: Reporter | None = None,
) -> tuple[str, ...]:
    """Remove every tracked component that no route references.

    Returns the removed component paths, sorted.

    """
    active = active_components(store)
    removed: list[str] = []
    for component_path in sorted(store.component_paths()):
        if component_path in active:
            continue
        store.dispatch(RemoveComponent(component_path=component_path))
        removed.append(component_path)
        if collector is not None:
            collector.record_component_removed(component_path, reason="inactive")
        if reporter is not None:
            reporter.info(f"{component_path} was removed because no route uses it")
    return tuple(removed)


class RouteDeletionListener:
    """Prunes a route's template once no remaining route uses it.

    The subscription callback only hands a job to *schedule*; the job runs
    wherever the scheduler runs it (the coordinator's writer timeline), so
    pruning never interleaves with a reconciliation cycle.

    Args:
        store: Query store to subscribe to and prune.
        schedule: Callable that queues a zero-argument job.  Defaults to
            running the job immediately.
        collector: Optional observability collector.
        reporter: Optional reporter for status lines.

    """

    def __init__(
        self,
        store: QueryStore,
        schedule: Scheduler | None = None,
        *,
        collector: StackCollector | None = None,
        reporter: Reporter | None = None,
    ) -> None:
        self._store = store
        self._schedule = schedule if schedule is not None else _run_now
        self._collector = collector
        self._reporter = reporter
        self._subscription: Subscription | None = None

    @property
    def active(self) -> bool:
        return self._subscription is not None and self._subscription.active

    def start(self) -> None:
        """Subscribe to route removals.  Idempotent."""
        if self.active:
            return
        self._subscription = self._store.subscribe_route_removed(self._on_route_removed)

    def stop(self) -> None:
        if self._subscription is not None:
            self._subscription.cancel()
            self._subscription = None

    def _on_route_removed(self, event: RouteRemoved) -> None:
        self._schedule(functools.partial(self.prune, event.component))

    def prune(self, component: str) -> bool:
        """Remove *component* unless another route still uses it.

        Returns True if the component was removed.
        """
        component_path = slash(component)
        if component_path in active_components(self._store):
            return False
        self._store.dispatch(RemoveComponent(component_path=component_path))
        if self._collector is not None:
            self._collector.record_component_removed(component_path, reason="route_deleted")
        if self._reporter is not None:
            self._reporter.info(f"{component_path} was removed with its last route")
        return True
