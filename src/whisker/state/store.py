"""In-process query store — components, static queries, routes.

The store is the single source of truth the reconciliation engine reads
from (via ``snapshot()``) and writes to (via ``dispatch()``).  It is passed
explicitly into every collaborator; there is no module-level instance.

Route removal is published as a typed ``RouteRemoved`` event to explicit
subscribers, each holding a ``Subscription`` handle it can cancel.

Thread Safety:
    All state is protected by a ``threading.RLock``.  ``snapshot()`` copies
    both registries under the lock, so a reader never sees half of a
    ``dispatch_many()`` batch.  Subscribers are called outside the lock.

"""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterable
from dataclasses import dataclass

from whisker._errors import StoreError
from whisker._types import slash
from whisker.state.commands import (
    DeleteQueryDependencies,
    RecordExtractedQuery,
    RemoveComponent,
    RemoveStaticQuery,
    StoreCommand,
    UpsertStaticQuery,
)
from whisker.state.models import Component, QuerySnapshot, Route, StaticQuery


@dataclass(frozen=True, slots=True)
class RouteRemoved:
    """A route was deleted from the store.

    Attributes:
        route_path: URL path of the deleted route.
        component: Forward-slash path of the template that rendered it.

    """

    route_path: str
    component: str


type RouteRemovedListener = Callable[[RouteRemoved], object]


class Subscription:
    """Handle returned by ``QueryStore.subscribe_route_removed()``."""

    __slots__ = ("_callback", "_store")

    def __init__(self, store: QueryStore, callback: RouteRemovedListener) -> None:
        self._store: QueryStore | None = store
        self._callback = callback

    @property
    def active(self) -> bool:
        """Whether the subscription still receives events."""
        return self._store is not None

    def cancel(self) -> None:
        """Stop receiving events.  Safe to call more than once."""
        if self._store is not None:
            self._store._unsubscribe(self._callback)
            self._store = None


class QueryStore:
    """Holds components, component-scoped queries, routes and query dependencies."""

    def __init__(self) -> None:
        self._components: dict[str, Component] = {}
        self._static_queries: dict[str, StaticQuery] = {}
        self._routes: dict[str, Route] = {}
        # query id -> ids of the nodes/pages the query's result depended on
        self._dependencies: dict[str, set[str]] = {}
        self._route_listeners: list[RouteRemovedListener] = []
        self._lock = threading.RLock()

    # ----- Snapshot reader -----

    def snapshot(self) -> QuerySnapshot:
        """Return an atomic, read-only copy of the component and query registries."""
        with self._lock:
            return QuerySnapshot.of(self._components, self._static_queries)

    # ----- Reads -----

    def component_paths(self) -> frozenset[str]:
        """Paths of all tracked components."""
        with self._lock:
            return frozenset(self._components)

    def get_component(self, component_path: str) -> Component | None:
        with self._lock:
            return self._components.get(slash(component_path))

    def get_static_query(self, query_id: str) -> StaticQuery | None:
        with self._lock:
            return self._static_queries.get(query_id)

    def static_queries(self) -> tuple[StaticQuery, ...]:
        with self._lock:
            return tuple(self._static_queries.values())

    def routes(self) -> tuple[Route, ...]:
        """All registered routes, in registration order."""
        with self._lock:
            return tuple(self._routes.values())

    def dependencies_of(self, query_id: str) -> frozenset[str]:
        with self._lock:
            return frozenset(self._dependencies.get(query_id, ()))

    # ----- Route and component registration -----

    def add_component(self, component_path: str) -> Component:
        """Track a component, keeping its existing record if already known."""
        path = slash(component_path)
        with self._lock:
            component = self._components.get(path)
            if component is None:
                component = Component(component_path=path)
                self._components[path] = component
            return component

    def add_route(self, route_path: str, component: str) -> Route:
        """Register (or replace) a route and track its template component."""
        route = Route(path=route_path, component=slash(component))
        with self._lock:
            self._routes[route_path] = route
            self.add_component(route.component)
        return route

    def delete_route(self, route_path: str) -> Route | None:
        """Remove a route and notify route-removal subscribers.

        Components are left alone: deciding whether the template is still
        used is the route-deletion listener's job.

        """
        with self._lock:
            route = self._routes.pop(route_path, None)
            listeners = tuple(self._route_listeners)
        if route is None:
            return None
        event = RouteRemoved(route_path=route.path, component=route.component)
        for listener in listeners:
            listener(event)
        return route

    def add_dependency(self, query_id: str, dependent: str) -> None:
        """Record that *query_id*'s result depended on *dependent*."""
        with self._lock:
            self._dependencies.setdefault(query_id, set()).add(dependent)

    # ----- Mutation commands -----

    def dispatch(self, command: StoreCommand) -> None:
        """Apply a single mutation command.

        Raises:
            StoreError: If *command* is not a known store command.

        """
        with self._lock:
            self._apply(command)

    def dispatch_many(self, commands: Iterable[StoreCommand]) -> int:
        """Apply commands in order as one atomic batch.  Returns the count applied."""
        count = 0
        with self._lock:
            for command in commands:
                self._apply(command)
                count += 1
        return count

    def _apply(self, command: StoreCommand) -> None:
        if isinstance(command, UpsertStaticQuery):
            self._static_queries[command.id] = StaticQuery(
                id=command.id,
                name=command.name,
                component_path=command.component_path,
                query=command.query,
                hash=command.hash,
            )
        elif isinstance(command, RemoveStaticQuery):
            self._static_queries.pop(command.id, None)
        elif isinstance(command, DeleteQueryDependencies):
            for query_id in command.ids:
                self._dependencies.pop(query_id, None)
        elif isinstance(command, RecordExtractedQuery):
            # A component removed since the snapshot was taken stays removed.
            if command.component_path in self._components:
                self._components[command.component_path] = Component(
                    component_path=command.component_path,
                    query=command.query,
                )
        elif isinstance(command, RemoveComponent):
            self._components.pop(command.component_path, None)
        else:
            msg = f"Unknown store command: {command!r}"
            raise StoreError(msg)

    # ----- Route removal subscriptions -----

    def subscribe_route_removed(self, callback: RouteRemovedListener) -> Subscription:
        """Call *callback* with a ``RouteRemoved`` event whenever a route is deleted."""
        with self._lock:
            self._route_listeners.append(callback)
        return Subscription(self, callback)

    def _unsubscribe(self, callback: RouteRemovedListener) -> None:
        with self._lock:
            try:
                self._route_listeners.remove(callback)
            except ValueError:
                pass
