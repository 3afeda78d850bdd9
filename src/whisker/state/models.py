"""Records held by the query store and produced by the compiler.

All records are frozen dataclasses: the store replaces them on write and
hands out the same objects in snapshots, so readers never observe a record
changing underneath them.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from whisker._types import ComponentPath, QueryId, RoutePath


@dataclass(frozen=True, slots=True)
class Component:
    """A template file that backs at least one route.

    Attributes:
        component_path: Absolute, forward-slash path of the template.
        query: Raw text of the last query extracted from the template
            (empty when the template holds none).

    """

    component_path: ComponentPath
    query: str = ""


@dataclass(frozen=True, slots=True)
class StaticQuery:
    """A component-scoped query: attached to a template, not to a route.

    Attributes:
        id: Stable identifier derived from the query's source location.
            Never changes across edits of the query text.
        name: Display name.
        component_path: Template that owns the query.
        query: Compiled query text (including referenced fragments).
        hash: Hash of the query source as written.

    """

    id: QueryId
    name: str
    component_path: ComponentPath
    query: str
    hash: str


@dataclass(frozen=True, slots=True)
class Route:
    """A routable page and the template component that renders it."""

    path: RoutePath
    component: ComponentPath


@dataclass(frozen=True, slots=True)
class ExtractedQuery:
    """A query extracted from a template during one compile.

    Transient: rebuilt on every reconciliation cycle.

    Attributes:
        id: Stable identifier (see StaticQuery.id).
        name: Display name.
        path: Owning component path.
        text: Compiled query text.
        hash: Hash of the query source as written.
        is_static_query: True for component-scoped queries, False for route
            (page) queries.

    """

    id: QueryId
    name: str
    path: ComponentPath
    text: str
    hash: str
    is_static_query: bool = False


@dataclass(frozen=True, slots=True)
class QuerySnapshot:
    """Point-in-time, read-only copy of the component and query registries.

    Attributes:
        components: Component path -> Component.
        static_queries: Query id -> StaticQuery.

    """

    components: Mapping[str, Component] = field(
        default_factory=lambda: MappingProxyType({})
    )
    static_queries: Mapping[str, StaticQuery] = field(
        default_factory=lambda: MappingProxyType({})
    )

    @classmethod
    def of(
        cls,
        components: Mapping[str, Component],
        static_queries: Mapping[str, StaticQuery],
    ) -> QuerySnapshot:
        """Copy both registries into read-only mappings."""
        return cls(
            components=MappingProxyType(dict(components)),
            static_queries=MappingProxyType(dict(static_queries)),
        )
