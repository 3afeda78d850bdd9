"""State layer — the in-process query store and its records.

Holds template components, component-scoped queries and routes, and the
typed mutation commands the reconciliation engine emits against them.
"""

from whisker.state.commands import (
    DeleteQueryDependencies,
    RecordExtractedQuery,
    RemoveComponent,
    RemoveStaticQuery,
    StoreCommand,
    UpsertStaticQuery,
)
from whisker.state.models import (
    Component,
    ExtractedQuery,
    QuerySnapshot,
    Route,
    StaticQuery,
)
from whisker.state.store import QueryStore, RouteRemoved, Subscription

__all__ = [
    "Component",
    "DeleteQueryDependencies",
    "ExtractedQuery",
    "QuerySnapshot",
    "QueryStore",
    "RecordExtractedQuery",
    "RemoveComponent",
    "RemoveStaticQuery",
    "Route",
    "RouteRemoved",
    "StaticQuery",
    "StoreCommand",
    "Subscription",
    "UpsertStaticQuery",
]
