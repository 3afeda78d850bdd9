"""Store mutation commands.

The reconciliation engine never touches the store directly: it returns a
tuple of these commands and the coordinator dispatches them in order.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class UpsertStaticQuery:
    """Create a component-scoped query or replace its text and hash."""

    id: str
    name: str
    component_path: str
    query: str
    hash: str


@dataclass(frozen=True, slots=True)
class RemoveStaticQuery:
    """Drop a component-scoped query."""

    id: str


@dataclass(frozen=True, slots=True)
class DeleteQueryDependencies:
    """Forget every dependency edge recorded for the given query ids."""

    ids: frozenset[str]


@dataclass(frozen=True, slots=True)
class RecordExtractedQuery:
    """Store the raw query text last extracted from a component."""

    component_path: str
    query: str


@dataclass(frozen=True, slots=True)
class RemoveComponent:
    """Drop a template component that no route uses anymore."""

    component_path: str


type StoreCommand = (
    UpsertStaticQuery
    | RemoveStaticQuery
    | DeleteQueryDependencies
    | RecordExtractedQuery
    | RemoveComponent
)
