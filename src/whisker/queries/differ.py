"""Query differ — reconcile a store snapshot against freshly compiled queries.

Compares the component and static-query registries captured before a
compile with the compiler's fresh output and produces a ``ReconcileResult``:
the store mutation commands to dispatch, the query ids to re-run, and which
components hold a query that will or will not run.

``reconcile()`` is pure.  It never reads the store or the filesystem, so the
same inputs always produce the same commands in the same order.

Algorithm:
    1. Removed static queries: a static query whose component has no fresh
       entry, a route (non-static) entry, an empty one, or a static entry
       under a different id is removed and its dependency edges dropped.
    2. Base update: every snapshot component whose stored raw query text
       differs from the fresh text ("" when absent) gets the fresh text.
    3. Upsert: every fresh static query that is new, or whose hash OR text
       differs from the stored one, is upserted, its dependency edges are
       dropped and its id is queued for re-extraction.  Every fresh static
       query marks its component "will run".
    4. Misplaced route queries: on the bootstrap pass only, a non-empty route
       query in a component no route knows about "will not run".

Hash and text are OR'd on purpose: the hash follows the query as written
(reformatting changes it), the text follows the compiled query including
spread fragments (editing a fragment changes it).  Either one changing
means the query's data may have changed.

"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass

from whisker.state.commands import (
    DeleteQueryDependencies,
    RecordExtractedQuery,
    RemoveStaticQuery,
    StoreCommand,
    UpsertStaticQuery,
)
from whisker.state.models import ExtractedQuery, QuerySnapshot


@dataclass(frozen=True, slots=True)
class ReconcileResult:
    """Everything one reconciliation cycle decided.

    Attributes:
        commands: Store mutations, in dispatch order.
        queries_will_run: Component paths whose static query will run.
            Each must be added to the watch set.
        queries_will_not_run: Component paths holding a route query outside
            any route template (bootstrap pass only).
        enqueued_query_ids: Static query ids to re-extract and re-run.
        added: Ids of static queries seen for the first time.
        modified: Ids of static queries whose hash or text changed.
        removed: Ids of static queries that disappeared.

    """

    commands: tuple[StoreCommand, ...] = ()
    queries_will_run: frozenset[str] = frozenset()
    queries_will_not_run: frozenset[str] = frozenset()
    enqueued_query_ids: tuple[str, ...] = ()
    added: tuple[str, ...] = ()
    modified: tuple[str, ...] = ()
    removed: tuple[str, ...] = ()

    @property
    def has_changes(self) -> bool:
        """True when at least one store mutation is needed."""
        return bool(self.commands)


def is_static(query: ExtractedQuery | None) -> bool:
    """A query counts as component-scoped only if flagged so and non-empty."""
    return query is not None and query.is_static_query and query.text != ""


def reconcile(
    snapshot: QuerySnapshot,
    queries: Mapping[str, ExtractedQuery],
    *,
    is_first_run: bool = False,
) -> ReconcileResult:
    """Diff *snapshot* against the fresh compile output *queries*.

    Args:
        snapshot: Registries as they were before the compile started.
        queries: Component path -> freshly extracted query.  Must come from
            a successful compile; failed compiles never reach this function.
        is_first_run: True for the bootstrap pass (enables misplaced-query
            detection).

    """
    commands: list[StoreCommand] = []
    removed: list[str] = []

    # 1. Static queries that are gone from their component
    for static_query in snapshot.static_queries.values():
        fresh = queries.get(static_query.component_path)
        if is_static(fresh) and fresh.id == static_query.id:  # type: ignore[union-attr]
            continue
        commands.append(RemoveStaticQuery(id=static_query.id))
        commands.append(DeleteQueryDependencies(ids=frozenset({static_query.id})))
        removed.append(static_query.id)

    # 2. Keep each component's raw query text in sync
    for component in snapshot.components.values():
        fresh = queries.get(component.component_path)
        text = fresh.text if fresh is not None else ""
        if component.query != text:
            commands.append(
                RecordExtractedQuery(component_path=component.component_path, query=text)
            )

    # 3 + 4. Upsert static queries, flag misplaced route queries
    will_run: set[str] = set()
    will_not_run: set[str] = set()
    enqueued: list[str] = []
    added: list[str] = []
    modified: list[str] = []

    for component_path, query in queries.items():
        if is_static(query):
            previous = snapshot.static_queries.get(query.id)
            if (
                previous is None
                or previous.hash != query.hash
                or previous.query != query.text
            ):
                commands.append(
                    UpsertStaticQuery(
                        id=query.id,
                        name=query.name,
                        component_path=component_path,
                        query=query.text,
                        hash=query.hash,
                    )
                )
                commands.append(DeleteQueryDependencies(ids=frozenset({query.id})))
                enqueued.append(query.id)
                (added if previous is None else modified).append(query.id)
            will_run.add(component_path)
        elif (
            is_first_run
            and query.text
            and component_path not in snapshot.components
        ):
            will_not_run.add(component_path)

    return ReconcileResult(
        commands=tuple(commands),
        queries_will_run=frozenset(will_run),
        queries_will_not_run=frozenset(will_not_run),
        enqueued_query_ids=tuple(enqueued),
        added=tuple(added),
        modified=tuple(modified),
        removed=tuple(removed),
    )
