"""Whisker application — wires store, routes, compiler and watcher together.

The two public functions (dev, build) are the primary entry points.
"""

from __future__ import annotations

import asyncio
import contextlib
import sys
import time
from pathlib import Path
from typing import TYPE_CHECKING

from whisker._errors import CompileError
from whisker.config import WhiskerConfig
from whisker.config_loader import load_config

if TYPE_CHECKING:
    from whisker.observability.collector import StackCollector
    from whisker.queries.differ import ReconcileResult
    from whisker.reactive.pipeline import QueryWatcher
    from whisker.report import Reporter
    from whisker.state.models import Route
    from whisker.state.store import QueryStore


def _collect_routes(config: WhiskerConfig) -> tuple[Route, ...]:
    """Routes from the manifest, then from Bengal content (manifest wins)."""
    from whisker.routes.loader import load_site, routes_from_config, routes_from_site

    routes = {route.path: route for route in routes_from_config(config)}

    if config.content_path.is_dir():
        site = load_site(config.root)
        for route in routes_from_site(site, config):
            routes.setdefault(route.path, route)

    return tuple(routes.values())


def _create_watcher(
    config: WhiskerConfig,
    reporter: Reporter,
) -> tuple[QueryStore, QueryWatcher, StackCollector, int]:
    """Build the store and query watcher for *config*.

    Returns the store, the watcher, the collector and the route count.

    """
    from whisker.observability.collector import StackCollector
    from whisker.observability.log import EventLog
    from whisker.queries.compiler import TemplateQueryCompiler
    from whisker.reactive.pipeline import QueryWatcher
    from whisker.routes.loader import register_routes
    from whisker.state.store import QueryStore

    store = QueryStore()
    route_count = register_routes(store, _collect_routes(config))

    collector = StackCollector(EventLog())
    compiler = TemplateQueryCompiler(config, store=store, reporter=reporter)
    watcher = QueryWatcher(
        store, compiler, config, reporter=reporter, collector=collector,
    )
    return store, watcher, collector, route_count


async def _bootstrap(
    config: WhiskerConfig,
    reporter: Reporter,
) -> tuple[QueryStore, QueryWatcher, StackCollector, ReconcileResult | None]:
    """Run the bootstrap pass and print the banner."""
    from whisker.banner import print_banner

    t0 = time.perf_counter()
    store, watcher, collector, route_count = _create_watcher(config, reporter)
    result = await watcher.extract_queries()
    load_ms = (time.perf_counter() - t0) * 1000

    print_banner(
        config, len(store.component_paths()),
        route_count=route_count,
        static_query_count=len(store.static_queries()),
        load_ms=load_ms,
        warnings=list(reporter.warnings),
    )
    return store, watcher, collector, result


async def _run_dev(config: WhiskerConfig) -> None:
    from whisker.report import Reporter

    reporter = Reporter()
    _store, watcher, collector, _result = await _bootstrap(config, reporter)
    if not config.watch_enabled:
        return

    watcher.start_watch_delete_page()
    try:
        # Runs until the process is interrupted.
        await asyncio.Event().wait()
    finally:
        await watcher.stop()
        _print_session_summary(collector)


async def _run_build(config: WhiskerConfig) -> ReconcileResult:
    from whisker.report import Reporter

    reporter = Reporter()
    store, watcher, collector, result = await _bootstrap(config, reporter)
    await watcher.stop()
    if result is None:
        msg = "Query extraction failed; see the errors above"
        raise CompileError(msg)
    _print_build_summary(store, result, collector)
    return result


# ---------------------------------------------------------------------------
# Public entry points
# ---------------------------------------------------------------------------


def dev(root: str | Path = ".", **kwargs: object) -> None:
    """Reconcile queries once, then keep them in step with template edits.

    Blocks until interrupted.  With ``WHISKER_ENV=production`` (or
    ``mode="build"``) only the bootstrap pass runs.

    Args:
        root: Path to the site root directory.
        **kwargs: Override WhiskerConfig fields.

    """
    config = load_config(Path(root), **kwargs)
    with contextlib.suppress(KeyboardInterrupt):
        asyncio.run(_run_dev(config))


def build(root: str | Path = ".", **kwargs: object) -> ReconcileResult:
    """Run a single reconciliation pass without watching.

    Args:
        root: Path to the site root directory.
        **kwargs: Override WhiskerConfig fields.

    Raises:
        CompileError: If the queries could not be compiled.

    """
    kwargs["mode"] = "build"
    config = load_config(Path(root), **kwargs)
    return asyncio.run(_run_build(config))


def _print_build_summary(
    store: QueryStore, result: ReconcileResult, collector: StackCollector,
) -> None:
    """Print build completion summary to stderr."""
    from whisker.observability.events import QueriesReconciled

    static_count = len(store.static_queries())
    lines = [
        "",
        "─" * 41,
        f"  Extracted {static_count} static quer{'ies' if static_count != 1 else 'y'}",
    ]
    if result.queries_will_not_run:
        count = len(result.queries_will_not_run)
        lines.append(f"  {count} route quer{'ies' if count != 1 else 'y'} will not run")
    reconciled = collector.log.latest(QueriesReconciled)
    if reconciled is not None:
        lines.append(f"  Reconciled in {reconciled.duration_ms:.1f}ms")
    lines.append("─" * 41)
    lines.append("")
    print("\n".join(lines), file=sys.stderr)


def _print_session_summary(collector: StackCollector) -> None:
    """Print what the watch session did, once it stops."""
    totals = collector.log.summary()
    print(
        f"  {totals['cycles']} reconcile cycle{'s' if totals['cycles'] != 1 else ''}, "
        f"{totals['queries_changed']} static query change"
        f"{'s' if totals['queries_changed'] != 1 else ''}, "
        f"{totals['compile_failures']} failed compile"
        f"{'s' if totals['compile_failures'] != 1 else ''}",
        file=sys.stderr,
    )
