"""Query watcher coordinator — connects file changes to store updates.

Orchestrates the full reconciliation flow:
    1. At startup, prune components no route uses (once)
    2. Bootstrap cycle: snapshot -> compile -> reconcile -> apply
    3. In develop mode, start the file watcher and attach the watch set
    4. ComponentWatcher reports a change -> DebouncedTrigger coalesces it
    5. Each trigger runs one more cycle like step 2
    6. Route deletions prune their template on the same writer timeline

Single writer:
    Every store mutation sequence (a reconciliation cycle, the startup
    sweep, a route-deletion prune) runs on the event loop under one
    ``asyncio.Lock``, so no two of them interleave.  The snapshot is taken
    and the commands applied inside the same critical section; only the
    compiler call is awaited in between.

"""

from __future__ import annotations

import asyncio
import contextlib
import time
from collections.abc import Callable
from typing import TYPE_CHECKING

from whisker.queries.compiler import CompileFailed, CompilerAdapter
from whisker.queries.differ import reconcile
from whisker.queries.watcher import ComponentWatcher, WatchSet
from whisker.reactive.runner import QueryQueue
from whisker.reactive.sweeper import RouteDeletionListener, clear_inactive_components
from whisker.reactive.trigger import DebouncedTrigger
from whisker.report import Reporter

if TYPE_CHECKING:
    from whisker.config import WhiskerConfig
    from whisker.observability.collector import StackCollector
    from whisker.queries.compiler import QueryCompiler
    from whisker.queries.differ import ReconcileResult
    from whisker.state.store import QueryStore


# Activity id announced while a recompilation is pending
EXTRACTION_ACTIVITY = "query-extraction"


class QueryWatcher:
    """Keeps the store's components and static queries in step with templates.

    Args:
        store: The query store to read snapshots from and write commands to.
        compiler: Query compiler collaborator (sync or async callable).
        config: Whisker configuration (mode, debounce, watch globs).
        reporter: Developer-facing output.  Defaults to stderr.
        runner: Receives ids of static queries to re-run.
        collector: Optional observability collector.
        watcher_factory: Builds the file watcher (tests swap in a fake).

    """

    def __init__(
        self,
        store: QueryStore,
        compiler: QueryCompiler,
        config: WhiskerConfig,
        *,
        reporter: Reporter | None = None,
        runner: QueryQueue | None = None,
        collector: StackCollector | None = None,
        watcher_factory: Callable[[WhiskerConfig], ComponentWatcher] | None = None,
    ) -> None:
        self._store = store
        self._config = config
        self._reporter = reporter if reporter is not None else Reporter()
        self._runner = runner if runner is not None else QueryQueue()
        self._collector = collector
        self._adapter = CompilerAdapter(
            compiler, reporter=self._reporter, collector=collector
        )
        self._watch_set = WatchSet(enabled=config.watch_enabled)
        self._watcher_factory = watcher_factory or ComponentWatcher
        self._watcher: ComponentWatcher | None = None
        self._consumer: asyncio.Task[None] | None = None
        self._trigger = DebouncedTrigger(
            self.update_state_and_run_queries,
            quiet_period=config.debounce_seconds,
            reporter=self._reporter,
            collector=collector,
        )
        self._writer = asyncio.Lock()
        self._listener: RouteDeletionListener | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._jobs: set[asyncio.Task[None]] = set()
        self._swept = False

    @property
    def store(self) -> QueryStore:
        return self._store

    @property
    def runner(self) -> QueryQueue:
        return self._runner

    @property
    def watch_set(self) -> WatchSet:
        return self._watch_set

    @property
    def trigger(self) -> DebouncedTrigger:
        return self._trigger

    @property
    def watcher(self) -> ComponentWatcher | None:
        """The live file watcher, once ``watch()`` has started it."""
        return self._watcher

    # ----- Bootstrap -----

    async def extract_queries(self, *, parent_span: object | None = None) -> ReconcileResult | None:
        """Run the bootstrap pass, then start watching in develop mode.

        Components restored from a cache may point at templates no route
        uses anymore, so they are pruned first, exactly once.

        Returns the bootstrap cycle's result, or None if the compile failed.

        """
        if not self._swept:
            async with self._writer:
                clear_inactive_components(
                    self._store, collector=self._collector, reporter=self._reporter
                )
            self._swept = True

        result = await self.update_state_and_run_queries(
            is_first_run=True, parent_span=parent_span
        )

        if self._config.watch_enabled:
            await self.watch()
        return result

    # ----- Reconciliation cycle -----

    async def update_state_and_run_queries(
        self,
        is_first_run: bool = False,
        *,
        parent_span: object | None = None,
    ) -> ReconcileResult | None:
        """Run one reconciliation cycle.

        Returns the cycle's result, or None when the compile failed (in
        which case the store is left untouched).

        """
        async with self._writer:
            t0 = time.perf_counter()
            snapshot = self._store.snapshot()
            compiled = await self._adapter.compile(parent_span=parent_span)
            self._reporter.activity_done(EXTRACTION_ACTIVITY)

            if isinstance(compiled, CompileFailed):
                return None

            result = reconcile(snapshot, compiled.queries, is_first_run=is_first_run)
            self._apply(result)

            if self._collector is not None:
                self._collector.record_reconcile(
                    result,
                    is_first_run=is_first_run,
                    duration_ms=(time.perf_counter() - t0) * 1000,
                )
            return result

    def _apply(self, result: ReconcileResult) -> None:
        """Dispatch a cycle's commands and its downstream effects."""
        self._store.dispatch_many(result.commands)

        for query_id in result.enqueued_query_ids:
            self._runner.enqueue(query_id)

        for component_path in sorted(result.queries_will_run):
            self._watch_set.observe(component_path)

        if result.queries_will_not_run:
            self._reporter.misplaced_queries(result.queries_will_not_run)

        self._runner.run_queued()

    # ----- File watching -----

    async def watch(self) -> None:
        """Start the file watcher and feed its events to the debounced trigger.

        Idempotent.  Paths observed during bootstrap are forwarded to the
        watcher as it attaches.

        """
        if self._watcher is not None:
            return

        watcher = self._watcher_factory(self._config)
        self._watcher = watcher
        watcher.start()
        self._watch_set.attach(watcher)
        self._consumer = asyncio.create_task(
            self._consume_events(watcher), name="whisker-watch-consumer"
        )

    async def _consume_events(self, watcher: ComponentWatcher) -> None:
        async for event in watcher.changes():
            self.on_file_changed(event.path)

    def on_file_changed(self, path: str) -> None:
        """Schedule a reconciliation for a change to *path*.  Returns immediately."""
        self._reporter.pending_activity(EXTRACTION_ACTIVITY)
        self._trigger.notify(path)

    # ----- Route deletion -----

    def start_watch_delete_page(self) -> RouteDeletionListener:
        """Prune a deleted route's template once no other route uses it.

        Must be called from the event loop; removals reported from any
        thread are scheduled onto it.

        """
        self._loop = asyncio.get_running_loop()
        if self._listener is None:
            self._listener = RouteDeletionListener(
                self._store,
                self._schedule_mutation,
                collector=self._collector,
                reporter=self._reporter,
            )
        self._listener.start()
        return self._listener

    def _schedule_mutation(self, job: Callable[[], object]) -> None:
        loop = self._loop
        if loop is None:
            msg = "start_watch_delete_page() must be called before scheduling mutations"
            raise RuntimeError(msg)
        loop.call_soon_threadsafe(self._spawn_job, job)

    def _spawn_job(self, job: Callable[[], object]) -> None:
        task = asyncio.get_running_loop().create_task(self._run_job(job))
        self._jobs.add(task)
        task.add_done_callback(self._jobs.discard)

    async def _run_job(self, job: Callable[[], object]) -> None:
        async with self._writer:
            job()

    # ----- Lifecycle -----

    async def wait_idle(self) -> None:
        """Wait until no cycle, debounce timer or scheduled prune is outstanding."""
        while True:
            # Let callbacks queued with call_soon_threadsafe become tasks.
            await asyncio.sleep(0)
            await self._trigger.wait_idle()
            if self._jobs:
                await asyncio.gather(*tuple(self._jobs))
                continue
            if self._trigger.pending or self._trigger.running:
                continue
            return

    async def stop(self) -> None:
        """Stop watching and listening; let a running cycle finish."""
        if self._listener is not None:
            self._listener.stop()

        await self._trigger.aclose()

        if self._watcher is not None:
            self._watcher.stop()

        if self._consumer is not None:
            self._consumer.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._consumer
            self._consumer = None

        if self._jobs:
            await asyncio.gather(*tuple(self._jobs))
