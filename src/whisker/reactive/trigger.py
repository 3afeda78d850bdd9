"""Debounced trigger — coalesces bursts of file changes into single cycles.

A checkout or a search-and-replace can touch hundreds of templates within
a few milliseconds.  Recompiling after each one would be a recompute storm,
so every change notification only (re)arms a timer; the reconciliation runs
once the files have been quiet for ``quiet_period`` seconds.

Guarantees:
    - ``notify()`` never blocks and never runs the callback inline.
    - At most one cycle is in flight.
    - Changes that settle while a cycle runs produce exactly one follow-up
      cycle once it finishes, however many of them arrived.
    - A failing cycle is reported and never stops later ones.

"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from whisker._types import slash

if TYPE_CHECKING:
    from whisker.observability.collector import StackCollector
    from whisker.report import Reporter


@dataclass(slots=True)
class _TimerState:
    """Debounce timer: armed by each change, fired by the event loop."""

    pending: bool = False
    deadline: float = 0.0
    handle: asyncio.TimerHandle | None = None
    coalesced: int = 0
    last_path: str = ""


class DebouncedTrigger:
    """Runs *callback* once after each burst of ``notify()`` calls.

    Args:
        callback: Coroutine function performing one reconciliation cycle.
        quiet_period: Seconds without notifications before the cycle runs.
        reporter: Where exceptions raised by *callback* are reported.
        collector: Optional observability collector.

    """

    def __init__(
        self,
        callback: Callable[[], Awaitable[object]],
        *,
        quiet_period: float = 0.1,
        reporter: Reporter | None = None,
        collector: StackCollector | None = None,
    ) -> None:
        self._callback = callback
        self._quiet_period = quiet_period
        self._reporter = reporter
        self._collector = collector
        self._timer = _TimerState()
        self._running = False
        self._follow_up = False
        self._follow_up_coalesced = 0
        self._task: asyncio.Task[None] | None = None
        self._idle = asyncio.Event()
        self._idle.set()
        # Number of cycles started, for diagnostics and tests.
        self.invocations = 0

    @property
    def quiet_period(self) -> float:
        return self._quiet_period

    @property
    def pending(self) -> bool:
        """Whether a timer is armed and has not fired yet."""
        return self._timer.pending

    @property
    def running(self) -> bool:
        """Whether a cycle is executing right now."""
        return self._running

    def notify(self, path: str = "") -> None:
        """Record a change to *path* and (re)arm the debounce timer.

        Must be called from the event loop thread.
        """
        loop = asyncio.get_running_loop()
        timer = self._timer
        timer.coalesced += 1
        timer.last_path = slash(path)
        timer.deadline = loop.time() + self._quiet_period
        if timer.handle is not None:
            timer.handle.cancel()
        timer.handle = loop.call_at(timer.deadline, self._on_deadline)
        timer.pending = True
        self._idle.clear()

    def cancel(self) -> None:
        """Drop the armed timer and any queued follow-up.

        A cycle already running is left to finish.
        """
        timer = self._timer
        if timer.handle is not None:
            timer.handle.cancel()
        timer.handle = None
        timer.pending = False
        timer.coalesced = 0
        self._follow_up = False
        self._follow_up_coalesced = 0
        if not self._running:
            self._idle.set()

    async def wait_idle(self) -> None:
        """Wait until no timer is armed and no cycle is running."""
        await self._idle.wait()

    async def aclose(self) -> None:
        """Cancel pending work and wait for a running cycle to complete."""
        self.cancel()
        if self._task is not None:
            await asyncio.shield(self._task)

    def _on_deadline(self) -> None:
        timer = self._timer
        timer.handle = None
        timer.pending = False
        coalesced, path = timer.coalesced, timer.last_path
        timer.coalesced = 0

        if self._running:
            self._follow_up = True
            self._follow_up_coalesced += coalesced
            return

        self._running = True
        self._task = asyncio.get_running_loop().create_task(
            self._run(path, coalesced), name="whisker-reconcile"
        )

    async def _run(self, path: str, coalesced: int) -> None:
        follow_up = False
        try:
            while True:
                self.invocations += 1
                if self._collector is not None:
                    self._collector.record_trigger(
                        path, coalesced=coalesced, follow_up=follow_up
                    )
                try:
                    await self._callback()
                except Exception as exc:
                    if self._reporter is not None:
                        self._reporter.error("Query reconciliation failed", exc)

                if not self._follow_up:
                    break
                follow_up = True
                coalesced = self._follow_up_coalesced
                path = self._timer.last_path
                self._follow_up = False
                self._follow_up_coalesced = 0
        finally:
            self._running = False
            self._task = None
            if not self._timer.pending:
                self._idle.set()
