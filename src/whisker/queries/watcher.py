"""File watching — which template files are observed, and how.

``ComponentWatcher``
    Runs watchfiles in a background thread over the site root and hands
    matching change events to the event loop.  A file is relevant when it
    matches one of the configured source globs or was added explicitly
    with ``add()`` (template components discovered at runtime).

``WatchSet``
    The set of component paths that must be observed.  It only grows:
    dropping a path risks missing the file's re-addition, while watching
    one file too many costs almost nothing.  Paths observed before a
    watcher exists are buffered and forwarded on ``attach()``, so
    components discovered mid-bootstrap are never silently unwatched.

"""

from __future__ import annotations

import asyncio
import functools
import re
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Literal, Protocol

from watchfiles import Change

from whisker._types import slash

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from whisker.config import WhiskerConfig


@dataclass(frozen=True, slots=True)
class ChangeEvent:
    """A file change detected by the watcher.

    Attributes:
        path: Absolute, forward-slash path to the changed file.
        kind: Type of filesystem change.

    """

    path: str
    kind: Literal["created", "modified", "deleted"]


# Mapping from watchfiles Change enum to our kind literals.
_CHANGE_KIND_MAP: dict[Change, Literal["created", "modified", "deleted"]] = {
    Change.added: "created",
    Change.modified: "modified",
    Change.deleted: "deleted",
}


@functools.lru_cache(maxsize=64)
def _glob_to_regex(pattern: str) -> re.Pattern[str]:
    """Translate a root-relative glob into a regex over forward-slash paths.

    ``**/`` matches zero or more directories, ``*`` and ``?`` never cross
    a ``/``.
    """
    out: list[str] = []
    i = 0
    while i < len(pattern):
        if pattern.startswith("**/", i):
            out.append("(?:.*/)?")
            i += 3
        elif pattern.startswith("**", i):
            out.append(".*")
            i += 2
        elif pattern[i] == "*":
            out.append("[^/]*")
            i += 1
        elif pattern[i] == "?":
            out.append("[^/]")
            i += 1
        else:
            out.append(re.escape(pattern[i]))
            i += 1
    return re.compile("".join(out) + r"\Z")


def matches_source_globs(path: str | Path, config: WhiskerConfig) -> bool:
    """Whether *path* lies under the root and matches a configured source glob."""
    try:
        rel = Path(path).relative_to(config.root)
    except ValueError:
        return False
    rel_str = slash(rel)
    return any(_glob_to_regex(pattern).match(rel_str) for pattern in config.source_globs)


def _is_under(path: Path, root: Path) -> bool:
    try:
        path.relative_to(root)
    except ValueError:
        return False
    return True


class ComponentWatcher:
    """Watches template sources and extra component files for changes.

    The watcher runs watchfiles in a background thread and bridges events
    to an asyncio queue on the loop that called ``start()``.  Adding a
    path outside every watched directory restarts the thread with the
    extra directory included: the new thread starts before the old one is
    told to stop, and the old one is only joined in ``stop()``.

    Args:
        config: Whisker configuration (root and source globs).

    """

    def __init__(self, config: WhiskerConfig) -> None:
        self._config = config
        self._queue: asyncio.Queue[ChangeEvent] = asyncio.Queue()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._retired: list[threading.Thread] = []
        self._loop: asyncio.AbstractEventLoop | None = None
        self._extra: set[str] = set()
        self._active_roots: tuple[Path, ...] = ()
        self._lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        """Whether the watcher background thread is active."""
        return self._thread is not None and self._thread.is_alive()

    @property
    def extra_paths(self) -> frozenset[str]:
        """Component paths added explicitly with ``add()``."""
        with self._lock:
            return frozenset(self._extra)

    def is_watched(self, path: str | Path) -> bool:
        """Whether a change to *path* should be reported."""
        if matches_source_globs(path, self._config):
            return True
        with self._lock:
            return slash(path) in self._extra

    def add(self, path: str) -> None:
        """Watch one more file.  Idempotent."""
        normalized = slash(path)
        with self._lock:
            if normalized in self._extra:
                return
            self._extra.add(normalized)
            covered = any(_is_under(Path(normalized), root) for root in self._active_roots)
        if self.is_running and not covered:
            self._restart()

    def start(self) -> None:
        """Start watching in a background thread.

        Must be called from a running event loop: events are delivered to
        that loop.
        """
        if self.is_running:
            return

        self._loop = asyncio.get_running_loop()
        self._spawn()

    def _spawn(self) -> None:
        self._stop_event = threading.Event()
        self._active_roots = self._watch_roots()
        self._thread = threading.Thread(
            target=self._watch_loop,
            args=(self._active_roots, self._stop_event),
            name="whisker-watcher",
            daemon=True,
        )
        self._thread.start()

    def stop(self) -> None:
        """Signal the watcher to stop and wait for its threads to finish."""
        self._stop_event.set()
        threads = list(self._retired)
        self._retired.clear()
        if self._thread is not None:
            threads.append(self._thread)
            self._thread = None
        for thread in threads:
            thread.join(timeout=5.0)

    async def changes(self) -> AsyncIterator[ChangeEvent]:
        """Async iterator that yields ChangeEvent objects as they occur.

        Ends once the watcher is stopped and the queue is drained.

        """
        while self.is_running or not self._queue.empty():
            try:
                event = await asyncio.wait_for(self._queue.get(), timeout=0.5)
                yield event
            except TimeoutError:
                if not self.is_running:
                    break

    def _restart(self) -> None:
        """Swap in a thread with wider roots without blocking the caller."""
        old_thread, old_stop = self._thread, self._stop_event
        self._spawn()
        if old_thread is not None:
            old_stop.set()
            self._retired = [t for t in self._retired if t.is_alive()]
            self._retired.append(old_thread)

    def _watch_roots(self) -> tuple[Path, ...]:
        """Directories handed to watchfiles: the root plus outside parents."""
        roots: list[Path] = [self._config.root]
        with self._lock:
            extra = sorted(self._extra)
        for path_str in extra:
            parent = Path(path_str).parent
            if any(_is_under(parent, root) for root in roots):
                continue
            if parent.is_dir():
                roots.append(parent)
        return tuple(roots)

    def _watch_loop(self, roots: tuple[Path, ...], stop_event: threading.Event) -> None:
        """Background thread: run watchfiles and push events to the loop."""
        from watchfiles import watch

        loop = self._loop
        if loop is None:
            return

        for raw_changes in watch(
            *roots,
            stop_event=stop_event,
            debounce=50,
            step=25,
        ):
            for change_type, path_str in raw_changes:
                if not self.is_watched(path_str):
                    continue
                kind = _CHANGE_KIND_MAP.get(change_type, "modified")
                event = ChangeEvent(path=slash(path_str), kind=kind)
                try:
                    loop.call_soon_threadsafe(self._queue.put_nowait, event)
                except RuntimeError:
                    # Loop already closed: the process is shutting down.
                    return


class PathSink(Protocol):
    """Anything that accepts paths to observe (a live watcher)."""

    def add(self, path: str) -> None: ...


class WatchSet:
    """Monotonically growing set of component paths under observation.

    Args:
        enabled: When False (build mode), ``observe()`` is a no-op.

    """

    __slots__ = ("_enabled", "_paths", "_watcher")

    def __init__(self, *, enabled: bool = True) -> None:
        self._enabled = enabled
        self._paths: set[str] = set()
        self._watcher: PathSink | None = None

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def is_attached(self) -> bool:
        """Whether observations are being forwarded to a live watcher."""
        return self._watcher is not None

    @property
    def paths(self) -> frozenset[str]:
        return frozenset(self._paths)

    def observe(self, path: str) -> bool:
        """Watch *path* from now on.  Returns True if it was not watched yet."""
        if not self._enabled:
            return False
        normalized = slash(path)
        if normalized in self._paths:
            return False
        self._paths.add(normalized)
        if self._watcher is not None:
            self._watcher.add(normalized)
        return True

    def attach(self, watcher: PathSink) -> None:
        """Start forwarding to *watcher*, beginning with every buffered path."""
        self._watcher = watcher
        for path in sorted(self._paths):
            watcher.add(path)

    def __contains__(self, path: object) -> bool:
        return isinstance(path, str) and slash(path) in self._paths

    def __len__(self) -> int:
        return len(self._paths)
