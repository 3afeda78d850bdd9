"""Reporter — developer-facing messages on stderr.

The reconciliation core never prints directly; it calls a ``Reporter`` so
tests can capture output and embedders can redirect it.  Styling follows
the banner: ANSI colors only when the terminal supports them.
"""

from __future__ import annotations

import sys
import textwrap
from typing import TYPE_CHECKING, TextIO

from whisker.banner import _DIM, _RED, _RESET, _YELLOW

if TYPE_CHECKING:
    from collections.abc import Iterable


# Printed once per cycle when at least one route query sits in a template
# that no route renders.
MISPLACED_QUERY_NOTICE = """\

    Route queries only run for templates that back a route.  If you expected
    this template to render pages, check that your routes manifest (or the
    page's ``template`` frontmatter) actually points at it.

    If the template is a partial rather than a page, declare its data need
    with a {% static_query "Name" %} block instead of {% query %}.

    You can also move the fields into a {% fragment "Name" %} block and
    spread it (``...Name``) into the query of the route template that
    includes this partial.
"""


class Reporter:
    """Writes warnings, errors and notices to a text stream.

    Args:
        stream: Destination stream (default: ``sys.stderr`` at call time).
        verbose: When False, ``info()`` and ``pending_activity()`` are silent.

    """

    __slots__ = ("_pending", "_stream", "_verbose", "warnings")

    def __init__(self, stream: TextIO | None = None, *, verbose: bool = True) -> None:
        self._stream = stream
        self._verbose = verbose
        self._pending: set[str] = set()
        # Every warning issued, in order, for summaries and tests.
        self.warnings: list[str] = []

    @property
    def stream(self) -> TextIO:
        return self._stream if self._stream is not None else sys.stderr

    def _write(self, text: str) -> None:
        print(text, file=self.stream)

    def info(self, message: str) -> None:
        """Print a dim status line (suppressed when not verbose)."""
        if self._verbose:
            self._write(f"  {_DIM}{message}{_RESET}")

    def log(self, message: str) -> None:
        """Print a plain, possibly multi-line message."""
        self._write(textwrap.dedent(message))

    def warn(self, message: str) -> None:
        """Print a non-fatal warning."""
        self.warnings.append(message)
        self._write(f"  {_YELLOW}warn{_RESET} {message}")

    def error(self, message: str, exc: BaseException | None = None) -> None:
        """Print an error, with the exception's message when given."""
        detail = f": {exc}" if exc is not None else ""
        self._write(f"  {_RED}error{_RESET} {message}{detail}")

    def pending_activity(self, activity_id: str) -> None:
        """Announce that *activity_id* will run soon (printed once until done)."""
        if activity_id in self._pending:
            return
        self._pending.add(activity_id)
        if self._verbose:
            self._write(f"  {_DIM}… {activity_id}{_RESET}")

    def activity_done(self, activity_id: str) -> None:
        """Clear a pending activity so the next one is announced again."""
        self._pending.discard(activity_id)

    def misplaced_queries(self, component_paths: Iterable[str]) -> None:
        """Warn about each route query that will not run, then explain once."""
        paths = sorted(component_paths)
        if not paths:
            return
        for path in paths:
            self.warn(f'The query in the non-route template "{path}" will not be run.')
        self.log(MISPLACED_QUERY_NOTICE)
