"""Query compilation — extract queries from templates, once per cycle.

Two layers:

``CompilerAdapter``
    Wraps any compiler callable and normalizes what it returns into a
    ``CompileResult``: ``CompileSuccess(queries)`` or ``CompileFailed``.
    A compiler that returns nothing, returns an empty mapping, or raises is
    a *transient* failure: the cycle is skipped and nothing in the store
    changes.  This is what keeps a half-saved template from looking like
    "every query was deleted".

``TemplateQueryCompiler``
    The default compiler.  Scans template files for query blocks::

        {% query %} ... {% endquery %}                  route (page) query
        {% static_query "Name" %} ... {% endstatic_query %}   component-scoped
        {% fragment "Name" %} ... {% endfragment %}      reusable fragment

    Queries spread fragments with ``...Name``.  The query language itself
    is opaque here; only the blocks are located.

Hash vs text:
    ``hash`` is computed over the query body as written, so reformatting a
    query changes it.  ``text`` is the whitespace-normalized body followed
    by every fragment it (transitively) spreads, so editing a fragment
    changes it while the hash stays put.  The reconciler compares both.

"""

from __future__ import annotations

import hashlib
import inspect
import re
import time
from collections.abc import Awaitable, Mapping
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import TYPE_CHECKING, Protocol

from whisker._errors import CompileError
from whisker._types import slash
from whisker.state.models import ExtractedQuery

if TYPE_CHECKING:
    from whisker.config import WhiskerConfig
    from whisker.observability.collector import StackCollector
    from whisker.report import Reporter
    from whisker.state.store import QueryStore


# ---------------------------------------------------------------------------
# Compile result sum type
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class CompileSuccess:
    """The compiler produced at least one query.

    Attributes:
        queries: Component path -> extracted query, keys in forward-slash form.

    """

    queries: Mapping[str, ExtractedQuery]


@dataclass(frozen=True, slots=True)
class CompileFailed:
    """The compiler failed; the failure has already been reported."""

    reason: str


type CompileResult = CompileSuccess | CompileFailed

type CompilerOutput = Mapping[str, ExtractedQuery] | None | bool


class QueryCompiler(Protocol):
    """Anything that can compile the current sources into queries.

    May be a plain function or a coroutine function.  Returning ``None``,
    ``False`` or an empty mapping signals a failure that the compiler has
    already reported.
    """

    def __call__(
        self, *, parent_span: object | None = None
    ) -> CompilerOutput | Awaitable[CompilerOutput]: ...


class CompilerAdapter:
    """Invokes the query compiler once per cycle and normalizes its result.

    Args:
        compiler: The compiler collaborator.
        reporter: Where to report exceptions raised by the compiler.
        collector: Optional observability collector.

    """

    def __init__(
        self,
        compiler: QueryCompiler,
        *,
        reporter: Reporter | None = None,
        collector: StackCollector | None = None,
    ) -> None:
        self._compiler = compiler
        self._reporter = reporter
        self._collector = collector

    async def compile(self, *, parent_span: object | None = None) -> CompileResult:
        """Run the compiler to completion and wrap its output."""
        t0 = time.perf_counter()
        try:
            output = self._compiler(parent_span=parent_span)
            if inspect.isawaitable(output):
                output = await output
        except Exception as exc:
            if self._reporter is not None:
                self._reporter.error("Query compilation failed", exc)
            return self._failed(str(exc) or type(exc).__name__, t0)

        if not output or not isinstance(output, Mapping):
            return self._failed("compiler returned no queries", t0)

        queries = MappingProxyType({slash(path): query for path, query in output.items()})
        if self._collector is not None:
            self._collector.record_compile(
                success=True,
                query_count=len(queries),
                compile_ms=(time.perf_counter() - t0) * 1000,
            )
        return CompileSuccess(queries=queries)

    def _failed(self, reason: str, t0: float) -> CompileFailed:
        if self._collector is not None:
            self._collector.record_compile(
                success=False,
                compile_ms=(time.perf_counter() - t0) * 1000,
                reason=reason,
            )
        return CompileFailed(reason=reason)


# ---------------------------------------------------------------------------
# Default template compiler
# ---------------------------------------------------------------------------

_BLOCK_RE = re.compile(
    r"\{%-?\s*(query|static_query|fragment)\b(?:\s+\"([^\"]*)\")?\s*-?%\}"
    r"(.*?)"
    r"\{%-?\s*end\1\s*-?%\}",
    re.DOTALL,
)
_OPEN_RE = re.compile(r"\{%-?\s*(?:query|static_query|fragment)\b")
_CLOSE_RE = re.compile(r"\{%-?\s*end(?:query|static_query|fragment)\s*-?%\}")
# "... on Type" is an inline type condition, not a fragment spread.
_SPREAD_RE = re.compile(r"\.\.\.\s*(?!on\b)([A-Za-z_]\w*)")
_SLUG_RE = re.compile(r"[^a-z0-9]+")


@dataclass(frozen=True, slots=True)
class _TemplateBlocks:
    """Query and fragment blocks found in one template file."""

    path: str
    queries: tuple[tuple[str, str, str], ...]  # (kind, name, body)
    fragments: tuple[tuple[str, str], ...]  # (name, body)


def normalize_query(text: str) -> str:
    """Collapse all whitespace runs to single spaces."""
    return " ".join(text.split())


def query_hash(body: str) -> str:
    """Hash of a query body as written (leading/trailing blank lines ignored)."""
    return hashlib.sha256(body.strip().encode("utf-8")).hexdigest()[:16]


def static_query_id(component_path: str, root: Path | None = None) -> str:
    """Derive the stable id of the static query declared in *component_path*.

    The id depends only on where the query lives, so it survives any
    edit to the query text.  The slug keeps it readable; the digest of the
    exact relative path keeps paths that slug alike (`a/b.html` and
    `a-b.html`, `A.html` and `a.html`) apart.
    """
    path = Path(component_path)
    if root is not None:
        try:
            path = path.relative_to(root)
        except ValueError:
            pass
    rel = slash(path)
    slug = _SLUG_RE.sub("-", rel.lower()).strip("-")
    digest = hashlib.sha256(rel.encode()).hexdigest()[:8]
    return f"sq--{slug}-{digest}"


class TemplateQueryCompiler:
    """Extracts query blocks from template files.

    Scans every file matching ``config.source_globs`` plus, when a store is
    given, every component path the store tracks (templates referenced by
    routes may live outside the globs).

    Compile errors (unreadable files, unbalanced tags, more than one query
    per template, unknown or duplicate fragments) are reported and turn the
    whole compile into a failure, so the previous state stays in place.

    Args:
        config: Whisker configuration (root and source globs).
        store: Optional query store to pick up extra component paths.
        reporter: Where compile errors are reported.

    """

    def __init__(
        self,
        config: WhiskerConfig,
        *,
        store: QueryStore | None = None,
        reporter: Reporter | None = None,
    ) -> None:
        self._config = config
        self._store = store
        self._reporter = reporter

    def __call__(self, *, parent_span: object | None = None) -> dict[str, ExtractedQuery] | None:
        try:
            return self.compile()
        except CompileError as exc:
            if self._reporter is not None:
                self._reporter.error("Failed to extract queries", exc)
            return None

    def compile(self) -> dict[str, ExtractedQuery]:
        """Compile all sources.

        Raises:
            CompileError: On any malformed or unreadable template.

        """
        templates = [self._scan(path) for path in self.source_files()]

        fragments: dict[str, str] = {}
        fragment_sources: dict[str, str] = {}
        for blocks in templates:
            for name, body in blocks.fragments:
                if name in fragments:
                    msg = (
                        f'Duplicate fragment "{name}": defined in '
                        f"{fragment_sources[name]} and {blocks.path}"
                    )
                    raise CompileError(msg)
                fragments[name] = body
                fragment_sources[name] = blocks.path

        queries: dict[str, ExtractedQuery] = {}
        for blocks in templates:
            if not blocks.queries:
                continue
            if len(blocks.queries) > 1:
                msg = f"{blocks.path} declares {len(blocks.queries)} queries; only one is allowed"
                raise CompileError(msg)
            kind, name, body = blocks.queries[0]
            is_static = kind == "static_query"
            queries[blocks.path] = ExtractedQuery(
                id=static_query_id(blocks.path, self._config.root) if is_static else blocks.path,
                name=name or Path(blocks.path).stem,
                path=blocks.path,
                text=self._compile_text(body, fragments, blocks.path),
                hash=query_hash(body),
                is_static_query=is_static,
            )
        return queries

    def source_files(self) -> list[Path]:
        """Files to scan, deduplicated and sorted by normalized path."""
        files: dict[str, Path] = {}
        root = self._config.root
        for pattern in self._config.source_globs:
            for path in root.glob(pattern):
                if path.is_file():
                    files[slash(path)] = path
        if self._store is not None:
            for component_path in self._store.component_paths():
                path = Path(component_path)
                if path.is_file():
                    files.setdefault(slash(path), path)
        return [files[key] for key in sorted(files)]

    def _scan(self, path: Path) -> _TemplateBlocks:
        try:
            source = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            msg = f"Cannot read {path}: {exc}"
            raise CompileError(msg) from exc

        matches = list(_BLOCK_RE.finditer(source))
        opened = len(_OPEN_RE.findall(source))
        closed = len(_CLOSE_RE.findall(source))
        if opened != len(matches) or closed != len(matches):
            msg = f"Unbalanced query or fragment tags in {path}"
            raise CompileError(msg)

        queries: list[tuple[str, str, str]] = []
        fragments: list[tuple[str, str]] = []
        for match in matches:
            kind, name, body = match.group(1), match.group(2) or "", match.group(3)
            if kind == "fragment":
                if not name:
                    msg = f'Fragment in {path} needs a name: {{% fragment "Name" %}}'
                    raise CompileError(msg)
                fragments.append((name, body))
            else:
                queries.append((kind, name, body))

        return _TemplateBlocks(
            path=slash(path),
            queries=tuple(queries),
            fragments=tuple(fragments),
        )

    def _compile_text(self, body: str, fragments: dict[str, str], path: str) -> str:
        """Normalized body plus every fragment it spreads, transitively."""
        used: set[str] = set()
        pending = _SPREAD_RE.findall(body)
        while pending:
            name = pending.pop()
            if name in used:
                continue
            if name not in fragments:
                msg = f'Unknown fragment "{name}" spread in {path}'
                raise CompileError(msg)
            used.add(name)
            pending.extend(_SPREAD_RE.findall(fragments[name]))

        parts = [normalize_query(body)]
        parts.extend(
            f"fragment {name} {normalize_query(fragments[name])}" for name in sorted(used)
        )
        return "\n".join(parts)
