"""Query layer — compile templates, diff queries, watch sources.

Handles query extraction (compiler adapter and default template compiler),
snapshot-vs-fresh reconciliation, and file watching for the reactive
pipeline.
"""

from whisker.queries.compiler import (
    CompileFailed,
    CompilerAdapter,
    CompileResult,
    CompileSuccess,
    TemplateQueryCompiler,
)
from whisker.queries.differ import ReconcileResult, reconcile
from whisker.queries.watcher import ChangeEvent, ComponentWatcher, WatchSet

__all__ = [
    "ChangeEvent",
    "CompileFailed",
    "CompileResult",
    "CompileSuccess",
    "CompilerAdapter",
    "ComponentWatcher",
    "ReconcileResult",
    "TemplateQueryCompiler",
    "WatchSet",
    "reconcile",
]
