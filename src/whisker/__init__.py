"""Whisker — a query watcher for content-reactive sites.

Keeps the mapping between template components and the data queries embedded
in them consistent while you edit.  Every time templates change, Whisker
recompiles the queries, works out what was added, changed, or removed, and
applies only the store updates and query re-runs that the change implies.

Quick start::

    import whisker

    whisker.dev("my-site/")

Two modes::

    whisker.dev("my-site/")       # Watch templates and reconcile on change
    whisker.build("my-site/")     # One reconciliation pass, no watching

Setting ``WHISKER_ENV=production`` forces build mode.

"""

# PEP 703: Declare this module as free-threading safe
_Py_mod_gil = 0

__version__ = "0.1.0-dev"
__all__ = [
    "QueryStore",
    "QueryWatcher",
    "WhiskerConfig",
    "__version__",
    "build",
    "dev",
]


def __getattr__(name: str) -> object:
    """Lazy imports for the public API.

    Keeps ``import whisker`` fast: the watcher stack (watchfiles, asyncio
    machinery) is only imported when first used.
    """
    if name == "WhiskerConfig":
        from whisker.config import WhiskerConfig

        return WhiskerConfig

    if name == "QueryStore":
        from whisker.state.store import QueryStore

        return QueryStore

    if name == "QueryWatcher":
        from whisker.reactive.pipeline import QueryWatcher

        return QueryWatcher

    if name == "dev":
        from whisker.app import dev

        return dev

    if name == "build":
        from whisker.app import build

        return build

    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)
