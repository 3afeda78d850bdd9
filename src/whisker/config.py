"""Whisker configuration.

WhiskerConfig is the central configuration object, frozen after creation.
"""

from dataclasses import dataclass, field
from pathlib import Path

from whisker._types import WhiskerMode


@dataclass(frozen=True, slots=True)
class WhiskerConfig:
    """Configuration for a Whisker query watcher.

    Attributes:
        root: Path to the site root directory (contains templates/, content/).
              Always resolved to an absolute path on construction.
        templates_dir: Directory containing template components.
        content_dir: Directory containing Markdown content (Bengal sites).
        source_globs: Root-relative glob patterns of files that may hold
            queries.  Changes to matching files trigger recompilation.
        debounce_ms: Quiet period after the last file change before a
            reconciliation cycle runs.
        mode: ``"develop"`` watches for changes; ``"build"`` runs a single
            reconciliation pass and never watches.
        routes: Route manifest as ``(route_path, template_name)`` pairs.
            When empty, routes are discovered from the Bengal site.

    """

    root: Path = field(default_factory=Path.cwd)
    templates_dir: str = "templates"
    content_dir: str = "content"
    source_globs: tuple[str, ...] = ("templates/**/*.html",)
    debounce_ms: int = 100
    mode: WhiskerMode = "develop"
    routes: tuple[tuple[str, str], ...] = ()

    def __post_init__(self) -> None:
        # Resolve root to absolute so that watchfiles (which returns
        # absolute paths) can be compared via Path.relative_to().
        if not self.root.is_absolute():
            object.__setattr__(self, "root", self.root.resolve())

    @property
    def templates_path(self) -> Path:
        """Absolute path to templates directory."""
        return self.root / self.templates_dir

    @property
    def content_path(self) -> Path:
        """Absolute path to content directory."""
        return self.root / self.content_dir

    @property
    def debounce_seconds(self) -> float:
        """Debounce quiet period in seconds."""
        return self.debounce_ms / 1000

    @property
    def watch_enabled(self) -> bool:
        """Whether file watching and mid-bootstrap observation are active."""
        return self.mode != "build"
