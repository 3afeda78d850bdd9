"""Startup banner — mode-aware status output.

Prints a branded startup banner with timing and status indicators.
Detects ``NO_COLOR`` / ``TERM`` for safe fallback.
"""

from __future__ import annotations

import os
import sys
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from whisker.config import WhiskerConfig


# ---------------------------------------------------------------------------
# ANSI helpers: respect NO_COLOR (https://no-color.org)
# ---------------------------------------------------------------------------

def _supports_color() -> bool:
    """Return True if the terminal supports ANSI colors."""
    if os.environ.get("NO_COLOR"):
        return False
    if os.environ.get("TERM") == "dumb":
        return False
    return hasattr(sys.stderr, "isatty") and sys.stderr.isatty()


_COLOR = _supports_color()

_RESET = "\033[0m" if _COLOR else ""
_BOLD = "\033[1m" if _COLOR else ""
_DIM = "\033[2m" if _COLOR else ""
_RED = "\033[31m" if _COLOR else ""
_GREEN = "\033[32m" if _COLOR else ""
_YELLOW = "\033[33m" if _COLOR else ""
_ORANGE = "\033[38;5;214m" if _COLOR else ""


# ---------------------------------------------------------------------------
# Mode badges
# ---------------------------------------------------------------------------

_MODE_STYLES: dict[str, tuple[str, str]] = {
    "develop": (_GREEN, "dev"),
    "build": (_YELLOW, "build"),
}


def _mode_badge(mode: str) -> str:
    """Return a styled [mode] badge."""
    color, label = _MODE_STYLES.get(mode, (_DIM, mode))
    return f"{color}[{label}]{_RESET}"


def _plural(count: int, word: str) -> str:
    return f"{count} {word}" if count == 1 else f"{count} {word}s"


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def print_banner(
    config: WhiskerConfig,
    component_count: int,
    *,
    route_count: int = 0,
    static_query_count: int = 0,
    load_ms: float = 0.0,
    warnings: list[str] | None = None,
) -> None:
    """Print the Whisker startup banner to stderr.

    Args:
        config: Resolved WhiskerConfig.
        component_count: Number of template components tracked.
        route_count: Number of routes registered.
        static_query_count: Number of component-scoped queries extracted.
        load_ms: Time spent on the bootstrap pass in milliseconds.
        warnings: Optional list of warning messages to display.

    """
    from whisker import __version__

    badge = _mode_badge(config.mode)
    header = f"  {_ORANGE}{_BOLD}=^.^={_RESET}  Whisker {_DIM}v{__version__}{_RESET}  {badge}"

    lines: list[str] = [
        "",
        header,
        f"  {_DIM}{'─' * 43}{_RESET}",
    ]

    timing = f" {_DIM}in {load_ms:.0f}ms{_RESET}" if load_ms > 0 else ""
    lines.append(f"  {_DIM}├─{_RESET} {_plural(component_count, 'component')} tracked{timing}")

    if route_count > 0:
        lines.append(f"  {_DIM}├─{_RESET} {_plural(route_count, 'route')}")

    if static_query_count > 0:
        queries = "static query" if static_query_count == 1 else "static queries"
        lines.append(f"  {_DIM}├─{_RESET} {static_query_count} {queries}")

    lines.append(f"  {_DIM}└─{_RESET} templates: {_DIM}{config.templates_path}{_RESET}")

    if config.watch_enabled:
        lines.append("")
        lines.append(f"  {_DIM}Watching for changes...{_RESET}")

    if warnings:
        lines.append("")
        lines.extend(f"  {_YELLOW}!{_RESET} {w}" for w in warnings)

    lines.append("")

    print("\n".join(lines), file=sys.stderr)
