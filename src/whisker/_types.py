"""Shared type definitions for whisker."""

from os import PathLike
from typing import Literal

# Mode of operation
type WhiskerMode = Literal["develop", "build"]

# Absolute, forward-slash path to a template component
type ComponentPath = str

# Stable identifier of a component-scoped (static) query
type QueryId = str

# Route URL path (e.g., "/", "/docs/getting-started/")
type RoutePath = str


def slash(path: str | PathLike[str]) -> str:
    """Normalize *path* to forward-slash form.

    Component identity must not depend on the platform separator, so every
    path entering the store goes through here first.
    """
    return str(path).replace("\\", "/")
