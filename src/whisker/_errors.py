"""Whisker error hierarchy.

All whisker-specific errors inherit from WhiskerError for easy catching.
"""


class WhiskerError(Exception):
    """Base error for all whisker operations."""


class ConfigError(WhiskerError):
    """Invalid or missing configuration."""


class CompileError(WhiskerError):
    """A template could not be compiled into a query.

    Raised inside the template compiler and turned into a failed compile
    result at the adapter boundary; never fatal to a reconciliation cycle.
    """


class StoreError(WhiskerError):
    """The query store received a command it does not understand."""
