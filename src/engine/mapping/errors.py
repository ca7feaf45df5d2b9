"""Exceptions raised by the route mapping subsystem."""

from __future__ import annotations


class RouteImportError(ValueError):
    """A route file could not be turned into layers.

    Raised for malformed markup and for files with no usable coordinates.
    Carries the offending filename so batch imports can report per file.
    """

    def __init__(self, message: str, filename: str = "") -> None:
        super().__init__(message)
        self.filename = filename


class ConfirmationRequired(RuntimeError):
    """A destructive action was requested without explicit confirmation."""
