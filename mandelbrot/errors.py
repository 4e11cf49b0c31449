"""Exceptions raised while rendering or persisting a Mandelbrot frame."""

from __future__ import annotations

from pathlib import Path
from typing import Optional


class MandelbrotError(Exception):
    """Base class for every error raised by this package."""


class InvalidParametersError(MandelbrotError, ValueError):
    """Raised before rendering when a parameter set violates its invariants."""

    def __init__(self, reason: str) -> None:
        super().__init__(f"invalid parameters: {reason}")
        self.reason = reason


class RenderCancelledError(MandelbrotError):
    """Raised by a row task that observed the cancellation signal."""

    def __init__(self, row: int, column: int) -> None:
        super().__init__(f"render cancelled at row {row}, column {column}")
        self.row = row
        self.column = column


class RowProcessingError(MandelbrotError):
    """Wraps the first failure reported by a row task."""

    def __init__(self, row: int, cause: BaseException) -> None:
        super().__init__(f"error processing row {row}: {cause}")
        self.row = row
        self.cause = cause

    @property
    def cancelled(self) -> bool:
        return isinstance(self.cause, RenderCancelledError)


class PersistenceError(MandelbrotError):
    """Raised when a rendered buffer cannot be written to its destination."""

    def __init__(self, message: str, path: Optional[Path] = None) -> None:
        super().__init__(message)
        self.path = path
