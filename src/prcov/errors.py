"""Exception hierarchy for prcov.

Every fatal condition raised by the pipeline derives from :class:`PrcovError`
so the CLI can report it with a single message and a non-zero exit.
"""

from __future__ import annotations

from typing import Any


class PrcovError(RuntimeError):
    """Base exception that carries structured context."""

    def __init__(self, message: str, *, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.context = context or {}


class ConfigurationError(PrcovError):
    """Raised when configuration or run context is invalid or incomplete."""


class MalformedReportError(PrcovError):
    """Raised when a coverage report cannot be decoded into file records."""


class NotFoundError(PrcovError):
    """Raised when a report file or commit ref cannot be resolved."""


class CollaboratorError(PrcovError):
    """Raised when the diff provider or the publisher fails."""


__all__ = [
    "CollaboratorError",
    "ConfigurationError",
    "MalformedReportError",
    "NotFoundError",
    "PrcovError",
]
