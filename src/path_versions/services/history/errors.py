"""Errors raised while reading and walking git history.

All of them are fatal for a run: the traversal stops and no partial
VersionTable is returned. The CLI boundary turns them into exit codes.
"""

from typing import Optional


class HistoryError(Exception):
    """Base class for history traversal failures."""


class RepositoryNotFound(HistoryError):
    """Raised when no git directory exists at or above the given path."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path


class RepositoryCorrupt(HistoryError):
    """Raised when a referenced object cannot be resolved or decoded."""

    def __init__(self, message: str, object_id: Optional[str] = None):
        super().__init__(message)
        self.object_id = object_id


class UnsupportedHistoryShape(HistoryError):
    """Raised for tree contents the differ does not know how to attribute."""
