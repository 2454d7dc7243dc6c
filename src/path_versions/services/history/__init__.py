"""Commit-graph traversal and per-path version counting."""

from .errors import (
    HistoryError,
    RepositoryCorrupt,
    RepositoryNotFound,
    UnsupportedHistoryShape,
)
from .models import (
    Added,
    CommitNode,
    Deleted,
    Modified,
    PathChange,
    PathHistory,
    Renamed,
    TreeEntry,
    VersionTable,
)
from .git_repository import GitRepository
from .history_walker import HistoryWalker, WalkOrder
from .commit_differ import CommitDiffer
from .version_accumulator import VersionAccumulator
from .version_counter import CountStats, VersionCounter, count_versions

__all__ = [
    "Added",
    "CommitDiffer",
    "CommitNode",
    "CountStats",
    "Deleted",
    "GitRepository",
    "HistoryError",
    "HistoryWalker",
    "Modified",
    "PathChange",
    "PathHistory",
    "Renamed",
    "RepositoryCorrupt",
    "RepositoryNotFound",
    "TreeEntry",
    "UnsupportedHistoryShape",
    "VersionAccumulator",
    "VersionCounter",
    "VersionTable",
    "WalkOrder",
    "count_versions",
]
