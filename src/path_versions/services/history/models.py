"""Data models for history traversal and version counting."""

from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Set, Tuple, Union

BLOB = "blob"
TREE = "tree"
GITLINK = "commit"


@dataclass(frozen=True)
class CommitNode:
    """A commit as seen by the walker: id, parent ids and root tree."""

    oid: str
    parents: Tuple[str, ...]
    tree: str
    committer_time: int = 0
    summary: str = ""

    @property
    def is_root(self) -> bool:
        return not self.parents

    @property
    def is_merge(self) -> bool:
        return len(self.parents) > 1


@dataclass(frozen=True)
class TreeEntry:
    """One row of a git tree object."""

    name: str
    mode: str
    kind: str  # blob, tree or commit (submodule)
    oid: str


@dataclass(frozen=True)
class Added:
    path: str
    content_id: str


@dataclass(frozen=True)
class Modified:
    path: str
    content_id: str


@dataclass(frozen=True)
class Deleted:
    path: str


@dataclass(frozen=True)
class Renamed:
    from_path: str
    to_path: str
    content_id: str
    similarity: float = 1.0

    @property
    def path(self) -> str:
        return self.to_path


PathChange = Union[Added, Modified, Deleted, Renamed]


@dataclass
class PathHistory:
    """Distinct content ids recorded under one canonical path."""

    path: str
    content_ids: Set[str] = field(default_factory=set)

    @property
    def count(self) -> int:
        return len(self.content_ids)


class VersionTable:
    """Mapping of canonical path -> PathHistory.

    Grows monotonically while a traversal runs; ``finalize`` freezes it
    before it is handed to a reporter.
    """

    def __init__(self) -> None:
        self._histories: Dict[str, PathHistory] = {}
        self._finalized = False

    @property
    def finalized(self) -> bool:
        return self._finalized

    def _check_mutable(self) -> None:
        if self._finalized:
            raise RuntimeError("VersionTable is finalized and read-only")

    def ensure(self, path: str) -> PathHistory:
        """Return the history for path, creating an empty one if absent."""
        self._check_mutable()
        history = self._histories.get(path)
        if history is None:
            history = PathHistory(path)
            self._histories[path] = history
        return history

    def record(self, path: str, content_id: str) -> None:
        self.ensure(path).content_ids.add(content_id)

    def rename(self, from_path: str, to_path: str) -> PathHistory:
        """Fold the history of from_path into to_path and drop from_path.

        If to_path already has history of its own the two sets are unioned.
        """
        target = self.ensure(to_path)
        if from_path == to_path:
            return target
        source = self._histories.pop(from_path, None)
        if source is not None:
            target.content_ids |= source.content_ids
        return target

    def update(self, other: "VersionTable") -> None:
        """Merge another table into this one by per-path set union."""
        for history in other:
            self.ensure(history.path).content_ids |= history.content_ids

    def finalize(self) -> "VersionTable":
        self._finalized = True
        return self

    def count(self, path: str) -> int:
        return self._histories[path].count

    def counts(self) -> List[Tuple[int, str]]:
        """(count, path) pairs ordered by path."""
        return [(self._histories[p].count, p) for p in sorted(self._histories)]

    def as_dict(self) -> Dict[str, int]:
        return {path: history.count for path, history in self._histories.items()}

    def __getitem__(self, path: str) -> PathHistory:
        return self._histories[path]

    def __contains__(self, path: object) -> bool:
        return path in self._histories

    def __len__(self) -> int:
        return len(self._histories)

    def __iter__(self) -> Iterator[PathHistory]:
        return iter(list(self._histories.values()))

    def __repr__(self) -> str:
        state = "finalized" if self._finalized else "open"
        return f"VersionTable({len(self._histories)} paths, {state})"
