"""
Git object access for history traversal.

Reads commits, trees and blobs straight from the object store through the
git executable. Every failure to resolve an object is reported as
RepositoryCorrupt; failing to find a repository at all is RepositoryNotFound.
"""

import logging
import subprocess
from collections import OrderedDict
from pathlib import Path
from typing import FrozenSet, Generic, Hashable, Optional, Tuple, TypeVar

from ...utils.git_runner import run_git_command
from .errors import RepositoryCorrupt, RepositoryNotFound
from .models import CommitNode, TreeEntry

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

# Undecodable path bytes survive the round trip through str
PATH_ENCODING = "utf-8"
PATH_ERRORS = "surrogateescape"


class _LRUCache(Generic[K, V]):
    """Small bounded cache; recently used objects are kept."""

    def __init__(self, max_size: int):
        self.max_size = max_size
        self._data: "OrderedDict[K, V]" = OrderedDict()

    def get(self, key: K) -> Optional[V]:
        value = self._data.get(key)
        if value is not None:
            self._data.move_to_end(key)
        return value

    def put(self, key: K, value: V) -> None:
        self._data[key] = value
        self._data.move_to_end(key)
        while len(self._data) > self.max_size:
            self._data.popitem(last=False)


class GitRepository:
    """Read-only access to the objects of one git repository."""

    def __init__(self, work_dir: Path, git_dir: Path, tree_cache_size: int = 512):
        """Initialize the repository accessor.

        Use ``GitRepository.discover`` rather than calling this directly.

        Args:
            work_dir: Directory git commands are run from
            git_dir: Absolute path of the git directory
            tree_cache_size: Number of tree listings kept in memory
        """
        self.work_dir = Path(work_dir)
        self.git_dir = Path(git_dir)
        self._trees: _LRUCache[str, Tuple[TreeEntry, ...]] = _LRUCache(
            tree_cache_size
        )
        self._commits: _LRUCache[str, CommitNode] = _LRUCache(tree_cache_size)
        self._shallow: Optional[FrozenSet[str]] = None

    @classmethod
    def discover(cls, path: Path, tree_cache_size: int = 512) -> "GitRepository":
        """Locate the git directory at or above path.

        Raises:
            RepositoryNotFound: path missing, not inside a repository, or no git
        """
        path = Path(path)
        if not path.is_dir():
            raise RepositoryNotFound(f"Not a directory: {path}", path=str(path))

        try:
            result = run_git_command(
                ["git", "rev-parse", "--absolute-git-dir"], cwd=path, check=True
            )
        except FileNotFoundError:
            raise RepositoryNotFound("git executable not found", path=str(path))
        except subprocess.CalledProcessError as e:
            raise RepositoryNotFound(
                f"No git repository found at or above {path}: {(e.stderr or '').strip()}",
                path=str(path),
            )

        git_dir = Path(result.stdout.strip())
        logger.debug(f"Discovered git directory {git_dir} for {path}")
        return cls(path.resolve(), git_dir, tree_cache_size=tree_cache_size)

    def _git(
        self, args, text: bool = True, check: bool = True
    ) -> subprocess.CompletedProcess:
        kwargs = {"encoding": PATH_ENCODING, "errors": PATH_ERRORS} if text else {}
        return run_git_command(
            ["git"] + list(args), cwd=self.work_dir, check=check, text=text, **kwargs
        )

    @property
    def shallow_commits(self) -> FrozenSet[str]:
        """Commits at the boundary of a shallow clone."""
        if self._shallow is None:
            shallow_file = self.git_dir / "shallow"
            if shallow_file.exists():
                self._shallow = frozenset(
                    line.strip()
                    for line in shallow_file.read_text().splitlines()
                    if line.strip()
                )
                logger.info(
                    f"Shallow repository: {len(self._shallow)} boundary commits"
                )
            else:
                self._shallow = frozenset()
        return self._shallow

    def resolve(self, rev: str = "HEAD") -> Optional[str]:
        """Resolve a revision to a commit id.

        Returns None when the revision does not exist (e.g. an unborn HEAD in a
        repository without commits).

        Raises:
            RepositoryCorrupt: the revision exists but its commit cannot be read
        """
        # Reading the ref does not touch the object store
        ref = self._git(["rev-parse", "--verify", "--quiet", rev], check=False)
        target = ref.stdout.strip()
        if ref.returncode != 0 or not target:
            logger.info(f"Revision {rev} does not resolve to a commit")
            return None

        peeled = self._git(
            ["rev-parse", "--verify", "--quiet", f"{target}^{{commit}}"], check=False
        )
        oid = peeled.stdout.strip()
        if peeled.returncode != 0 or not oid:
            raise RepositoryCorrupt(
                f"Revision {rev} points at {target}, which is not a readable commit",
                object_id=target,
            )
        return oid

    def read_commit(self, oid: str) -> CommitNode:
        """Read and parse a commit object."""
        cached = self._commits.get(oid)
        if cached is not None:
            return cached

        try:
            result = self._git(["cat-file", "commit", oid])
        except subprocess.CalledProcessError as e:
            raise RepositoryCorrupt(
                f"Cannot read commit {oid}: {(e.stderr or '').strip()}", object_id=oid
            )

        commit = self._parse_commit(oid, result.stdout)
        if commit.parents and oid in self.shallow_commits:
            commit = CommitNode(
                oid=commit.oid,
                parents=(),
                tree=commit.tree,
                committer_time=commit.committer_time,
                summary=commit.summary,
            )
        self._commits.put(oid, commit)
        return commit

    @staticmethod
    def _parse_commit(oid: str, raw: str) -> CommitNode:
        header, _, message = raw.partition("\n\n")
        tree: Optional[str] = None
        parents = []
        committer_time = 0

        for line in header.splitlines():
            # Continuation lines belong to multi-line headers such as gpgsig
            if line.startswith(" "):
                continue
            key, _, value = line.partition(" ")
            if key == "tree":
                tree = value.strip()
            elif key == "parent":
                parents.append(value.strip())
            elif key == "committer":
                # "Name <email> 1700000000 +0100"
                parts = value.rsplit(" ", 2)
                if len(parts) == 3 and parts[1].lstrip("-").isdigit():
                    committer_time = int(parts[1])

        if tree is None:
            raise RepositoryCorrupt(f"Commit {oid} has no tree", object_id=oid)

        summary = message.strip().splitlines()[0] if message.strip() else ""
        return CommitNode(
            oid=oid,
            parents=tuple(parents),
            tree=tree,
            committer_time=committer_time,
            summary=summary,
        )

    def read_tree(self, oid: str) -> Tuple[TreeEntry, ...]:
        """List the direct entries of a tree object."""
        cached = self._trees.get(oid)
        if cached is not None:
            return cached

        try:
            result = self._git(["ls-tree", "-z", oid])
        except subprocess.CalledProcessError as e:
            raise RepositoryCorrupt(
                f"Cannot read tree {oid}: {(e.stderr or '').strip()}", object_id=oid
            )

        entries = []
        for record in result.stdout.split("\0"):
            if not record:
                continue
            meta, sep, name = record.partition("\t")
            fields = meta.split(" ")
            if not sep or len(fields) != 3:
                raise RepositoryCorrupt(
                    f"Malformed entry in tree {oid}: {record!r}", object_id=oid
                )
            mode, kind, entry_oid = fields
            entries.append(TreeEntry(name=name, mode=mode, kind=kind, oid=entry_oid))

        tree = tuple(entries)
        self._trees.put(oid, tree)
        return tree

    def read_blob(self, oid: str) -> bytes:
        """Read raw blob content."""
        try:
            result = self._git(["cat-file", "blob", oid], text=False)
        except subprocess.CalledProcessError as e:
            stderr = (e.stderr or b"").decode("utf-8", errors="replace").strip()
            raise RepositoryCorrupt(f"Cannot read blob {oid}: {stderr}", object_id=oid)
        return bytes(result.stdout)
