"""
Shared pytest fixtures for path-versions tests.

Provides a builder for throw-away git repositories (driven through the git
executable) and an in-memory object store for synthetic commit graphs.
"""

import hashlib
import subprocess
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

import pytest

from path_versions.services.history.errors import RepositoryCorrupt
from path_versions.services.history.models import CommitNode, TreeEntry
from path_versions.utils.exception_logger import ExceptionLogger


class GitRepoBuilder:
    """Creates commits in a real git repository under a temp directory."""

    def __init__(self, path: Path):
        self.path = path
        self.path.mkdir(parents=True, exist_ok=True)
        self.git("init", "-q")
        self.git("symbolic-ref", "HEAD", "refs/heads/main")
        self.git("config", "user.name", "Test")
        self.git("config", "user.email", "test@test.com")
        self.git("config", "commit.gpgsign", "false")

    def git(self, *args: str, check: bool = True) -> subprocess.CompletedProcess:
        return subprocess.run(
            ["git", *args],
            cwd=self.path,
            check=check,
            capture_output=True,
            text=True,
        )

    def write(self, rel_path: str, content: str) -> None:
        target = self.path / rel_path
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content)
        self.git("add", rel_path)

    def remove(self, rel_path: str) -> None:
        self.git("rm", "-q", rel_path)

    def move(self, old: str, new: str) -> None:
        (self.path / new).parent.mkdir(parents=True, exist_ok=True)
        self.git("mv", old, new)

    def commit(self, message: str) -> str:
        self.git("commit", "-q", "--allow-empty", "-m", message)
        return self.head()

    def head(self) -> str:
        return self.git("rev-parse", "HEAD").stdout.strip()

    def blob_id(self, rel_path: str, rev: str = "HEAD") -> str:
        return self.git("rev-parse", f"{rev}:{rel_path}").stdout.strip()

    def branch(self, name: str) -> None:
        self.git("checkout", "-q", "-b", name)

    def checkout(self, name: str) -> None:
        self.git("checkout", "-q", name)

    def merge(self, name: str, message: str = "Merge") -> subprocess.CompletedProcess:
        return self.git("merge", "--no-ff", "--no-edit", "-q", "-m", message, name, check=False)


@pytest.fixture
def git_repo(tmp_path) -> GitRepoBuilder:
    """Empty git repository on branch main."""
    return GitRepoBuilder(tmp_path / "test_repo")


def _fake_oid(*parts: str) -> str:
    return hashlib.sha1("\0".join(parts).encode("utf-8")).hexdigest()


class FakeRepository:
    """In-memory stand-in for GitRepository.

    Trees are described as {path: content} dicts; identical content gets the
    same blob id, identical subtrees the same tree id, as in git.
    """

    def __init__(self):
        self.blobs: Dict[str, bytes] = {}
        self.trees: Dict[str, Tuple[TreeEntry, ...]] = {}
        self.commits: Dict[str, CommitNode] = {}
        self.refs: Dict[str, str] = {}
        self.commit_reads: List[str] = []
        self.tree_reads: List[str] = []
        self._clock = 1_000_000

    def blob(self, content: str) -> str:
        oid = _fake_oid("blob", content)
        self.blobs[oid] = content.encode("utf-8")
        return oid

    def tree(self, files: Dict[str, str]) -> str:
        nested: Dict[str, object] = {}
        for path, content in files.items():
            node = nested
            *dirs, name = path.split("/")
            for directory in dirs:
                node = node.setdefault(directory, {})  # type: ignore[assignment]
            node[name] = content
        return self._build_tree(nested)

    def _build_tree(self, node: Dict[str, object]) -> str:
        entries = []
        for name in sorted(node):
            value = node[name]
            if isinstance(value, dict):
                entries.append(TreeEntry(name, "040000", "tree", self._build_tree(value)))
            else:
                entries.append(TreeEntry(name, "100644", "blob", self.blob(str(value))))
        oid = _fake_oid("tree", *(f"{e.mode} {e.name} {e.oid}" for e in entries))
        self.trees[oid] = tuple(entries)
        return oid

    def commit(
        self,
        files: Dict[str, str],
        parents: Sequence[str] = (),
        summary: str = "commit",
        committer_time: Optional[int] = None,
        ref: str = "HEAD",
    ) -> str:
        tree = self.tree(files)
        if committer_time is None:
            self._clock += 60
            committer_time = self._clock
        oid = _fake_oid("commit", tree, *parents, summary, str(committer_time))
        self.commits[oid] = CommitNode(
            oid=oid,
            parents=tuple(parents),
            tree=tree,
            committer_time=committer_time,
            summary=summary,
        )
        if ref:
            self.refs[ref] = oid
        return oid

    def resolve(self, rev: str = "HEAD") -> Optional[str]:
        if rev in self.commits:
            return rev
        return self.refs.get(rev)

    def read_commit(self, oid: str) -> CommitNode:
        self.commit_reads.append(oid)
        if oid not in self.commits:
            raise RepositoryCorrupt(f"Cannot read commit {oid}", object_id=oid)
        return self.commits[oid]

    def read_tree(self, oid: str) -> Tuple[TreeEntry, ...]:
        self.tree_reads.append(oid)
        if oid not in self.trees:
            raise RepositoryCorrupt(f"Cannot read tree {oid}", object_id=oid)
        return self.trees[oid]

    def read_blob(self, oid: str) -> bytes:
        if oid not in self.blobs:
            raise RepositoryCorrupt(f"Cannot read blob {oid}", object_id=oid)
        return self.blobs[oid]


@pytest.fixture
def fake_repo() -> FakeRepository:
    return FakeRepository()


@pytest.fixture(autouse=True)
def reset_exception_logger():
    """ExceptionLogger is a process-wide singleton; keep tests isolated."""
    ExceptionLogger._instance = None
    yield
    ExceptionLogger._instance = None
