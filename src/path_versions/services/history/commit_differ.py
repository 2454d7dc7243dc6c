"""
Commit differ: turns a commit into the path-level changes it introduced.

Root commits add every file in their tree. Ordinary commits are diffed
against their parent tree. Merge commits only report a path when its
content differs from every parent, so a version that a merge merely carries
forward from one side is not counted twice.

Renames are recovered from Added/Deleted pairs inside one commit: always by
identical blob id, and optionally by line similarity of the remaining pairs.
"""

import difflib
import logging
from collections import defaultdict
from typing import Dict, Iterator, List, Optional, Tuple

from ...config import HistoryConfig
from .errors import UnsupportedHistoryShape
from .models import (
    BLOB,
    GITLINK,
    TREE,
    Added,
    CommitNode,
    Deleted,
    Modified,
    PathChange,
    Renamed,
    TreeEntry,
)

logger = logging.getLogger(__name__)

# path -> (old blob id, new blob id); None marks absence on that side
RawDiff = Dict[str, Tuple[Optional[str], Optional[str]]]


class CommitDiffer:
    """Computes PathChange lists for commits of one repository."""

    def __init__(self, repository, config: Optional[HistoryConfig] = None):
        self.repository = repository
        self.config = config or HistoryConfig()

    def diff(self, commit: CommitNode) -> List[PathChange]:
        """Return the changes commit introduced, sorted by path."""
        if commit.is_root:
            raw: RawDiff = {
                path: (None, oid) for path, oid in self._blobs(commit.tree, "")
            }
        elif not commit.is_merge:
            parent = self.repository.read_commit(commit.parents[0])
            raw = self.diff_trees(parent.tree, commit.tree)
        else:
            raw = self._diff_merge(commit)

        return self._classify(raw)

    def _diff_merge(self, commit: CommitNode) -> RawDiff:
        per_parent = [
            self.diff_trees(self.repository.read_commit(parent).tree, commit.tree)
            for parent in commit.parents
        ]
        changed_everywhere = set(per_parent[0]).intersection(*per_parent[1:])
        logger.debug(
            f"Merge {commit.oid[:12]}: {len(changed_everywhere)} paths differ from "
            f"all {len(commit.parents)} parents"
        )
        # old side is taken from the first parent
        return {path: per_parent[0][path] for path in changed_everywhere}

    def diff_trees(self, old_tree: Optional[str], new_tree: Optional[str]) -> RawDiff:
        """Blob-level differences between two trees, recursing only into
        subtrees whose ids differ."""
        raw: RawDiff = {}
        self._diff_into(raw, old_tree, new_tree, "")
        return raw

    def _diff_into(
        self, raw: RawDiff, old_tree: Optional[str], new_tree: Optional[str], prefix: str
    ) -> None:
        if old_tree == new_tree:
            return
        old = self._entries(old_tree)
        new = self._entries(new_tree)

        for name in sorted(old.keys() | new.keys()):
            before, after = old.get(name), new.get(name)
            path = prefix + name
            if before is not None and after is not None and before.oid == after.oid:
                continue  # unchanged, or a mode-only change

            if (
                before is not None
                and after is not None
                and before.kind == TREE
                and after.kind == TREE
            ):
                self._diff_into(raw, before.oid, after.oid, path + "/")
                continue

            if before is not None:
                for sub_path, oid in self._expand(before, path):
                    raw[sub_path] = (oid, None)
            if after is not None:
                for sub_path, oid in self._expand(after, path):
                    old_oid = raw.get(sub_path, (None, None))[0]
                    raw[sub_path] = (old_oid, oid)

    def _entries(self, tree: Optional[str]) -> Dict[str, TreeEntry]:
        if tree is None:
            return {}
        return {entry.name: entry for entry in self.repository.read_tree(tree)}

    def _expand(self, entry: TreeEntry, path: str) -> Iterator[Tuple[str, str]]:
        if entry.kind == BLOB:
            yield path, entry.oid
        elif entry.kind == TREE:
            yield from self._blobs(entry.oid, path + "/")
        elif entry.kind == GITLINK:
            logger.debug(f"Skipping submodule entry {path}")
        else:
            raise UnsupportedHistoryShape(
                f"Unsupported tree entry kind {entry.kind!r} at {path}"
            )

    def _blobs(self, tree: str, prefix: str) -> Iterator[Tuple[str, str]]:
        """All (path, blob id) pairs below tree."""
        for entry in self.repository.read_tree(tree):
            yield from self._expand(entry, prefix + entry.name)

    def _classify(self, raw: RawDiff) -> List[PathChange]:
        added: Dict[str, str] = {}
        deleted: Dict[str, str] = {}
        changes: List[PathChange] = []

        for path, (old_oid, new_oid) in raw.items():
            if old_oid is None and new_oid is not None:
                added[path] = new_oid
            elif new_oid is None and old_oid is not None:
                deleted[path] = old_oid
            elif old_oid != new_oid and new_oid is not None:
                changes.append(Modified(path, new_oid))

        renames = self._exact_renames(added, deleted)
        if self.config.rename_detection == "similarity" and added and deleted:
            renames.extend(self._similar_renames(added, deleted))

        changes.extend(renames)
        changes.extend(Added(path, oid) for path, oid in added.items())
        changes.extend(Deleted(path) for path in deleted)
        changes.sort(key=_change_sort_key)
        return changes

    @staticmethod
    def _exact_renames(added: Dict[str, str], deleted: Dict[str, str]) -> List[Renamed]:
        """Pair added and deleted paths carrying the same blob id.

        Consumes the paired entries from both dicts. When several paths share
        a blob id, both sides are sorted and paired in lexicographic order.
        """
        sources: Dict[str, List[str]] = defaultdict(list)
        for path in sorted(deleted):
            sources[deleted[path]].append(path)

        renames = []
        for path in sorted(added):
            oid = added[path]
            candidates = sources.get(oid)
            if not candidates:
                continue
            from_path = candidates.pop(0)
            renames.append(Renamed(from_path, path, oid, 1.0))
            del added[path]
            del deleted[from_path]
        return renames

    def _similar_renames(
        self, added: Dict[str, str], deleted: Dict[str, str]
    ) -> List[Renamed]:
        """Pair the remaining add/delete candidates by content similarity."""
        limit = self.config.rename_limit
        if len(added) > limit or len(deleted) > limit:
            logger.warning(
                f"Skipping similarity rename detection: {len(added)} added and "
                f"{len(deleted)} deleted paths exceed rename_limit={limit}"
            )
            return []

        lines: Dict[str, List[bytes]] = {}

        def content(oid: str) -> List[bytes]:
            if oid not in lines:
                lines[oid] = self.repository.read_blob(oid).splitlines(keepends=True)
            return lines[oid]

        threshold = self.config.similarity_threshold
        scored = []
        for to_path, new_oid in added.items():
            for from_path, old_oid in deleted.items():
                score = similarity(content(old_oid), content(new_oid))
                if score >= threshold:
                    scored.append((-score, to_path, from_path))

        renames = []
        for neg_score, to_path, from_path in sorted(scored):
            if to_path not in added or from_path not in deleted:
                continue
            renames.append(Renamed(from_path, to_path, added[to_path], -neg_score))
            del added[to_path]
            del deleted[from_path]
        return renames


def similarity(old: List[bytes], new: List[bytes]) -> float:
    """Line-based similarity ratio in [0, 1]; two empty files are identical."""
    if not old and not new:
        return 1.0
    return difflib.SequenceMatcher(None, old, new, autojunk=False).ratio()


def _change_sort_key(change: PathChange) -> Tuple[str, int]:
    order = {Renamed: 0, Added: 1, Modified: 1, Deleted: 2}
    return change.path, order[type(change)]
