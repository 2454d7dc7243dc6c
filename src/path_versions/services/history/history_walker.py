"""
History walker: visits every commit reachable from a start revision once.

The commit graph is full of diamonds (merges share ancestors), so traversal
is an explicit stack plus a visited set keyed by commit id rather than
recursive descent.
"""

import heapq
import logging
from enum import Enum
from typing import Dict, Iterator, List

from .errors import RepositoryCorrupt
from .models import CommitNode

logger = logging.getLogger(__name__)


class WalkOrder(str, Enum):
    """Commit output orderings."""

    NONE = "none"  # discovery order, streamed
    TOPOLOGICAL = "topo"  # children before parents
    DATE = "date"  # children before parents, newest committer time first


class HistoryWalker:
    """Walks the parent DAG of a repository.

    ``repository`` needs ``resolve(rev)`` and ``read_commit(oid)``; see
    GitRepository.
    """

    def __init__(self, repository):
        self.repository = repository
        self.visited_count = 0

    def walk(
        self,
        start: str = "HEAD",
        order: WalkOrder = WalkOrder.NONE,
        reverse: bool = False,
    ) -> Iterator[CommitNode]:
        """Yield every commit reachable from start exactly once.

        With ``WalkOrder.NONE`` and no reverse the commits are streamed as they
        are discovered; every other combination reads the whole graph first.

        Raises:
            RepositoryCorrupt: a referenced commit cannot be read
        """
        head = self.repository.resolve(start)
        if head is None:
            logger.info(f"Nothing to walk: {start} has no commits")
            return

        if order == WalkOrder.NONE and not reverse:
            yield from self._discover(head)
            return

        commits = list(self._discover(head))
        if order == WalkOrder.NONE:
            ordered = commits
        else:
            ordered = self._sort(commits, by_date=order == WalkOrder.DATE)
        if reverse:
            ordered.reverse()
        yield from ordered

    def _discover(self, head: str) -> Iterator[CommitNode]:
        seen = {head}
        stack = [head]
        self.visited_count = 0
        while stack:
            oid = stack.pop()
            commit = self.repository.read_commit(oid)
            self.visited_count += 1
            yield commit
            # reversed so the first parent is popped next
            for parent in reversed(commit.parents):
                if parent not in seen:
                    seen.add(parent)
                    stack.append(parent)
        logger.debug(f"Walked {self.visited_count} commits from {head[:12]}")

    @staticmethod
    def _sort(commits: List[CommitNode], by_date: bool) -> List[CommitNode]:
        """Order commits so that every commit precedes all of its parents."""
        by_id: Dict[str, CommitNode] = {c.oid: c for c in commits}
        pending_children: Dict[str, int] = {c.oid: 0 for c in commits}
        for commit in commits:
            for parent in commit.parents:
                if parent not in pending_children:
                    raise RepositoryCorrupt(
                        f"Parent {parent} of {commit.oid} was not walked",
                        object_id=parent,
                    )
                pending_children[parent] += 1

        # Heap of (-time, position, oid) for date order; position keeps ties
        # in discovery order. Topological order pops the latest pushed tip.
        position = {c.oid: i for i, c in enumerate(commits)}
        ready: List = []
        counter = 0

        def push(oid: str) -> None:
            nonlocal counter
            if by_date:
                key = (-by_id[oid].committer_time, position[oid])
            else:
                counter += 1
                key = (-counter, position[oid])
            heapq.heappush(ready, (key, oid))

        for commit in commits:
            if pending_children[commit.oid] == 0:
                push(commit.oid)

        ordered: List[CommitNode] = []
        while ready:
            _, oid = heapq.heappop(ready)
            commit = by_id[oid]
            ordered.append(commit)
            for parent in commit.parents:
                pending_children[parent] -= 1
                if pending_children[parent] == 0:
                    push(parent)

        if len(ordered) != len(commits):
            raise RepositoryCorrupt("Commit graph contains a cycle")
        return ordered

