"""
Version counter: walk -> diff -> accumulate over the whole history.

Commits are processed parents-first so that when a rename is seen, the
history recorded under the old name is already complete and can be folded
into the new name.
"""

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from ...config import HistoryConfig
from .commit_differ import CommitDiffer
from .git_repository import GitRepository
from .history_walker import HistoryWalker, WalkOrder
from .models import VersionTable
from .version_accumulator import VersionAccumulator

logger = logging.getLogger(__name__)


@dataclass
class CountStats:
    """Counters collected during one run."""

    commits: int = 0
    root_commits: int = 0
    merge_commits: int = 0
    changes: int = 0
    renames: int = 0
    elapsed: float = 0.0


class VersionCounter:
    """Counts distinct content versions per canonical path."""

    def __init__(self, repository, config: Optional[HistoryConfig] = None):
        self.repository = repository
        self.config = config or HistoryConfig()
        self.walker = HistoryWalker(repository)
        self.differ = CommitDiffer(repository, self.config)
        self.stats = CountStats()

    def count(self, start: str = "HEAD") -> VersionTable:
        """Traverse all history reachable from start and return the finalized
        VersionTable.

        Raises:
            RepositoryCorrupt: an object in the graph cannot be read
            UnsupportedHistoryShape: a tree holds an entry kind that cannot be
                attributed
        """
        started = time.time()
        self.stats = CountStats()
        accumulator = VersionAccumulator()

        for commit in self.walker.walk(
            start, order=WalkOrder.TOPOLOGICAL, reverse=True
        ):
            changes = self.differ.diff(commit)
            accumulator.apply_all(changes)

            self.stats.commits += 1
            if commit.is_root:
                self.stats.root_commits += 1
            elif commit.is_merge:
                self.stats.merge_commits += 1
            if self.stats.commits % 1000 == 0:
                logger.info(f"Processed {self.stats.commits} commits")

        self.stats.changes = accumulator.applied
        self.stats.renames = accumulator.renames
        self.stats.elapsed = time.time() - started
        table = accumulator.finalize()
        logger.info(
            f"Counted {len(table)} paths over {self.stats.commits} commits "
            f"({self.stats.merge_commits} merges, {self.stats.renames} renames) "
            f"in {self.stats.elapsed:.3f}s"
        )
        return table


def count_versions(
    path: Path = Path("."), config: Optional[HistoryConfig] = None
) -> VersionTable:
    """Open the repository at path and count versions reachable from HEAD."""
    config = config or HistoryConfig()
    repository = GitRepository.discover(
        Path(path), tree_cache_size=config.tree_cache_size
    )
    return VersionCounter(repository, config).count()
