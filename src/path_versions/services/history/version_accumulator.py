"""Folds per-commit path changes into a VersionTable."""

import logging
from typing import Iterable, Optional

from .models import Added, Deleted, Modified, PathChange, Renamed, VersionTable

logger = logging.getLogger(__name__)


class VersionAccumulator:
    """Applies PathChanges to a VersionTable owned by one traversal."""

    def __init__(self, table: Optional[VersionTable] = None):
        self.table = table if table is not None else VersionTable()
        self.applied = 0
        self.renames = 0

    def apply(self, change: PathChange) -> None:
        if isinstance(change, (Added, Modified)):
            self.table.record(change.path, change.content_id)
        elif isinstance(change, Deleted):
            # Past versions of a deleted path still count
            self.table.ensure(change.path)
        elif isinstance(change, Renamed):
            if change.to_path in self.table and change.from_path in self.table:
                logger.debug(
                    f"Rename target {change.to_path} already has history; "
                    f"merging {change.from_path} into it"
                )
            self.table.rename(change.from_path, change.to_path)
            self.table.record(change.to_path, change.content_id)
            self.renames += 1
        else:
            raise TypeError(f"Unknown path change: {change!r}")
        self.applied += 1

    def apply_all(self, changes: Iterable[PathChange]) -> None:
        for change in changes:
            self.apply(change)

    def finalize(self) -> VersionTable:
        return self.table.finalize()
