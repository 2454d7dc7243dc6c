"""Rendering of finished version tables."""

import json
from typing import List, Literal, Tuple

from rich.table import Table

from .services.history.models import VersionTable

SortKey = Literal["count", "path"]


def rows(table: VersionTable, sort: SortKey = "count") -> List[Tuple[int, str]]:
    """(count, path) pairs, most versions first or alphabetical by path."""
    pairs = table.counts()
    if sort == "count":
        pairs.sort(key=lambda pair: (-pair[0], pair[1]))
    return pairs


def render_text(pairs: List[Tuple[int, str]]) -> str:
    return "\n".join(f"{count:>7} {path}" for count, path in pairs)


def render_json(pairs: List[Tuple[int, str]]) -> str:
    return json.dumps([{"path": path, "versions": count} for count, path in pairs], indent=2)


def render_table(pairs: List[Tuple[int, str]], title: str = "Path versions") -> Table:
    table = Table(title=title)
    table.add_column("Versions", justify="right", style="cyan")
    table.add_column("Path", style="white")
    for count, path in pairs:
        table.add_row(str(count), path)
    return table
