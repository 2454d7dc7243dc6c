"""Command line interface for path-versions."""

import logging
import sys
from pathlib import Path
from typing import NoReturn, Optional

import click
from rich.console import Console

from . import __version__
from .config import Config, ConfigManager
from .reporting import render_json, render_table, render_text, rows
from .services.history import (
    GitRepository,
    HistoryError,
    HistoryWalker,
    RepositoryCorrupt,
    RepositoryNotFound,
    UnsupportedHistoryShape,
    VersionCounter,
    WalkOrder,
)
from .utils.exception_logger import ExceptionLogger

console = Console()
error_console = Console(stderr=True)

logger = logging.getLogger(__name__)

EXIT_CODES = {
    RepositoryNotFound: 2,
    RepositoryCorrupt: 3,
    UnsupportedHistoryShape: 4,
}


def _fail(error: Exception) -> NoReturn:
    """Report a fatal error and exit with the code for its kind."""
    exception_logger = ExceptionLogger.get_instance()
    if exception_logger:
        exception_logger.log_exception(error, context={"command": " ".join(sys.argv)})

    code = EXIT_CODES.get(type(error), 1)
    if isinstance(error, RepositoryNotFound):
        label = "Repository not found"
    elif isinstance(error, RepositoryCorrupt):
        label = "Repository corrupt"
    elif isinstance(error, UnsupportedHistoryShape):
        label = "Unsupported history"
    else:
        label = "Error"
    error_console.print(f"❌ {label}: {error}", style="red", markup=False)
    sys.exit(code)


def _load_config(ctx: click.Context, history_overrides: Optional[dict] = None) -> Config:
    path = Path(ctx.obj["path"])
    config_file = ctx.obj.get("config_file")
    manager = (
        ConfigManager(Path(config_file))
        if config_file
        else ConfigManager.for_repository(path)
    )
    try:
        config = manager.load(
            {"repo_path": str(path), "history": history_overrides or {}}
        )
    except ValueError as e:
        error_console.print(f"❌ {e}", style="red", markup=False)
        sys.exit(1)

    if config.error_log_dir is not None:
        ExceptionLogger.initialize(config.error_log_dir)
    return config


def _open_repository(config: Config) -> GitRepository:
    return GitRepository.discover(
        config.repo_path, tree_cache_size=config.history.tree_cache_size
    )


@click.group(invoke_without_command=True)
@click.option(
    "--path",
    "-p",
    type=click.Path(file_okay=False),
    default=".",
    help="Repository directory (default: current directory)",
)
@click.option("--config", "-c", type=click.Path(dir_okay=False), help="Config file path")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
@click.version_option(version=__version__, prog_name="path-versions")
@click.pass_context
def cli(ctx, path: str, config: Optional[str], verbose: bool):
    """Count distinct content versions of every path in git history.

    \b
    Every path that ever existed in the history reachable from HEAD is listed
    once with the number of distinct blobs it held. Renamed files are listed
    under their newest name.

    \b
    EXAMPLES:
      path-versions                      # count, most versioned first
      path-versions count --sort path    # alphabetical
      path-versions -p ../repo rev-list --topo-order
    """
    ctx.ensure_object(dict)
    ctx.obj["path"] = path
    ctx.obj["config_file"] = config
    ctx.obj["verbose"] = verbose

    logging.basicConfig(
        level=logging.WARNING, format="%(levelname)s:%(name)s:%(message)s"
    )
    if verbose:
        logging.getLogger("path_versions").setLevel(logging.DEBUG)

    if ctx.invoked_subcommand is None:
        ctx.invoke(count_command)


@cli.command("count")
@click.option(
    "--sort",
    type=click.Choice(["count", "path"]),
    default="count",
    help="Order by version count (descending) or by path",
)
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["text", "table", "json"]),
    default="text",
    help="Output format (default: text)",
)
@click.option(
    "--rename-detection",
    type=click.Choice(["exact", "similarity"]),
    default=None,
    help="Rename detection mode (default: exact)",
)
@click.option(
    "--similarity-threshold",
    type=float,
    default=None,
    help="Minimum similarity for edited renames in similarity mode",
)
@click.pass_context
def count_command(
    ctx,
    sort: str,
    output_format: str,
    rename_detection: Optional[str],
    similarity_threshold: Optional[float],
):
    """Count versions of every path reachable from HEAD."""
    config = _load_config(
        ctx,
        {
            "rename_detection": rename_detection,
            "similarity_threshold": similarity_threshold,
        },
    )

    try:
        repository = _open_repository(config)
        counter = VersionCounter(repository, config.history)
        table = counter.count()
    except HistoryError as e:
        _fail(e)

    pairs = rows(table, sort=sort)
    if output_format == "json":
        click.echo(render_json(pairs))
    elif output_format == "table":
        console.print(render_table(pairs))
    elif pairs:
        click.echo(render_text(pairs))

    if ctx.obj.get("verbose"):
        stats = counter.stats
        error_console.print(
            f"{len(pairs)} paths, {stats.commits} commits "
            f"({stats.merge_commits} merges, {stats.renames} renames) "
            f"in {stats.elapsed:.2f}s",
            style="dim",
        )


@cli.command("rev-list")
@click.option("--topo-order", is_flag=True, help="Sort commits in topological order")
@click.option("--date-order", is_flag=True, help="Sort commits in date order")
@click.option("--reverse", is_flag=True, help="Sort commits in reverse")
@click.pass_context
def rev_list_command(ctx, topo_order: bool, date_order: bool, reverse: bool):
    """List commits reachable from HEAD with their summary line."""
    config = _load_config(ctx)

    if topo_order:
        order = WalkOrder.TOPOLOGICAL
    elif date_order:
        order = WalkOrder.DATE
    else:
        order = WalkOrder.NONE

    try:
        walker = HistoryWalker(_open_repository(config))
        for commit in walker.walk("HEAD", order=order, reverse=reverse):
            click.echo(f"{commit.oid} {commit.summary}")
    except HistoryError as e:
        _fail(e)


def main():
    """Main entry point."""
    try:
        cli(obj={})
    except KeyboardInterrupt:
        error_console.print("\n❌ Interrupted by user", style="red")
        sys.exit(1)
    except Exception as e:
        error_console.print(f"❌ Unexpected error: {str(e)}", style="red", markup=False)
        sys.exit(1)


if __name__ == "__main__":
    main()
