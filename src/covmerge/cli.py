"""covmerge command-line interface."""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any, TypedDict, Unpack

import click
from rich.logging import RichHandler

from covmerge import __version__
from covmerge.config import ConfigError, MergeConfig, load_config, validate_config
from covmerge.models.records import RecordParseError, RepoCommit
from covmerge.models.result import dump_results, load_results, results_to_json, summarize
from covmerge.orchestrator import MergeError, merge_stream
from covmerge.reader import iter_samples
from covmerge.reporters.terminal import err_console, reporter
from covmerge.resolvers import RESOLVER_NAMES

if TYPE_CHECKING:
    from typing import TextIO

logger = logging.getLogger(__name__)


class _MergeKwargs(TypedDict):
    input_file: TextIO
    config_path: str | None
    base_repo: str | None
    base_commit: str | None
    workdir: str | None
    jobs: int | None
    resolver: str | None
    skip_checkout: bool
    output: str | None
    output_format: str
    verbose: bool


def _configure_logging(*, verbose: bool) -> None:
    """Send package log records to stderr so stdout stays clean for JSON output."""
    package_logger = logging.getLogger("covmerge")
    for handler in list(package_logger.handlers):
        if isinstance(handler, RichHandler):
            package_logger.removeHandler(handler)
    package_logger.addHandler(RichHandler(console=err_console, show_path=False, rich_tracebacks=verbose))
    package_logger.setLevel(logging.DEBUG if verbose else logging.WARNING)


def _apply_overrides(config: MergeConfig, kwargs: _MergeKwargs) -> MergeConfig:
    """Apply command-line flags on top of file configuration."""
    changes: dict[str, Any] = {}
    if kwargs["base_repo"] or kwargs["base_commit"]:
        changes["base"] = RepoCommit(
            repo=kwargs["base_repo"] or config.base.repo,
            commit=kwargs["base_commit"] or config.base.commit,
        )
    if kwargs["workdir"]:
        changes["workdir"] = Path(kwargs["workdir"])
    if kwargs["jobs"] is not None:
        changes["jobs"] = kwargs["jobs"]
    if kwargs["resolver"]:
        changes["resolver"] = kwargs["resolver"]
    if kwargs["skip_checkout"]:
        changes["skip_checkout"] = True
    return dataclasses.replace(config, **changes)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging on stderr.")
@click.version_option(version=__version__, prog_name="covmerge")
def cli(*, verbose: bool) -> None:
    """Merge multi-commit line coverage onto one base commit."""
    _configure_logging(verbose=verbose)


@cli.command()
@click.argument("input_file", metavar="INPUT", type=click.File("r", encoding="utf-8"), default="-")
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="Configuration file (default: ./.covmerge.yml if present).",
)
@click.option("--base-repo", default=None, help="Repository URL of the base commit.")
@click.option("--base-commit", default=None, help="Commit id results are expressed in.")
@click.option("--workdir", default=None, help="Scratch directory for checkouts and fixtures.")
@click.option("--jobs", "-j", type=click.IntRange(min=1), default=None, help="Files merged concurrently.")
@click.option(
    "--resolver",
    type=click.Choice(RESOLVER_NAMES),
    default=None,
    help="File content backend.",
)
@click.option(
    "--skip-checkout",
    is_flag=True,
    help="Read staged content from WORKDIR/repos/<commit>/ instead of git.",
)
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False, writable=True),
    default=None,
    help="Write JSON here instead of stdout.",
)
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["json", "table"]),
    default="json",
    show_default=True,
    help="Output format.",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging on stderr.")
def merge(**kwargs: Unpack[_MergeKwargs]) -> None:
    """Merge coverage samples read from INPUT (CSV, default stdin).

    Example:
      covmerge merge samples.csv --base-repo git://repo --base-commit abc123
    """
    if kwargs["verbose"]:
        _configure_logging(verbose=True)

    try:
        config = _apply_overrides(load_config(kwargs["config_path"]), kwargs)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    errors = validate_config(config)
    if errors:
        raise click.ClickException("Invalid configuration: " + "; ".join(errors))

    try:
        results = asyncio.run(merge_stream(config, iter_samples(kwargs["input_file"])))
    except (RecordParseError, MergeError) as exc:
        logger.debug("Merge aborted", exc_info=True)
        raise click.ClickException(str(exc)) from exc

    output = kwargs["output"]
    if output:
        with Path(output).open("w", encoding="utf-8") as fh:
            dump_results(results, fh)
        reporter.print_success(f"Wrote {len(results)} file results to {output}")

    if kwargs["output_format"] == "table":
        reporter.print_results_table(results)
    elif not output:
        click.echo(results_to_json(results), nl=False)


@cli.command()
@click.argument("result_file", metavar="RESULT", type=click.File("r", encoding="utf-8"))
@click.option("--files", "show_files", is_flag=True, help="Also list every file.")
def summary(result_file: TextIO, *, show_files: bool) -> None:
    """Print totals for a merge output previously written as JSON."""
    try:
        results = load_results(result_file)
    except ValueError as exc:
        raise click.ClickException(f"Invalid merge output: {exc}") from exc

    if show_files:
        reporter.print_results_table(results)
    else:
        reporter.print_summary(summarize(results))


if __name__ == "__main__":
    cli()
