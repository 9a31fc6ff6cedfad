"""CLI entry points for bunyan-logtools.

Invoked as::

    bunyan-rotate [OPTIONS] INPUT_LOG OUTPUT
    bunyan-unlink [OPTIONS] [DIRECTORY]

or through the combined group::

    bunyan-logtools rotate ...
    bunyan-logtools prune ...

Both tools are single-shot and meant to be run by a scheduler.  They are
silent on success; failures go to stderr with a nonzero exit code.

Commands
--------
- rotate   Copy (optionally gzip) a live log and truncate it
- prune    Delete rotated logs older than a given age
- version  Show version information
"""
from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import NoReturn

import click
from click.core import ParameterSource
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel

from bunyan_logtools.config.loader import ConfigLoader, LogToolsConfig
from bunyan_logtools.errors import ConfigurationError, LogToolsError
from bunyan_logtools.naming import format_output_name, parse_size
from bunyan_logtools.prune.matchers import AgeMatcher, FilenameDateMatcher, Matcher, TimeField
from bunyan_logtools.prune.pruner import DAY, HOUR, MINUTE, WEEK, Pruner
from bunyan_logtools.rotate.copier import RotateOptions, Rotator
from bunyan_logtools.rotate.sinks import LEVEL_DEFAULT, LEVEL_FASTEST, LEVEL_SMALLEST, SinkKind

console = Console()
err_console = Console(stderr=True)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
    )


def _fail(message: str) -> NoReturn:
    err_console.print(f"[red]Error:[/red] {escape(message)}")
    sys.exit(1)


def _load_config(config_path: str | None) -> LogToolsConfig:
    loader = ConfigLoader()
    if config_path is None:
        return loader.defaults()
    try:
        return loader.load(Path(config_path))
    except (FileNotFoundError, ValueError) as exc:
        _fail(f"config {config_path}: {exc}")


def _given(ctx: click.Context, name: str) -> bool:
    """Return True when option ``name`` was set on the command line."""
    return ctx.get_parameter_source(name) is ParameterSource.COMMANDLINE


def _verbose_option(func):  # type: ignore[no-untyped-def]
    return click.option(
        "--verbose",
        "-v",
        is_flag=True,
        default=False,
        help="Log progress to stderr.",
    )(func)


def _config_option(func):  # type: ignore[no-untyped-def]
    return click.option(
        "--config",
        "config_path",
        type=click.Path(exists=True, dir_okay=False),
        default=None,
        help="Path to a logtools.yaml with default settings.",
    )(func)


# ---------------------------------------------------------------------------
# rotate
# ---------------------------------------------------------------------------


def resolve_rotate_options(
    ctx: click.Context,
    config: LogToolsConfig,
    *,
    gzip_flag: bool,
    level: int | None,
    min_size: str | None,
    no_truncate: bool,
    metadata: bool,
) -> RotateOptions:
    """Merge command-line flags over the ``rotate`` config section."""
    section = config.rotate

    if _given(ctx, "level") and level is not None:
        compress, effective_level = True, level
    elif _given(ctx, "gzip_flag") and gzip_flag:
        compress, effective_level = True, LEVEL_DEFAULT
    else:
        compress = section.compress or section.level is not None
        effective_level = section.level if section.level is not None else LEVEL_DEFAULT

    size = parse_size(min_size) if min_size is not None else section.min_size
    truncate = not no_truncate if _given(ctx, "no_truncate") else section.truncate
    want_metadata = True if _given(ctx, "metadata") and metadata else section.metadata

    return RotateOptions(
        sink_kind=SinkKind.GZIP if compress else SinkKind.RAW,
        level=effective_level,
        min_size=size,
        truncate=truncate,
        metadata=want_metadata,
        chunk_size=section.chunk_size,
    )


@click.command(name="rotate")
@click.argument("input_log", type=click.Path(dir_okay=False))
@click.argument("output")
@click.option(
    "--gzip",
    "-z",
    "gzip_flag",
    is_flag=True,
    default=False,
    help="Compress the output with gzip at the default level.",
)
@click.option(
    "--level",
    "-l",
    type=click.IntRange(LEVEL_FASTEST, LEVEL_SMALLEST),
    default=None,
    help="Compress the output with gzip at this level (1 fastest .. 9 smallest).",
)
@click.option(
    "--min-size",
    "-s",
    default=None,
    help="Only rotate once the input is at least this big, e.g. 10M.",
)
@click.option(
    "--no-truncate",
    "-T",
    is_flag=True,
    default=False,
    help="Copy only; leave the input log untouched.",
)
@click.option(
    "--metadata",
    "-M",
    is_flag=True,
    default=False,
    help="Write OUTPUT.meta with the length, MD5 and SHA-256 of the copied data.",
)
@click.option(
    "--no-format",
    "-F",
    is_flag=True,
    default=False,
    help="Use OUTPUT literally instead of as a strftime template.",
)
@_config_option
@_verbose_option
@click.pass_context
def rotate_command(
    ctx: click.Context,
    input_log: str,
    output: str,
    gzip_flag: bool,
    level: int | None,
    min_size: str | None,
    no_truncate: bool,
    metadata: bool,
    no_format: bool,
    config_path: str | None,
    verbose: bool,
) -> None:
    """Copy a live bunyan log to OUTPUT, then truncate it."""
    _configure_logging(verbose)
    config = _load_config(config_path)

    try:
        options = resolve_rotate_options(
            ctx,
            config,
            gzip_flag=gzip_flag,
            level=level,
            min_size=min_size,
            no_truncate=no_truncate,
            metadata=metadata,
        )
        use_format = not no_format if _given(ctx, "no_format") else config.rotate.format_output
        output_name = format_output_name(output) if use_format else output
    except ConfigurationError as exc:
        _fail(str(exc))

    try:
        result = Rotator(options).rotate(
            Path(input_log), Path(output_name), ifile=input_log
        )
    except LogToolsError as exc:
        _fail(str(exc))

    if not result.rotated:
        logger.debug("%s not big enough to rotate yet", input_log)


# ---------------------------------------------------------------------------
# prune
# ---------------------------------------------------------------------------


def _build_matcher(
    config: LogToolsConfig,
    *,
    atime: bool,
    ctime: bool,
    mtime: bool,
    filename_format: str | None,
) -> Matcher:
    chosen = [name for name, flag in (("atime", atime), ("ctime", ctime), ("mtime", mtime)) if flag]
    if len(chosen) > 1:
        raise click.UsageError("only one of -a, -c and -m may be given")
    if filename_format is not None:
        if chosen:
            raise click.UsageError("-f cannot be combined with -a, -c or -m")
        return FilenameDateMatcher(filename_format)
    if chosen:
        return AgeMatcher(TimeField(chosen[0]))
    if config.prune.filename_format is not None:
        return FilenameDateMatcher(config.prune.filename_format)
    return AgeMatcher(TimeField(config.prune.time_field))


def _resolve_age(config: LogToolsConfig, ages: dict[str, int | None]) -> int:
    units = {"minutes": MINUTE, "hours": HOUR, "days": DAY, "weeks": WEEK}
    given = [(name, value) for name, value in ages.items() if value is not None]
    if len(given) > 1:
        raise click.UsageError("only one of -M, -H, -D and -W may be given")
    if given:
        name, value = given[0]
        return value * units[name]
    return config.prune.max_age_seconds


@click.command(name="prune")
@click.argument(
    "directory",
    type=click.Path(file_okay=False),
    default=".",
    required=False,
)
@click.option("--atime", "-a", is_flag=True, default=False, help="Age files by access time.")
@click.option("--ctime", "-c", is_flag=True, default=False, help="Age files by change time.")
@click.option("--mtime", "-m", is_flag=True, default=False, help="Age files by modification time (default).")
@click.option(
    "--format",
    "-f",
    "filename_format",
    default=None,
    help="Age files by a strftime date at the start of their name.",
)
@click.option(
    "--dry-run",
    "-n",
    is_flag=True,
    default=False,
    help="Print matching names instead of deleting them.",
)
@click.option("--minutes", "-M", type=click.IntRange(min=1), default=None, help="Maximum age in minutes.")
@click.option("--hours", "-H", type=click.IntRange(min=1), default=None, help="Maximum age in hours.")
@click.option("--days", "-D", type=click.IntRange(min=1), default=None, help="Maximum age in days (default 3).")
@click.option("--weeks", "-W", type=click.IntRange(min=1), default=None, help="Maximum age in weeks.")
@_config_option
@_verbose_option
@click.pass_context
def prune_command(
    ctx: click.Context,
    directory: str,
    atime: bool,
    ctime: bool,
    mtime: bool,
    filename_format: str | None,
    dry_run: bool,
    minutes: int | None,
    hours: int | None,
    days: int | None,
    weeks: int | None,
    config_path: str | None,
    verbose: bool,
) -> None:
    """Delete files in DIRECTORY older than the given age."""
    _configure_logging(verbose)
    config = _load_config(config_path)

    matcher = _build_matcher(
        config,
        atime=atime,
        ctime=ctime,
        mtime=mtime,
        filename_format=filename_format,
    )
    max_age = _resolve_age(
        config,
        {"minutes": minutes, "hours": hours, "days": days, "weeks": weeks},
    )
    effective_dry_run = dry_run if _given(ctx, "dry_run") else config.prune.dry_run

    pruner = Pruner(Path(directory), matcher, max_age=max_age, dry_run=effective_dry_run)
    try:
        report = pruner.run()
    except OSError as exc:
        _fail(f"directory {directory}: {exc.strerror or exc}")

    if report.dry_run:
        for name in report.matched:
            console.print(name, markup=False, highlight=False, soft_wrap=True)
    for _, message in report.errors:
        err_console.print(f"[yellow]Warning:[/yellow] {escape(message)}")

    sys.exit(report.exit_code)


# ---------------------------------------------------------------------------
# Root command group
# ---------------------------------------------------------------------------


@click.group()
def cli() -> None:
    """bunyan-logtools: rotate and prune bunyan log files."""


@cli.command(name="version")
def version_command() -> None:
    """Show version information."""
    from bunyan_logtools import __version__

    console.print(
        Panel(
            f"[bold]bunyan-logtools[/bold]  v[cyan]{__version__}[/cyan]\n"
            "Copy-truncate rotation and age-based pruning for bunyan logs.",
            title="Version",
            border_style="blue",
        )
    )


cli.add_command(rotate_command)
cli.add_command(prune_command)


if __name__ == "__main__":
    cli()
