"""Command-line interface for dirscope."""

import asyncio
import logging
from collections.abc import Sequence
from pathlib import Path
from typing import Final, override

import click

from dirscope.core.config import MainConfig, load_main_config
from dirscope.core.errors import ConfigurationError
from dirscope.core.lister import EntryLister
from dirscope.core.scheduler import Scheduler
from dirscope.core.session import ScanSession
from dirscope.types.models import ListFailure, ScanSnapshot
from dirscope.types.protocols import SnapshotObserver
from dirscope.utils.formatting import format_entry_size, format_size
from dirscope.utils.logging import configure_logging

logger = logging.getLogger(__name__)

EXIT_SUCCESS: Final[int] = 0
EXIT_FAILURE: Final[int] = 1

# Configuration file discovery paths in order of precedence
CURRENT_DIR_CONFIG_FILES: Final[tuple[str, ...]] = (
    "dirscope.yaml",
    "dirscope.yml",
)

HOME_CONFIG_FILES: Final[tuple[str, ...]] = (
    ".dirscope.yaml",
    ".dirscope.yml",
)

SYSTEM_CONFIG_PATHS: Final[tuple[Path, ...]] = (
    Path("/etc/dirscope/config.yaml"),
    Path("/usr/local/etc/dirscope/config.yaml"),
)

VALID_LOG_LEVELS: Final[frozenset[str]] = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


def discover_config_file() -> Path | None:
    """Discover a configuration file in standard locations.

    Searches, in order of precedence:
    1. Current directory (dirscope.yaml, dirscope.yml)
    2. User home directory (~/.dirscope.yaml, ~/.dirscope.yml)
    3. System directories (/etc/dirscope/, /usr/local/etc/dirscope/)

    Returns:
        Path to the first configuration file found, or None when built-in
        defaults should be used
    """
    for config_file in CURRENT_DIR_CONFIG_FILES:
        config_path = Path(config_file)
        if config_path.is_file():
            return config_path

    try:
        home_dir = Path.home()
    except (OSError, RuntimeError):
        # Path.home() can fail without HOME or a passwd entry
        home_dir = None
    if home_dir is not None:
        for config_file in HOME_CONFIG_FILES:
            config_path = home_dir / config_file
            if config_path.is_file():
                return config_path

    for config_path in SYSTEM_CONFIG_PATHS:
        if config_path.is_file():
            return config_path

    return None


def validate_config_path(
    ctx: click.Context,  # pyright: ignore[reportUnusedParameter] # required by Click callback signature
    param: click.Parameter,  # pyright: ignore[reportUnusedParameter] # required by Click callback signature
    value: Path | None,
) -> Path | None:
    """Validate configuration file path.

    Raises:
        click.BadParameter: If the path is a directory or not a YAML file
    """
    if value is None:
        return value

    if value.is_dir():
        raise click.BadParameter("Configuration path must be a file, not a directory")

    if value.suffix.lower() not in {".yaml", ".yml"}:
        raise click.BadParameter("Invalid configuration file extension. Supported extensions: .yaml, .yml")

    return value


def validate_log_level(
    ctx: click.Context,  # pyright: ignore[reportUnusedParameter] # required by Click callback signature
    param: click.Parameter,  # pyright: ignore[reportUnusedParameter] # required by Click callback signature
    value: str | None,
) -> str | None:
    """Validate and normalize log level.

    Returns:
        Upper-case log level, or None when not given
    """
    if value is None:
        return value

    normalized_value = value.upper().strip()
    if normalized_value not in VALID_LOG_LEVELS:
        raise click.BadParameter(f'Invalid log level "{value}". Valid options: {", ".join(sorted(VALID_LOG_LEVELS))}')

    return normalized_value


def render_listing(snapshot: ScanSnapshot) -> list[str]:
    """Render a completed snapshot as output lines.

    Args:
        snapshot: Snapshot returned by a scan session

    Returns:
        One line per entry (size column, then name), followed by the total
    """
    lines: list[str] = []
    for item in snapshot.entries:
        name = item.entry.name + ("/" if item.entry.is_directory else "")
        lines.append(f"{format_entry_size(item):>22}  {name}")

    lines.append(f"{format_size(snapshot.total_bytes):>22}  total")
    if snapshot.has_errors:
        lines.append("Some entries could not be sized.")
    return lines


def render_list_failure(failure: ListFailure) -> list[str]:
    """Render a listing failure with guidance on the access it needs."""
    return [
        f"Cannot list {failure.path}: {failure.message}",
        f"Grant {failure.permission_category} to read this location, then try again.",
    ]


class ConsoleObserver(SnapshotObserver):
    """Observer that reports scan progress on stderr."""

    def __init__(self, *, show_progress: bool) -> None:
        self.show_progress: bool = show_progress

    @override
    def on_snapshot(self, snapshot: ScanSnapshot) -> None:
        if not self.show_progress or snapshot.completed:
            return
        calculating = sum(1 for item in snapshot.entries if item.calculating)
        click.echo(
            f"{snapshot.path}: {format_size(snapshot.total_bytes)} so far, {calculating} entries remaining",
            err=True,
        )

    @override
    def on_list_failed(self, failure: ListFailure) -> None:
        for line in render_list_failure(failure):
            click.echo(line, err=True)


async def scan_paths(
    paths: Sequence[Path | None],
    *,
    config: MainConfig,
    show_progress: bool = False,
    show_stats: bool = False,
    probe: bool = False,
) -> int:
    """Scan each path in turn and print its listing.

    All paths share one Scheduler, so a path given twice is answered from the
    cache the second time.

    Args:
        paths: Directories to scan; None scans the filesystem root
        config: Loaded configuration
        show_progress: Print progress lines on stderr while computing
        show_stats: Print cache statistics after all scans
        probe: Only re-test whether each path can be listed

    Returns:
        Process exit code
    """
    scheduler = Scheduler(config=config.scan)
    lister = EntryLister(
        filesystem=scheduler.filesystem,
        include_protected=config.scan.include_protected,
    )
    exit_code = EXIT_SUCCESS

    for path in paths:
        if probe:
            result = await lister.probe_access(path)
            if result.accessible:
                click.echo(f"{result.path}: accessible")
            else:
                click.echo(f"{result.path}: not accessible ({result.message})")
                exit_code = EXIT_FAILURE
            continue

        session = ScanSession(
            path,
            scheduler=scheduler,
            lister=lister,
            config=config.scan,
            observer=ConsoleObserver(show_progress=show_progress),
        )
        try:
            snapshot = await session.run()
        finally:
            session.close()

        if snapshot.list_failure is not None:
            exit_code = EXIT_FAILURE
            continue

        if len(paths) > 1:
            click.echo(f"{snapshot.path}:")
        for line in render_listing(snapshot):
            click.echo(line)

    if show_stats:
        stats = scheduler.cache_stats()
        click.echo(
            f"Cache: {stats.total} entries ({stats.directories} directories, "
            + f"{stats.files} files, {stats.errors} errors)",
            err=True,
        )

    return exit_code


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.argument("paths", nargs=-1, type=click.Path(path_type=Path))
@click.option(
    "--config",
    "-c",
    type=click.Path(path_type=Path),
    default=None,
    callback=validate_config_path,
    help="Configuration file path (.yaml or .yml). If not specified, searches standard locations.",
)
@click.option(
    "--log-level",
    "-l",
    type=str,
    default=None,
    callback=validate_log_level,
    help="Logging verbosity level (DEBUG, INFO, WARNING, ERROR, CRITICAL); overrides configuration",
)
@click.option(
    "--include-protected/--exclude-protected",
    default=None,
    help="List OS-internal roots such as /proc and /System; overrides configuration",
)
@click.option(
    "--interval",
    type=click.FloatRange(min=0, min_open=True),
    default=None,
    help="Seconds between progress refreshes; overrides configuration",
)
@click.option("--progress", "-p", is_flag=True, help="Print progress on stderr while sizes are computing")
@click.option("--stats", is_flag=True, help="Print size cache statistics when done")
@click.option("--probe", is_flag=True, help="Only re-test whether each directory can be listed")
@click.version_option(package_name="dirscope", prog_name="dirscope")
@click.pass_context
def cli(
    ctx: click.Context,
    paths: tuple[Path, ...],
    config: Path | None,
    log_level: str | None,
    include_protected: bool | None,
    interval: float | None,
    progress: bool,
    stats: bool,
    probe: bool,
) -> None:
    """Show the size of every entry in each PATH, largest first.

    With no PATH, the filesystem root is scanned.
    """
    config_path = config if config is not None else discover_config_file()
    try:
        main_config = load_main_config(config_path) if config_path is not None else MainConfig()
    except ConfigurationError as exc:
        click.echo(f"Configuration error: {exc}", err=True)
        ctx.exit(EXIT_FAILURE)

    scan_overrides: dict[str, object] = {}
    if include_protected is not None:
        scan_overrides["include_protected"] = include_protected
    if interval is not None:
        scan_overrides["refresh_interval"] = interval
    if scan_overrides:
        main_config = main_config.model_copy(
            update={"scan": main_config.scan.model_copy(update=scan_overrides)},
        )

    configure_logging(
        log_level=log_level or main_config.application.log_level,
        enable_syslog=main_config.application.syslog_enabled,
    )
    logger.debug(
        "Configuration loaded",
        extra={"config_path": str(config_path) if config_path else None},
    )

    targets: list[Path | None] = list(paths) if paths else [None]
    exit_code = asyncio.run(
        scan_paths(
            targets,
            config=main_config,
            show_progress=progress,
            show_stats=stats,
            probe=probe,
        )
    )
    ctx.exit(exit_code)


def main() -> None:
    """Console script entry point."""
    cli()
