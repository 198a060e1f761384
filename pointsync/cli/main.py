"""
Command-line interface for pointsync.

Provides CLI commands for creating restoring points, inspecting them and
uploading them to remote backup instances.

Usage:
    # Show help
    pointsync --help

    # Create a complete restoring point
    pointsync point create --complete

    # Inspect local points
    pointsync point list
    pointsync point details 20240101120000-abc123
    pointsync point health 20240101120000-abc123

    # Upload a point to remote instances
    pointsync point upload 20240101120000-abc123
    pointsync point upload 20240101120000-abc123 --instance backup2 --refresh-health
"""

import sys
from pathlib import Path
from typing import Any

import click

from pointsync import __version__
from pointsync.archive.service import DEFAULT_CHUNK_SIZE, ArchiveError, ArchiveService
from pointsync.cli.formatters import (
    display_health,
    show_health_details,
    show_instance_report,
    show_point_details,
    show_point_list,
)
from pointsync.config.generator import save_config_file
from pointsync.config.loader import (
    DEFAULT_CONFIG_FILE,
    DEFAULT_INSTANCE_TIMEOUT,
    DEFAULT_MAX_PARALLEL_INSTANCES,
    DEFAULT_MAX_PARALLEL_UPLOADS,
    ConfigError,
    ConfigLoader,
)
from pointsync.config.system import SystemConfig
from pointsync.point.service import FilesystemError, PointService
from pointsync.remote.client import RemoteService
from pointsync.sqldump.mysql import SqlDumpError
from pointsync.storage.appdata import AppData
from pointsync.storage.db import PointDatabase, RestoringPointNotFoundError
from pointsync.sync.engine import Reconciler
from pointsync.utils.logging import cleanup_old_logs, get_logger, setup_logging
from pointsync.utils.paths import (
    resolve_config_dir,
    resolve_database_path,
    resolve_storage_root,
)


def get_config_dir(config_dir: str | None) -> Path:
    """Get the configuration directory path."""
    return resolve_config_dir(config_dir)


def get_config_file(config_dir: Path, config_file: str | None) -> Path:
    """Get the configuration file path."""
    if config_file:
        return Path(config_file)
    return config_dir / DEFAULT_CONFIG_FILE


def _fail(message: str) -> None:
    click.echo(click.style(f"Error: {message}", fg="red"), err=True)
    sys.exit(1)


def build_database(ctx: click.Context) -> PointDatabase:
    """Open the point index, creating its tables on first use."""
    config = ctx.obj["config"]
    db_path = resolve_database_path(config, ctx.obj["config_dir"])
    db_path.parent.mkdir(parents=True, exist_ok=True)
    database = PointDatabase(str(db_path))
    database.initialize()
    return database


def build_point_service(ctx: click.Context) -> PointService:
    """Wire the point service from the loaded configuration."""
    config: dict[str, Any] = ctx.obj["config"]
    system = SystemConfig.from_config(config)
    storage = AppData(resolve_storage_root(config, ctx.obj["config_dir"]))
    app_path = Path(config["app_path"]).expanduser() if config.get("app_path") else None
    archive = ArchiveService(
        storage,
        system,
        chunk_size=config.get("chunk_size", DEFAULT_CHUNK_SIZE),
        app_path=app_path,
    )
    return PointService(storage, archive, system, build_database(ctx))


def select_instances(config: dict[str, Any], requested: tuple[str, ...]) -> list[str]:
    """
    Instances to upload to.

    Priority:
        1. Instances given on the command line
        2. default_instance from the configuration
        3. Every configured instance
    """
    if requested:
        return list(dict.fromkeys(requested))
    if config.get("default_instance"):
        return [config["default_instance"]]
    return list((config.get("remote_instances") or {}).keys())


@click.group()
@click.version_option(version=__version__, prog_name="pointsync")
@click.option(
    "--verbose", "-v", is_flag=True, help="Enable verbose output with detailed logging."
)
@click.option(
    "--config-dir",
    "-c",
    type=click.Path(exists=False, file_okay=False, dir_okay=True),
    envvar="POINTSYNC_CONFIG_DIR",
    help="Configuration directory path (default: ~/.pointsync).",
)
@click.option(
    "--config-file",
    "-f",
    type=click.Path(exists=False, file_okay=True, dir_okay=False),
    envvar="POINTSYNC_CONFIG_FILE",
    help="Configuration file path (default: <config dir>/config.yaml).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    config_dir: str | None,
    config_file: str | None,
) -> None:
    """
    Restoring point backups replicated to remote instances.

    Creates checksummed restoring points locally and uploads to remote
    instances only the chunks they are missing or hold corrupted.
    """
    ctx.ensure_object(dict)

    resolved_config_dir = get_config_dir(config_dir)
    resolved_config_file = get_config_file(resolved_config_dir, config_file)

    ctx.obj["config_dir"] = resolved_config_dir
    ctx.obj["config_file"] = resolved_config_file

    config: dict[str, Any] = {}
    try:
        loader = ConfigLoader(config_dir=resolved_config_dir)
        config = loader.load_from_file(resolved_config_file)
        if config:
            loader.validate(config)
    except ConfigError as e:
        # Keep the CLI usable without a valid config file (e.g. init-config)
        click.echo(
            click.style(f"Warning: Configuration error: {e}", fg="yellow"), err=True
        )
        config = {}

    ctx.obj["config"] = config

    effective_verbose = verbose or config.get("verbose", False)
    ctx.obj["verbose"] = effective_verbose

    log_dir = Path(config["log_dir"]) if config.get("log_dir") else None
    setup_logging(verbose=effective_verbose, log_dir=log_dir, enable_file_logging=True)

    log_retention = config.get("log_retention_count", 10)
    if log_retention > 0:
        cleanup_old_logs(log_dir=log_dir, keep_count=log_retention)


# =============================================================================
# Init Config Command
# =============================================================================


@cli.command("init-config")
@click.option("--force", is_flag=True, help="Overwrite an existing configuration file.")
@click.pass_context
def init_config_command(ctx: click.Context, force: bool) -> None:
    """
    Generate a default configuration file.

    Examples:

        # Create config file (fails if already exists)
        pointsync init-config

        # Overwrite existing config file
        pointsync init-config --force
    """
    logger = get_logger(__name__)
    config_file = ctx.obj["config_file"]

    click.echo(f"Creating configuration file: {config_file}")

    success, error = save_config_file(config_file, overwrite=force)

    if success:
        click.echo(click.style("Configuration file created successfully!", fg="green"))
        click.echo(f"\nLocation: {config_file}")
        click.echo("\nNext steps:")
        click.echo("1. Fill in the system section and your remote instances")
        click.echo("2. Run 'pointsync point create' to create a restoring point")
    else:
        logger.error(f"Failed to create configuration file: {error}")
        _fail(str(error))


# =============================================================================
# Point Commands
# =============================================================================


@cli.group("point")
def point_group() -> None:
    """Create, inspect and upload restoring points."""


@point_group.command("create")
@click.option(
    "--complete/--incremental",
    default=True,
    help="Back up the whole data directory, or only what changed (default: complete).",
)
@click.pass_context
def point_create_command(ctx: click.Context, complete: bool) -> None:
    """
    Create a new restoring point.

    Examples:

        pointsync point create
        pointsync point create --incremental
    """
    logger = get_logger(__name__)
    kind = "complete" if complete else "incremental"
    click.echo(f"Creating {kind} restoring point...")

    try:
        point = build_point_service(ctx).create(complete)
    except (FilesystemError, ArchiveError, SqlDumpError) as e:
        logger.error(f"Restoring point creation failed: {e}")
        _fail(f"Restoring point creation failed: {e}")
        return

    chunk_count = sum(1 for _ in point.iter_chunks())
    click.echo(click.style(f"Restoring point {point.id} created", fg="green"))
    click.echo(f"  {len(point.restoring_data)} datasets, {chunk_count} chunks")


@point_group.command("list")
@click.pass_context
def point_list_command(ctx: click.Context) -> None:
    """List local restoring points, oldest first."""
    show_point_list(build_point_service(ctx).list_local_points())


@point_group.command("details")
@click.argument("point_id")
@click.pass_context
def point_details_command(ctx: click.Context, point_id: str) -> None:
    """Show the datasets and chunks of a local restoring point."""
    try:
        point = build_point_service(ctx).get_local_point(point_id)
    except RestoringPointNotFoundError as e:
        _fail(str(e))
        return
    show_point_details(point)


@point_group.command("health")
@click.argument("point_id")
@click.pass_context
def point_health_command(ctx: click.Context, point_id: str) -> None:
    """Check a local restoring point against its stored chunks."""
    service = build_point_service(ctx)
    try:
        point = service.get_local_point(point_id)
    except RestoringPointNotFoundError as e:
        _fail(str(e))
        return

    health = service.generate_health(point)
    click.echo(f"Restoring point {point.id}")
    show_health_details(health)


@point_group.command("upload")
@click.argument("point_id")
@click.option(
    "--instance",
    "-i",
    "instances",
    multiple=True,
    help="Remote instance to upload to (repeatable, default: configured instances).",
)
@click.option(
    "--refresh-health",
    is_flag=True,
    help="Ask remote instances to recompute their health status first.",
)
@click.pass_context
def point_upload_command(
    ctx: click.Context,
    point_id: str,
    instances: tuple[str, ...],
    refresh_health: bool,
) -> None:
    """
    Upload a restoring point to remote instances.

    Only the chunks a remote instance reports as missing or faulty are
    uploaded, so the command is safe to run again after a partial failure.

    Examples:

        pointsync point upload 20240101120000-abc123
        pointsync point upload 20240101120000-abc123 -i backup2 -i backup3
    """
    logger = get_logger(__name__)
    config = ctx.obj["config"]

    service = build_point_service(ctx)
    try:
        point = service.get_local_point(point_id)
    except RestoringPointNotFoundError as e:
        _fail(str(e))
        return

    targets = select_instances(config, instances)
    if not targets:
        _fail("No remote instance configured, add one under remote_instances")
        return

    click.echo(f"Restoring point {point.id}: {display_health(point.health)}")

    reconciler = Reconciler(
        RemoteService.from_config(config),
        service,
        max_parallel_instances=config.get(
            "max_parallel_instances", DEFAULT_MAX_PARALLEL_INSTANCES
        ),
        max_parallel_uploads=config.get(
            "max_parallel_uploads", DEFAULT_MAX_PARALLEL_UPLOADS
        ),
        instance_timeout=config.get("instance_timeout", DEFAULT_INSTANCE_TIMEOUT),
    )
    reports = reconciler.reconcile_all(targets, point, force_health_refresh=refresh_health)

    for report in reports:
        show_instance_report(report)
        logger.debug(report.summary())

    converged = sum(1 for report in reports if report.converged)
    click.echo("")
    click.echo(f"{converged}/{len(reports)} instance(s) fully uploaded")

