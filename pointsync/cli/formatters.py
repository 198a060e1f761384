"""CLI output formatting functions.

This module contains functions for displaying restoring points, their health
and reconciliation reports on the command line.
"""

from typing import TYPE_CHECKING, Optional

import click

from pointsync.model.health import ChunkHealthStatus, RestoringHealth

if TYPE_CHECKING:
    from pointsync.model.point import RestoringPoint
    from pointsync.sync.engine import InstanceReport

# Status colors for reconciliation outcomes
OUTCOME_COLORS = {
    "converged": "green",
    "partial": "yellow",
    "unreachable": "red",
    "create_failed": "red",
    "no_health": "red",
    "timeout": "red",
}


def display_health(health: Optional[RestoringHealth]) -> str:
    """
    One-line rendering of a health record.

    Returns:
        "unknown health status", "ok", or the chunk counts
    """
    if health is None:
        return click.style("unknown health status", fg="red")

    if health.is_ok():
        return click.style("ok", fg="green")

    counts = health.count_by_status()
    return click.style(
        f"{counts[ChunkHealthStatus.OK]} uploaded, "
        f"{counts[ChunkHealthStatus.MISSING]} missing and "
        f"{counts[ChunkHealthStatus.CHECKSUM]} faulty files",
        fg="yellow",
    )


def show_point_list(points: list["RestoringPoint"]) -> None:
    if not points:
        click.echo("No restoring points found.")
        return

    click.echo(f"{'Id':<36} {'Datasets':>8} {'Chunks':>7}  Health")
    for point in points:
        chunk_count = sum(1 for _ in point.iter_chunks())
        click.echo(
            f"{point.id:<36} {len(point.restoring_data):>8} {chunk_count:>7}  "
            f"{display_health(point.health)}"
        )


def show_point_details(point: "RestoringPoint") -> None:
    """
    Display the datasets and chunks of a restoring point.

    Args:
        point: The restoring point to display
    """
    click.echo(f"Restoring point: {point.id}")
    click.echo(f"  Date: {point.date}")
    click.echo(f"  Version: {'.'.join(str(v) for v in point.nc_version) or 'unknown'}")
    click.echo(f"  Health: {display_health(point.health)}")

    for data in point.restoring_data:
        chunks = point.chunks.get(data.name, [])
        click.echo(f"\n  {data.name} ({data.root_type.name}, {data.path or '/'})")
        if not chunks:
            click.echo("    (no chunks)")
        for chunk in chunks:
            click.echo(
                f"    {chunk.filename:<50} {chunk.count:>6} files "
                f"{chunk.size:>12} bytes  {chunk.checksum}"
            )


def show_health_details(health: RestoringHealth) -> None:
    """List the chunks of a health record that are not OK."""
    click.echo(f"Status: {display_health(health)}")
    for chunk in health.failing_chunks():
        click.echo(f"  {chunk.key}: {chunk.status.name.lower()}")


def show_instance_report(report: "InstanceReport") -> None:
    """
    Display the per-chunk progress and outcome of one instance.

    Args:
        report: The report of the reconciliation with one instance
    """
    color = OUTCOME_COLORS.get(report.outcome, "white")
    click.echo("")
    click.echo(
        f"- {click.style(report.instance, bold=True)}: "
        f"{click.style(report.outcome, fg=color)}"
    )

    if report.health_before is not None:
        click.echo(f"  * Health before upload: {display_health(report.health_before)}")

    for upload in report.uploads:
        if upload.uploaded:
            result = click.style("ok", fg="green")
        else:
            result = click.style(upload.error or "failed", fg="red")
        click.echo(f"  * Uploading {upload.key}: {result}")

    if report.uploads and report.health_after is not None:
        click.echo(f"  * Refreshed health status: {display_health(report.health_after)}")

    for message in report.messages:
        click.echo(f"  * {message}")

    if report.converged:
        click.echo(f"  > Restoring point is fully uploaded to {report.instance}")
