"""CLI package for pointsync."""

from pointsync.cli.formatters import (
    display_health,
    show_health_details,
    show_instance_report,
    show_point_details,
    show_point_list,
)
from pointsync.cli.main import (
    cli,
    get_config_dir,
    get_config_file,
    select_instances,
)

__all__ = [
    "cli",
    "display_health",
    "get_config_dir",
    "get_config_file",
    "select_instances",
    "show_health_details",
    "show_instance_report",
    "show_point_details",
    "show_point_list",
]
