"""CLI package for listsync."""

from listsync.cli.formatters import (
    format_timestamp,
    show_contact_lists,
    show_integrations,
    show_job_counts,
    show_jobs,
    show_sync_counts,
    show_table_sync,
)
from listsync.cli.main import (
    cli,
    get_config_dir,
    get_config_file,
    get_service,
)
from listsync.utils.paths import DEFAULT_CONFIG_DIR

__all__ = [
    "DEFAULT_CONFIG_DIR",
    "cli",
    "format_timestamp",
    "get_config_dir",
    "get_config_file",
    "get_service",
    "show_contact_lists",
    "show_integrations",
    "show_job_counts",
    "show_jobs",
    "show_sync_counts",
    "show_table_sync",
]
