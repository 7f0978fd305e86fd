"""CLI output formatting functions.

This module contains functions for displaying integrations, sync results,
contact lists and jobs on the command line.
"""

from datetime import datetime
from typing import TYPE_CHECKING

import click

if TYPE_CHECKING:
    from listsync.config.integration_config import Integration, SyncCounts, TableSync
    from listsync.jobs.queue import Job
    from listsync.storage.db import ContactList

# Colors used for job states and sync statuses
STATE_COLORS = {
    "waiting": "cyan",
    "active": "blue",
    "completed": "green",
    "failed": "red",
    "pending": "yellow",
    "success": "green",
    "error": "red",
}


def format_timestamp(value: datetime | None) -> str:
    """Format a naive UTC timestamp for display."""
    if value is None:
        return "never"
    return value.strftime("%Y-%m-%d %H:%M:%S UTC")


def styled_state(state: str, width: int = 0) -> str:
    text = state.ljust(width)
    return click.style(text, fg=STATE_COLORS.get(state, "white"))


def show_sync_counts(counts: "SyncCounts", indent: str = "  ") -> None:
    """Display the counts of one sync run."""
    click.echo(f"{indent}Imported: {counts.imported_count}")
    click.echo(f"{indent}Updated:  {counts.updated_count}")
    click.echo(f"{indent}Skipped:  {counts.skipped_count}")
    click.echo(f"{indent}Total:    {counts.total_count}")


def show_table_sync(table_sync: "TableSync", verbose: bool = False) -> None:
    """
    Display the configuration and last outcome of one TableSync.

    Args:
        table_sync: TableSync to display
        verbose: Also show the source identifiers and field mapping
    """
    name = f" ({table_sync.name})" if table_sync.name else ""
    click.echo(f"\nSync {table_sync.id}{name}")
    click.echo(f"  Status:       {styled_state(table_sync.status)}")
    click.echo(f"  Auto-sync:    {'Yes' if table_sync.auto_sync else 'No'}")
    click.echo(f"  Contact list: {table_sync.contact_list_id or '(none)'}")
    if table_sync.create_new_list:
        click.echo(f"  Creates list: {table_sync.new_list_name or '(unnamed)'}")
    click.echo(f"  Last synced:  {format_timestamp(table_sync.last_synced_at)}")

    if table_sync.last_sync_result is not None:
        click.echo("  Last result:")
        show_sync_counts(table_sync.last_sync_result, indent="    ")

    if table_sync.last_error:
        click.echo(click.style(f"  Last error:   {table_sync.last_error}", fg="red"))

    if verbose:
        click.echo(f"  Source:       {table_sync.source}")
        click.echo(f"  Mapping:      {table_sync.mapping.to_dict()}")


def show_integrations(integrations: list["Integration"]) -> None:
    """Display one line per integration."""
    if not integrations:
        click.echo("No integrations registered.")
        return

    click.echo(f"{'ID':<34} {'PROVIDER':<14} {'STATUS':<9} {'SYNCS':>5}  NAME")
    for integration in integrations:
        status_color = "green" if integration.is_active else "yellow"
        status = click.style(f"{integration.status:<9}", fg=status_color)
        click.echo(
            f"{integration.id:<34} {integration.provider.value:<14} {status} "
            f"{len(integration.table_syncs):>5}  {integration.name}"
        )


def show_contact_lists(contact_lists: list["ContactList"]) -> None:
    """Display one line per contact list."""
    if not contact_lists:
        click.echo("No contact lists found.")
        return

    click.echo(f"{'ID':<34} {'BRAND':<20} {'CONTACTS':>8}  NAME")
    for contact_list in contact_lists:
        click.echo(
            f"{contact_list.id:<34} {contact_list.brand_id:<20} "
            f"{contact_list.contact_count:>8}  {contact_list.name}"
        )


def show_jobs(jobs: list["Job"], verbose: bool = False) -> None:
    """
    Display a table of jobs, newest first.

    Args:
        jobs: Jobs to display
        verbose: Also show the last error and result of each job
    """
    if not jobs:
        click.echo("No jobs found.")
        return

    click.echo(f"{'STATE':<10} {'TRIES':>5} {'PROG':>4}  {'CREATED':<23} JOB KEY")
    for job in jobs:
        state = styled_state(job.state.value, width=10)
        click.echo(
            f"{state} {job.attempts:>2}/{job.max_attempts:<2} {job.progress:>4}  "
            f"{format_timestamp(job.created_at):<23} {job.job_key}"
        )
        if verbose and job.last_error:
            click.echo(click.style(f"    error: {job.last_error}", fg="red"))
        if verbose and job.result:
            click.echo(f"    result: {job.result}")


def show_job_counts(counts: dict[str, int]) -> None:
    """Display the number of jobs per state on one line."""
    parts = [f"{styled_state(state)}: {count}" for state, count in counts.items()]
    click.echo("Jobs: " + ", ".join(parts))
