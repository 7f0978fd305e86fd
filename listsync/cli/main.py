"""
Command-line interface for listsync.

Provides CLI commands for registering integrations, triggering and
scheduling syncs, running the worker pool and managing the daemon.

Usage:
    # Show help
    listsync --help

    # Register an integration and create its schema
    listsync init-db
    listsync integration add airtable.yaml

    # Trigger a sync and run it
    listsync enqueue <integration-id> --sync-id <sync-id>
    listsync worker --once

    # Run the scheduler and worker pool until stopped
    listsync daemon start
"""

import signal
import sqlite3
import sys
from pathlib import Path
from typing import Any

import click
import yaml

from listsync import __version__
from listsync.cli.formatters import (
    show_contact_lists,
    show_integrations,
    show_job_counts,
    show_jobs,
    show_table_sync,
)
from listsync.config.generator import save_config_file
from listsync.config.integration_config import (
    VALID_PROVIDERS,
    Integration,
    IntegrationStatus,
    parse_provider,
    parse_provider_config,
    parse_source,
)
from listsync.config.loader import DEFAULT_CONFIG_FILE, ConfigError, ConfigLoader
from listsync.config.settings import Settings
from listsync.jobs.queue import JobQueueError, JobState
from listsync.service import SyncService
from listsync.sync.errors import ConfigurationError
from listsync.utils.logging import cleanup_old_logs, get_logger, setup_logging
from listsync.utils.paths import resolve_config_dir


def get_config_dir(config_dir: str | None) -> Path:
    """Get the configuration directory path."""
    return resolve_config_dir(config_dir)


def get_config_file(config_file: str | None, config_dir: Path) -> Path:
    """Get the configuration file path."""
    if config_file:
        return Path(config_file).expanduser()
    return config_dir / DEFAULT_CONFIG_FILE


def get_service(ctx: click.Context) -> SyncService:
    """
    Open the database and wire the sync engine, once per invocation.

    Exits with an error message if the database cannot be opened.
    """
    service: SyncService | None = ctx.obj.get("service")
    if service is not None:
        return service

    settings: Settings = ctx.obj["settings"]
    try:
        if settings.db_path != ":memory:":
            Path(settings.db_path).parent.mkdir(parents=True, exist_ok=True)
        service = SyncService.from_settings(settings)
    except (sqlite3.Error, OSError) as e:
        click.echo(
            click.style(f"Error: Cannot open database {settings.db_path}: {e}", fg="red"),
            err=True,
        )
        sys.exit(1)

    ctx.obj["service"] = service
    return service


def load_document(path: Path) -> Any:
    """Load a YAML (or JSON) document from a file."""
    try:
        with open(path, encoding="utf-8") as f:
            return yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse {path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Failed to read {path}: {e}") from e


def parse_integration_document(document: Any) -> list[Integration]:
    """
    Parse one integration or a list of integrations.

    Provider credentials and TableSync sources are validated up front so
    that a broken document is rejected before anything is stored.

    Raises:
        ConfigurationError: If any integration is invalid
    """
    items = document if isinstance(document, list) else [document]
    integrations = []
    for item in items:
        integration = Integration.from_dict(item)
        parse_provider_config(integration.provider, integration.config)
        for table_sync in integration.table_syncs:
            parse_source(integration.provider, table_sync.source)
        integrations.append(integration)
    return integrations


@click.group()
@click.version_option(version=__version__, prog_name="listsync")
@click.option(
    "--verbose", "-v", is_flag=True, help="Enable verbose output with detailed logging."
)
@click.option(
    "--config-dir",
    "-c",
    type=click.Path(exists=False, file_okay=False, dir_okay=True),
    envvar="LISTSYNC_CONFIG_DIR",
    help="Configuration directory path (default: ~/.listsync).",
)
@click.option(
    "--config-file",
    "-f",
    type=click.Path(exists=False, file_okay=True, dir_okay=False),
    envvar="LISTSYNC_CONFIG_FILE",
    help="Configuration file path (default: <config-dir>/config.yaml).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    config_dir: str | None,
    config_file: str | None,
) -> None:
    """
    Multi-source contact list synchronization.

    Pulls records from Airtable, Google Sheets, Supabase and Firebase Auth
    and reconciles them into brand-scoped contact lists.
    """
    ctx.ensure_object(dict)

    resolved_config_dir = get_config_dir(config_dir)
    resolved_config_file = get_config_file(config_file, resolved_config_dir)

    ctx.obj["config_dir"] = resolved_config_dir
    ctx.obj["config_file"] = resolved_config_file

    # A broken config file is reported but does not block the CLI
    config: dict[str, Any] = {}
    try:
        loader = ConfigLoader(config_dir=resolved_config_dir)
        config = loader.load_from_file(resolved_config_file)
        if config:
            loader.validate(config)
        settings = Settings.from_dict(config, resolved_config_dir)
    except ConfigError as e:
        click.echo(
            click.style(f"Warning: Configuration error: {e}", fg="yellow"), err=True
        )
        config = {}
        settings = Settings.from_dict(config, resolved_config_dir)

    ctx.obj["config"] = config
    ctx.obj["settings"] = settings

    effective_verbose = verbose or config.get("verbose", False)
    ctx.obj["verbose"] = effective_verbose

    setup_logging(
        verbose=effective_verbose, log_dir=settings.log_dir, enable_file_logging=True
    )

    if settings.log_retention_count > 0:
        cleanup_old_logs(log_dir=settings.log_dir, keep_count=settings.log_retention_count)


# =============================================================================
# Setup Commands
# =============================================================================


@cli.command("init-config")
@click.option(
    "--force",
    "-f",
    is_flag=True,
    help="Overwrite existing configuration file if it exists.",
)
@click.pass_context
def init_config_command(ctx: click.Context, force: bool) -> None:
    """
    Generate a default configuration file.

    Creates a configuration file with all available options documented
    and commented out.

    Examples:

        # Create config file (fails if already exists)
        listsync init-config

        # Overwrite existing config file
        listsync init-config --force
    """
    logger = get_logger(__name__)
    config_file = ctx.obj["config_file"]

    click.echo(f"Creating configuration file: {config_file}")

    success, error = save_config_file(config_file, overwrite=force)

    if success:
        click.echo(click.style("Configuration file created successfully!", fg="green"))
        click.echo(f"\nLocation: {config_file}")
        click.echo("\nNext steps:")
        click.echo("1. Edit the file to uncomment and configure desired options")
        click.echo("2. Run 'listsync init-db' to create the database")
    else:
        click.echo(click.style(f"Error: {error}", fg="red"), err=True)
        logger.error(f"Failed to create configuration file: {error}")
        sys.exit(1)


@cli.command("init-db")
@click.pass_context
def init_db_command(ctx: click.Context) -> None:
    """
    Create the database schema.

    Safe to run repeatedly; existing tables are left untouched.
    """
    service = get_service(ctx)
    click.echo(click.style(f"Database ready: {service.db.db_path}", fg="green"))


# =============================================================================
# Integration Commands
# =============================================================================


@cli.group("integration")
def integration_group() -> None:
    """
    Manage provider integrations.

    Examples:

        # Register integrations from a YAML or JSON document
        listsync integration add integrations.yaml

        # Show registered integrations
        listsync integration list

        # Remove an integration (its contacts are kept)
        listsync integration remove <integration-id>
    """
    pass


@integration_group.command("add")
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_context
def integration_add_command(ctx: click.Context, file: Path) -> None:
    """
    Register integrations from FILE.

    FILE holds one integration document or a list of them. Registering an
    integration with an existing id replaces it; its TableSyncs keep their
    last sync results only if the document carries them.
    """
    logger = get_logger(__name__)

    try:
        integrations = parse_integration_document(load_document(file))
    except (ConfigError, ConfigurationError) as e:
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        sys.exit(1)

    service = get_service(ctx)
    for integration in integrations:
        service.db.save_integration(integration)
        logger.info(
            f"Registered {integration.provider.value} integration {integration.id}"
        )
        click.echo(
            click.style(
                f"Registered {integration.provider.value} integration "
                f"{integration.id} ({len(integration.table_syncs)} sync(s))",
                fg="green",
            )
        )


@integration_group.command("list")
@click.option(
    "--provider",
    "-p",
    type=click.Choice(sorted(VALID_PROVIDERS)),
    default=None,
    help="Only show integrations of this provider.",
)
@click.pass_context
def integration_list_command(ctx: click.Context, provider: str | None) -> None:
    """List registered integrations."""
    service = get_service(ctx)
    integrations = service.db.list_integrations(
        provider=parse_provider(provider) if provider else None
    )
    show_integrations(integrations)


@integration_group.command("remove")
@click.argument("integration_id")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation prompt.")
@click.pass_context
def integration_remove_command(
    ctx: click.Context, integration_id: str, yes: bool
) -> None:
    """
    Remove an integration and its TableSyncs.

    Contacts already synced into contact lists are kept.
    """
    service = get_service(ctx)
    if service.db.get_integration(integration_id) is None:
        click.echo(
            click.style(f"Error: Integration not found: {integration_id}", fg="red"),
            err=True,
        )
        sys.exit(1)

    if not yes:
        click.confirm(f"Remove integration {integration_id}?", abort=True)

    service.db.delete_integration(integration_id)
    click.echo(click.style(f"Removed integration {integration_id}", fg="green"))


@integration_group.command("set-status")
@click.argument("integration_id")
@click.argument("status", type=click.Choice([s.value for s in IntegrationStatus]))
@click.pass_context
def integration_set_status_command(
    ctx: click.Context, integration_id: str, status: str
) -> None:
    """Activate or deactivate an integration."""
    service = get_service(ctx)
    if not service.db.set_integration_status(integration_id, status):
        click.echo(
            click.style(f"Error: Integration not found: {integration_id}", fg="red"),
            err=True,
        )
        sys.exit(1)
    click.echo(f"Integration {integration_id} is now {status}")


# =============================================================================
# Contact List Commands
# =============================================================================


@cli.group("list")
def list_group() -> None:
    """Manage contact lists."""
    pass


@list_group.command("add")
@click.argument("name")
@click.option("--brand", "brand_id", required=True, help="Brand owning the list.")
@click.option("--user", "user_id", required=True, help="User owning the list.")
@click.option("--description", "-d", default="", help="List description.")
@click.option("--id", "list_id", default=None, help="List id (default: generated).")
@click.pass_context
def list_add_command(
    ctx: click.Context,
    name: str,
    brand_id: str,
    user_id: str,
    description: str,
    list_id: str | None,
) -> None:
    """
    Create an empty contact list.

    Examples:

        listsync list add --brand acme --user u1 "Newsletter"
    """
    service = get_service(ctx)
    try:
        contact_list = service.db.create_contact_list(
            brand_id, user_id, name, description=description, list_id=list_id
        )
    except sqlite3.IntegrityError as e:
        click.echo(click.style(f"Error: Cannot create list: {e}", fg="red"), err=True)
        sys.exit(1)
    click.echo(click.style(f"Created contact list {contact_list.id}", fg="green"))


@list_group.command("show")
@click.option("--brand", "brand_id", default=None, help="Only show this brand's lists.")
@click.pass_context
def list_show_command(ctx: click.Context, brand_id: str | None) -> None:
    """Show contact lists and their contact counts."""
    service = get_service(ctx)
    show_contact_lists(service.db.list_contact_lists(brand_id=brand_id))


# =============================================================================
# Sync Commands
# =============================================================================


@cli.command("enqueue")
@click.argument("integration_id")
@click.option(
    "--sync-id",
    "-s",
    default=None,
    help="TableSync to run (optional for Firebase integrations).",
)
@click.pass_context
def enqueue_command(ctx: click.Context, integration_id: str, sync_id: str | None) -> None:
    """
    Queue a manual sync of one TableSync.

    Manual syncs run even when the TableSync has auto-sync disabled.
    The job is executed by 'listsync worker' or a running daemon.
    """
    logger = get_logger(__name__)
    service = get_service(ctx)

    try:
        job = service.enqueue_sync(integration_id, sync_id)
    except (ConfigurationError, JobQueueError) as e:
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        logger.error(f"Failed to enqueue sync: {e}")
        sys.exit(1)

    click.echo(click.style(f"Queued job {job.job_key}", fg="green"))


@cli.command("tick")
@click.option(
    "--provider",
    "-p",
    type=click.Choice(sorted(VALID_PROVIDERS)),
    default=None,
    help="Only schedule integrations of this provider.",
)
@click.pass_context
def tick_command(ctx: click.Context, provider: str | None) -> None:
    """
    Run one scheduler tick.

    Queues a job for every auto-synced TableSync of every active
    integration.
    """
    service = get_service(ctx)
    enqueued = service.tick(parse_provider(provider) if provider else None)
    click.echo(f"Enqueued {enqueued} job(s)")


@cli.command("status")
@click.argument("integration_id")
@click.option("--sync-id", "-s", default=None, help="Only show this TableSync.")
@click.pass_context
def status_command(ctx: click.Context, integration_id: str, sync_id: str | None) -> None:
    """
    Show the last sync outcome of an integration's TableSyncs.
    """
    service = get_service(ctx)
    verbose = ctx.obj["verbose"]

    integration = service.db.get_integration(integration_id)
    if integration is None:
        click.echo(
            click.style(f"Error: Integration not found: {integration_id}", fg="red"),
            err=True,
        )
        sys.exit(1)

    click.echo(f"=== {integration.name or integration.id} ===\n")
    click.echo(f"Provider: {integration.provider.value}")
    click.echo(f"Brand:    {integration.brand_id}")
    click.echo(f"Status:   {integration.status}")

    if sync_id is not None:
        table_sync = integration.find_sync(sync_id)
        if table_sync is None:
            click.echo(
                click.style(f"Error: Table sync not found: {sync_id}", fg="red"),
                err=True,
            )
            sys.exit(1)
        show_table_sync(table_sync, verbose=verbose)
        counts = service.get_last_result(integration_id, sync_id)
        if counts is None:
            click.echo("\nNo successful sync yet.")
        return

    if not integration.table_syncs:
        click.echo("\nNo table syncs configured.")
    for table_sync in integration.table_syncs:
        show_table_sync(table_sync, verbose=verbose)


# =============================================================================
# Job Commands
# =============================================================================


@cli.command("jobs")
@click.option(
    "--state",
    type=click.Choice([s.value for s in JobState]),
    default=None,
    help="Only show jobs in this state.",
)
@click.option("--limit", "-n", default=50, show_default=True, help="Jobs to show.")
@click.pass_context
def jobs_command(ctx: click.Context, state: str | None, limit: int) -> None:
    """List recent jobs, newest first."""
    service = get_service(ctx)
    verbose = ctx.obj["verbose"]

    show_job_counts(service.queue.counts())
    click.echo()
    jobs = service.queue.list_jobs(JobState(state) if state else None, limit=limit)
    show_jobs(jobs, verbose=verbose)


@cli.command("prune")
@click.pass_context
def prune_command(ctx: click.Context) -> None:
    """
    Delete expired jobs.

    Completed jobs are kept for 7 days and failed jobs for 30 days unless
    configured otherwise.
    """
    service = get_service(ctx)
    removed = service.prune()
    click.echo(f"Removed {removed} expired job(s)")


@cli.command("worker")
@click.option(
    "--concurrency",
    "-n",
    type=click.IntRange(min=1),
    default=None,
    help="Worker threads (default: worker_concurrency from config).",
)
@click.option(
    "--once",
    is_flag=True,
    help="Run the jobs that are currently due and exit.",
)
@click.pass_context
def worker_command(ctx: click.Context, concurrency: int | None, once: bool) -> None:
    """
    Execute queued sync jobs.

    Without --once, polls the queue until SIGTERM or Ctrl+C. Workers
    finish their current job before exiting.
    """
    logger = get_logger(__name__)
    service = get_service(ctx)

    if once:
        executed = service.run_worker(once=True, concurrency=concurrency)
        show_job_counts(service.queue.counts())
        click.echo(f"Executed {executed} job attempt(s)")
        return

    recovered = service.recover_stale_jobs()
    if recovered:
        click.echo(f"Returned {recovered} stale job(s) to the queue")

    pool = service.create_worker_pool(concurrency)

    def handle_signal(signum: int, frame: object) -> None:
        logger.info(f"Received {signal.Signals(signum).name}, stopping workers")
        pool.stop()

    previous_sigterm = signal.signal(signal.SIGTERM, handle_signal)
    previous_sigint = signal.signal(signal.SIGINT, handle_signal)

    click.echo(f"Worker pool running with {pool.concurrency} worker(s) (Ctrl+C to stop)")
    try:
        pool.run_forever()
    finally:
        signal.signal(signal.SIGTERM, previous_sigterm)
        signal.signal(signal.SIGINT, previous_sigint)

    click.echo(
        click.style(
            f"\nWorker pool stopped. Completed: {pool.processed_count}, "
            f"Failed: {pool.failed_count}",
            fg="green",
        )
    )


# =============================================================================
# Daemon Commands
# =============================================================================


@cli.group("daemon")
@click.pass_context
def daemon_group(ctx: click.Context) -> None:
    """
    Manage the scheduler daemon.

    The daemon runs the scheduler tick at a configurable interval and
    executes the queued jobs with a worker pool in the same process.

    Examples:

        # Start daemon with custom interval
        listsync daemon start --interval 30m

        # Check daemon status
        listsync daemon status

        # Stop running daemon
        listsync daemon stop
    """
    pass


@daemon_group.command("start")
@click.option(
    "--interval",
    "-i",
    default=None,
    help=(
        "Tick interval (e.g., '30s', '5m', '1h', '1d'). "
        "Defaults to config value or '1h'."
    ),
)
@click.option(
    "--no-initial-tick",
    is_flag=True,
    help="Skip the scheduler tick on daemon startup.",
)
@click.pass_context
def daemon_start_command(
    ctx: click.Context,
    interval: str | None,
    no_initial_tick: bool,
) -> None:
    """
    Start the scheduler daemon in the foreground.

    The daemon will:
    - Return stale active jobs to the queue
    - Run a scheduler tick on startup (unless --no-initial-tick)
    - Keep ticking at the specified interval
    - Prune expired jobs and old log files once a day
    - Handle SIGTERM/SIGINT for graceful shutdown
    - Write a PID file for daemon management
    """
    logger = get_logger(__name__)
    settings: Settings = ctx.obj["settings"]
    verbose = ctx.obj["verbose"]

    from listsync.daemon import (
        DaemonAlreadyRunningError,
        DaemonError,
        DaemonScheduler,
        parse_interval,
    )

    try:
        interval_seconds = (
            parse_interval(interval) if interval else settings.sync_interval
        )
    except ValueError as e:
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        sys.exit(1)

    running_pid = DaemonScheduler.get_running_pid(settings.daemon_pid_file)
    if running_pid is not None:
        click.echo(
            click.style(f"Error: Daemon already running (PID: {running_pid})", fg="red"),
            err=True,
        )
        click.echo("Use 'listsync daemon stop' to stop the running daemon.")
        sys.exit(1)

    service = get_service(ctx)
    recovered = service.recover_stale_jobs()
    if recovered:
        logger.info(f"Returned {recovered} stale job(s) to the queue")

    run_immediately = settings.run_immediately and not no_initial_tick
    click.echo(f"Starting daemon with {interval_seconds}s tick interval...")
    click.echo("Running in foreground mode (Ctrl+C to stop)")
    if verbose:
        click.echo(f"  Database: {settings.db_path}")
        click.echo(f"  Workers: {settings.worker_concurrency}")
        click.echo(f"  Initial tick: {'Yes' if run_immediately else 'No'}")

    scheduler = DaemonScheduler(
        interval=interval_seconds,
        pid_file=settings.daemon_pid_file,
        run_immediately=run_immediately,
    )
    scheduler.set_tick_callback(service.tick)

    def maintenance() -> None:
        removed = service.prune(vacuum=True)
        deleted_logs = cleanup_old_logs(
            log_dir=settings.log_dir, keep_count=settings.log_retention_count
        )
        logger.info(
            f"Maintenance: removed {removed} expired job(s), "
            f"{deleted_logs} old log file(s)"
        )

    scheduler.set_maintenance_callback(maintenance)

    pool = service.create_worker_pool()
    pool_thread = pool.start_background()
    try:
        scheduler.run()
        click.echo(click.style("\nDaemon stopped gracefully.", fg="green"))

    except DaemonAlreadyRunningError as e:
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        click.echo("Use 'listsync daemon stop' to stop the running daemon.")
        sys.exit(1)

    except DaemonError as e:
        logger.error(f"Daemon error: {e}")
        click.echo(click.style(f"Daemon error: {e}", fg="red"), err=True)
        sys.exit(1)

    finally:
        pool.stop()
        pool_thread.join()


@daemon_group.command("stop")
@click.pass_context
def daemon_stop_command(ctx: click.Context) -> None:
    """
    Stop the running daemon.

    Sends SIGTERM to the daemon process. Workers finish their current job
    before the process exits.
    """
    logger = get_logger(__name__)
    settings: Settings = ctx.obj["settings"]

    from listsync.daemon import DaemonScheduler

    pid = DaemonScheduler.get_running_pid(settings.daemon_pid_file)

    if pid is None:
        click.echo("No daemon is currently running.")
        return

    click.echo(f"Stopping daemon (PID: {pid})...")

    if DaemonScheduler.stop_running_daemon(settings.daemon_pid_file):
        click.echo(click.style("Stop signal sent successfully.", fg="green"))
        logger.info(f"Sent stop signal to daemon (PID: {pid})")
    else:
        click.echo(
            click.style("Failed to send stop signal to daemon.", fg="red"), err=True
        )
        sys.exit(1)


@daemon_group.command("status")
@click.pass_context
def daemon_status_command(ctx: click.Context) -> None:
    """
    Show whether the daemon is running.
    """
    settings: Settings = ctx.obj["settings"]
    verbose = ctx.obj.get("verbose", False)

    from listsync.daemon import DEFAULT_PID_FILE, DaemonScheduler, PIDFileManager

    pid_file = settings.daemon_pid_file or DEFAULT_PID_FILE

    click.echo("=== Daemon Status ===\n")

    pid = DaemonScheduler.get_running_pid(pid_file)

    if pid is not None:
        click.echo(f"Status: {click.style('Running', fg='green')}")
        click.echo(f"Process ID: {pid}")
    else:
        stale_pid = PIDFileManager(pid_file).read()
        click.echo(f"Status: {click.style('Stopped', fg='yellow')}")
        if stale_pid is not None:
            click.echo(f"Stale PID file exists (PID: {stale_pid})")
            click.echo("The stale PID file will be cleaned up on next daemon start.")
        else:
            click.echo("No daemon is currently running.")

    if verbose:
        click.echo(f"\nPID file: {pid_file}")


__all__ = [
    "cli",
    "get_config_dir",
    "get_config_file",
    "get_service",
    "load_document",
    "parse_integration_document",
]
