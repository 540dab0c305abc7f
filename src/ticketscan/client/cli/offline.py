"""Offline data commands for the ticketscan CLI.

Commands:
- mode: Show or switch offline mode
- download: Download the offline catalog
- sync: Upload offline scans
- stats: Show offline counts
- status: Show mode, session and last sync times
- clear: Delete all offline data
"""

from __future__ import annotations

import sys

import click

from ticketscan.client.cli.config import is_logged_in, load_config, save_config
from ticketscan.client.cli.runtime import open_service


def _require_login() -> None:
    if not is_logged_in(load_config()):
        click.echo("Error: Not logged in. Run 'ticketscan login' first.", err=True)
        sys.exit(1)


@click.command()
@click.argument("state", required=False, type=click.Choice(["on", "off"]))
def mode(state: str | None) -> None:
    """Show or switch offline mode (on/off)."""
    config = load_config()
    if state is not None:
        config["offline_mode"] = state == "on"
        save_config(config)
    enabled = bool(config.get("offline_mode", False))
    click.echo(f"Offline mode: {'on' if enabled else 'off'}")


@click.command()
def download() -> None:
    """Download tickets for offline validation.

    Replaces the local catalog with the server's current snapshot.
    """
    from ticketscan.client.api import NetworkError
    from ticketscan.client.store import StorageError

    _require_login()
    with open_service() as service:
        try:
            summary = service.download()
        except (NetworkError, StorageError) as e:
            click.echo(f"Error: Failed to download offline data: {e}", err=True)
            sys.exit(1)

    click.echo(
        f"Downloaded {summary.campaign_count} campaign(s) "
        f"and {summary.ticket_count} ticket(s)"
    )


@click.command()
def sync() -> None:
    """Upload offline scans to the server."""
    from ticketscan.client.api import NetworkError
    from ticketscan.client.store import StorageError

    _require_login()
    with open_service() as service:
        try:
            summary = service.sync()
        except (NetworkError, StorageError) as e:
            click.echo(f"Error: Failed to sync offline data: {e}", err=True)
            click.echo("Offline scans are kept; run 'ticketscan sync' again later.")
            sys.exit(1)

    click.echo(f"Synced {summary.synced} validation(s)")
    if summary.has_conflicts:
        click.echo(
            click.style(f"{summary.conflicts} conflict(s) detected", fg="yellow")
        )


@click.command()
def stats() -> None:
    """Show offline ticket and scan counts."""
    with open_service() as service:
        counts = service.stats()

    click.echo(f"Tickets:      {counts.total_tickets}")
    click.echo(f"Scans:        {counts.total_scans}")
    pending = f"{counts.unsynced_scans}"
    if counts.unsynced_scans:
        pending = click.style(pending, fg="yellow")
    click.echo(f"Pending sync: {pending}")


@click.command()
def status() -> None:
    """Show mode, session and last download/sync times."""
    from ticketscan.client.api import NetworkError, OnlineStats

    config = load_config()
    with open_service() as service:
        context = service.current_context()
        try:
            dashboard = service.dashboard(context)
        except NetworkError as e:
            click.echo(f"Warning: Could not load server stats: {e}", err=True)
            dashboard = service.stats()
        last_download = service.store.get_last_download_at()
        last_sync = service.store.get_last_sync_at()

    click.echo(f"Mode:          {context.label}")
    click.echo(f"Server:        {config.get('server_url') or 'not configured'}")
    if config.get("manager_name"):
        click.echo(f"Logged in as:  {config['manager_name']}")
    click.echo(f"Last download: {last_download or 'Never'}")
    click.echo(f"Last sync:     {last_sync or 'Never'}")

    if isinstance(dashboard, OnlineStats):
        click.echo(f"Today:         {dashboard.today}")
        click.echo(f"Total:         {dashboard.total}")
    else:
        click.echo(f"Total scans:   {dashboard.total_scans}")
        click.echo(f"Downloaded:    {dashboard.total_tickets}")
        if dashboard.unsynced_scans:
            click.echo(
                click.style(
                    f"{dashboard.unsynced_scans} scan(s) pending sync", fg="yellow"
                )
            )


@click.command()
@click.option("--yes", is_flag=True, help="Do not ask for confirmation.")
def clear(yes: bool) -> None:
    """Delete all downloaded tickets and unsynced scans."""
    if not yes and not click.confirm(
        "This will delete all downloaded tickets and unsynced scans. Continue?"
    ):
        sys.exit(0)

    with open_service() as service:
        service.clear()
    click.echo("Offline data has been cleared")
