"""Command-line interface for ticketscan.

This module provides the main CLI entry point and assembles all commands.

Commands:
- login: Open a session with the ticketing server
- logout: Close the session and wipe offline data
- mode: Show or switch offline mode
- scan: Validate scanned ticket payloads
- download: Download the offline catalog
- sync: Upload offline scans
- stats: Show offline counts
- status: Show mode, session and last sync times
- clear: Delete all offline data
"""

from __future__ import annotations

import logging

import click

from ticketscan.client.cli.config import (
    get_config_dir,
    get_config_file,
    get_store_path,
    load_config,
    save_config,
)
from ticketscan.client.cli.offline import clear, download, mode, stats, status, sync
from ticketscan.client.cli.scan import scan
from ticketscan.client.cli.session import login, logout


@click.group()
@click.version_option(package_name="ticketscan")
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging.")
def cli(verbose: bool) -> None:
    """ticketscan - Ticket validation with offline support."""
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    package_logger = logging.getLogger("ticketscan")
    for existing in package_logger.handlers[:]:
        package_logger.removeHandler(existing)
    package_logger.addHandler(handler)
    package_logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    package_logger.propagate = False


# Session commands
cli.add_command(login)
cli.add_command(logout)

# Scanning
cli.add_command(mode)
cli.add_command(scan)

# Offline data commands
cli.add_command(download)
cli.add_command(sync)
cli.add_command(stats)
cli.add_command(status)
cli.add_command(clear)


def main() -> None:
    """Entry point for the CLI."""
    cli()


__all__ = [
    # Main entry points
    "cli",
    "main",
    # Config utilities
    "get_config_dir",
    "get_config_file",
    "get_store_path",
    "load_config",
    "save_config",
]
