"""Session commands for the ticketscan CLI.

Commands:
- login: Open a session with the ticketing server
- logout: Close the session and wipe offline data
"""

from __future__ import annotations

import sys

import click

from ticketscan.client.cli.config import is_logged_in, load_config, save_config


@click.command()
@click.option(
    "--server",
    required=True,
    help="Server API URL (e.g., https://tickets.example.com/api/v1).",
)
@click.option("--email", required=True, help="Manager account email.")
@click.password_option(confirmation_prompt=False, help="Account password.")
def login(server: str, email: str, password: str) -> None:
    """Log in to the ticketing server.

    The session token is saved so later commands can validate online,
    download the offline catalog and sync offline scans.
    """
    from ticketscan.client.api import AuthenticationError, HTTPClient, NetworkError
    from ticketscan.core.config import ServerConfig

    config = load_config()
    server_config = ServerConfig(server_url=server)
    if not server_config.is_secure:
        click.echo(
            "Warning: server is not using HTTPS; credentials are sent unencrypted.",
            err=True,
        )

    try:
        with HTTPClient(server_config) as client:
            result = client.login(email, password)
    except AuthenticationError:
        click.echo("Error: Invalid email or password.", err=True)
        sys.exit(1)
    except NetworkError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if not result.token:
        click.echo("Error: Server did not return a session token.", err=True)
        sys.exit(1)

    config["server_url"] = server_config.server_url
    config["auth_token"] = result.token
    config["manager_name"] = result.manager.get("name", email)
    save_config(config)

    click.echo(f"Logged in as {config['manager_name']}")


@click.command()
@click.option("--yes", is_flag=True, help="Do not ask for confirmation.")
def logout(yes: bool) -> None:
    """Log out and delete all offline data.

    Unsynced offline scans are lost.
    """
    from ticketscan.client.cli.runtime import open_service

    config = load_config()
    if not is_logged_in(config):
        click.echo("Not logged in.")
        return

    if not yes and not click.confirm(
        "Are you sure you want to logout? Unsynced data will be lost."
    ):
        sys.exit(0)

    with open_service() as service:
        service.logout()

    for key in ("auth_token", "manager_name"):
        config.pop(key, None)
    save_config(config)
    click.echo("Logged out.")
