"""Wiring of the client components for CLI commands."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

from ticketscan.client.api import HTTPClient
from ticketscan.client.cli.config import get_store_path, load_config
from ticketscan.client.engine import ValidationEngine
from ticketscan.client.mode import ModeController
from ticketscan.client.scanner import ScanService
from ticketscan.client.store import LocalStore
from ticketscan.client.sync import SyncCoordinator
from ticketscan.core.config import ServerConfig


@contextmanager
def open_service(force_offline: bool = False) -> Iterator[ScanService]:
    """Build a ScanService from the saved configuration.

    Connectivity is probed through the server health endpoint before each
    routing decision; without a configured server the client stays offline.
    """
    config = load_config()
    server_url = config.get("server_url", "")
    server_config = ServerConfig(server_url=server_url, token=config.get("auth_token", ""))

    store = LocalStore(get_store_path())
    store.initialize()
    client = HTTPClient(server_config)
    controller = ModeController(
        offline_mode_enabled=force_offline or bool(config.get("offline_mode", False)),
        is_online=bool(server_url),
    )
    probe = client.health_check if server_url else None

    try:
        yield ScanService(
            store=store,
            engine=ValidationEngine(store),
            coordinator=SyncCoordinator(client, store),
            client=client,
            controller=controller,
            connectivity_probe=probe,
        )
    finally:
        client.close()
        store.close()
