"""Configuration utilities for the ticketscan CLI.

This module provides shared configuration functions used across CLI commands.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any


def get_config_dir() -> Path:
    """Get the configuration directory for ticketscan.

    Returns:
        Path to ~/.ticketscan or equivalent.
    """
    return Path.home() / ".ticketscan"


def get_config_file() -> Path:
    """Get the path to the config file."""
    return get_config_dir() / "config.json"


def get_store_path() -> Path:
    """Get the path to the offline validation database."""
    return get_config_dir() / "validation.db"


def load_config() -> dict[str, Any]:
    """Load configuration from config file."""
    config_file = get_config_file()
    if config_file.exists():
        return dict(json.loads(config_file.read_text()))
    return {}


def save_config(config: dict[str, Any]) -> None:
    """Save configuration to config file."""
    config_file = get_config_file()
    config_file.parent.mkdir(parents=True, exist_ok=True)
    config_file.write_text(json.dumps(config, indent=2))


def is_logged_in(config: dict[str, Any]) -> bool:
    """Check whether a server session is configured."""
    return bool(config.get("server_url") and config.get("auth_token"))
