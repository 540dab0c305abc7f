"""Shared configuration classes for ticketscan.

This module defines the connection settings used by the HTTP client
and the command-line front end.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class ServerConfig:
    """Configuration for connecting to the remote ticketing authority.

    Attributes:
        server_url: Base URL of the server (e.g., "https://tickets.example.com/api/v1").
        token: Session token obtained at login (empty before login).
        timeout: Request timeout in seconds.
        verify_ssl: Whether to verify SSL certificates (default True).
    """

    server_url: str
    token: str = ""
    timeout: float = 30.0
    verify_ssl: bool = True

    def __post_init__(self) -> None:
        """Normalize server URL."""
        self.server_url = self.server_url.rstrip("/")

    @property
    def is_secure(self) -> bool:
        """Check if using HTTPS.

        Returns:
            True if server uses HTTPS.
        """
        return self.server_url.startswith("https://")

    @property
    def headers(self) -> dict[str, str]:
        """Default request headers, including the bearer token once logged in."""
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers
