"""HTTP client for the remote ticketing authority.

This module provides:
- HTTPClient: HTTP client for communicating with the server
- Online validation, offline catalog download, ledger upload
- Session login/logout and validator stats
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, TypeVar

import httpx

from ticketscan.client.store import Campaign, Ticket, ValidationLogEntry
from ticketscan.core.config import ServerConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")


class NetworkError(Exception):
    """Base exception for remote authority errors."""


class UnreachableError(NetworkError):
    """The server could not be reached (connect error, timeout, dropped connection)."""


class ServerError(NetworkError):
    """The server answered with an error status."""

    def __init__(self, message: str, status_code: int, body: Any = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class AuthenticationError(ServerError):
    """Authentication failed or session expired."""


@dataclass
class ValidationResponse:
    """Result of an online validation."""

    valid: bool
    message: str
    ticket_id: str | None = None
    scan_count: int | None = None
    max_scans: int | None = None
    customer: dict[str, Any] | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ValidationResponse:
        """Create from API response dictionary."""
        ticket = data.get("ticket") or {}
        return cls(
            valid=bool(data.get("valid", False)),
            message=data.get("message", ""),
            ticket_id=ticket.get("ticketId", ticket.get("ticketNumber")),
            scan_count=ticket.get("scanCount"),
            max_scans=ticket.get("maxScans"),
            customer=data.get("customer"),
        )


@dataclass
class Catalog:
    """Offline catalog snapshot."""

    campaigns: list[Campaign] = field(default_factory=list)
    tickets: list[Ticket] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Catalog:
        """Create from API response dictionary.

        Accepts both the bare payload and one wrapped in ``data``.
        """
        payload = data.get("data", data)
        return cls(
            campaigns=[Campaign.from_dict(c) for c in payload.get("campaigns", [])],
            tickets=[Ticket.from_dict(t) for t in payload.get("tickets", [])],
        )


@dataclass
class SyncResponse:
    """Server verdict on an uploaded batch."""

    synced: int
    conflicts: int

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SyncResponse:
        """Create from API response dictionary."""
        return cls(
            synced=int(data.get("synced", 0)),
            conflicts=int(data.get("conflicts", 0)),
        )


@dataclass
class OnlineStats:
    """Validator stats reported by the server."""

    today: int
    total: int

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> OnlineStats:
        """Create from API response dictionary."""
        payload = data.get("data", data)
        return cls(today=int(payload.get("today", 0)), total=int(payload.get("total", 0)))


@dataclass
class LoginResult:
    """Session established by login."""

    token: str
    manager: dict[str, Any]


class HTTPClient:
    """HTTP client for the remote ticketing authority."""

    def __init__(self, config: ServerConfig) -> None:
        """Initialize the client.

        Args:
            config: Server connection settings.
        """
        self._config = config
        self._client = httpx.Client(
            base_url=config.server_url,
            timeout=config.timeout,
            verify=config.verify_ssl,
            headers=config.headers,
        )

    @property
    def config(self) -> ServerConfig:
        return self._config

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()

    def __enter__(self) -> HTTPClient:
        """Context manager entry."""
        return self

    def __exit__(self, *args: object) -> None:
        """Context manager exit."""
        self.close()

    def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Send a request, mapping transport failures to UnreachableError."""
        try:
            response = self._client.request(method, url, **kwargs)
        except httpx.TransportError as e:
            logger.warning(f"{method} {url} failed: {e}")
            raise UnreachableError(f"Could not reach server: {e}") from e
        return self._handle_response(response)

    def _handle_response(self, response: httpx.Response) -> httpx.Response:
        """Handle API response and raise appropriate exceptions."""
        if response.status_code < 400:
            return response

        try:
            body: Any = response.json()
        except ValueError:
            body = response.text
        detail = "Unknown error"
        if isinstance(body, dict):
            detail = body.get("message") or body.get("detail") or detail
        elif body:
            detail = str(body)

        logger.debug(f"API error {response.status_code}: {body}")
        if response.status_code == 401:
            raise AuthenticationError("Invalid or expired session", 401, body)
        raise ServerError(detail, response.status_code, body)

    def _parse(self, response: httpx.Response, factory: Callable[[Any], T]) -> T:
        """Decode a success body, mapping unusable payloads to ServerError."""
        try:
            return factory(response.json())
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            logger.warning(f"Malformed response from {response.url}: {e!r}")
            raise ServerError(
                "Malformed response", response.status_code, response.text
            ) from e

    # === Health check ===

    def health_check(self) -> bool:
        """Check if the server is reachable.

        Returns:
            True if server is healthy.
        """
        try:
            response = self._client.get("/health")
            return response.status_code == 200
        except httpx.TransportError:
            return False

    # === Session ===

    def login(self, email: str, password: str) -> LoginResult:
        """Open a session and attach its token to subsequent requests.

        Raises:
            AuthenticationError: If credentials are rejected.
        """
        response = self._request(
            "POST", "/auth/login", json={"email": email, "password": password}
        )
        data = self._parse(response, lambda payload: dict(payload.get("data", payload)))
        token = data.get("token") or response.cookies.get("session", "")
        self._config.token = token
        self._client.headers.update(self._config.headers)
        return LoginResult(token=token, manager=data.get("manager", {}))

    def logout(self) -> None:
        """Close the server session."""
        self._request("POST", "/auth/logout")

    # === Validation ===

    def validate(self, qr_payload: str) -> ValidationResponse:
        """Validate a ticket against the server.

        Args:
            qr_payload: Decoded QR string.

        Returns:
            Server decision (valid or not) for the scan.

        Raises:
            ServerError: For error statuses (e.g. 404 unknown ticket).
            UnreachableError: If the server could not be reached.
        """
        response = self._request("POST", "/validate", json={"qrPayload": qr_payload})
        return self._parse(response, ValidationResponse.from_dict)

    def get_stats(self) -> OnlineStats:
        """Get this validator's scan counts from the server."""
        response = self._request("GET", "/stats")
        return self._parse(response, OnlineStats.from_dict)

    # === Offline support ===

    def download_catalog(self) -> Catalog:
        """Download the authoritative catalog for offline use."""
        response = self._request("GET", "/offline/catalog")
        return self._parse(response, Catalog.from_dict)

    def upload_validations(self, entries: list[ValidationLogEntry]) -> SyncResponse:
        """Upload offline validations.

        Args:
            entries: Ledger rows to submit.

        Returns:
            How many the server accepted and how many conflicted.
        """
        response = self._request(
            "POST",
            "/offline/sync",
            json={"validations": [entry.to_dict() for entry in entries]},
        )
        return self._parse(response, SyncResponse.from_dict)
