"""Shared types for ticketscan."""

from __future__ import annotations

from enum import Enum


class OperatingMode(str, Enum):
    """Where scans are validated.

    ONLINE routes every scan to the remote authority, OFFLINE validates
    against the locally cached catalog.
    """

    ONLINE = "online"
    OFFLINE = "offline"


class Feedback(str, Enum):
    """Three-tier signal rendered to the operator after every scan."""

    SUCCESS = "success"  # Accepted, allowance left
    WARNING = "warning"  # Accepted, last permitted scan
    ERROR = "error"  # Rejected
