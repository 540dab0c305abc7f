"""Core module - Shared configuration and types."""

from ticketscan.core.config import ServerConfig
from ticketscan.core.types import Feedback, OperatingMode

__all__ = [
    # Config
    "ServerConfig",
    # Types
    "Feedback",
    "OperatingMode",
]
