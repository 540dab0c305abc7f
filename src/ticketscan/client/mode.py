"""Operating mode and connectivity tracking.

This module provides:
- ModeContext: immutable (offline_mode_enabled, is_online) snapshot
- ModeController: thread-safe holder of the two flags

The effective mode is derived, never stored: a scan is validated offline
when the operator enabled offline mode OR the device has no connectivity.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass

from ticketscan.core.types import OperatingMode

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ModeContext:
    """Mode inputs for one scan or stats read."""

    offline_mode_enabled: bool = False
    is_online: bool = True

    @property
    def effective_mode(self) -> OperatingMode:
        if self.offline_mode_enabled or not self.is_online:
            return OperatingMode.OFFLINE
        return OperatingMode.ONLINE

    @property
    def label(self) -> str:
        """Status badge text shown next to the scanner."""
        if self.offline_mode_enabled:
            return "Offline Mode"
        return "Online" if self.is_online else "No Connection"


class ModeController:
    """Tracks the operator's offline-mode choice and observed connectivity."""

    def __init__(self, offline_mode_enabled: bool = False, is_online: bool = True) -> None:
        self._lock = threading.Lock()
        self._offline_mode_enabled = offline_mode_enabled
        self._is_online = is_online

    @property
    def offline_mode_enabled(self) -> bool:
        return self._offline_mode_enabled

    @property
    def is_online(self) -> bool:
        return self._is_online

    def set_offline_mode(self, enabled: bool) -> None:
        with self._lock:
            self._offline_mode_enabled = enabled
        logger.info("Offline mode: %s", enabled)

    def set_online(self, online: bool) -> None:
        with self._lock:
            changed = self._is_online != online
            self._is_online = online
        if changed:
            logger.info("Network status: %s", "online" if online else "offline")

    def context(self) -> ModeContext:
        """Snapshot both flags atomically."""
        with self._lock:
            return ModeContext(
                offline_mode_enabled=self._offline_mode_enabled,
                is_online=self._is_online,
            )

    @property
    def effective_mode(self) -> OperatingMode:
        return self.context().effective_mode
