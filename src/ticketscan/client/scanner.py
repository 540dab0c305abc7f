"""Scan service exposed to the UI layer.

This module provides:
- ScanService: routes each scan online or offline and fronts download,
  sync, stats, clear and logout
- ScanDebouncer: drops a payload repeated within a short window

Routing:
    The mode is resolved fresh for every scan and every dashboard read,
    either from an explicit ModeContext or from the ModeController
    (refreshed through the connectivity probe when one is configured).
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import TYPE_CHECKING

from ticketscan.client.api import (
    AuthenticationError,
    NetworkError,
    OnlineStats,
    ServerError,
    ValidationResponse,
)
from ticketscan.client.engine import OutcomeKind, RejectReason, ScanOutcome
from ticketscan.core.types import OperatingMode

if TYPE_CHECKING:
    from ticketscan.client.api import HTTPClient
    from ticketscan.client.engine import ValidationEngine
    from ticketscan.client.mode import ModeContext, ModeController
    from ticketscan.client.store import LocalStore, OfflineStats
    from ticketscan.client.sync import DownloadSummary, SyncCoordinator, SyncSummary

logger = logging.getLogger(__name__)

# Window in which the same payload is treated as one camera read
DEFAULT_DEBOUNCE_WINDOW = 2.0  # seconds


class ScanDebouncer:
    """Suppresses an identical payload seen again within ``window`` seconds."""

    def __init__(
        self,
        window: float = DEFAULT_DEBOUNCE_WINDOW,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._window = window
        self._clock = clock
        self._last_payload: str | None = None
        self._last_seen = 0.0

    def should_process(self, payload: str) -> bool:
        now = self._clock()
        if payload == self._last_payload and now - self._last_seen < self._window:
            return False
        self._last_payload = payload
        self._last_seen = now
        return True


class ScanService:
    """Single entry point for scan, download, sync, stats and clear."""

    def __init__(
        self,
        store: LocalStore,
        engine: ValidationEngine,
        coordinator: SyncCoordinator,
        client: HTTPClient,
        controller: ModeController,
        connectivity_probe: Callable[[], bool] | None = None,
    ) -> None:
        """Initialize the service.

        Args:
            store: Local offline store.
            engine: Offline validation engine.
            coordinator: Catalog download and ledger upload.
            client: HTTP client for online validation.
            controller: Offline-mode and connectivity flags.
            connectivity_probe: Optional reachability check run before each
                routing decision while offline mode is off.
        """
        self._store = store
        self._engine = engine
        self._coordinator = coordinator
        self._client = client
        self._controller = controller
        self._probe = connectivity_probe

    @property
    def store(self) -> LocalStore:
        return self._store

    @property
    def controller(self) -> ModeController:
        return self._controller

    def current_context(self) -> ModeContext:
        """Resolve the mode inputs now."""
        if self._probe is not None and not self._controller.offline_mode_enabled:
            self._controller.set_online(self._probe())
        return self._controller.context()

    # === Scanning ===

    def scan(self, payload: str, context: ModeContext | None = None) -> ScanOutcome:
        """Validate one scanned payload.

        Args:
            payload: Decoded QR string.
            context: Mode inputs to use instead of the controller's.

        Returns:
            The business outcome; rejections are outcomes, not errors.

        Raises:
            EngineError: Offline scan could not be recorded.
            NetworkError: Online scan could not reach a decision.
        """
        ctx = context or self.current_context()
        if ctx.effective_mode is OperatingMode.OFFLINE:
            outcome = self._engine.validate(payload)
        else:
            outcome = self._validate_online(payload)
        logger.debug(f"Scan outcome ({ctx.effective_mode.value}): {outcome.message}")
        return outcome

    def _validate_online(self, payload: str) -> ScanOutcome:
        try:
            response = self._client.validate(payload)
        except AuthenticationError:
            raise
        except ServerError as e:
            if e.status_code == 404:
                return ScanOutcome.not_found(mode=OperatingMode.ONLINE)
            if 400 <= e.status_code < 500:
                logger.warning(f"Online validation rejected ({e.status_code}): {e}")
                return ScanOutcome(
                    kind=OutcomeKind.REJECTED,
                    reason=RejectReason.INVALID,
                    message=str(e),
                    mode=OperatingMode.ONLINE,
                )
            raise
        return outcome_from_response(response)

    # === Offline data ===

    def download(self) -> DownloadSummary:
        """Replace the offline catalog with the server's snapshot."""
        return self._coordinator.download()

    def sync(self) -> SyncSummary:
        """Upload pending offline validations."""
        return self._coordinator.sync()

    def stats(self) -> OfflineStats:
        """Counts of the local catalog and ledger."""
        return self._store.stats()

    def dashboard(self, context: ModeContext | None = None) -> OfflineStats | OnlineStats:
        """Stats for the dashboard: local counts offline, server counts online."""
        ctx = context or self.current_context()
        if ctx.effective_mode is OperatingMode.OFFLINE:
            return self._store.stats()
        return self._client.get_stats()

    def clear(self) -> None:
        """Delete all offline data, including unsynced validations."""
        self._store.clear_all()

    def logout(self) -> None:
        """End the server session and wipe offline data.

        Server-side logout is best effort; local data is cleared regardless.
        """
        try:
            self._client.logout()
        except NetworkError as e:
            logger.warning(f"Logout API call failed: {e}")
        self.clear()


def outcome_from_response(response: ValidationResponse) -> ScanOutcome:
    """Translate an online validation response into a ScanOutcome."""
    has_counts = response.scan_count is not None and response.max_scans is not None

    if response.valid:
        if has_counts:
            return ScanOutcome.validated(
                response.ticket_id,
                response.scan_count,  # type: ignore[arg-type]
                response.max_scans,  # type: ignore[arg-type]
                mode=OperatingMode.ONLINE,
                message=response.message or None,
                customer=response.customer,
            )
        return ScanOutcome(
            kind=OutcomeKind.ACCEPTED,
            message=response.message or "Validated",
            ticket_id=response.ticket_id,
            customer=response.customer,
            mode=OperatingMode.ONLINE,
        )

    if has_counts and response.scan_count >= response.max_scans:  # type: ignore[operator]
        return ScanOutcome.already_used(
            response.ticket_id,
            response.scan_count,  # type: ignore[arg-type]
            response.max_scans,  # type: ignore[arg-type]
            mode=OperatingMode.ONLINE,
            message=response.message or None,
        )
    return ScanOutcome(
        kind=OutcomeKind.REJECTED,
        reason=RejectReason.INVALID,
        message=response.message or "Validation failed",
        ticket_id=response.ticket_id,
        scan_count=response.scan_count,
        max_scans=response.max_scans,
        customer=response.customer,
        mode=OperatingMode.ONLINE,
    )
