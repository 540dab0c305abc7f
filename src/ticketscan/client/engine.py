"""Offline validation engine.

This module provides:
- ValidationEngine: decides accept / final accept / reject for a scan
  against the local catalog and records accepted scans
- ScanOutcome: the business result of a scan (online or offline)
- EngineError: storage failure while recording a scan

Decision rules (offline):
    | Ticket state               | Outcome                  | Writes          |
    |----------------------------|--------------------------|-----------------|
    | payload unknown            | REJECTED / NOT_FOUND     | none            |
    | scan_count >= max_scans    | REJECTED / ALREADY_USED  | none            |
    | scan_count + 1 < max_scans | ACCEPTED                 | count + ledger  |
    | scan_count + 1 == max_scans| ACCEPTED_FINAL           | count + ledger  |

Scanning the same ticket twice consumes two allowances. Suppressing a
camera firing twice on one frame is up to the caller (see ScanDebouncer).
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any

from ticketscan.client.store import StorageError, ValidationLogEntry
from ticketscan.core.types import Feedback, OperatingMode

if TYPE_CHECKING:
    from ticketscan.client.store import LocalStore, Ticket

logger = logging.getLogger(__name__)

# Campaign id recorded on ledger rows created offline
OFFLINE_CAMPAIGN_ID = "offline"

# Attempts before giving up when the ticket row keeps changing underneath
MAX_RECORD_ATTEMPTS = 3


class OutcomeKind(Enum):
    """Kind of scan outcome."""

    ACCEPTED = "accepted"
    ACCEPTED_FINAL = "accepted_final"
    REJECTED = "rejected"


class RejectReason(Enum):
    """Why a scan was rejected."""

    NOT_FOUND = "not_found"
    ALREADY_USED = "already_used"
    INVALID = "invalid"  # Online rejection for any other server reason


class EngineError(Exception):
    """A scan could not be recorded; it must be treated as not validated."""

    def __init__(self, cause: Exception) -> None:
        super().__init__(f"Offline validation failed: {cause}")
        self.cause = cause


@dataclass(frozen=True)
class ScanOutcome:
    """Result of validating one scan.

    Attributes:
        kind: Accepted, accepted as the last permitted scan, or rejected.
        message: Human readable summary for the operator.
        reason: Set for rejections only.
        ticket_id: Ticket identifier, when the ticket is known.
        scan_count: Scan count after this scan (or current count on rejection).
        max_scans: Permitted scans for the ticket.
        customer: Customer details returned by the server (online only).
        mode: Which path validated the scan.
    """

    kind: OutcomeKind
    message: str
    reason: RejectReason | None = None
    ticket_id: str | None = None
    scan_count: int | None = None
    max_scans: int | None = None
    customer: dict[str, Any] | None = field(default=None, compare=False)
    mode: OperatingMode = OperatingMode.OFFLINE

    @property
    def accepted(self) -> bool:
        return self.kind is not OutcomeKind.REJECTED

    @property
    def remaining_scans(self) -> int | None:
        if self.scan_count is None or self.max_scans is None:
            return None
        return self.max_scans - self.scan_count

    @property
    def feedback(self) -> Feedback:
        """Map the outcome onto the accept / warn / reject signal."""
        if self.kind is OutcomeKind.ACCEPTED:
            return Feedback.SUCCESS
        if self.kind is OutcomeKind.ACCEPTED_FINAL:
            return Feedback.WARNING
        return Feedback.ERROR

    # === Constructors ===

    @classmethod
    def not_found(cls, mode: OperatingMode = OperatingMode.OFFLINE) -> ScanOutcome:
        return cls(
            kind=OutcomeKind.REJECTED,
            reason=RejectReason.NOT_FOUND,
            message="Ticket not found in offline database"
            if mode is OperatingMode.OFFLINE
            else "Ticket not found",
            mode=mode,
        )

    @classmethod
    def already_used(
        cls,
        ticket_id: str | None,
        scan_count: int,
        max_scans: int,
        mode: OperatingMode = OperatingMode.OFFLINE,
        message: str | None = None,
    ) -> ScanOutcome:
        return cls(
            kind=OutcomeKind.REJECTED,
            reason=RejectReason.ALREADY_USED,
            message=message or f"Already used ({scan_count}/{max_scans})",
            ticket_id=ticket_id,
            scan_count=scan_count,
            max_scans=max_scans,
            mode=mode,
        )

    @classmethod
    def validated(
        cls,
        ticket_id: str | None,
        scan_count: int,
        max_scans: int,
        mode: OperatingMode = OperatingMode.OFFLINE,
        message: str | None = None,
        customer: dict[str, Any] | None = None,
    ) -> ScanOutcome:
        kind = (
            OutcomeKind.ACCEPTED_FINAL
            if scan_count >= max_scans
            else OutcomeKind.ACCEPTED
        )
        return cls(
            kind=kind,
            message=message or f"Validated (Scan {scan_count}/{max_scans})",
            ticket_id=ticket_id,
            scan_count=scan_count,
            max_scans=max_scans,
            customer=customer,
            mode=mode,
        )


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ValidationEngine:
    """Validates scans against the local catalog.

    The engine is the only place scan arithmetic happens; the store just
    persists the values it is given.
    """

    def __init__(self, store: LocalStore) -> None:
        self._store = store
        # Serializes read-decide-write so two scans can't both take the last slot
        self._lock = threading.Lock()

    def validate(self, qr_payload: str, now: datetime | None = None) -> ScanOutcome:
        """Validate a scanned payload offline.

        Args:
            qr_payload: Decoded QR string.
            now: Scan time (defaults to current UTC time).

        Returns:
            ScanOutcome describing the business result.

        Raises:
            EngineError: If the store failed; nothing is validated.
        """
        timestamp = (now or utc_now()).isoformat()

        with self._lock:
            try:
                for _ in range(MAX_RECORD_ATTEMPTS):
                    ticket = self._store.find_ticket_by_payload(qr_payload)
                    if ticket is None:
                        logger.info("Offline scan rejected: unknown payload")
                        return ScanOutcome.not_found()

                    outcome = self._try_record(ticket, timestamp)
                    if outcome is not None:
                        return outcome
                    logger.debug("Ticket %s changed during scan, retrying", ticket.ticket_id)
            except StorageError as e:
                logger.error("Offline validation failed: %s", e)
                raise EngineError(e) from e

        raise EngineError(
            RuntimeError(f"Ticket state kept changing after {MAX_RECORD_ATTEMPTS} attempts")
        )

    def _try_record(self, ticket: Ticket, timestamp: str) -> ScanOutcome | None:
        """Apply the decision rules to one ticket snapshot.

        Returns:
            The outcome, or None if the row changed before it could be written.
        """
        if ticket.scan_count >= ticket.max_scans:
            logger.info(
                "Offline scan rejected: ticket %s already used (%d/%d)",
                ticket.ticket_id,
                ticket.scan_count,
                ticket.max_scans,
            )
            return ScanOutcome.already_used(
                ticket.ticket_id, ticket.scan_count, ticket.max_scans
            )

        new_count = ticket.scan_count + 1
        entry = ValidationLogEntry(
            ticket_id=ticket.ticket_id,
            campaign_id=OFFLINE_CAMPAIGN_ID,
            timestamp=timestamp,
        )
        stored = self._store.record_validation(
            ticket.ticket_id,
            expected_count=ticket.scan_count,
            new_count=new_count,
            entry=entry,
        )
        if stored is None:
            return None

        logger.info(
            "Offline scan accepted: ticket %s (%d/%d)",
            ticket.ticket_id,
            new_count,
            ticket.max_scans,
        )
        return ScanOutcome.validated(ticket.ticket_id, new_count, ticket.max_scans)
