"""Local offline store for the validation client.

This module provides:
- LocalStore: SQLite-based persistence for the cached catalog and the ledger
- Campaign, Ticket, ValidationLogEntry: rows of the three tables
- StorageError: raised for every store failure

Architecture:
    The catalog (campaigns and tickets) is a snapshot of the remote
    authority and is replaced wholesale on each download. The ledger
    (validation_logs) is append-only: rows are only ever inserted, have
    their synced flag flipped in bulk, or are deleted by clear_all().

    A single connection is shared behind an RLock. Every write runs in
    its own BEGIN IMMEDIATE transaction, so readers never observe a
    half-replaced catalog.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


class StorageErrorKind(Enum):
    """Why a store operation failed."""

    NOT_INITIALIZED = "not_initialized"
    IO_FAILURE = "io_failure"


class StorageError(Exception):
    """Local store failure."""

    def __init__(self, kind: StorageErrorKind, message: str | None = None) -> None:
        super().__init__(message or kind.value)
        self.kind = kind


@dataclass(frozen=True)
class Campaign:
    """A downloaded campaign."""

    id: str
    name: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Campaign:
        """Create from API response dictionary."""
        return cls(id=str(data["id"]), name=data["name"])

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> Campaign:
        """Create Campaign from database row."""
        return cls(id=row["id"], name=row["name"])


@dataclass(frozen=True)
class Ticket:
    """Cached copy of a server ticket.

    Attributes:
        ticket_id: Server ticket identifier.
        qr_payload: Exact string encoded in the ticket's QR code.
        max_scans: Number of permitted redemptions (>= 1).
        scan_count: Redemptions recorded so far (0..max_scans).
        status: Server-side status label, stored verbatim.
    """

    ticket_id: str
    qr_payload: str
    max_scans: int
    scan_count: int
    status: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Ticket:
        """Create from API response dictionary.

        Older servers send the payload as ``qrData``. A scan count above
        ``maxScans`` (the limit was lowered after scans) is capped so the
        ticket downloads as used up.
        """
        payload = data.get("qrPayload", data.get("qrData"))
        if payload is None:
            raise KeyError("qrPayload")
        max_scans = int(data["maxScans"])
        return cls(
            ticket_id=str(data["ticketId"]),
            qr_payload=payload,
            max_scans=max_scans,
            scan_count=min(int(data.get("scanCount", 0)), max_scans),
            status=data.get("status", "active"),
        )

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> Ticket:
        """Create Ticket from database row."""
        return cls(
            ticket_id=row["ticket_id"],
            qr_payload=row["qr_payload"],
            max_scans=row["max_scans"],
            scan_count=row["scan_count"],
            status=row["status"],
        )


@dataclass(frozen=True)
class ValidationLogEntry:
    """One offline validation recorded in the ledger.

    ``id`` is the local row id, assigned on insert (None before).
    """

    ticket_id: str
    campaign_id: str
    timestamp: str
    synced: bool = False
    id: int | None = None

    def to_dict(self) -> dict[str, str]:
        """Serialize for the sync upload."""
        return {
            "ticketId": self.ticket_id,
            "campaignId": self.campaign_id,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> ValidationLogEntry:
        """Create ValidationLogEntry from database row."""
        return cls(
            id=row["id"],
            ticket_id=row["ticket_id"],
            campaign_id=row["campaign_id"],
            timestamp=row["timestamp"],
            synced=bool(row["synced"]),
        )


@dataclass(frozen=True)
class OfflineStats:
    """Counts shown on the settings and dashboard screens."""

    total_tickets: int
    total_scans: int
    unsynced_scans: int


class LocalStore:
    """SQLite-backed store for the offline catalog and validation ledger.

    Usage:
        store = LocalStore(db_path)
        store.initialize()  # safe on every start
        ticket = store.find_ticket_by_payload(payload)
    """

    def __init__(self, db_path: Path) -> None:
        """Prepare the store; nothing touches disk until initialize().

        Args:
            db_path: Path to SQLite database file.
        """
        self._db_path = Path(db_path)
        self._lock = threading.RLock()
        self._conn: sqlite3.Connection | None = None

    @property
    def db_path(self) -> Path:
        return self._db_path

    @property
    def is_initialized(self) -> bool:
        return self._conn is not None

    def initialize(self) -> None:
        """Open the database and create the schema if absent.

        Idempotent and never destructive: existing rows survive.
        """
        with self._lock:
            if self._conn is not None:
                return
            try:
                self._db_path.parent.mkdir(parents=True, exist_ok=True)
                conn = sqlite3.connect(
                    str(self._db_path),
                    check_same_thread=False,
                    isolation_level=None,  # Transactions are explicit
                )
                conn.row_factory = sqlite3.Row
                conn.execute("PRAGMA journal_mode=WAL")
                self._create_tables(conn)
            except (sqlite3.Error, OSError) as e:
                raise StorageError(
                    StorageErrorKind.IO_FAILURE, f"Cannot open {self._db_path}: {e}"
                ) from e
            self._conn = conn
        logger.info("Local store ready at %s", self._db_path)

    def _create_tables(self, conn: sqlite3.Connection) -> None:
        """Create database tables if they don't exist."""
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS campaigns (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS tickets (
                ticket_id TEXT PRIMARY KEY,
                qr_payload TEXT NOT NULL UNIQUE,
                max_scans INTEGER NOT NULL CHECK (max_scans >= 1),
                scan_count INTEGER NOT NULL
                    CHECK (scan_count >= 0 AND scan_count <= max_scans),
                status TEXT NOT NULL
            );

            -- Append-only ledger of offline validations
            CREATE TABLE IF NOT EXISTS validation_logs (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                ticket_id TEXT NOT NULL,
                campaign_id TEXT NOT NULL,
                timestamp TEXT NOT NULL,
                synced INTEGER NOT NULL DEFAULT 0
            );

            CREATE INDEX IF NOT EXISTS idx_validation_logs_synced
                ON validation_logs (synced);

            -- Key-value client state (last download/sync times)
            CREATE TABLE IF NOT EXISTS meta (
                key TEXT PRIMARY KEY,
                value TEXT
            );
        """)

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    def __enter__(self) -> LocalStore:
        self.initialize()
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    # === Plumbing ===

    def _require_conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise StorageError(
                StorageErrorKind.NOT_INITIALIZED, "Local store not initialized"
            )
        return self._conn

    @contextmanager
    def _read(self) -> Iterator[sqlite3.Connection]:
        """Serialized access for single-statement reads."""
        with self._lock:
            conn = self._require_conn()
            try:
                yield conn
            except sqlite3.Error as e:
                raise StorageError(StorageErrorKind.IO_FAILURE, str(e)) from e

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        """Run the body as one write transaction, rolled back on any error."""
        with self._lock:
            conn = self._require_conn()
            try:
                conn.execute("BEGIN IMMEDIATE")
            except sqlite3.Error as e:
                raise StorageError(StorageErrorKind.IO_FAILURE, str(e)) from e
            try:
                yield conn
                conn.execute("COMMIT")
            except BaseException as e:
                if conn.in_transaction:
                    conn.execute("ROLLBACK")
                if isinstance(e, sqlite3.Error):
                    raise StorageError(StorageErrorKind.IO_FAILURE, str(e)) from e
                raise

    # === Catalog ===

    def replace_catalog(
        self,
        campaigns: Iterable[Campaign],
        tickets: Iterable[Ticket],
    ) -> tuple[int, int]:
        """Atomically replace all campaigns and tickets.

        Args:
            campaigns: New campaign snapshot.
            tickets: New ticket snapshot.

        Returns:
            (campaign_count, ticket_count) written.
        """
        campaign_rows = [(c.id, c.name) for c in campaigns]
        ticket_rows = [
            (t.ticket_id, t.qr_payload, t.max_scans, t.scan_count, t.status)
            for t in tickets
        ]
        with self._transaction() as conn:
            conn.execute("DELETE FROM campaigns")
            conn.execute("DELETE FROM tickets")
            conn.executemany(
                "INSERT INTO campaigns (id, name) VALUES (?, ?)", campaign_rows
            )
            conn.executemany(
                """
                INSERT INTO tickets (ticket_id, qr_payload, max_scans, scan_count, status)
                VALUES (?, ?, ?, ?, ?)
                """,
                ticket_rows,
            )
        logger.info(
            "Saved %d campaigns and %d tickets", len(campaign_rows), len(ticket_rows)
        )
        return len(campaign_rows), len(ticket_rows)

    def list_campaigns(self) -> list[Campaign]:
        """List all downloaded campaigns."""
        with self._read() as conn:
            rows = conn.execute("SELECT * FROM campaigns ORDER BY id").fetchall()
        return [Campaign.from_row(row) for row in rows]

    def list_tickets(self) -> list[Ticket]:
        """List all cached tickets."""
        with self._read() as conn:
            rows = conn.execute("SELECT * FROM tickets ORDER BY ticket_id").fetchall()
        return [Ticket.from_row(row) for row in rows]

    def find_ticket_by_payload(self, qr_payload: str) -> Ticket | None:
        """Get a cached ticket by its exact QR payload.

        Returns:
            Ticket if found, None otherwise.
        """
        with self._read() as conn:
            row = conn.execute(
                "SELECT * FROM tickets WHERE qr_payload = ?",
                (qr_payload,),
            ).fetchone()
        if row is None:
            return None
        return Ticket.from_row(row)

    def increment_scan_count(self, ticket_id: str, new_count: int) -> None:
        """Set a ticket's scan count to the value computed by the caller."""
        with self._transaction() as conn:
            conn.execute(
                "UPDATE tickets SET scan_count = ? WHERE ticket_id = ?",
                (new_count, ticket_id),
            )

    # === Ledger ===

    def append_log(self, entry: ValidationLogEntry) -> ValidationLogEntry:
        """Append an unsynced validation to the ledger.

        Returns:
            The stored entry, with its row id.
        """
        with self._transaction() as conn:
            return self._insert_log(conn, entry)

    def _insert_log(
        self, conn: sqlite3.Connection, entry: ValidationLogEntry
    ) -> ValidationLogEntry:
        cursor = conn.execute(
            """
            INSERT INTO validation_logs (ticket_id, campaign_id, timestamp, synced)
            VALUES (?, ?, ?, 0)
            """,
            (entry.ticket_id, entry.campaign_id, entry.timestamp),
        )
        logger.debug("Added validation log for ticket %s", entry.ticket_id)
        return ValidationLogEntry(
            id=cursor.lastrowid,
            ticket_id=entry.ticket_id,
            campaign_id=entry.campaign_id,
            timestamp=entry.timestamp,
            synced=False,
        )

    def record_validation(
        self,
        ticket_id: str,
        expected_count: int,
        new_count: int,
        entry: ValidationLogEntry,
    ) -> ValidationLogEntry | None:
        """Persist a scan: count update and ledger append in one transaction.

        The update only applies if the ticket still has ``expected_count``;
        otherwise nothing is written.

        Returns:
            The stored log entry, or None if the ticket changed underneath.
        """
        with self._transaction() as conn:
            cursor = conn.execute(
                """
                UPDATE tickets SET scan_count = ?
                WHERE ticket_id = ? AND scan_count = ?
                """,
                (new_count, ticket_id, expected_count),
            )
            if cursor.rowcount != 1:
                return None
            return self._insert_log(conn, entry)

    def unsynced_logs(self) -> list[ValidationLogEntry]:
        """List ledger rows not yet uploaded, in insertion order."""
        with self._read() as conn:
            rows = conn.execute(
                "SELECT * FROM validation_logs WHERE synced = 0 ORDER BY id"
            ).fetchall()
        return [ValidationLogEntry.from_row(row) for row in rows]

    def mark_all_synced(self, up_to_id: int | None = None) -> int:
        """Flip unsynced ledger rows to synced.

        Args:
            up_to_id: If given, only rows with ``id <= up_to_id`` are flipped,
                so rows appended after the upload was read stay pending.

        Returns:
            Number of rows flipped.
        """
        with self._transaction() as conn:
            if up_to_id is None:
                cursor = conn.execute(
                    "UPDATE validation_logs SET synced = 1 WHERE synced = 0"
                )
            else:
                cursor = conn.execute(
                    "UPDATE validation_logs SET synced = 1 WHERE synced = 0 AND id <= ?",
                    (up_to_id,),
                )
            count = cursor.rowcount
        logger.info("Marked %d logs as synced", count)
        return count

    # === Maintenance ===

    def stats(self) -> OfflineStats:
        """Count cached tickets, recorded scans and pending scans."""
        with self._read() as conn:
            row = conn.execute(
                """
                SELECT
                    (SELECT COUNT(*) FROM tickets) AS total_tickets,
                    (SELECT COUNT(*) FROM validation_logs) AS total_scans,
                    (SELECT COUNT(*) FROM validation_logs WHERE synced = 0)
                        AS unsynced_scans
                """
            ).fetchone()
        return OfflineStats(
            total_tickets=row["total_tickets"],
            total_scans=row["total_scans"],
            unsynced_scans=row["unsynced_scans"],
        )

    def clear_all(self) -> None:
        """Delete the catalog, the ledger and client state, atomically."""
        with self._transaction() as conn:
            conn.execute("DELETE FROM campaigns")
            conn.execute("DELETE FROM tickets")
            conn.execute("DELETE FROM validation_logs")
            conn.execute("DELETE FROM meta")
        logger.info("Cleared all offline data")

    # === Client state ===

    def get_meta(self, key: str) -> str | None:
        """Get a client state value."""
        with self._read() as conn:
            row = conn.execute(
                "SELECT value FROM meta WHERE key = ?", (key,)
            ).fetchone()
        return row["value"] if row else None

    def set_meta(self, key: str, value: str) -> None:
        """Set a client state value."""
        with self._transaction() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO meta (key, value) VALUES (?, ?)",
                (key, value),
            )

    def get_last_download_at(self) -> str | None:
        """Get ISO timestamp of the last catalog download."""
        return self.get_meta("last_download_at")

    def set_last_download_at(self, timestamp: str) -> None:
        self.set_meta("last_download_at", timestamp)

    def get_last_sync_at(self) -> str | None:
        """Get ISO timestamp of the last successful ledger upload."""
        return self.get_meta("last_sync_at")

    def set_last_sync_at(self, timestamp: str) -> None:
        self.set_meta("last_sync_at", timestamp)
