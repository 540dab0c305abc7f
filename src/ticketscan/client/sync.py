"""Reconciliation between the local store and the remote authority.

This module provides:
- SyncCoordinator: catalog download and ledger upload
- DownloadSummary, SyncSummary: results reported to the operator

Download is a snapshot replace, never a merge: scan progress recorded
against the previous catalog survives only in the ledger.

Upload marks rows synced only after a successful response. A response
reporting conflicts is still a success: the server already applied its
own rules and the ledger remains a faithful record of what this device
did. A transport failure leaves every row pending for the next attempt.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from ticketscan.client.retry import DEFAULT_MAX_RETRIES, retry_with_backoff

if TYPE_CHECKING:
    from ticketscan.client.api import HTTPClient
    from ticketscan.client.store import LocalStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DownloadSummary:
    """Size of the downloaded catalog."""

    campaign_count: int
    ticket_count: int


@dataclass(frozen=True)
class SyncSummary:
    """Server verdict for an uploaded ledger batch."""

    synced: int
    conflicts: int

    @property
    def has_conflicts(self) -> bool:
        return self.conflicts > 0


class SyncCoordinator:
    """Downloads the catalog and drains the ledger to the server.

    Download and upload are serialized against each other. Neither holds
    the store lock across a network call, so offline scanning continues
    while an upload is in flight.
    """

    def __init__(
        self,
        client: HTTPClient,
        store: LocalStore,
        download_retries: int = DEFAULT_MAX_RETRIES,
    ) -> None:
        """Initialize the coordinator.

        Args:
            client: HTTP client for the remote authority.
            store: Local offline store.
            download_retries: Retries for the catalog download on transport errors.
        """
        self._client = client
        self._store = store
        self._download_retries = download_retries
        self._lock = threading.Lock()

    def download(self) -> DownloadSummary:
        """Replace the local catalog with the server's current snapshot.

        Raises:
            NetworkError: If the catalog could not be fetched; the store is untouched.
            StorageError: If the catalog could not be written; the old one is kept.
        """
        with self._lock:
            catalog = retry_with_backoff(
                self._client.download_catalog,
                max_retries=self._download_retries,
            )
            campaign_count, ticket_count = self._store.replace_catalog(
                catalog.campaigns, catalog.tickets
            )
            self._store.set_last_download_at(_now_iso())

        logger.info(
            f"Downloaded {campaign_count} campaigns and {ticket_count} tickets"
        )
        return DownloadSummary(campaign_count=campaign_count, ticket_count=ticket_count)

    def sync(self) -> SyncSummary:
        """Upload pending offline validations.

        Returns:
            SyncSummary; (0, 0) without any network call if nothing is pending.

        Raises:
            NetworkError: If the upload failed; every row stays pending.
            StorageError: If the ledger could not be read or updated.
        """
        with self._lock:
            pending = self._store.unsynced_logs()
            if not pending:
                logger.info("No offline validations to sync")
                return SyncSummary(synced=0, conflicts=0)

            logger.info(f"Uploading {len(pending)} offline validations")
            try:
                response = self._client.upload_validations(pending)
            except Exception as e:
                logger.warning(f"Sync failed, {len(pending)} validations kept for retry: {e}")
                raise

            # Rows appended while the upload was in flight stay pending
            last_id = max(entry.id for entry in pending if entry.id is not None)
            self._store.mark_all_synced(up_to_id=last_id)
            self._store.set_last_sync_at(_now_iso())

        if response.conflicts:
            logger.warning(
                f"Server reported {response.conflicts} conflicts "
                f"out of {len(pending)} validations"
            )
        logger.info(f"Synced {response.synced} validations")
        return SyncSummary(synced=response.synced, conflicts=response.conflicts)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()
