"""Tests for catalog download and ledger upload."""

from __future__ import annotations

import threading
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import pytest

from ticketscan.client.api import (
    Catalog,
    HTTPClient,
    ServerError,
    SyncResponse,
    UnreachableError,
)
from ticketscan.client.engine import OutcomeKind, ValidationEngine
from ticketscan.client.store import Campaign, LocalStore, OfflineStats, Ticket
from ticketscan.client.sync import DownloadSummary, SyncCoordinator, SyncSummary

NOW = datetime(2025, 6, 1, 10, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def mock_client() -> MagicMock:
    """Create a mock HTTPClient."""
    return MagicMock(spec=HTTPClient)


def make_catalog() -> Catalog:
    return Catalog(
        campaigns=[Campaign(id="C-1", name="Summer Festival")],
        tickets=[
            Ticket("T-1", "QR-T-1", 3, 1, "active"),
            Ticket("T-2", "QR-T-2", 1, 0, "active"),
        ],
    )


class TestDownload:
    """Tests for SyncCoordinator.download."""

    def test_download_replaces_catalog(
        self, store: LocalStore, mock_client: MagicMock
    ) -> None:
        """Should write the snapshot and report its size."""
        mock_client.download_catalog.return_value = make_catalog()

        summary = SyncCoordinator(mock_client, store).download()

        assert summary == DownloadSummary(campaign_count=1, ticket_count=2)
        ticket = store.find_ticket_by_payload("QR-T-1")
        assert ticket is not None
        assert ticket.scan_count == 1
        assert store.get_last_download_at() is not None

    def test_download_is_idempotent(
        self, store: LocalStore, mock_client: MagicMock
    ) -> None:
        """Downloading the same data twice should not duplicate rows."""
        mock_client.download_catalog.return_value = make_catalog()
        coordinator = SyncCoordinator(mock_client, store)

        coordinator.download()
        first = (store.list_campaigns(), store.list_tickets())
        coordinator.download()

        assert (store.list_campaigns(), store.list_tickets()) == first
        assert store.stats().total_tickets == 2

    def test_download_overwrites_local_progress(
        self, loaded_store: LocalStore, mock_client: MagicMock
    ) -> None:
        """Local scan progress should survive only in the ledger."""
        ValidationEngine(loaded_store).validate("QR-T-1", now=NOW)
        mock_client.download_catalog.return_value = Catalog(
            tickets=[Ticket("T-1", "QR-T-1", 3, 0, "active")]
        )

        SyncCoordinator(mock_client, loaded_store).download()

        ticket = loaded_store.find_ticket_by_payload("QR-T-1")
        assert ticket is not None
        assert ticket.scan_count == 0
        assert loaded_store.stats().unsynced_scans == 1

    def test_download_failure_keeps_catalog(
        self, loaded_store: LocalStore, mock_client: MagicMock
    ) -> None:
        """A failed download should leave the store untouched."""
        mock_client.download_catalog.side_effect = ServerError("boom", 500)

        with pytest.raises(ServerError):
            SyncCoordinator(mock_client, loaded_store).download()

        assert loaded_store.stats().total_tickets == 3
        mock_client.download_catalog.assert_called_once()

    @patch("ticketscan.client.retry.time.sleep")
    def test_download_retries_transport_errors(
        self, mock_sleep: MagicMock, store: LocalStore, mock_client: MagicMock
    ) -> None:
        """Transport failures on the idempotent download should be retried."""
        mock_client.download_catalog.side_effect = [
            UnreachableError("down"),
            UnreachableError("down"),
            make_catalog(),
        ]

        summary = SyncCoordinator(mock_client, store, download_retries=3).download()

        assert summary.ticket_count == 2
        assert mock_client.download_catalog.call_count == 3
        assert mock_sleep.call_count == 2

    @patch("ticketscan.client.retry.time.sleep")
    def test_download_gives_up(
        self, mock_sleep: MagicMock, store: LocalStore, mock_client: MagicMock
    ) -> None:
        mock_client.download_catalog.side_effect = UnreachableError("down")

        with pytest.raises(UnreachableError):
            SyncCoordinator(mock_client, store, download_retries=2).download()

        assert mock_client.download_catalog.call_count == 3


class TestUpload:
    """Tests for SyncCoordinator.sync."""

    def test_empty_ledger_makes_no_call(
        self, store: LocalStore, mock_client: MagicMock
    ) -> None:
        """Nothing pending should report (0, 0) without a network call."""
        summary = SyncCoordinator(mock_client, store).sync()

        assert summary == SyncSummary(synced=0, conflicts=0)
        mock_client.upload_validations.assert_not_called()

    def test_sync_marks_logs_synced(
        self, loaded_store: LocalStore, mock_client: MagicMock
    ) -> None:
        """Successful upload should clear the pending count."""
        engine = ValidationEngine(loaded_store)
        engine.validate("QR-T-1", now=NOW)
        engine.validate("QR-T-2", now=NOW)
        mock_client.upload_validations.return_value = SyncResponse(synced=2, conflicts=0)

        summary = SyncCoordinator(mock_client, loaded_store).sync()

        assert summary == SyncSummary(synced=2, conflicts=0)
        uploaded = mock_client.upload_validations.call_args.args[0]
        assert [e.ticket_id for e in uploaded] == ["T-1", "T-2"]
        assert loaded_store.stats() == OfflineStats(3, 2, 0)
        assert loaded_store.get_last_sync_at() is not None

    def test_conflicts_still_mark_synced(
        self, loaded_store: LocalStore, mock_client: MagicMock
    ) -> None:
        """Server-reported conflicts are a business outcome, not a failure."""
        ValidationEngine(loaded_store).validate("QR-T-1", now=NOW)
        mock_client.upload_validations.return_value = SyncResponse(synced=0, conflicts=1)

        summary = SyncCoordinator(mock_client, loaded_store).sync()

        assert summary.has_conflicts
        assert loaded_store.stats().unsynced_scans == 0

    @pytest.mark.parametrize(
        "error",
        [UnreachableError("connection reset"), ServerError("Internal error", 500)],
    )
    def test_failed_upload_keeps_logs(
        self, loaded_store: LocalStore, mock_client: MagicMock, error: Exception
    ) -> None:
        """Upload failure should leave every row pending and not retry."""
        ValidationEngine(loaded_store).validate("QR-T-1", now=NOW)
        mock_client.upload_validations.side_effect = error

        with pytest.raises(type(error)):
            SyncCoordinator(mock_client, loaded_store).sync()

        assert loaded_store.stats().unsynced_scans == 1
        assert loaded_store.get_last_sync_at() is None
        mock_client.upload_validations.assert_called_once()

    def test_retry_after_failure_uploads_same_rows(
        self, loaded_store: LocalStore, mock_client: MagicMock
    ) -> None:
        ValidationEngine(loaded_store).validate("QR-T-1", now=NOW)
        mock_client.upload_validations.side_effect = [
            UnreachableError("down"),
            SyncResponse(synced=1, conflicts=0),
        ]
        coordinator = SyncCoordinator(mock_client, loaded_store)

        with pytest.raises(UnreachableError):
            coordinator.sync()
        summary = coordinator.sync()

        assert summary.synced == 1
        first, second = mock_client.upload_validations.call_args_list
        assert first.args[0] == second.args[0]

    def test_scan_during_upload_stays_pending(
        self, loaded_store: LocalStore, mock_client: MagicMock
    ) -> None:
        """A scan recorded while the upload is in flight must not be marked synced."""
        engine = ValidationEngine(loaded_store)
        engine.validate("QR-T-1", now=NOW)

        def upload(entries):  # type: ignore[no-untyped-def]
            engine.validate("QR-T-2", now=NOW)
            return SyncResponse(synced=len(entries), conflicts=0)

        mock_client.upload_validations.side_effect = upload

        SyncCoordinator(mock_client, loaded_store).sync()

        pending = loaded_store.unsynced_logs()
        assert [e.ticket_id for e in pending] == ["T-2"]

    def test_stuck_upload_does_not_block_scanning(
        self, loaded_store: LocalStore, mock_client: MagicMock
    ) -> None:
        """Offline scans should proceed while an upload is blocked."""
        engine = ValidationEngine(loaded_store)
        engine.validate("QR-T-1", now=NOW)

        upload_started = threading.Event()
        release = threading.Event()

        def upload(entries):  # type: ignore[no-untyped-def]
            upload_started.set()
            release.wait(timeout=5)
            return SyncResponse(synced=len(entries), conflicts=0)

        mock_client.upload_validations.side_effect = upload
        coordinator = SyncCoordinator(mock_client, loaded_store)
        thread = threading.Thread(target=coordinator.sync)
        thread.start()
        try:
            assert upload_started.wait(timeout=5)
            outcome = engine.validate("QR-T-2", now=NOW)
            assert outcome.kind is OutcomeKind.ACCEPTED_FINAL
        finally:
            release.set()
            thread.join(timeout=5)

        assert loaded_store.stats().unsynced_scans == 1
