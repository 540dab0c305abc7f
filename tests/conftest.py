"""Shared fixtures for ticketscan tests."""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest

from ticketscan.client.store import Campaign, LocalStore, Ticket


def _ticket(
    ticket_id: str = "T-1",
    qr_payload: str | None = None,
    max_scans: int = 3,
    scan_count: int = 0,
    status: str = "active",
) -> Ticket:
    """Create a Ticket for testing."""
    return Ticket(
        ticket_id=ticket_id,
        qr_payload=qr_payload or f"QR-{ticket_id}",
        max_scans=max_scans,
        scan_count=scan_count,
        status=status,
    )


@pytest.fixture
def store(tmp_path: Path) -> Iterator[LocalStore]:
    """Create an initialized LocalStore."""
    s = LocalStore(tmp_path / "validation.db")
    s.initialize()
    yield s
    s.close()


@pytest.fixture
def loaded_store(store: LocalStore) -> LocalStore:
    """Store holding one campaign and three tickets."""
    store.replace_catalog(
        [Campaign(id="C-1", name="Summer Festival")],
        [
            _ticket("T-1", max_scans=3),
            _ticket("T-2", max_scans=1),
            _ticket("T-3", max_scans=2, scan_count=2),
        ],
    )
    return store
