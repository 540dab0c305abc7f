"""Validation client: local store, offline engine, sync and scan routing.

Architecture:
    ScanService → (HTTPClient | ValidationEngine → LocalStore)
    SyncCoordinator → HTTPClient + LocalStore

All public symbols are re-exported here.
"""

from ticketscan.client.api import (
    AuthenticationError,
    HTTPClient,
    NetworkError,
    ServerError,
    UnreachableError,
)
from ticketscan.client.engine import (
    EngineError,
    OutcomeKind,
    RejectReason,
    ScanOutcome,
    ValidationEngine,
)
from ticketscan.client.mode import ModeContext, ModeController
from ticketscan.client.scanner import ScanDebouncer, ScanService
from ticketscan.client.store import (
    Campaign,
    LocalStore,
    OfflineStats,
    StorageError,
    StorageErrorKind,
    Ticket,
    ValidationLogEntry,
)
from ticketscan.client.sync import DownloadSummary, SyncCoordinator, SyncSummary

__all__ = [
    # API
    "AuthenticationError",
    "HTTPClient",
    "NetworkError",
    "ServerError",
    "UnreachableError",
    # Engine
    "EngineError",
    "OutcomeKind",
    "RejectReason",
    "ScanOutcome",
    "ValidationEngine",
    # Mode
    "ModeContext",
    "ModeController",
    # Scanner
    "ScanDebouncer",
    "ScanService",
    # Store
    "Campaign",
    "LocalStore",
    "OfflineStats",
    "StorageError",
    "StorageErrorKind",
    "Ticket",
    "ValidationLogEntry",
    # Sync
    "DownloadSummary",
    "SyncCoordinator",
    "SyncSummary",
]
