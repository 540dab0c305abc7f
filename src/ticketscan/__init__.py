"""ticketscan - Offline-capable ticket validation client."""

__version__ = "0.1.0"
