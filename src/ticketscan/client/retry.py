"""Retry logic with exponential backoff.

Only idempotent calls (catalog download, health checks) go through here.
A ledger upload is never retried automatically: the server may already
have applied part of the batch.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import TypeVar

from ticketscan.client.api import UnreachableError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Default retry configuration
DEFAULT_MAX_RETRIES = 3
DEFAULT_INITIAL_BACKOFF = 1.0  # seconds
DEFAULT_MAX_BACKOFF = 30.0  # seconds
DEFAULT_BACKOFF_MULTIPLIER = 2.0

# Errors worth another attempt; ServerError means the server answered
NETWORK_EXCEPTIONS: tuple[type[Exception], ...] = (UnreachableError,)


def retry_with_backoff(
    func: Callable[[], T],
    max_retries: int = DEFAULT_MAX_RETRIES,
    initial_backoff: float = DEFAULT_INITIAL_BACKOFF,
    max_backoff: float = DEFAULT_MAX_BACKOFF,
    backoff_multiplier: float = DEFAULT_BACKOFF_MULTIPLIER,
    retryable_exceptions: tuple[type[Exception], ...] = NETWORK_EXCEPTIONS,
    sleep: Callable[[float], None] | None = None,
) -> T:
    """Execute a function with exponential backoff retry.

    Args:
        func: Function to execute.
        max_retries: Maximum number of retry attempts.
        initial_backoff: Initial backoff time in seconds.
        max_backoff: Maximum backoff time in seconds.
        backoff_multiplier: Multiplier for each retry.
        retryable_exceptions: Tuple of exception types to retry on.
        sleep: Sleep function (defaults to time.sleep).

    Returns:
        Result of the function.

    Raises:
        The last exception if all retries fail.
    """
    backoff = initial_backoff
    attempt = 0

    while True:
        try:
            return func()
        except retryable_exceptions as e:
            if attempt >= max_retries:
                logger.error(f"All {max_retries} retries failed: {e}")
                raise

            attempt += 1
            logger.warning(
                f"Attempt {attempt}/{max_retries + 1} failed: {e}. "
                f"Retrying in {backoff:.1f}s..."
            )
            (sleep or time.sleep)(backoff)
            backoff = min(backoff * backoff_multiplier, max_backoff)
