"""Tests for retry with exponential backoff."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from ticketscan.client.api import ServerError, UnreachableError
from ticketscan.client.retry import retry_with_backoff


class TestRetryWithBackoff:
    """Tests for retry_with_backoff."""

    def test_returns_first_success(self) -> None:
        func = MagicMock(return_value="ok")
        sleep = MagicMock()

        assert retry_with_backoff(func, sleep=sleep) == "ok"
        sleep.assert_not_called()

    def test_backoff_grows_and_caps(self) -> None:
        """Delays should double up to max_backoff."""
        func = MagicMock(side_effect=[UnreachableError("x")] * 4 + ["ok"])
        sleep = MagicMock()

        result = retry_with_backoff(
            func, max_retries=4, initial_backoff=1.0, max_backoff=3.0, sleep=sleep
        )

        assert result == "ok"
        assert [c.args[0] for c in sleep.call_args_list] == [1.0, 2.0, 3.0, 3.0]

    def test_raises_after_max_retries(self) -> None:
        func = MagicMock(side_effect=UnreachableError("down"))

        with pytest.raises(UnreachableError):
            retry_with_backoff(func, max_retries=2, sleep=MagicMock())

        assert func.call_count == 3

    def test_server_errors_not_retried(self) -> None:
        """An answer from the server is not a connectivity problem."""
        func = MagicMock(side_effect=ServerError("bad request", 400))

        with pytest.raises(ServerError):
            retry_with_backoff(func, sleep=MagicMock())

        func.assert_called_once()
