"""Tests for core configuration classes."""

from __future__ import annotations

from ticketscan.core.config import ServerConfig


class TestServerConfig:
    """Tests for ServerConfig class."""

    def test_init_basic(self) -> None:
        """Should initialize with required fields."""
        config = ServerConfig(server_url="https://example.com", token="test-token")
        assert config.server_url == "https://example.com"
        assert config.token == "test-token"
        assert config.timeout == 30.0
        assert config.verify_ssl is True

    def test_token_defaults_empty(self) -> None:
        """A config built before login has no token."""
        config = ServerConfig(server_url="https://example.com")
        assert config.token == ""

    def test_init_custom_timeout(self) -> None:
        """Should accept custom timeout."""
        config = ServerConfig(
            server_url="https://example.com",
            token="test-token",
            timeout=60.0,
        )
        assert config.timeout == 60.0

    def test_url_trailing_slash_removed(self) -> None:
        """Should strip trailing slash from server URL."""
        config = ServerConfig(server_url="https://example.com/api/v1/", token="test-token")
        assert config.server_url == "https://example.com/api/v1"

    def test_is_secure_https(self) -> None:
        """Should return True for HTTPS URLs."""
        config = ServerConfig(server_url="https://example.com", token="test-token")
        assert config.is_secure is True

    def test_is_secure_http(self) -> None:
        """Should return False for HTTP URLs."""
        config = ServerConfig(server_url="http://localhost:8000", token="test-token")
        assert config.is_secure is False

    def test_headers_with_token(self) -> None:
        """Should send the token as a bearer credential."""
        config = ServerConfig(server_url="http://localhost:8000", token="abc")
        assert config.headers["Authorization"] == "Bearer abc"

    def test_headers_without_token(self) -> None:
        """Should omit Authorization before login."""
        config = ServerConfig(server_url="http://localhost:8000")
        assert "Authorization" not in config.headers
