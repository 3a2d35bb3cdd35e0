"""Tests for configuration loading."""

from pathlib import Path

import pytest

from peering_operator.config import (
    DEFAULT_API_BASE_URL,
    DEFAULT_RETRY_INTERVAL_SECONDS,
    Config,
    ConfigurationError,
)


class TestConfig:
    """Tests for Config class."""

    def test_valid_config(self, specs_dir: Path) -> None:
        """Test creating a valid configuration."""
        config = Config(specs_dir=specs_dir)

        assert config.api_base_url == DEFAULT_API_BASE_URL
        assert config.deletion_protection is True
        assert config.retry_interval_seconds == DEFAULT_RETRY_INTERVAL_SECONDS

    def test_missing_specs_dir(self, tmp_path: Path) -> None:
        """Test that a missing specs directory raises error."""
        with pytest.raises(ConfigurationError) as exc_info:
            Config(specs_dir=tmp_path / "missing")

        assert "Specs directory does not exist" in str(exc_info.value)

    def test_invalid_base_url(self, specs_dir: Path) -> None:
        """Test that a base URL with a path is rejected."""
        with pytest.raises(ConfigurationError) as exc_info:
            Config(api_base_url="https://api.example.test/api/v2", specs_dir=specs_dir)

        assert "API_BASE_URL" in str(exc_info.value)

    def test_invalid_retry_interval(self, specs_dir: Path) -> None:
        """Test that out-of-range retry interval raises error."""
        with pytest.raises(ConfigurationError) as exc_info:
            Config(retry_interval_seconds=0, specs_dir=specs_dir)

        assert "RETRY_INTERVAL" in str(exc_info.value)

    def test_invalid_sync_period(self, specs_dir: Path) -> None:
        """Test that a too short independent sync period raises error."""
        with pytest.raises(ConfigurationError) as exc_info:
            Config(independent_sync_period_seconds=5, specs_dir=specs_dir)

        assert "INDEPENDENT_SYNC_PERIOD" in str(exc_info.value)

    def test_reconcile_timeout_shorter_than_request_timeout(self, specs_dir: Path) -> None:
        """Test that a reconcile cannot time out before its first request."""
        with pytest.raises(ConfigurationError) as exc_info:
            Config(
                request_timeout_seconds=60,
                reconcile_timeout_seconds=30,
                specs_dir=specs_dir,
            )

        assert "RECONCILE_TIMEOUT" in str(exc_info.value)

    def test_concurrency_bounds(self, specs_dir: Path) -> None:
        """Test that concurrency outside 1..64 raises error."""
        with pytest.raises(ConfigurationError):
            Config(max_concurrent_reconciles=0, specs_dir=specs_dir)
        with pytest.raises(ConfigurationError):
            Config(max_concurrent_reconciles=65, specs_dir=specs_dir)

    def test_all_errors_reported_together(self, tmp_path: Path) -> None:
        """Test that every violation is listed in one error."""
        with pytest.raises(ConfigurationError) as exc_info:
            Config(
                api_base_url="",
                retry_interval_seconds=0,
                specs_dir=tmp_path / "missing",
            )

        message = str(exc_info.value)
        assert "API_BASE_URL is required" in message
        assert "RETRY_INTERVAL" in message
        assert "Specs directory" in message

    def test_token_not_in_repr(self, specs_dir: Path) -> None:
        """Test that the access token never shows up in logs."""
        config = Config(api_access_token="secret-token", specs_dir=specs_dir)

        assert "secret-token" not in repr(config)


class TestConfigFromEnv:
    """Tests for Config.from_env."""

    def test_from_env(self, clean_env: pytest.MonkeyPatch, specs_dir: Path) -> None:
        """Test loading configuration from environment."""
        clean_env.setenv("SPECS_DIR", str(specs_dir))
        clean_env.setenv("API_BASE_URL", "http://localhost:8080")
        clean_env.setenv("DELETION_PROTECTION", "false")
        clean_env.setenv("RETRY_INTERVAL", "20")
        clean_env.setenv("MAX_CONCURRENT_RECONCILES", "8")

        config = Config.from_env()

        assert config.specs_dir == specs_dir
        assert config.api_base_url == "http://localhost:8080"
        assert config.deletion_protection is False
        assert config.retry_interval_seconds == 20
        assert config.max_concurrent_reconciles == 8

    def test_from_env_defaults(self, clean_env: pytest.MonkeyPatch, specs_dir: Path) -> None:
        """Test that unset variables fall back to defaults."""
        clean_env.setenv("SPECS_DIR", str(specs_dir))

        config = Config.from_env()

        assert config.api_base_url == DEFAULT_API_BASE_URL
        assert config.deletion_protection is True
        assert config.state_dir == Path("/state")

    def test_invalid_integer(self, clean_env: pytest.MonkeyPatch, specs_dir: Path) -> None:
        """Test that a non-integer value raises error."""
        clean_env.setenv("SPECS_DIR", str(specs_dir))
        clean_env.setenv("RETRY_INTERVAL", "soon")

        with pytest.raises(ConfigurationError) as exc_info:
            Config.from_env()

        assert "RETRY_INTERVAL must be an integer" in str(exc_info.value)

    def test_overrides_win(self, clean_env: pytest.MonkeyPatch, specs_dir: Path, tmp_path: Path) -> None:
        """Test that keyword overrides replace environment values."""
        clean_env.setenv("SPECS_DIR", str(tmp_path / "missing"))
        clean_env.setenv("STATE_DIR", "/var/lib/peering")

        config = Config.from_env(specs_dir=specs_dir, state_dir=tmp_path / "state")

        assert config.specs_dir == specs_dir
        assert config.state_dir == tmp_path / "state"
