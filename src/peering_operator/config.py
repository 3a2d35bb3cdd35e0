"""Configuration management with validation.

All settings are read from the environment and validated at load time so
that a misconfigured operator fails before it touches the remote API.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any


class ConfigurationError(Exception):
    """Raised when configuration validation fails."""

    pass


DEFAULT_API_BASE_URL = "https://cloud.mongodb.com"

# Configuration constants with documented bounds
DEFAULT_RETRY_INTERVAL_SECONDS = 10
MIN_RETRY_INTERVAL_SECONDS = 1
MAX_RETRY_INTERVAL_SECONDS = 600

# Ready resources whose project is referenced by ID are re-validated on this period
DEFAULT_INDEPENDENT_SYNC_PERIOD_SECONDS = 900
MIN_INDEPENDENT_SYNC_PERIOD_SECONDS = 60
MAX_INDEPENDENT_SYNC_PERIOD_SECONDS = 86400

DEFAULT_REQUEST_TIMEOUT_SECONDS = 30
DEFAULT_RECONCILE_TIMEOUT_SECONDS = 300
DEFAULT_DISCOVERY_INTERVAL_SECONDS = 30

DEFAULT_MAX_CONCURRENT_RECONCILES = 4
MAX_CONCURRENT_RECONCILES = 64

# Security constraints - enforced limits to prevent abuse
MAX_SPEC_FILE_SIZE_BYTES = 256 * 1024  # 256KB max resource file
MAX_STATE_FILE_SIZE_BYTES = 1024 * 1024  # 1MB max persisted state record
MAX_LIST_PAGES = 100  # Max pages followed when listing remote objects

VALID_API_BASE_URL_PATTERN = r"^https?://[A-Za-z0-9.-]+(:[0-9]+)?/?$"


@dataclass(frozen=True)
class Config:
    """Operator configuration loaded from environment variables.

    All fields are validated at construction time. Invalid configurations
    raise ConfigurationError immediately rather than failing at runtime.
    """

    # Remote API
    api_base_url: str = DEFAULT_API_BASE_URL
    api_access_token: str = field(default="", repr=False)

    # Paths
    specs_dir: Path = field(default_factory=lambda: Path("/specs"))
    state_dir: Path = field(default_factory=lambda: Path("/state"))

    # Behavior
    # When enabled, deleting a resource leaves the remote peering in place
    # unless the resource explicitly opts into deletion.
    deletion_protection: bool = True

    # Timing
    retry_interval_seconds: int = DEFAULT_RETRY_INTERVAL_SECONDS
    independent_sync_period_seconds: int = DEFAULT_INDEPENDENT_SYNC_PERIOD_SECONDS
    request_timeout_seconds: int = DEFAULT_REQUEST_TIMEOUT_SECONDS
    reconcile_timeout_seconds: int = DEFAULT_RECONCILE_TIMEOUT_SECONDS
    discovery_interval_seconds: int = DEFAULT_DISCOVERY_INTERVAL_SECONDS

    # Concurrency across distinct resources
    max_concurrent_reconciles: int = DEFAULT_MAX_CONCURRENT_RECONCILES

    def __post_init__(self) -> None:
        """Validate configuration after initialization.

        SECURITY: All inputs are validated at the boundary (fail-fast).
        """
        errors: list[str] = []

        if not self.api_base_url:
            errors.append("API_BASE_URL is required")
        elif not re.match(VALID_API_BASE_URL_PATTERN, self.api_base_url):
            errors.append(f"API_BASE_URL must be a bare http(s) origin: {self.api_base_url}")

        if not (
            MIN_RETRY_INTERVAL_SECONDS <= self.retry_interval_seconds <= MAX_RETRY_INTERVAL_SECONDS
        ):
            errors.append(
                f"RETRY_INTERVAL must be between {MIN_RETRY_INTERVAL_SECONDS} "
                f"and {MAX_RETRY_INTERVAL_SECONDS} seconds"
            )

        if not (
            MIN_INDEPENDENT_SYNC_PERIOD_SECONDS
            <= self.independent_sync_period_seconds
            <= MAX_INDEPENDENT_SYNC_PERIOD_SECONDS
        ):
            errors.append(
                f"INDEPENDENT_SYNC_PERIOD must be between {MIN_INDEPENDENT_SYNC_PERIOD_SECONDS} "
                f"and {MAX_INDEPENDENT_SYNC_PERIOD_SECONDS} seconds"
            )

        if self.request_timeout_seconds < 1:
            errors.append("REQUEST_TIMEOUT must be at least 1 second")

        if self.reconcile_timeout_seconds < self.request_timeout_seconds:
            errors.append("RECONCILE_TIMEOUT must not be shorter than REQUEST_TIMEOUT")

        if self.discovery_interval_seconds < 1:
            errors.append("DISCOVERY_INTERVAL must be at least 1 second")

        if not (1 <= self.max_concurrent_reconciles <= MAX_CONCURRENT_RECONCILES):
            errors.append(
                f"MAX_CONCURRENT_RECONCILES must be between 1 and {MAX_CONCURRENT_RECONCILES}"
            )

        if not self.specs_dir.exists():
            errors.append(f"Specs directory does not exist: {self.specs_dir}")

        if errors:
            error_msg = "Configuration validation failed:\n  - " + "\n  - ".join(errors)
            raise ConfigurationError(error_msg)

    @classmethod
    def from_env(cls, **overrides: Any) -> Config:
        """Load configuration from environment variables.

        Keyword arguments override the corresponding environment values.

        Environment Variables:
            API_BASE_URL: Origin of the networking API (default: https://cloud.mongodb.com)
            API_ACCESS_TOKEN: Bearer token for the networking API
            SPECS_DIR: Directory of NetworkPeering YAML files (default: /specs)
            STATE_DIR: Directory for persisted status records (default: /state)
            DELETION_PROTECTION: Keep remote peerings on delete unless opted out (default: true)
            RETRY_INTERVAL: Seconds before retrying in-progress or failed resources (default: 10)
            INDEPENDENT_SYNC_PERIOD: Re-validation period for ready resources (default: 900)
            REQUEST_TIMEOUT: Per-request HTTP timeout in seconds (default: 30)
            RECONCILE_TIMEOUT: Upper bound for a single reconcile in seconds (default: 300)
            DISCOVERY_INTERVAL: Seconds between specs directory scans (default: 30)
            MAX_CONCURRENT_RECONCILES: Parallel reconciles across resources (default: 4)
        """

        def get_int(key: str, default: int) -> int:
            value = os.environ.get(key)
            if value is None:
                return default
            try:
                return int(value)
            except ValueError as e:
                raise ConfigurationError(f"{key} must be an integer: {value}") from e

        def get_bool(key: str, default: bool) -> bool:
            value = os.environ.get(key, "").lower()
            if not value:
                return default
            return value in ("true", "1", "yes")

        values: dict[str, Any] = dict(
            api_base_url=os.environ.get("API_BASE_URL", DEFAULT_API_BASE_URL),
            api_access_token=os.environ.get("API_ACCESS_TOKEN", ""),
            specs_dir=Path(os.environ.get("SPECS_DIR", "/specs")),
            state_dir=Path(os.environ.get("STATE_DIR", "/state")),
            deletion_protection=get_bool("DELETION_PROTECTION", True),
            retry_interval_seconds=get_int("RETRY_INTERVAL", DEFAULT_RETRY_INTERVAL_SECONDS),
            independent_sync_period_seconds=get_int(
                "INDEPENDENT_SYNC_PERIOD", DEFAULT_INDEPENDENT_SYNC_PERIOD_SECONDS
            ),
            request_timeout_seconds=get_int("REQUEST_TIMEOUT", DEFAULT_REQUEST_TIMEOUT_SECONDS),
            reconcile_timeout_seconds=get_int(
                "RECONCILE_TIMEOUT", DEFAULT_RECONCILE_TIMEOUT_SECONDS
            ),
            discovery_interval_seconds=get_int(
                "DISCOVERY_INTERVAL", DEFAULT_DISCOVERY_INTERVAL_SECONDS
            ),
            max_concurrent_reconciles=get_int(
                "MAX_CONCURRENT_RECONCILES", DEFAULT_MAX_CONCURRENT_RECONCILES
            ),
        )
        values.update(overrides)
        return cls(**values)
