"""Pytest configuration and fixtures."""

import sys
from pathlib import Path

import pytest

# Add src to path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

# Add tests to path for peering_mock imports
tests_path = Path(__file__).parent
sys.path.insert(0, str(tests_path))

from peering_mock import MockNetworkingAPI  # noqa: E402

from peering_operator.config import Config  # noqa: E402

OPERATOR_ENV_VARS = (
    "API_BASE_URL",
    "API_ACCESS_TOKEN",
    "SPECS_DIR",
    "STATE_DIR",
    "DELETION_PROTECTION",
    "RETRY_INTERVAL",
    "INDEPENDENT_SYNC_PERIOD",
    "REQUEST_TIMEOUT",
    "RECONCILE_TIMEOUT",
    "DISCOVERY_INTERVAL",
    "MAX_CONCURRENT_RECONCILES",
)


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    """Remove operator settings inherited from the developer's shell."""
    for key in OPERATOR_ENV_VARS:
        monkeypatch.delenv(key, raising=False)
    return monkeypatch


@pytest.fixture
def specs_dir(tmp_path: Path) -> Path:
    path = tmp_path / "specs"
    path.mkdir()
    return path


@pytest.fixture
def config(tmp_path: Path, specs_dir: Path) -> Config:
    """Configuration with deletion protection off and short intervals."""
    return Config(
        api_base_url="https://api.example.test",
        specs_dir=specs_dir,
        state_dir=tmp_path / "state",
        deletion_protection=False,
        retry_interval_seconds=5,
        independent_sync_period_seconds=120,
        discovery_interval_seconds=1,
    )


@pytest.fixture
def mock_api() -> MockNetworkingAPI:
    """Networking API with one project, referenced as proj-1 or my-project."""
    api = MockNetworkingAPI()
    api.add_project("proj-1", "my-project")
    return api
