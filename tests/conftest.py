"""Pytest fixtures for Chronos Vault tests."""

from datetime import datetime, timezone

import pytest

from chronos.capture import ReplayDeviceCapture
from chronos.config import ChronosConfig
from chronos.enrich import EnrichmentClient
from chronos.errors import EnrichmentError
from chronos.paths import VaultPaths
from chronos.store import CapsuleRepository, SqliteRecordStore

NOW = datetime(2026, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def temp_vault(tmp_path):
    """Create a temporary vault for testing.

    Args:
        tmp_path: pytest's built-in temporary directory fixture

    Returns:
        Path to temporary vault root
    """
    vault_root = tmp_path / "test_vault"
    vault_root.mkdir()
    return vault_root


@pytest.fixture
def vault_config(temp_vault):
    """Create ChronosConfig pointing to temporary vault."""
    return ChronosConfig(vault_path=temp_vault)


@pytest.fixture
def vault_paths(vault_config):
    """Create VaultPaths for temporary vault.

    Args:
        vault_config: ChronosConfig instance

    Returns:
        VaultPaths instance
    """
    paths = VaultPaths.from_config(vault_config)

    # Create necessary directories
    for directory in paths.get_all_directories():
        directory.mkdir(parents=True, exist_ok=True)

    # Create empty ledger file
    paths.ledger_file.touch()

    return paths


@pytest.fixture
def now():
    """Fixed reference instant used as 'now' by lock and lifecycle tests."""
    return NOW


@pytest.fixture
def store(vault_paths):
    return SqliteRecordStore(vault_paths.store_file)


@pytest.fixture
def repository(store):
    repo = CapsuleRepository(store)
    repo.open()
    return repo


@pytest.fixture
def device():
    return ReplayDeviceCapture()


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.value = start

    def __call__(self) -> float:
        return self.value

    def advance(self, seconds: float) -> None:
        self.value += seconds


@pytest.fixture
def clock():
    return FakeClock()


class StubEnrichmentClient(EnrichmentClient):
    """Deterministic enrichment client; raises EnrichmentError when failing."""

    def __init__(self, failing: bool = False):
        self.failing = failing
        self.calls: list[str] = []

    @property
    def engine_name(self) -> str:
        return "stub"

    def hint(self, artifact_bytes: bytes, content_type: str) -> str:
        self.calls.append("hint")
        if self.failing:
            raise EnrichmentError("service unavailable")
        return f"A hidden {content_type.split('/')[0]}"

    def reflect(self, note: str) -> str:
        self.calls.append("reflect")
        if self.failing:
            raise EnrichmentError("service unavailable")
        return "Who were you then?"

    def refine(self, note: str) -> str:
        self.calls.append("refine")
        if self.failing:
            raise EnrichmentError("service unavailable")
        return f"Dear future me: {note}"


@pytest.fixture
def stub_enrichment():
    return StubEnrichmentClient()


@pytest.fixture
def failing_enrichment():
    return StubEnrichmentClient(failing=True)
