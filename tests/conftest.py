"""
Pytest configuration and shared fixtures

Fun fact: The name "conftest" comes from pytest's configuration testing
framework. Files named conftest.py are automatically discovered and their
fixtures are available to all tests in the same directory and subdirectories!
"""

import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator

import pytest

from trust_hierarchies.federation.handlers import FederationCommandHandlers
from trust_hierarchies.federation.models import CapabilityKind
from trust_hierarchies.federation.projections import CapabilityLedger, FederationRegistry
from trust_hierarchies.hierarchies import Hierarchies
from trust_hierarchies.kernel.event_store import SQLiteEventStore
from trust_hierarchies.kernel.ids import SequentialIdFactory
from trust_hierarchies.kernel.policy import GovernancePolicy
from trust_hierarchies.kernel.time import TestTimeProvider


@pytest.fixture
def temp_db() -> Iterator[Path]:
    """Provide a temporary database file that's cleaned up after test"""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = Path(f.name)

    yield db_path

    # Cleanup (WAL mode leaves side files behind)
    for path in (db_path, Path(f"{db_path}-wal"), Path(f"{db_path}-shm")):
        if path.exists():
            path.unlink()


@pytest.fixture
def event_store(temp_db: Path) -> SQLiteEventStore:
    """Provide a fresh event store for each test"""
    return SQLiteEventStore(temp_db)


@pytest.fixture
def test_time() -> TestTimeProvider:
    """
    Provide a controllable time provider for deterministic tests

    Default time: 2025-01-15 12:00:00 UTC, far enough from the epoch that
    timespans on either side of "now" are easy to write.
    """
    return TestTimeProvider(datetime(2025, 1, 15, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def policy() -> GovernancePolicy:
    """Provide the default governance policy"""
    return GovernancePolicy()


@pytest.fixture
def handlers(test_time: TestTimeProvider, policy: GovernancePolicy) -> FederationCommandHandlers:
    """
    Provide federation command handlers with deterministic ids

    Handlers are stateless - they take the Federation as a parameter.
    """
    return FederationCommandHandlers(test_time, policy, SequentialIdFactory())


@pytest.fixture
def federation_registry() -> FederationRegistry:
    return FederationRegistry()


@pytest.fixture
def capability_ledger() -> CapabilityLedger:
    return CapabilityLedger()


@pytest.fixture
def hierarchies(temp_db: Path, test_time: TestTimeProvider) -> Hierarchies:
    """Provide a façade over a fresh database with frozen time"""
    return Hierarchies(temp_db, time_provider=test_time)


@pytest.fixture
def federation(hierarchies: Hierarchies) -> dict:
    """
    Provide a federation created by alice, with her three capabilities

    Returned as a dict so tests can pick what they need:
    {"id", "root", "attest", "accredit"}.
    """
    fed = hierarchies.create_federation("alice")
    fid = fed.federation_id
    return {
        "id": fid,
        "root": hierarchies.capability("alice", fid, CapabilityKind.ROOT_AUTHORITY),
        "attest": hierarchies.capability("alice", fid, CapabilityKind.ATTEST),
        "accredit": hierarchies.capability("alice", fid, CapabilityKind.ACCREDIT),
    }
