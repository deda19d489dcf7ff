"""
Tests for health server

Tests Flask-based health check endpoints for liveness and readiness probes,
plus the status endpoint with registry counts.

Fun fact: The concept of "health checks" in distributed systems was pioneered by Amazon
in the early 2000s when building their highly available retail platform. Today, every
cloud-native system uses similar patterns!
"""

import pytest

from trust_hierarchies import health_server
from trust_hierarchies.health_server import app, initialize_health_server
from trust_hierarchies.hierarchies import Hierarchies


@pytest.fixture
def client():
    """Flask test client"""
    app.config["TESTING"] = True
    with app.test_client() as client:
        yield client


@pytest.fixture(autouse=True)
def reset_server_state():
    """Reset global state after each test"""
    yield
    health_server._db_path = None
    health_server._hierarchies = None


@pytest.fixture
def populated(hierarchies: Hierarchies) -> Hierarchies:
    """Registry with one federation (four events)"""
    hierarchies.create_federation("alice")
    return hierarchies


# =============================================================================
# Initialization Tests
# =============================================================================


def test_initialize_accepts_string_path(temp_db):
    initialize_health_server(str(temp_db))
    assert health_server._db_path == temp_db


def test_initialize_stores_hierarchies(temp_db, populated):
    initialize_health_server(temp_db, populated)
    assert health_server._hierarchies is populated


# =============================================================================
# Liveness
# =============================================================================


def test_liveness_always_ok(client):
    response = client.get("/health/live")

    assert response.status_code == 200
    assert response.get_json() == {"status": "alive", "service": "trust-hierarchies"}


def test_responses_carry_security_headers(client):
    response = client.get("/health/live")

    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert response.headers["X-Frame-Options"] == "DENY"
    assert response.headers["Cache-Control"] == "no-store"


# =============================================================================
# Readiness
# =============================================================================


def test_readiness_without_initialization(client):
    response = client.get("/health/ready")

    assert response.status_code == 503
    assert response.get_json()["reason"] == "database_path_not_initialized"


def test_readiness_missing_database(client, tmp_path):
    initialize_health_server(tmp_path / "missing.db")
    response = client.get("/health/ready")

    assert response.status_code == 503
    assert response.get_json()["reason"] == "database_file_not_found"


def test_readiness_without_events_table(client, tmp_path):
    empty = tmp_path / "empty.db"
    empty.touch()
    initialize_health_server(empty)

    response = client.get("/health/ready")

    assert response.status_code == 503
    assert response.get_json()["reason"] == "database_operational_error"


def test_readiness_with_event_store(client, temp_db, populated):
    initialize_health_server(temp_db)
    response = client.get("/health/ready")

    assert response.status_code == 200
    data = response.get_json()
    assert data["status"] == "ready"
    assert data["event_count"] == 4


# =============================================================================
# Status
# =============================================================================


def test_status_degraded_without_database(client):
    response = client.get("/health/status")

    assert response.status_code == 503
    assert response.get_json()["database"] == {"status": "not_initialized"}


def test_status_reports_counts(client, temp_db, populated):
    initialize_health_server(temp_db, populated)
    response = client.get("/health/status")

    assert response.status_code == 200
    data = response.get_json()
    assert data["status"] == "healthy"
    assert data["database"]["event_count"] == 4
    assert data["database"]["stream_count"] == 1
    assert data["registry"] == {"federations": 1, "events": 4, "capabilities": 3}
