"""
Health check HTTP server for liveness and readiness probes.

Provides endpoints for monitoring a trust registry deployment. The status
endpoint reports registry counts when a Hierarchies instance is attached.
"""

import sqlite3
from pathlib import Path
from typing import Any

from flask import Flask, Response, jsonify

from trust_hierarchies import __version__
from trust_hierarchies.kernel.logging import get_logger

logger = get_logger(__name__)

SERVICE_NAME = "trust-hierarchies"

app = Flask(__name__)

# Global state - set by initialize_health_server()
_db_path: Path | None = None
_hierarchies: Any = None


def initialize_health_server(db_path: str | Path, hierarchies: Any = None) -> None:
    """
    Initialize the health server with a database path.

    Args:
        db_path: Path to SQLite database
        hierarchies: Optional Hierarchies instance for registry counts
    """
    global _db_path, _hierarchies
    _db_path = Path(db_path)
    _hierarchies = hierarchies
    logger.info("Health server initialized", db_path=str(_db_path))


@app.after_request
def add_security_headers(response: Response) -> Response:
    """Probe responses are JSON only and never framed"""
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Content-Security-Policy"] = "default-src 'none'"
    response.headers["Cache-Control"] = "no-store"
    return response


def _count_events(db_path: Path) -> tuple[int, int]:
    conn = sqlite3.connect(str(db_path), timeout=1.0)
    try:
        event_count = conn.execute("SELECT COUNT(*) FROM events").fetchone()[0]
        stream_count = conn.execute(
            "SELECT COUNT(DISTINCT stream_id) FROM events"
        ).fetchone()[0]
    finally:
        conn.close()
    return event_count, stream_count


@app.route("/health/live", methods=["GET"])
def liveness() -> tuple[Response, int]:
    """
    Liveness probe - the process is up.

    Returns:
        JSON response with status and 200 OK
    """
    return jsonify({"status": "alive", "service": SERVICE_NAME}), 200


@app.route("/health/ready", methods=["GET"])
def readiness() -> tuple[Response, int]:
    """
    Readiness probe - the event store can be queried.

    Returns:
        200 with the event count if ready, 503 with a reason if not
    """
    if _db_path is None:
        logger.error("Readiness check failed: DB path not initialized")
        return jsonify({"status": "not_ready", "reason": "database_path_not_initialized"}), 503

    if not _db_path.exists():
        logger.error("Readiness check failed: DB file does not exist", db_path=str(_db_path))
        return (
            jsonify(
                {
                    "status": "not_ready",
                    "reason": "database_file_not_found",
                    "db_path": str(_db_path),
                }
            ),
            503,
        )

    try:
        event_count, _ = _count_events(_db_path)
    except sqlite3.Error as e:
        logger.error("Readiness check failed: DB error", error=str(e))
        return (
            jsonify(
                {
                    "status": "not_ready",
                    "reason": "database_operational_error",
                    "error": str(e),
                }
            ),
            503,
        )

    logger.debug("Readiness check passed", event_count=event_count)
    return jsonify({"status": "ready", "database": "accessible", "event_count": event_count}), 200


@app.route("/health/status", methods=["GET"])
def status() -> tuple[Response, int]:
    """
    Detailed status - database counts plus registry counts if attached.

    Returns:
        200 when healthy, 503 when degraded
    """
    health_data: dict[str, Any] = {
        "status": "healthy",
        "service": SERVICE_NAME,
        "version": __version__,
    }

    if _db_path is not None and _db_path.exists():
        try:
            event_count, stream_count = _count_events(_db_path)
            health_data["database"] = {
                "status": "healthy",
                "path": str(_db_path),
                "event_count": event_count,
                "stream_count": stream_count,
            }
        except sqlite3.Error as e:
            logger.error("Database health check failed", error=str(e))
            health_data["database"] = {"status": "unhealthy", "error": str(e)}
            health_data["status"] = "degraded"
    else:
        health_data["database"] = {"status": "not_initialized"}
        health_data["status"] = "degraded"

    if _hierarchies is not None:
        health_data["registry"] = _hierarchies.stats()

    status_code = 200 if health_data["status"] == "healthy" else 503
    return jsonify(health_data), status_code


def run_health_server(port: int = 8080, debug: bool = False) -> None:
    """
    Run the health check server.

    Args:
        port: Port to listen on (default: 8080)
        debug: Enable Flask debug mode (default: False)
    """
    logger.info("Starting health check server", port=port)
    app.run(host="0.0.0.0", port=port, debug=debug)
