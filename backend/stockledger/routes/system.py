# backend/stockledger/routes/system.py
"""
Liveness and readiness endpoints.

/health answers as long as the process serves requests. /ready also checks
that the database is reachable.
"""

import time

from flask import Blueprint, current_app
from sqlalchemy import text

from ..extensions import db
from ..time_utils import to_utc_z, utcnow

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """
    Check database connectivity with a trivial query.

    Returns dict with status and latency.
    """
    start_time = time.time()
    try:
        db.session.execute(text("SELECT 1"))
        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        db.session.rollback()
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error",
        }


@system_bp.get("/health")
def health():
    return {"status": "ok", "timestamp": to_utc_z(utcnow())}, 200


@system_bp.get("/ready")
def ready():
    """
    Readiness check.

    Returns:
    - 200: database reachable
    - 503: database unreachable
    """
    database_health = check_database_health()
    ok = database_health["status"] == "healthy"
    response = {
        "status": "ready" if ok else "unavailable",
        "timestamp": to_utc_z(utcnow()),
        "dependencies": {"database": database_health},
    }
    return response, 200 if ok else 503
