"""
System health endpoint.

Reports database connectivity and whether the collaborators the sales core
relies on (event notifier, business-date resolver, access policy) are
registered on the app.
"""

import time

from flask import Blueprint, current_app
from sqlalchemy import text

from ..extensions import db
from ..time_utils import utcnow

system_bp = Blueprint("system", __name__, url_prefix="/api")


def check_database_health() -> dict:
    start_time = time.time()
    try:
        db.session.execute(text("SELECT 1"))
        elapsed_ms = (time.time() - start_time) * 1000
        return {"status": "healthy", "latency_ms": round(elapsed_ms, 2)}
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error",
        }


def check_collaborators() -> dict:
    registered = current_app.extensions.get("shoppos", {})
    missing = [
        name for name in ("notifier", "business_date_resolver", "access_policy")
        if registered.get(name) is None
    ]
    if missing:
        return {"status": "degraded", "warning": f"Missing: {', '.join(missing)}"}
    return {"status": "healthy"}


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: healthy or degraded
    - 503: database unreachable
    """
    database_health = check_database_health()
    collaborators = check_collaborators()

    if database_health["status"] == "unhealthy":
        overall_status, http_status = "unhealthy", 503
    elif collaborators["status"] == "degraded":
        overall_status, http_status = "degraded", 200
    else:
        overall_status, http_status = "healthy", 200

    return {
        "status": overall_status,
        "timestamp": utcnow().isoformat() + "Z",
        "checks": {
            "database": database_health,
            "collaborators": collaborators,
        },
    }, http_status
