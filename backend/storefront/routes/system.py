# backend/storefront/routes/system.py
"""
System health endpoint.

Health reports document counts per collection so a deploy can confirm the
database is reachable and seeded.
"""

import time
from flask import Blueprint, current_app, jsonify
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import StoredDocument
from storefront.time_utils import utcnow, to_utc_z

system_bp = Blueprint("system", __name__, url_prefix="/api")


def check_database_health() -> dict:
    """
    Check database connectivity and count documents per collection.
    """
    start_time = time.time()
    try:
        rows = (
            db.session.query(StoredDocument.collection, db.func.count(StoredDocument.id))
            .group_by(StoredDocument.collection)
            .all()
        )
        elapsed_ms = (time.time() - start_time) * 1000

        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {collection: count for collection, count in rows},
        }
    except SQLAlchemyError:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        db.session.rollback()
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error"
        }


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: database reachable
    - 503: database unreachable
    """
    database_health = check_database_health()
    http_status = 200 if database_health["status"] == "healthy" else 503

    return jsonify({
        "status": database_health["status"],
        "checks": {"database": database_health},
        "server_time": to_utc_z(utcnow()),
    }), http_status
