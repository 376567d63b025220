"""
Health check blueprint.

Endpoints:
    GET /api/v1/health        — liveness, 200 while the process is up
    GET /api/v1/health/ready  — readiness, verifies the database round-trip
"""

import logging
import time

from flask import Blueprint, jsonify
from sqlalchemy.exc import SQLAlchemyError

from app.models import db

logger = logging.getLogger(__name__)

health_bp = Blueprint("health", __name__, url_prefix="/api/v1/health")


@health_bp.route("", methods=["GET"])
def live():
    return jsonify({"status": "ok", "app": "Repair Workflow Service"}), 200


@health_bp.route("/ready", methods=["GET"])
def ready():
    """Readiness probe — 503 when the database is unreachable."""
    try:
        t0 = time.perf_counter()
        db.session.execute(db.text("SELECT 1"))
        db_ms = (time.perf_counter() - t0) * 1000
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.error("Health check — database failed: %s", exc)
        return jsonify({
            "status": "degraded",
            "checks": {"database": {"status": "error", "detail": str(exc)}},
        }), 503

    return jsonify({
        "status": "healthy",
        "checks": {"database": {"status": "ok", "latency_ms": round(db_ms, 1)}},
    }), 200
