"""
Health check blueprint.

    GET /api/v1/health/ready   process is up, no I/O
    GET /api/v1/health/live    database round-trip plus hierarchy schema probe
"""

import logging
import time

from flask import Blueprint, current_app, jsonify
from sqlalchemy import inspect
from sqlalchemy.exc import SQLAlchemyError

from testhub.models import db
from testhub.services.lineage import LINEAGE

logger = logging.getLogger(__name__)

health_bp = Blueprint("health_bp", __name__, url_prefix="/api/v1/health")


@health_bp.route("/ready", methods=["GET"])
def ready():
    return jsonify({"status": "ok"}), 200


def _probe_database():
    started = time.perf_counter()
    db.session.execute(db.text("SELECT 1"))
    return {"status": "ok", "latency_ms": round((time.perf_counter() - started) * 1000, 1)}


def _probe_schema():
    present = set(inspect(db.engine).get_table_names())
    missing = [level.model.__tablename__ for level in LINEAGE
               if level.model.__tablename__ not in present]
    if missing:
        return {"status": "error", "missing_tables": missing}
    return {"status": "ok", "levels": len(LINEAGE)}


@health_bp.route("/live", methods=["GET"])
def live():
    """Report database reachability and whether every hierarchy table exists."""
    checks = {}
    for name, probe in (("database", _probe_database), ("schema", _probe_schema)):
        try:
            checks[name] = probe()
        except SQLAlchemyError as exc:
            db.session.rollback()
            checks[name] = {"status": "error", "detail": exc.__class__.__name__}
            logger.error("Health probe %s failed: %s", name, exc)

    healthy = all(c["status"] == "ok" for c in checks.values())
    return jsonify({
        "status": "ok" if healthy else "degraded",
        "app": {"debug": current_app.debug, "testing": current_app.testing},
        "checks": checks,
    }), 200 if healthy else 503
