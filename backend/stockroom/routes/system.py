# Overview: Flask API routes for service health.

from flask import Blueprint, jsonify, current_app

from ..extensions import db


system_bp = Blueprint("system", __name__, url_prefix="/api/system")


@system_bp.get("/health")
def health_route():
    """Liveness plus a trivial database round trip."""
    try:
        db.session.execute(db.text("SELECT 1"))
    except Exception:
        current_app.logger.exception("Health check database probe failed")
        db.session.rollback()
        return jsonify({"status": "degraded", "database": "unreachable"}), 503
    return jsonify({"status": "ok", "database": "ok"})
