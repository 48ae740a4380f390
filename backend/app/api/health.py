"""Upstream connectivity health endpoint."""

from datetime import datetime, timezone

from flask import Blueprint, current_app, jsonify

from app import get_ado_config
from services.work_items import WorkItemService

bp = Blueprint("health", __name__, url_prefix="/api/health")


@bp.route("", methods=["GET"])
def health_check():
    """Report whether the Azure DevOps project is reachable."""
    timestamp = datetime.now(timezone.utc).isoformat()

    config = get_ado_config()
    if config is None:
        return jsonify({
            "healthy": False,
            "error": "Azure DevOps connection is not configured",
            "timestamp": timestamp
        }), 503

    try:
        healthy = WorkItemService(config).health_check()
        return jsonify({"healthy": healthy, "timestamp": timestamp})
    except Exception:
        current_app.logger.exception("Health check error")
        return jsonify({"healthy": False, "error": "Service unavailable", "timestamp": timestamp}), 503
