"""Cycle time analytics endpoints."""

from flask import Blueprint, current_app, jsonify, request

from app import get_ado_config
from services.errors import ValidationError
from services.work_items import WorkItemService

bp = Blueprint("cycle_time", __name__, url_prefix="/api/cycle-time")


def parse_work_item_ids(data):
    """Validate the requested work item ids.

    Returns:
        The ids in request order with duplicates removed

    Raises:
        ValidationError: If workItemIds is missing, empty, or holds anything
            other than positive integers
    """
    ids = data.get("workItemIds") if isinstance(data, dict) else None

    if not isinstance(ids, list) or not ids:
        raise ValidationError("workItemIds array is required")

    for value in ids:
        if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
            raise ValidationError("workItemIds must contain only positive integers")

    return list(dict.fromkeys(ids))


@bp.route("", methods=["POST"])
def calculate_cycle_time():
    """Calculate cycle time for specific work items.

    Expects JSON body with:
        - workItemIds: non-empty list of work item ids

    Returns a mapping of work item id to cycle time data. Items without any
    derivable data, or whose history could not be fetched, are omitted.
    """
    try:
        work_item_ids = parse_work_item_ids(request.get_json(silent=True))
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    config = get_ado_config()
    if config is None:
        return jsonify({"error": "Azure DevOps connection is not configured"}), 500

    try:
        current_app.logger.info(f"Calculating cycle time for {len(work_item_ids)} work items")
        service = WorkItemService(config)
        records = service.calculate_cycle_times(work_item_ids)
        return jsonify({str(item_id): record.to_dict() for item_id, record in records.items()})
    except Exception:
        current_app.logger.exception("Error calculating cycle time")
        return jsonify({"error": "Failed to calculate cycle time"}), 500
