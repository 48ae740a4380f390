"""Work item listing and scheduling endpoints."""

import re

from flask import Blueprint, current_app, jsonify, request

from app import get_ado_config
from services.errors import ValidationError
from services.work_items import WorkItemService

bp = Blueprint("workitems", __name__, url_prefix="/api/workitems")

DATE_PATTERN = re.compile(r"[0-9]{4}-[0-9]{2}-[0-9]{2}")


def get_date_range():
    """Get optional due-date window from query params.

    Query params:
        - from: ISO date string (e.g., "2024-01-01")
        - to: ISO date string (e.g., "2024-03-31")

    Returns:
        Tuple of (from_date, to_date), either can be None

    Raises:
        ValidationError: If a bound is present but not YYYY-MM-DD
    """
    from_date = request.args.get("from") or None
    to_date = request.args.get("to") or None

    for name, value in (("from", from_date), ("to", to_date)):
        if value is not None and not DATE_PATTERN.fullmatch(value):
            raise ValidationError(f"Invalid '{name}' date format. Use YYYY-MM-DD")

    return from_date, to_date


def parse_work_item_id(raw_id):
    """Parse a work item id path segment into a positive integer."""
    if not re.fullmatch(r"[0-9]+", raw_id) or int(raw_id) <= 0:
        raise ValidationError("Invalid work item ID")
    return int(raw_id)


def parse_due_date(data):
    """Extract the requested due date from a JSON body.

    Returns:
        The YYYY-MM-DD string, or None to clear the due date
    """
    if not isinstance(data, dict) or "dueDate" not in data:
        raise ValidationError("dueDate is required (YYYY-MM-DD or null)")

    due_date = data["dueDate"]
    if due_date is None:
        return None

    if not isinstance(due_date, str) or not DATE_PATTERN.fullmatch(due_date):
        raise ValidationError("Invalid date format. Use YYYY-MM-DD")

    return due_date


@bp.route("", methods=["GET"])
def list_work_items():
    """List backlog items for the calendar.

    Query params:
        - from: Optional ISO date (e.g., "2024-01-01")
        - to: Optional ISO date (e.g., "2024-03-31")

    When both are given, items due in the window and items without a due
    date are returned.
    """
    try:
        from_date, to_date = get_date_range()
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    config = get_ado_config()
    if config is None:
        return jsonify({"error": "Azure DevOps connection is not configured"}), 500

    try:
        service = WorkItemService(config)
        work_items = service.get_work_items(from_date, to_date)
        return jsonify([item.to_dict() for item in work_items])
    except Exception:
        current_app.logger.exception("Error fetching work items")
        return jsonify({"error": "Failed to fetch work items"}), 500


@bp.route("/<work_item_id>/due-date", methods=["PATCH"])
def update_due_date(work_item_id):
    """Set or clear the due date of a work item.

    Expects JSON body with:
        - dueDate: "YYYY-MM-DD" to set, null to clear
    """
    try:
        item_id = parse_work_item_id(work_item_id)
        due_date = parse_due_date(request.get_json(silent=True))
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    config = get_ado_config()
    if config is None:
        return jsonify({"error": "Azure DevOps connection is not configured"}), 500

    try:
        service = WorkItemService(config)
        service.update_due_date(item_id, due_date)
        return jsonify({"success": True})
    except Exception:
        current_app.logger.exception(f"Error updating due date for work item {item_id}")
        return jsonify({"error": "Failed to update due date"}), 500
