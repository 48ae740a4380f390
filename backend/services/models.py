"""Domain models for Azure DevOps work items and cycle-time data.

These dataclasses model only the subset of payload fields the scheduler needs.
``to_dict`` produces the camelCase JSON shape consumed by the calendar UI.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Dict, Optional


def _iso(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value is not None else None


@dataclass(frozen=True, slots=True)
class RevisionSnapshot:
    """One historical version of a work item.

    ``assigned_to`` is kept as delivered: an identity mapping, a plain string,
    or ``None``.
    """

    rev: int
    state: Optional[str]
    changed_date: Optional[datetime]
    assigned_to: Any = None


@dataclass(slots=True)
class CycleTimeRecord:
    """Milestone dates and elapsed days derived from one item's history."""

    in_progress_date: Optional[date] = None
    qa_ready_date: Optional[date] = None
    uat_ready_date: Optional[date] = None
    assigned_to: Any = None
    qa_assigned_to: Any = None
    cycle_time_days: Optional[int] = None
    qa_cycle_time_days: Optional[int] = None

    def has_data(self) -> bool:
        """True when at least one field was derived."""
        return any(
            value is not None
            for value in (
                self.in_progress_date,
                self.qa_ready_date,
                self.uat_ready_date,
                self.assigned_to,
                self.qa_assigned_to,
                self.cycle_time_days,
                self.qa_cycle_time_days,
            )
        )

    def to_dict(self) -> Dict[str, Any]:
        payload = {
            "inProgressDate": _iso(self.in_progress_date),
            "qaReadyDate": _iso(self.qa_ready_date),
            "cycleTimeDays": self.cycle_time_days,
            "assignedTo": self.assigned_to,
            "uatReadyDate": _iso(self.uat_ready_date),
            "qaCycleTimeDays": self.qa_cycle_time_days,
            "qaAssignedTo": self.qa_assigned_to,
        }
        return {key: value for key, value in payload.items() if value is not None}


@dataclass(slots=True)
class WorkItem:
    """A backlog item as shown on the calendar."""

    id: int
    title: str
    state: str
    work_item_type: str
    changed_date: str
    created_date: str
    area_path: str
    iteration_path: str
    assigned_to: Optional[str] = None
    due_date: Optional[date] = None
    closed_date: Optional[date] = None

    def to_dict(self) -> Dict[str, Any]:
        payload = {
            "id": self.id,
            "title": self.title,
            "state": self.state,
            "assignedTo": self.assigned_to,
            "dueDate": _iso(self.due_date),
            "workItemType": self.work_item_type,
            "changedDate": self.changed_date,
            "createdDate": self.created_date,
            "closedDate": _iso(self.closed_date),
            "areaPath": self.area_path,
            "iterationPath": self.iteration_path,
        }
        return {key: value for key, value in payload.items() if value is not None}
