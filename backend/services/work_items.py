"""Work item scheduling service backed by Azure DevOps."""

import logging
from datetime import timezone
from typing import Callable, Dict, List, Optional, TypeVar

from services.ado_client import DUE_DATE_FIELD, AdoClient, parse_datetime
from services.config import Config
from services.cycle_time import compute_cycle_times
from services.errors import ApiError
from services.models import CycleTimeRecord, WorkItem
from services.retry import execute

logger = logging.getLogger(__name__)

T = TypeVar("T")

WORK_ITEM_TYPE = "Product Backlog Item"

WORK_ITEM_FIELDS = [
    "System.Id",
    "System.Title",
    "System.State",
    "System.AssignedTo",
    "System.WorkItemType",
    "System.ChangedDate",
    "System.CreatedDate",
    "Microsoft.VSTS.Common.ClosedDate",
    "System.AreaPath",
    "System.IterationPath",
    DUE_DATE_FIELD,
]


def _wiql_literal(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


def _utc_day(value: Optional[str]):
    parsed = parse_datetime(value)
    return parsed.astimezone(timezone.utc).date() if parsed else None


class WorkItemService:
    """Service for reading, scheduling and analyzing backlog items."""

    def __init__(self, config: Config, client: Optional[AdoClient] = None):
        self.config = config
        self.client = client or AdoClient(config)

    def _with_retry(self, operation: Callable[[], T]) -> T:
        """Run one upstream call under the configured backoff policy."""
        return execute(
            operation,
            max_attempts=self.config.retry_attempts,
            initial_delay_ms=self.config.retry_delay_ms,
        )

    def build_query(self, from_date: Optional[str] = None, to_date: Optional[str] = None) -> str:
        """Build the WIQL query for backlog items of the configured project.

        When both bounds are given, items due inside the range are returned
        together with items that have no due date yet.
        """
        wiql = (
            "SELECT [System.Id] FROM WorkItems"
            f" WHERE [System.TeamProject] = {_wiql_literal(self.config.project)}"
            f" AND [System.WorkItemType] = {_wiql_literal(WORK_ITEM_TYPE)}"
        )

        if self.config.area_path:
            wiql += f" AND [System.AreaPath] UNDER {_wiql_literal(self.config.area_path)}"

        if from_date and to_date:
            wiql += (
                f" AND ([{DUE_DATE_FIELD}] >= {_wiql_literal(from_date)}"
                f" AND [{DUE_DATE_FIELD}] <= {_wiql_literal(to_date)}"
                f" OR [{DUE_DATE_FIELD}] = '')"
            )

        return wiql + " ORDER BY [System.ChangedDate] DESC"

    def _parse_work_item(self, item: dict) -> Optional[WorkItem]:
        fields = item.get("fields")
        if not item.get("id") or not fields:
            return None

        assigned_to = fields.get("System.AssignedTo")
        if isinstance(assigned_to, dict):
            assigned_to = assigned_to.get("displayName")

        return WorkItem(
            id=int(item["id"]),
            title=fields.get("System.Title") or "",
            state=fields.get("System.State") or "",
            work_item_type=fields.get("System.WorkItemType") or "",
            changed_date=fields.get("System.ChangedDate") or "",
            created_date=fields.get("System.CreatedDate") or "",
            area_path=fields.get("System.AreaPath") or "",
            iteration_path=fields.get("System.IterationPath") or "",
            assigned_to=assigned_to or None,
            due_date=_utc_day(fields.get(DUE_DATE_FIELD)),
            closed_date=_utc_day(fields.get("Microsoft.VSTS.Common.ClosedDate")),
        )

    def get_work_items(self, from_date: Optional[str] = None, to_date: Optional[str] = None) -> List[WorkItem]:
        """Fetch backlog items, optionally limited to a due-date window."""
        wiql = self.build_query(from_date, to_date)
        ids = self._with_retry(lambda: self.client.query_work_item_ids(wiql))
        if not ids:
            return []

        batch_size = AdoClient.MAX_WORK_ITEMS_PER_REQUEST
        work_items: List[WorkItem] = []

        for start in range(0, len(ids), batch_size):
            batch = ids[start:start + batch_size]
            raw_items = self._with_retry(
                lambda: self.client.get_work_items(batch, WORK_ITEM_FIELDS)
            )
            for raw in raw_items:
                work_item = self._parse_work_item(raw)
                if work_item is not None:
                    work_items.append(work_item)

        logger.info(f"Returning {len(work_items)} work items")
        return work_items

    def calculate_cycle_times(self, work_item_ids: List[int]) -> Dict[int, CycleTimeRecord]:
        """Compute cycle time records for the given work items."""
        return compute_cycle_times(
            work_item_ids,
            self.client.get_revisions,
            group_size=self.config.batch_size,
            max_attempts=self.config.retry_attempts,
            initial_delay_ms=self.config.retry_delay_ms,
        )

    def update_due_date(self, work_item_id: int, due_date: Optional[str]) -> None:
        """Set a work item's due date, or remove it when ``due_date`` is None."""
        path = f"/fields/{DUE_DATE_FIELD}"
        if due_date is None:
            operations = [{"op": "remove", "path": path}]
        else:
            operations = [{"op": "add", "path": path, "value": due_date}]

        self._with_retry(lambda: self.client.update_work_item(work_item_id, operations))

    def health_check(self) -> bool:
        """Check that the configured project is reachable."""
        try:
            self.client.get_project()
            return True
        except ApiError as e:
            logger.error(f"Health check failed: {e}")
            return False
