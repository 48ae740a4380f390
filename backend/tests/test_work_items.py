"""Tests for WorkItemService."""

from datetime import date
from unittest.mock import Mock, patch

from services.config import Config
from services.errors import ApiError
from services.models import CycleTimeRecord
from services.work_items import WorkItemService


def _service(ado_config):
    return WorkItemService(ado_config, client=Mock())


class TestBuildQuery:
    """Test WIQL construction."""

    def test_filters_by_project_type_and_area(self, ado_config):
        """Project, item type and area path are always applied."""
        wiql = _service(ado_config).build_query()

        assert "[System.TeamProject] = 'Test Project'" in wiql
        assert "[System.WorkItemType] = 'Product Backlog Item'" in wiql
        assert "[System.AreaPath] UNDER 'Test Project\\Team A'" in wiql
        assert "DueDate] >=" not in wiql
        assert wiql.endswith("ORDER BY [System.ChangedDate] DESC")

    def test_date_window_includes_unscheduled_items(self, ado_config):
        """Both bounds add a due-date range OR no due date."""
        wiql = _service(ado_config).build_query("2024-01-01", "2024-01-31")

        assert "[Microsoft.VSTS.Scheduling.DueDate] >= '2024-01-01'" in wiql
        assert "[Microsoft.VSTS.Scheduling.DueDate] <= '2024-01-31'" in wiql
        assert "OR [Microsoft.VSTS.Scheduling.DueDate] = ''" in wiql

    def test_single_bound_is_ignored(self, ado_config):
        """The window is only applied when both bounds are present."""
        wiql = _service(ado_config).build_query("2024-01-01", None)
        assert "DueDate] >=" not in wiql

    def test_quotes_are_escaped(self):
        """Single quotes in names are doubled."""
        service = _service(Config(
            organization_url="https://dev.azure.com/x", project="Bob's Project", pat="p"
        ))

        assert "'Bob''s Project'" in service.build_query()


class TestGetWorkItems:
    """Test work item listing."""

    def test_returns_parsed_items(self, ado_config, work_item_payload):
        """Raw payloads are reshaped into WorkItem records."""
        service = _service(ado_config)
        service.client.query_work_item_ids.return_value = [101]
        service.client.get_work_items.return_value = [work_item_payload, {"id": 102}]

        items = service.get_work_items()

        assert len(items) == 1
        item = items[0]
        assert item.id == 101
        assert item.assigned_to == "Dana Developer"
        assert item.due_date == date(2024, 2, 10)
        assert item.closed_date is None
        assert item.to_dict()["dueDate"] == "2024-02-10"
        assert "closedDate" not in item.to_dict()

    def test_no_matches_skips_fetch(self, ado_config):
        """An empty query result makes no further calls."""
        service = _service(ado_config)
        service.client.query_work_item_ids.return_value = []

        assert service.get_work_items() == []
        service.client.get_work_items.assert_not_called()

    def test_fetches_in_batches_of_200(self, ado_config):
        """Ids are fetched at most 200 at a time."""
        service = _service(ado_config)
        service.client.query_work_item_ids.return_value = list(range(1, 451))
        service.client.get_work_items.return_value = []

        service.get_work_items()

        sizes = [len(c.args[0]) for c in service.client.get_work_items.call_args_list]
        assert sizes == [200, 200, 50]

    def test_query_is_retried_on_throttling(self, ado_config):
        """Each outbound call is wrapped by the retry executor."""
        service = _service(ado_config)
        service.client.query_work_item_ids.side_effect = [
            ApiError("Rate limited", status_code=429),
            [],
        ]

        assert service.get_work_items() == []
        assert service.client.query_work_item_ids.call_count == 2


class TestUpdateDueDate:
    """Test due-date patch documents."""

    def test_set_due_date(self, ado_config):
        """A date adds the field."""
        service = _service(ado_config)

        service.update_due_date(7, "2024-03-01")

        service.client.update_work_item.assert_called_once_with(7, [{
            "op": "add",
            "path": "/fields/Microsoft.VSTS.Scheduling.DueDate",
            "value": "2024-03-01",
        }])

    def test_clear_due_date(self, ado_config):
        """None removes the field."""
        service = _service(ado_config)

        service.update_due_date(7, None)

        service.client.update_work_item.assert_called_once_with(7, [{
            "op": "remove",
            "path": "/fields/Microsoft.VSTS.Scheduling.DueDate",
        }])

    def test_retries_server_errors(self, ado_config):
        """A 500 on update is retried."""
        service = _service(ado_config)
        service.client.update_work_item.side_effect = [ApiError("oops", status_code=500), {}]

        service.update_due_date(7, None)

        assert service.client.update_work_item.call_count == 2


class TestCalculateCycleTimes:
    """Test wiring into the batch orchestrator."""

    def test_uses_configured_batch_and_retry_settings(self, ado_config):
        """Group size and retry policy come from configuration."""
        service = _service(ado_config)
        expected = {1: CycleTimeRecord(cycle_time_days=2)}

        with patch("services.work_items.compute_cycle_times", return_value=expected) as compute:
            result = service.calculate_cycle_times([1, 2])

        assert result == expected
        compute.assert_called_once_with(
            [1, 2],
            service.client.get_revisions,
            group_size=3,
            max_attempts=3,
            initial_delay_ms=1,
        )


class TestHealthCheck:
    """Test upstream liveness probe."""

    def test_healthy(self, ado_config):
        """Reachable project is healthy."""
        service = _service(ado_config)
        service.client.get_project.return_value = {"id": "p"}
        assert service.health_check() is True

    def test_unhealthy_on_api_error(self, ado_config):
        """Upstream errors report unhealthy instead of raising."""
        service = _service(ado_config)
        service.client.get_project.side_effect = ApiError("Unauthorized", status_code=401)
        assert service.health_check() is False
