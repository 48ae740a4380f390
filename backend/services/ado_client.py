"""Azure DevOps work item tracking REST client.

The client performs exactly one HTTP exchange per call. Retrying is left to
``services.retry`` so that callers decide what gets wrapped.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence
from urllib.parse import quote

import requests
from requests.auth import HTTPBasicAuth

from services.config import Config
from services.errors import ApiError
from services.models import RevisionSnapshot

DUE_DATE_FIELD = "Microsoft.VSTS.Scheduling.DueDate"


def parse_datetime(value: Optional[str]) -> Optional[datetime]:
    """Parse Azure DevOps ISO8601 timestamps into timezone-aware datetimes."""
    if not value:
        return None

    normalized = value[:-1] + "+00:00" if value.endswith("Z") else value
    try:
        parsed = datetime.fromisoformat(normalized)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed


class AdoClient:
    """Small, typed client for the Azure DevOps work item tracking APIs."""

    _API_VERSION = "7.1"
    _REVISIONS_PAGE_SIZE = 200
    MAX_WORK_ITEMS_PER_REQUEST = 200

    def __init__(self, config: Config) -> None:
        """Initialize an authenticated Azure DevOps API client.

        Args:
            config: Validated runtime configuration including org URL, project
                and PAT.
        """
        self._config = config
        self._timeout_seconds = config.timeout_seconds
        self._org_url = config.organization_url.rstrip("/")
        self._project_path = quote(config.project, safe="")

        self._session = requests.Session()
        self._session.auth = HTTPBasicAuth("", config.pat)
        self._session.headers.update({"Accept": "application/json"})

    def _build_url(self, path: str, project_scoped: bool = True) -> str:
        """Build a fully qualified API URL from a path below ``_apis``."""
        if project_scoped:
            return f"{self._org_url}/{self._project_path}/_apis/{path.lstrip('/')}"
        return f"{self._org_url}/_apis/{path.lstrip('/')}"

    def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json: Any = None,
        headers: Optional[Dict[str, str]] = None,
        project_scoped: bool = True,
    ) -> Any:
        """Execute a single request and return its decoded JSON body.

        Raises:
            ApiError: On transport failure (no status), on HTTP >= 400 (with
                the response status), or when the body is not valid JSON.
        """
        url = self._build_url(path, project_scoped=project_scoped)
        query = dict(params or {})
        query["api-version"] = self._API_VERSION

        try:
            response = self._session.request(
                method,
                url,
                params=query,
                json=json,
                headers=headers,
                timeout=self._timeout_seconds,
            )
        except requests.RequestException as exc:
            raise ApiError(f"Azure DevOps request failed: {method} {url}: {exc}") from exc

        status_code = response.status_code
        if status_code >= 400:
            raise ApiError(
                "Azure DevOps API request failed: "
                f"{method} {url} returned {status_code} - {response.text}",
                status_code=status_code,
            )

        if not response.content:
            return {}

        try:
            return response.json()
        except ValueError as exc:
            raise ApiError(f"Azure DevOps API returned invalid JSON: {method} {url}") from exc

    def query_work_item_ids(self, wiql: str) -> List[int]:
        """Run a WIQL query and return the matching work item ids in order."""
        payload = self._request("POST", "wit/wiql", json={"query": wiql})
        return [
            int(item["id"])
            for item in payload.get("workItems") or []
            if item.get("id") is not None
        ]

    def get_work_items(self, ids: Sequence[int], fields: Sequence[str]) -> List[Dict[str, Any]]:
        """Fetch raw work item payloads for up to 200 ids."""
        if not ids:
            return []
        if len(ids) > self.MAX_WORK_ITEMS_PER_REQUEST:
            raise ValueError(
                f"At most {self.MAX_WORK_ITEMS_PER_REQUEST} work items can be fetched per request."
            )

        payload = self._request(
            "GET",
            "wit/workitems",
            params={
                "ids": ",".join(str(i) for i in ids),
                "fields": ",".join(fields),
                "errorPolicy": "omit",
            },
        )
        return [item for item in payload.get("value") or [] if item]

    def get_revisions(self, work_item_id: int) -> List[RevisionSnapshot]:
        """List every revision of a work item, oldest first.

        Uses offset pagination via ``$top``/``$skip`` until a partial page.
        """
        revisions: List[RevisionSnapshot] = []
        skip = 0

        while True:
            payload = self._request(
                "GET",
                f"wit/workItems/{work_item_id}/revisions",
                params={"$top": self._REVISIONS_PAGE_SIZE, "$skip": skip},
            )

            page_items = payload.get("value") or []
            for item in page_items:
                fields = item.get("fields") or {}
                revisions.append(
                    RevisionSnapshot(
                        rev=int(item.get("rev") or 0),
                        state=fields.get("System.State"),
                        changed_date=parse_datetime(fields.get("System.ChangedDate")),
                        assigned_to=fields.get("System.AssignedTo"),
                    )
                )

            if len(page_items) < self._REVISIONS_PAGE_SIZE:
                break

            skip += self._REVISIONS_PAGE_SIZE

        return revisions

    def update_work_item(self, work_item_id: int, operations: List[Dict[str, Any]]) -> Dict[str, Any]:
        """Apply a JSON Patch document to a work item."""
        return self._request(
            "PATCH",
            f"wit/workitems/{work_item_id}",
            json=operations,
            headers={"Content-Type": "application/json-patch+json"},
        )

    def get_project(self) -> Dict[str, Any]:
        """Fetch the configured project; used as a connectivity probe."""
        return self._request(
            "GET",
            f"projects/{self._project_path}",
            project_scoped=False,
        )
