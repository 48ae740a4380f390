"""Shared fixtures for scheduler backend tests."""

import os
import sys
from datetime import datetime, timezone

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from services.config import Config
from services.models import RevisionSnapshot


def utc(year, month, day, hour=0, minute=0):
    """Build a timezone-aware UTC datetime."""
    return datetime(year, month, day, hour, minute, tzinfo=timezone.utc)


@pytest.fixture
def ado_config():
    """Azure DevOps settings for testing, with zero retry delay."""
    return Config(
        organization_url="https://dev.azure.com/test-org",
        project="Test Project",
        pat="test-pat-123",
        area_path="Test Project\\Team A",
        batch_size=3,
        retry_attempts=3,
        retry_delay_ms=1,
        timeout_seconds=30,
    )


@pytest.fixture
def developer():
    """Identity reference as delivered in System.AssignedTo."""
    return {
        "displayName": "Dana Developer",
        "uniqueName": "dana@example.com",
        "id": "c0ffee00-0000-0000-0000-000000000001"
    }


@pytest.fixture
def tester():
    """Identity reference for the QA tester."""
    return {
        "displayName": "Quinn Tester",
        "uniqueName": "quinn@example.com",
        "id": "c0ffee00-0000-0000-0000-000000000002"
    }


@pytest.fixture
def full_history(developer, tester):
    """Revision history passing through every tracked milestone."""
    return [
        RevisionSnapshot(rev=1, state="New", changed_date=utc(2024, 1, 1, 9), assigned_to=None),
        RevisionSnapshot(rev=2, state="In Progress", changed_date=utc(2024, 1, 2, 10), assigned_to=developer),
        RevisionSnapshot(rev=3, state="In Progress", changed_date=utc(2024, 1, 3, 15), assigned_to=developer),
        RevisionSnapshot(rev=4, state="Ready For Test", changed_date=utc(2024, 1, 5, 9), assigned_to=tester),
        RevisionSnapshot(rev=5, state="UAT - Ready For Test", changed_date=utc(2024, 1, 8, 12), assigned_to=tester),
        RevisionSnapshot(rev=6, state="Done", changed_date=utc(2024, 1, 9, 8), assigned_to=tester),
    ]


@pytest.fixture
def revisions_payload():
    """Raw revisions response from the Azure DevOps REST API."""
    return {
        "count": 3,
        "value": [
            {
                "id": 42,
                "rev": 1,
                "fields": {
                    "System.State": "New",
                    "System.ChangedDate": "2024-01-01T09:00:00.000Z"
                }
            },
            {
                "id": 42,
                "rev": 2,
                "fields": {
                    "System.State": "In Progress",
                    "System.ChangedDate": "2024-01-02T10:30:00.123Z",
                    "System.AssignedTo": {
                        "displayName": "Dana Developer",
                        "uniqueName": "dana@example.com"
                    }
                }
            },
            {
                "id": 42,
                "rev": 3,
                "fields": {
                    "System.State": "Ready For Test",
                    "System.ChangedDate": "2024-01-05T09:00:00Z"
                }
            }
        ]
    }


@pytest.fixture
def work_item_payload():
    """Raw work item as returned by the batch work items API."""
    return {
        "id": 101,
        "rev": 7,
        "fields": {
            "System.Id": 101,
            "System.Title": "Calendar drag and drop",
            "System.State": "In Progress",
            "System.AssignedTo": {"displayName": "Dana Developer", "uniqueName": "dana@example.com"},
            "System.WorkItemType": "Product Backlog Item",
            "System.ChangedDate": "2024-02-01T12:00:00.000Z",
            "System.CreatedDate": "2024-01-15T08:00:00.000Z",
            "System.AreaPath": "Test Project\\Team A",
            "System.IterationPath": "Test Project\\Sprint 5",
            "Microsoft.VSTS.Scheduling.DueDate": "2024-02-10T00:00:00Z"
        }
    }


@pytest.fixture
def app(ado_config):
    """Create Flask test app."""
    from app import create_app
    app = create_app(config=ado_config)
    app.config['TESTING'] = True
    return app


@pytest.fixture
def client(app):
    """Create Flask test client."""
    return app.test_client()
