"""Exception types shared by the scheduler services and API layer."""

from typing import Optional


class SchedulerError(Exception):
    """Base exception for all recoverable scheduler errors."""


class ConfigurationError(SchedulerError):
    """Raised when runtime configuration values are missing or invalid."""


class AuthenticationError(SchedulerError):
    """Raised when the Azure DevOps personal access token is unavailable."""


class ValidationError(SchedulerError):
    """Raised when request input is rejected before any upstream call."""


class ApiError(SchedulerError):
    """Raised when an Azure DevOps request fails or returns an unexpected response.

    Every upstream failure is converted into this type where it is first
    observed. ``status_code`` carries the HTTP status when the upstream
    answered, and is ``None`` for transport failures or malformed payloads.
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code
