"""Configuration parsing and validation for the scheduler backend."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Tuple

from services.errors import AuthenticationError, ConfigurationError

DEFAULT_CORS_ORIGINS = ("http://localhost:5173", "http://127.0.0.1:5173")


@dataclass(frozen=True)
class Config:
    """Validated runtime settings for the Azure DevOps connection."""

    organization_url: str
    project: str
    pat: str
    area_path: str = ""
    batch_size: int = 3
    retry_attempts: int = 3
    retry_delay_ms: int = 1000
    timeout_seconds: int = 120
    log_level: str = "INFO"
    cors_origins: Tuple[str, ...] = DEFAULT_CORS_ORIGINS


def _positive_int(name: str, default: int) -> int:
    """Read a positive integer setting from the environment.

    Raises:
        ConfigurationError: If the value is not an integer greater than ``0``.
    """
    raw = os.getenv(name, "").strip()
    if not raw:
        return default

    try:
        parsed = int(raw)
    except ValueError as exc:
        raise ConfigurationError(
            f"Invalid value for '{name}': expected an integer, got {raw!r}."
        ) from exc

    if parsed <= 0:
        raise ConfigurationError(
            f"Invalid value for '{name}': expected an integer greater than 0."
        )

    return parsed


def _organization_url(value: str) -> str:
    """Accept either a full organization URL or a bare organization name."""
    value = value.strip().rstrip("/")
    if value.startswith(("http://", "https://")):
        return value
    return f"https://dev.azure.com/{value}"


def load_config() -> Config:
    """Build and validate application configuration from environment variables.

    Returns:
        A validated ``Config`` instance.

    Raises:
        ConfigurationError: If ``ADO_ORG`` or ``ADO_PROJECT`` is missing, or a
            numeric setting is invalid.
        AuthenticationError: If ``ADO_PAT`` is not configured.
    """
    organization = os.getenv("ADO_ORG", "").strip()
    project = os.getenv("ADO_PROJECT", "").strip()
    missing = [
        name for name, value in (("ADO_ORG", organization), ("ADO_PROJECT", project))
        if not value
    ]
    if missing:
        raise ConfigurationError(
            f"Missing required environment variables: {', '.join(missing)}"
        )

    pat = os.getenv("ADO_PAT", "").strip()
    if not pat:
        raise AuthenticationError(
            "Missing required Azure DevOps Personal Access Token. "
            "Set the 'ADO_PAT' environment variable before starting the server."
        )

    origins = os.getenv("CORS_ORIGINS", "")
    cors_origins = tuple(o.strip() for o in origins.split(",") if o.strip())

    return Config(
        organization_url=_organization_url(organization),
        project=project,
        pat=pat,
        area_path=os.getenv("ADO_AREA_PATH", "").strip(),
        batch_size=_positive_int("CYCLE_TIME_BATCH_SIZE", 3),
        retry_attempts=_positive_int("ADO_RETRY_ATTEMPTS", 3),
        retry_delay_ms=_positive_int("ADO_RETRY_DELAY_MS", 1000),
        timeout_seconds=_positive_int("ADO_TIMEOUT_SECONDS", 120),
        log_level=os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO",
        cors_origins=cors_origins or DEFAULT_CORS_ORIGINS,
    )
