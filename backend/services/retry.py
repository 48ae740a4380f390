"""Retry with exponential backoff for flaky Azure DevOps calls.

Only throttling (429) and server-side (5xx) failures are retried. Everything
else is re-raised on the spot, and the exception that finally escapes is
always the one the operation raised, so callers can still read its status.
"""

import logging
import time
from typing import Callable, Optional, TypeVar

from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_INITIAL_DELAY_MS = 1000


def get_status_code(error: BaseException) -> Optional[int]:
    """Return the HTTP status carried by a failure, if any.

    ``ApiError`` exposes ``status_code``; ``status`` is accepted as an alias
    for failures raised by code outside our own HTTP client.
    """
    for attr in ("status_code", "status"):
        value = getattr(error, attr, None)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    return None


def is_retryable(error: BaseException) -> bool:
    """Check whether a failure is transient (HTTP 429 or 5xx)."""
    status = get_status_code(error)
    if status is None:
        return False
    return status == 429 or 500 <= status <= 599


def execute(
    operation: Callable[[], T],
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    initial_delay_ms: int = DEFAULT_INITIAL_DELAY_MS,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Call ``operation`` and retry it on transient failures.

    The n-th retry (zero-based) waits ``initial_delay_ms * 2**n`` milliseconds.

    Args:
        operation: Zero-argument callable to invoke.
        max_attempts: Total number of calls allowed, including the first.
        initial_delay_ms: Delay before the first retry, in milliseconds.
        sleep: Function used to wait, taking seconds.

    Returns:
        Whatever ``operation`` returns on its first successful call.

    Raises:
        Exception: The failure raised by ``operation``, unchanged, when it is
            not retryable or when all attempts are used up.
    """
    retrying = Retrying(
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(multiplier=initial_delay_ms / 1000.0, exp_base=2, min=0),
        retry=retry_if_exception(is_retryable),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        sleep=sleep,
        reraise=True,
    )
    return retrying(operation)
