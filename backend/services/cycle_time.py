"""Cycle time calculation from work item revision history.

Cycle time business logic:
- Developer cycle time: first entry into "In Progress" until first entry into
  "Ready For Test".
- QA cycle time: first entry into "Ready For Test" until first entry into
  "UAT - Ready For Test".
- Only the first time an item reaches a state counts; later regressions and
  re-entries are ignored.
- Elapsed days are rounded up from full timestamps and are reported as
  computed, including negative values from out-of-order histories.
"""

from __future__ import annotations

import logging
import math
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import date, datetime, timedelta, timezone
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Tuple

from services.models import CycleTimeRecord, RevisionSnapshot
from services.retry import DEFAULT_INITIAL_DELAY_MS, DEFAULT_MAX_ATTEMPTS, execute

logger = logging.getLogger(__name__)

IN_PROGRESS = "In Progress"
READY_FOR_TEST = "Ready For Test"
UAT_READY_FOR_TEST = "UAT - Ready For Test"

DEFAULT_GROUP_SIZE = 3

_ONE_DAY = timedelta(days=1)


def resolve_actor(reference: Any) -> Any:
    """Turn an assignee reference into the actor of record.

    Identity objects resolve to ``displayName``, then ``uniqueName``, then
    the reference itself. Plain strings are used as they are. Empty values
    resolve to ``None``.
    """
    if not reference:
        return None
    if isinstance(reference, dict):
        return reference.get("displayName") or reference.get("uniqueName") or reference
    return reference


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _elapsed_days(start: datetime, end: datetime) -> int:
    return math.ceil((end - start) / _ONE_DAY)


def _day(value: Optional[datetime]) -> Optional[date]:
    return value.date() if value is not None else None


def scan_revisions(revisions: Sequence[RevisionSnapshot]) -> Optional[CycleTimeRecord]:
    """Reduce an oldest-first revision history to a cycle time record.

    Returns ``None`` for an empty history. Any non-empty history yields a
    record, even when none of the tracked states was ever reached.
    """
    if not revisions:
        return None

    in_progress_at: Optional[datetime] = None
    qa_ready_at: Optional[datetime] = None
    uat_ready_at: Optional[datetime] = None
    developer: Any = None
    tester: Any = None

    for revision in revisions:
        if revision.changed_date is None:
            continue
        state = revision.state

        if in_progress_at is None and state == IN_PROGRESS:
            in_progress_at = _as_utc(revision.changed_date)
            developer = resolve_actor(revision.assigned_to)

        if qa_ready_at is None and state == READY_FOR_TEST:
            qa_ready_at = _as_utc(revision.changed_date)
            tester = resolve_actor(revision.assigned_to)

        if uat_ready_at is None and state == UAT_READY_FOR_TEST:
            uat_ready_at = _as_utc(revision.changed_date)

    record = CycleTimeRecord(
        in_progress_date=_day(in_progress_at),
        qa_ready_date=_day(qa_ready_at),
        uat_ready_date=_day(uat_ready_at),
        assigned_to=developer,
        qa_assigned_to=tester,
    )

    if in_progress_at is not None and qa_ready_at is not None:
        record.cycle_time_days = _elapsed_days(in_progress_at, qa_ready_at)

    if qa_ready_at is not None and uat_ready_at is not None:
        record.qa_cycle_time_days = _elapsed_days(qa_ready_at, uat_ready_at)

    return record


def iter_groups(ids: Sequence[int], size: int) -> Iterator[List[int]]:
    """Yield consecutive slices of ``ids`` with at most ``size`` members."""
    if size <= 0:
        raise ValueError("Group size must be greater than 0.")
    for start in range(0, len(ids), size):
        yield list(ids[start:start + size])


def compute_cycle_times(
    ids: Sequence[int],
    fetch_revisions: Callable[[int], Sequence[RevisionSnapshot]],
    group_size: int = DEFAULT_GROUP_SIZE,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    initial_delay_ms: int = DEFAULT_INITIAL_DELAY_MS,
    sleep: Optional[Callable[[float], None]] = None,
) -> Dict[int, CycleTimeRecord]:
    """Compute cycle time records for many work items.

    Ids are processed in groups of ``group_size``. Members of a group are
    fetched concurrently; the next group starts only after the current one
    has finished. Each fetch is retried on its own, and an item that still
    fails is logged and left out of the result without affecting the others.

    Args:
        ids: Work item ids to analyze.
        fetch_revisions: Returns the oldest-first revision history of one id.
        group_size: Number of items fetched concurrently.
        max_attempts: Attempts per item fetch, including the first.
        initial_delay_ms: Initial backoff delay per item fetch.
        sleep: Optional wait function forwarded to the retry executor.

    Returns:
        Mapping of work item id to record, containing only ids for which at
        least one field could be derived.
    """
    retry_options: Dict[str, Any] = {
        "max_attempts": max_attempts,
        "initial_delay_ms": initial_delay_ms,
    }
    if sleep is not None:
        retry_options["sleep"] = sleep

    def compute_one(work_item_id: int) -> Tuple[int, Optional[CycleTimeRecord]]:
        try:
            revisions = execute(lambda: fetch_revisions(work_item_id), **retry_options)
            return work_item_id, scan_revisions(revisions)
        except Exception as e:
            logger.warning(f"Error calculating cycle time for work item {work_item_id}: {e}")
            return work_item_id, None

    groups = list(iter_groups(ids, group_size))
    results: Dict[int, CycleTimeRecord] = {}

    for index, group in enumerate(groups, start=1):
        logger.info(f"Processing cycle time batch {index}/{len(groups)}")

        with ThreadPoolExecutor(max_workers=len(group)) as executor:
            futures = {executor.submit(compute_one, i): i for i in group}
            for future in as_completed(futures):
                work_item_id, record = future.result()
                if record is not None and record.has_data():
                    results[work_item_id] = record

    return results
