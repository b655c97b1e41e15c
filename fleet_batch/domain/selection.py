"""
Pure batch selection (ZERO I/O).

``select_batch`` partitions the live account directory against today's
completion map and truncates the not-yet-processed accounts to the
parallelism ceiling.  Directory enumeration order is preserved and there is
no randomization, so repeated runs over a stable directory make monotonic
progress: after ``ceil(pending / ceiling)`` fully successful runs the batch
is empty.
"""

from __future__ import annotations

from typing import Any, Iterable, Mapping

from fleet_batch.domain.types import BatchSelection


def select_batch(
    account_ids: Iterable[str],
    completion_map: Mapping[str, Any],
    ceiling: int,
) -> BatchSelection:
    """Select the next batch of unprocessed accounts.

    Args:
        account_ids: Live directory ids, in enumeration order.
        completion_map: Today's map of account id -> processed flag.
        ceiling: Maximum batch size (parallel execution limit).

    Raises:
        ValueError: If ``ceiling`` is less than 1.
    """
    if ceiling < 1:
        raise ValueError(f"Parallelism ceiling must be >= 1, got {ceiling}")

    processed: list[str] = []
    pending: list[str] = []
    seen: set[str] = set()
    for raw_id in account_ids:
        cid = str(raw_id)
        if cid in seen:
            continue
        seen.add(cid)
        if completion_map.get(cid):
            processed.append(cid)
        else:
            pending.append(cid)

    return BatchSelection(
        batch=tuple(pending[:ceiling]),
        processed=tuple(processed),
        deferred=tuple(pending[ceiling:]),
    )
