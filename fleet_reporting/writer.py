"""
ReportWriter -- formatting and retention adapter over the report sheet.

Contract:
    The report region is ``[<select fields...>, Timestamp]`` with a frozen
    header row.  Rows are only ever appended; the only other mutation is
    bulk deletion of rows whose Timestamp cell is ``retention_days`` or more
    days before today (a row stamped at midnight is past the window as soon
    as the day that many days later begins).

    Deletion collects every expired data row first, groups contiguous rows
    into buckets, and deletes the buckets from the bottom of the sheet up so
    that earlier deletions never shift rows still waiting to be deleted.

Failure modes:
    - Rows with a missing or unparseable Timestamp are kept.
    - Storage faults propagate unchanged.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Sequence

from fleet_kernel.logging_config import get_logger
from fleet_store.tabular import TabularStore

from fleet_batch.domain.day_scope import parse_day_key
from fleet_batch.domain.types import AccountResult, AccountStatus
from fleet_batch.tasks.base import ReportWriteSummary

logger = get_logger("reporting.writer")

TIMESTAMP_COLUMN = "Timestamp"


def expired_row_buckets(
    rows: Sequence[Sequence[Any]],
    timestamp_index: int,
    today: date,
    retention_days: int,
    first_row: int = 2,
) -> list[list[int]]:
    """Group the 1-based sheet row numbers of expired rows into contiguous runs.

    ``rows`` are data rows only; ``first_row`` is the sheet row number of
    ``rows[0]`` (2 when a header occupies row 1).
    """
    buckets: list[list[int]] = []
    last = -2
    for i, row in enumerate(rows):
        cell = row[timestamp_index] if len(row) > timestamp_index else None
        stamped = parse_day_key(cell)
        if stamped is None:
            continue
        if (today - stamped).days < retention_days:
            continue
        if i - last > 1:
            buckets.append([])
        buckets[-1].append(i + first_row)
        last = i
    return buckets


class ReportWriter:
    """Append-only report surface with a retention purge."""

    def __init__(
        self,
        store: TabularStore,
        fields: Sequence[str],
        retention_days: int = 30,
    ):
        if retention_days < 0:
            raise ValueError(f"retention_days must be >= 0, got {retention_days}")
        self._store = store
        self._fields = tuple(fields)
        self._retention_days = retention_days

    @property
    def header(self) -> tuple[str, ...]:
        return self._fields + (TIMESTAMP_COLUMN,)

    @property
    def timestamp_index(self) -> int:
        return len(self._fields)

    def ensure_header(self) -> None:
        """Write and freeze the header while the sheet holds fewer than two rows."""
        rows = self._store.read_all()
        if len(rows) < 2:
            if rows:
                self._store.overwrite(1, list(self.header))
            else:
                self._store.append(list(self.header))
        self._store.freeze_header(1)

    def purge_expired(self, today: date) -> int:
        """Delete data rows aged ``retention_days`` or more. Returns rows deleted."""
        rows = self._store.read_all()
        buckets = expired_row_buckets(
            rows[1:], self.timestamp_index, today, self._retention_days,
        )
        deleted = 0
        for bucket in reversed(buckets):
            logger.info(
                "report_rows_deleted",
                extra={
                    "region": self._store.region,
                    "from_row": bucket[0],
                    "to_row": bucket[-1],
                    "count": len(bucket),
                },
            )
            self._store.delete(bucket[0], len(bucket))
            deleted += len(bucket)
        return deleted

    def append_results(self, results: Sequence[AccountResult]) -> int:
        """Append the rows of every succeeded account as one block."""
        block: list[list[Any]] = []
        for result in results:
            if result.status == AccountStatus.EMPTY:
                logger.info(
                    "account_no_results",
                    extra={"customer_id": result.customer_id},
                )
                continue
            if result.status != AccountStatus.SUCCEEDED:
                continue
            logger.info(
                "account_results_stored",
                extra={
                    "customer_id": result.customer_id,
                    "rows": len(result.rows),
                },
            )
            block.extend(list(row) for row in result.rows)
        if block:
            self._store.extend(block)
        return len(block)

    def store_results(
        self,
        results: Sequence[AccountResult],
        today: date,
    ) -> ReportWriteSummary:
        self.ensure_header()
        purged = self.purge_expired(today)
        written = self.append_results(results)
        return ReportWriteSummary(rows_written=written, rows_purged=purged)
