"""
RunCoordinator -- one resumable invocation of the cross-account report.

Contract:
    ``run()`` executes, strictly in order:

        1. Purge   -- drop every ledger entry not keyed by today's day key.
        2. Load    -- read today's completion map (absent -> empty).
        3. Select  -- next batch of unprocessed accounts, size <= ceiling.
                      An empty batch ends the run as NOTHING_TO_DO.
        4. Dispatch-- fan the batch out to the fetch adapter, wait for all.
        5. Persist -- report sink purges expired rows and appends new ones;
                      succeeded and empty accounts are marked ``True``.
        6. Save    -- ``ledger.set(day_key, completion_map)``.

    Failed accounts stay unmarked and are selected again by a later run.

Failure modes:
    - ``StorageFaultError`` from any step propagates; nothing after the
      failing step runs, so the completion map is not saved.
    - A host timeout before step 6 loses this run's marks.  Re-running
      re-fetches those accounts and appends duplicate report rows; it never
      corrupts the ledger.

Non-goals:
    - Does NOT lock the workbook -- the orchestrator owns the run lock.
"""

from __future__ import annotations

import time
from typing import Any

from fleet_kernel.clock import Clock, SystemClock
from fleet_kernel.logging_config import LogContext, get_logger
from fleet_store.ledger import KeyValueLedger

from fleet_batch.domain.day_scope import DayScope
from fleet_batch.domain.selection import select_batch
from fleet_batch.domain.types import AccountStatus, RunOutcome, RunStatus
from fleet_batch.services.dispatcher import AccountDispatcher
from fleet_batch.tasks.base import AccountDirectory, ReportSink

logger = get_logger("batch.coordinator")


class RunCoordinator:
    """Orchestrates purge -> load -> select -> dispatch -> persist -> save."""

    def __init__(
        self,
        ledger: KeyValueLedger,
        directory: AccountDirectory,
        dispatcher: AccountDispatcher,
        report_sink: ReportSink,
        parallel_execution_limit: int,
        clock: Clock | None = None,
        day_scope: DayScope | None = None,
    ):
        if parallel_execution_limit < 1:
            raise ValueError(
                f"parallel_execution_limit must be >= 1, got {parallel_execution_limit}"
            )
        self._ledger = ledger
        self._directory = directory
        self._dispatcher = dispatcher
        self._report_sink = report_sink
        self._limit = parallel_execution_limit
        self._clock = clock or SystemClock()
        self._day_scope = day_scope or DayScope(self._clock)

    @property
    def day_key(self) -> str:
        return self._day_scope.current_day_key()

    def load_completion_map(self) -> dict[str, bool]:
        """Today's completion map; anything that is not a mapping reads as empty."""
        value: Any = self._ledger.get(self.day_key)
        if value is None:
            return {}
        if not isinstance(value, dict):
            logger.warning(
                "completion_map_unusable",
                extra={"day_key": self.day_key, "value_type": type(value).__name__},
            )
            return {}
        return {str(k): bool(v) for k, v in value.items()}

    def run(self) -> RunOutcome:
        start = time.monotonic()
        started_at = self._clock.now()
        day_key = self.day_key

        with LogContext.bind(day_key=day_key):
            # 1. Purge
            purged_keys = self._day_scope.purge_stale(self._ledger)

            # 2. Load
            completion_map = self.load_completion_map()

            # 3. Select
            account_ids = [a.customer_id for a in self._directory.list_all()]
            selection = select_batch(account_ids, completion_map, self._limit)
            for cid in selection.processed:
                logger.debug("account_already_processed", extra={"customer_id": cid})
            for cid in selection.batch + selection.deferred:
                logger.debug("account_pending", extra={"customer_id": cid})
            if selection.deferred:
                logger.info(
                    "parallel_limit_reached",
                    extra={
                        "limit": self._limit,
                        "deferred": len(selection.deferred),
                    },
                )

            if not selection.batch:
                logger.info(
                    "run_nothing_to_do",
                    extra={"processed": len(selection.processed)},
                )
                return RunOutcome(
                    day_key=day_key,
                    status=RunStatus.NOTHING_TO_DO,
                    purged_keys=purged_keys,
                    started_at=started_at,
                    completed_at=self._clock.now(),
                    duration_ms=int((time.monotonic() - start) * 1000),
                )

            # 4. Dispatch
            accounts = self._directory.filter_by_ids(selection.batch)
            logger.info(
                "batch_dispatched",
                extra={"batch_size": len(accounts), "pending": selection.pending_count},
            )
            results = self._dispatcher.dispatch(accounts, day_key)

            # 5. Persist
            summary = self._report_sink.store_results(results, self._day_scope.today())
            for result in results:
                if result.is_complete:
                    completion_map[result.customer_id] = True

            # 6. Save
            self._ledger.set(day_key, completion_map)

            succeeded = tuple(
                r.customer_id for r in results if r.status == AccountStatus.SUCCEEDED
            )
            empty = tuple(r.customer_id for r in results if r.status == AccountStatus.EMPTY)
            failed = tuple(r.customer_id for r in results if r.status == AccountStatus.FAILED)

            if not failed:
                status = RunStatus.COMPLETED
            elif succeeded or empty:
                status = RunStatus.PARTIALLY_COMPLETED
            else:
                status = RunStatus.FAILED

            outcome = RunOutcome(
                day_key=day_key,
                status=status,
                batch=selection.batch,
                succeeded=succeeded,
                empty=empty,
                failed=failed,
                deferred_count=len(selection.deferred),
                purged_keys=purged_keys,
                rows_written=summary.rows_written,
                rows_purged=summary.rows_purged,
                account_results=results,
                started_at=started_at,
                completed_at=self._clock.now(),
                duration_ms=int((time.monotonic() - start) * 1000),
            )

            logger.info(
                "run_completed",
                extra={
                    "status": status.value,
                    "succeeded": len(succeeded),
                    "empty": len(empty),
                    "failed": len(failed),
                    "deferred": outcome.deferred_count,
                    "rows_written": outcome.rows_written,
                    "rows_purged": outcome.rows_purged,
                    "duration_ms": outcome.duration_ms,
                },
            )
            return outcome
