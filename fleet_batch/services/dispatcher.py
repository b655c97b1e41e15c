"""
AccountDispatcher -- bounded fan-out of one batch to the fetch adapter.

Contract:
    ``dispatch(accounts, day_key)`` runs ``FetchAdapter.fetch`` once per
    account on a thread pool of at most ``max_workers`` threads and blocks
    until every account has returned (wait-for-all barrier).  Results come
    back in batch order.

    Per-account failures are data, never exceptions: an ERROR status or an
    exception raised by the adapter yields an ``AccountStatus.FAILED``
    result and the remaining accounts are unaffected.

Non-goals:
    - No streaming consumption of partial results.
    - No retry; a failed account is retried by the next invocation.
"""

from __future__ import annotations

import time
from concurrent.futures import ThreadPoolExecutor, wait
from typing import Sequence

from fleet_kernel.clock import Clock, SystemClock
from fleet_kernel.logging_config import LogContext, get_logger

from fleet_batch.domain.types import (
    AccountRef,
    AccountResult,
    AccountStatus,
    FetchStatus,
)
from fleet_batch.tasks.base import FetchAdapter

logger = get_logger("batch.dispatcher")


class AccountDispatcher:
    """Fan out a batch across a bounded thread pool and join the results."""

    def __init__(
        self,
        fetch_adapter: FetchAdapter,
        max_workers: int,
        clock: Clock | None = None,
    ):
        if max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {max_workers}")
        self._fetch_adapter = fetch_adapter
        self._max_workers = max_workers
        self._clock = clock or SystemClock()

    def dispatch(
        self,
        accounts: Sequence[AccountRef],
        day_key: str,
    ) -> tuple[AccountResult, ...]:
        if not accounts:
            return ()

        # Worker threads start with an empty context; carry the run fields over.
        context = LogContext.get_all()
        workers = min(self._max_workers, len(accounts))

        with ThreadPoolExecutor(
            max_workers=workers, thread_name_prefix="account-fetch",
        ) as pool:
            futures = [
                pool.submit(self._run_one, account, day_key, context)
                for account in accounts
            ]
            wait(futures)

        return tuple(f.result() for f in futures)

    def _run_one(
        self,
        account: AccountRef,
        day_key: str,
        context: dict[str, str],
    ) -> AccountResult:
        with LogContext.bind(**context), LogContext.bind(customer_id=account.customer_id):
            start = time.monotonic()
            started_at = self._clock.now()
            try:
                outcome = self._fetch_adapter.fetch(account, day_key)
            except Exception as exc:
                logger.warning(
                    "account_fetch_raised",
                    exc_info=True,
                    extra={"customer_id": account.customer_id},
                )
                return AccountResult(
                    customer_id=account.customer_id,
                    status=AccountStatus.FAILED,
                    error_code="UNHANDLED_EXCEPTION",
                    error_message=str(exc),
                    duration_ms=int((time.monotonic() - start) * 1000),
                    started_at=started_at,
                    completed_at=self._clock.now(),
                )

            duration = int((time.monotonic() - start) * 1000)
            completed_at = self._clock.now()

            if outcome.status != FetchStatus.OK:
                logger.warning(
                    "account_fetch_failed",
                    extra={
                        "customer_id": account.customer_id,
                        "fetch_status": outcome.status.value,
                        "error_message": outcome.error_message,
                    },
                )
                return AccountResult(
                    customer_id=account.customer_id,
                    status=AccountStatus.FAILED,
                    error_code="FETCH_ERROR",
                    error_message=(
                        outcome.error_message
                        or f"Error for {account.customer_id}"
                    ),
                    duration_ms=duration,
                    started_at=started_at,
                    completed_at=completed_at,
                )

            if not outcome.rows:
                return AccountResult(
                    customer_id=account.customer_id,
                    status=AccountStatus.EMPTY,
                    duration_ms=duration,
                    started_at=started_at,
                    completed_at=completed_at,
                )

            return AccountResult(
                customer_id=account.customer_id,
                status=AccountStatus.SUCCEEDED,
                rows=outcome.rows,
                duration_ms=duration,
                started_at=started_at,
                completed_at=completed_at,
            )
