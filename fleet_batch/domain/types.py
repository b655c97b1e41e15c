"""
fleet_batch.domain.types -- Pure frozen dataclasses for the report batch.

ZERO I/O.  Frozen dataclasses with enum status fields and tuples for
immutable collections.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any


# =============================================================================
# Status enums
# =============================================================================


class FetchStatus(str, Enum):
    """Status reported by a fetch adapter for one account."""

    OK = "OK"
    ERROR = "ERROR"


class AccountStatus(str, Enum):
    """Per-account outcome within one run."""

    SUCCEEDED = "succeeded"  # Rows fetched and stored
    EMPTY = "empty"  # Query succeeded with nothing to report
    FAILED = "failed"  # Left unmarked, retried next invocation


class RunStatus(str, Enum):
    """Outcome of one invocation."""

    COMPLETED = "completed"  # Every dispatched account succeeded or was empty
    PARTIALLY_COMPLETED = "partially_completed"  # Some accounts failed
    FAILED = "failed"  # Every dispatched account failed
    NOTHING_TO_DO = "nothing_to_do"  # Everything already processed today


# =============================================================================
# External collaborator DTOs
# =============================================================================


@dataclass(frozen=True)
class AccountRef:
    """One account from the account directory."""

    customer_id: str
    name: str | None = None


@dataclass(frozen=True)
class FetchOutcome:
    """What a fetch adapter returns for one account.

    ``rows`` holds projected report rows (timestamp cell included).  An
    ``OK`` outcome with no rows is an empty result, not a failure.
    """

    status: FetchStatus
    rows: tuple[tuple[Any, ...], ...] = ()
    error_message: str | None = None

    @classmethod
    def ok(cls, rows: Any = ()) -> FetchOutcome:
        return cls(status=FetchStatus.OK, rows=tuple(tuple(r) for r in rows))

    @classmethod
    def error(cls, message: str) -> FetchOutcome:
        return cls(status=FetchStatus.ERROR, error_message=message)


# =============================================================================
# Run DTOs
# =============================================================================


@dataclass(frozen=True)
class BatchSelection:
    """Result of partitioning the directory against today's completion map."""

    batch: tuple[str, ...]
    processed: tuple[str, ...] = ()
    deferred: tuple[str, ...] = ()

    @property
    def pending_count(self) -> int:
        return len(self.batch) + len(self.deferred)


@dataclass(frozen=True)
class AccountResult:
    """Immutable result of dispatching one account."""

    customer_id: str
    status: AccountStatus
    rows: tuple[tuple[Any, ...], ...] = ()
    error_code: str | None = None
    error_message: str | None = None
    duration_ms: int = 0
    started_at: datetime | None = None
    completed_at: datetime | None = None

    @property
    def is_complete(self) -> bool:
        """Whether the account may be marked processed for today."""
        return self.status in (AccountStatus.SUCCEEDED, AccountStatus.EMPTY)


@dataclass(frozen=True)
class RunOutcome:
    """Immutable summary of one invocation, returned by ``RunCoordinator.run()``."""

    day_key: str
    status: RunStatus
    batch: tuple[str, ...] = ()
    succeeded: tuple[str, ...] = ()
    empty: tuple[str, ...] = ()
    failed: tuple[str, ...] = ()
    deferred_count: int = 0
    purged_keys: tuple[str, ...] = ()
    rows_written: int = 0
    rows_purged: int = 0
    account_results: tuple[AccountResult, ...] = ()
    started_at: datetime | None = None
    completed_at: datetime | None = None
    duration_ms: int = 0
