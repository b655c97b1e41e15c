"""
fleet_batch.domain -- Pure types, day scoping and batch selection.

Only ``day_scope`` touches storage, and only through the KeyValueLedger.
"""

from fleet_batch.domain.day_scope import DayScope, day_key_for, parse_day_key, purge_stale
from fleet_batch.domain.selection import select_batch
from fleet_batch.domain.types import (
    AccountRef,
    AccountResult,
    AccountStatus,
    BatchSelection,
    FetchOutcome,
    FetchStatus,
    RunOutcome,
    RunStatus,
)

__all__ = [
    "AccountRef",
    "AccountResult",
    "AccountStatus",
    "BatchSelection",
    "DayScope",
    "FetchOutcome",
    "FetchStatus",
    "RunOutcome",
    "RunStatus",
    "day_key_for",
    "parse_day_key",
    "purge_stale",
    "select_batch",
]
