"""
Day scoping for the completion ledger.

Contract:
    ``DayScope.current_day_key()`` is computed once per run from the injected
    clock and then stays fixed, so a run that crosses midnight keeps writing
    under the day it started on.

    ``purge_stale()`` removes every ledger entry whose key is not today's.
    It is idempotent: a second call finds nothing to remove.
"""

from __future__ import annotations

from datetime import date, datetime

from fleet_kernel.clock import Clock, SystemClock
from fleet_kernel.logging_config import get_logger
from fleet_store.ledger import KeyValueLedger

logger = get_logger("batch.day_scope")

DAY_KEY_FORMAT = "%Y%m%d"


def day_key_for(moment: datetime | date) -> str:
    """Format a date as a ``YYYYMMDD`` day key."""
    return moment.strftime(DAY_KEY_FORMAT)


def parse_day_key(value: object) -> date | None:
    """Parse a ``YYYYMMDD`` cell back into a date; None when it is not one."""
    text = str(value).strip() if value is not None else ""
    if len(text) != 8 or not text.isdigit():
        return None
    try:
        return datetime.strptime(text, DAY_KEY_FORMAT).date()
    except ValueError:
        return None


def purge_stale(ledger: KeyValueLedger, day_key: str) -> tuple[str, ...]:
    """Remove every ledger entry keyed by anything other than ``day_key``.

    Returns the removed keys in the order they were removed.
    """
    removed: list[str] = []
    index = 0
    while index < ledger.length():
        key = ledger.key_at(index)
        if key is None or key == day_key:
            index += 1
            continue
        ledger.remove(key)
        removed.append(key)
        logger.info("ledger_entry_purged", extra={"key": key, "day_key": day_key})
        # Rows shifted up; re-read the same index.
    return tuple(removed)


class DayScope:
    """Owns the run's day key and the single-day retention of the ledger."""

    def __init__(self, clock: Clock | None = None):
        self._clock = clock or SystemClock()
        self._day_key: str | None = None

    def current_day_key(self) -> str:
        if self._day_key is None:
            self._day_key = day_key_for(self._clock.now_utc())
        return self._day_key

    def today(self) -> date:
        return datetime.strptime(self.current_day_key(), DAY_KEY_FORMAT).date()

    def purge_stale(self, ledger: KeyValueLedger) -> tuple[str, ...]:
        return purge_stale(ledger, self.current_day_key())
