"""
External collaborator protocols for the report batch.

Contract:
    ``AccountDirectory`` enumerates the live fleet; the run consumes
    ``list_all()`` for selection and ``filter_by_ids()`` to resolve the
    selected batch back into account references.

    ``FetchAdapter`` runs the fixed report query for one account and returns
    projected rows.  Errors are surfaced as ``FetchStatus.ERROR`` outcomes;
    an adapter that raises anyway is caught by the dispatcher and recorded
    as a failed account.

    ``ReportSink`` receives the joined results of a batch, purges report
    rows past the retention window and appends the new rows.

Architecture:
    fleet_batch/tasks.  Imports from fleet_batch.domain only (PyYAML for
    directory files).
"""

from __future__ import annotations

import csv
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Any, Iterable, Protocol, Sequence, runtime_checkable

import yaml

from fleet_batch.domain.types import AccountRef, AccountResult, FetchOutcome


@runtime_checkable
class AccountDirectory(Protocol):
    """Enumerable, filterable set of accounts."""

    def list_all(self) -> Iterable[AccountRef]:
        """Every live account, in a stable enumeration order."""
        ...

    def filter_by_ids(self, customer_ids: Sequence[str]) -> tuple[AccountRef, ...]:
        """The accounts with the given ids, in the order of ``customer_ids``."""
        ...


@runtime_checkable
class FetchAdapter(Protocol):
    """Runs the report query for one account."""

    def fetch(self, account: AccountRef, day_key: str) -> FetchOutcome:
        """Return projected rows (timestamp cell included) or an error status."""
        ...


# =============================================================================
# StaticAccountDirectory
# =============================================================================


class StaticAccountDirectory:
    """AccountDirectory over a fixed list of accounts.

    ``from_file`` accepts a YAML list (ids or ``{customer_id, name}``
    mappings, optionally under an ``accounts`` key) or a CSV file with a
    ``customer_id`` column and an optional ``name`` column.
    """

    def __init__(self, accounts: Iterable[AccountRef | str]):
        refs: list[AccountRef] = []
        for account in accounts:
            if isinstance(account, AccountRef):
                refs.append(account)
            else:
                refs.append(AccountRef(customer_id=str(account)))
        self._accounts = tuple(refs)
        self._by_id = {a.customer_id: a for a in self._accounts}

    @classmethod
    def from_file(cls, path: Path | str) -> StaticAccountDirectory:
        path = Path(path)
        if path.suffix.lower() == ".csv":
            with path.open("r", encoding="utf-8-sig", newline="") as f:
                return cls(
                    AccountRef(
                        customer_id=row["customer_id"].strip(),
                        name=(row.get("name") or "").strip() or None,
                    )
                    for row in csv.DictReader(f)
                    if (row.get("customer_id") or "").strip()
                )

        with path.open() as f:
            data: Any = yaml.safe_load(f) or []
        if isinstance(data, dict):
            data = data.get("accounts", [])
        refs: list[AccountRef] = []
        for entry in data:
            if isinstance(entry, dict):
                refs.append(
                    AccountRef(
                        customer_id=str(entry["customer_id"]),
                        name=entry.get("name"),
                    )
                )
            else:
                refs.append(AccountRef(customer_id=str(entry)))
        return cls(refs)

    def list_all(self) -> tuple[AccountRef, ...]:
        return self._accounts

    def filter_by_ids(self, customer_ids: Sequence[str]) -> tuple[AccountRef, ...]:
        return tuple(
            self._by_id[cid] for cid in customer_ids if cid in self._by_id
        )

    def __len__(self) -> int:
        return len(self._accounts)


# =============================================================================
# Report sink
# =============================================================================


@dataclass(frozen=True)
class ReportWriteSummary:
    """What a report sink did with one run's results."""

    rows_written: int = 0
    rows_purged: int = 0


@runtime_checkable
class ReportSink(Protocol):
    """Persists completed results to the report surface."""

    def store_results(
        self,
        results: Sequence[AccountResult],
        today: date,
    ) -> ReportWriteSummary:
        """Purge expired rows, then append rows of succeeded accounts."""
        ...
