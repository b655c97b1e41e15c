"""
Fetch-and-project adapter for the per-account report query.

Contract:
    ``ReportQueryFetchAdapter.fetch(account, day_key)`` runs the configured
    query for one account through a ``QueryRunner`` and projects every
    result row onto the query's select fields, in order, followed by the
    day key as the Timestamp cell.

    A ``Date`` field has its ``-`` separators removed so spreadsheet
    applications keep it as plain text instead of reinterpreting it.

    ``QueryError`` from the runner becomes an ERROR outcome; the account is
    retried on the next invocation.
"""

from __future__ import annotations

import csv
from pathlib import Path
from typing import Any, Iterable, Mapping, Protocol, runtime_checkable

from fleet_config.schema import ReportQuery
from fleet_kernel.exceptions import QueryError
from fleet_kernel.logging_config import get_logger

from fleet_batch.domain.types import AccountRef, FetchOutcome

logger = get_logger("reporting.fetch")

DATE_FIELD = "Date"


@runtime_checkable
class QueryRunner(Protocol):
    """Executes a report query for one account and yields result rows."""

    def run(self, account: AccountRef, query: ReportQuery) -> Iterable[Mapping[str, Any]]:
        ...


def project_row(
    row: Mapping[str, Any],
    fields: tuple[str, ...],
    day_key: str,
) -> tuple[Any, ...]:
    """Project one result row onto ``fields`` and append the Timestamp cell."""
    line: list[Any] = []
    for name in fields:
        value = row.get(name)
        if name == DATE_FIELD and isinstance(value, str):
            value = value.replace("-", "")
        line.append(value)
    line.append(day_key)
    return tuple(line)


class ReportQueryFetchAdapter:
    """FetchAdapter that runs one fixed ``ReportQuery`` per account."""

    def __init__(self, query: ReportQuery, runner: QueryRunner):
        self._query = query
        self._runner = runner

    @property
    def query(self) -> ReportQuery:
        return self._query

    def fetch(self, account: AccountRef, day_key: str) -> FetchOutcome:
        try:
            rows = [
                project_row(row, self._query.select, day_key)
                for row in self._runner.run(account, self._query)
            ]
        except QueryError as exc:
            return FetchOutcome.error(str(exc))
        logger.debug(
            "account_query_ran",
            extra={"customer_id": account.customer_id, "rows": len(rows)},
        )
        return FetchOutcome.ok(rows)


def _coerce(value: str) -> Any:
    """CSV cells are text; hand integral counters back as ints.

    Text that does not survive the round trip (``"00123"``, ``"-0"``) is an
    identifier, not a number, and stays text.
    """
    text = value.strip()
    if text.removeprefix("-").isdecimal() and str(int(text)) == text:
        return int(text)
    return text


class CsvExportQueryRunner:
    """
    QueryRunner over per-account CSV exports in a directory.

    Reads ``<export_dir>/<customer_id>.csv`` (header row required).  A
    missing file means the account had nothing to report.  The query's
    ``WHERE`` and ``DURING`` clauses are assumed to have been applied by
    whatever produced the export.
    """

    def __init__(self, export_dir: Path | str):
        self._export_dir = Path(export_dir)

    def run(self, account: AccountRef, query: ReportQuery) -> list[dict[str, Any]]:
        path = self._export_dir / f"{account.customer_id}.csv"
        if not path.exists():
            return []
        try:
            with path.open("r", encoding="utf-8-sig", newline="") as f:
                reader = csv.DictReader(f)
                missing = [c for c in query.select if c not in (reader.fieldnames or ())]
                if missing:
                    raise QueryError(
                        account.customer_id,
                        f"{path.name} lacks columns {missing}",
                    )
                return [
                    {k: _coerce(v) if isinstance(v, str) else v for k, v in row.items()}
                    for row in reader
                ]
        except (OSError, csv.Error, UnicodeDecodeError) as exc:
            raise QueryError(account.customer_id, str(exc)) from exc
