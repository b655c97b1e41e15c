"""
Pytest fixtures for the report batch test suite.

Provides:
- Deterministic clock and structured-log capture
- In-memory ledger / report stores
- Fake account directory and fetch adapter
- A ``make_coordinator`` factory wiring the real RunCoordinator over them
"""

import json
import logging
import threading
from datetime import datetime, timezone
from io import StringIO
from typing import Any, Callable

import pytest

from fleet_batch.domain.day_scope import DayScope
from fleet_batch.domain.types import AccountRef, FetchOutcome
from fleet_batch.services.coordinator import RunCoordinator
from fleet_batch.services.dispatcher import AccountDispatcher
from fleet_batch.tasks.base import StaticAccountDirectory
from fleet_kernel.clock import DeterministicClock
from fleet_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from fleet_reporting.writer import ReportWriter
from fleet_store.ledger import KeyValueLedger
from fleet_store.tabular import InMemoryTabularStore

REPORT_FIELDS = ("ExternalCustomerId", "AccountDescriptiveName", "Clicks", "Impressions")


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture fleet_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, make_coordinator):
            make_coordinator(["A"]).run()
            logs = captured_logs()
            assert any(r["message"] == "run_completed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("fleet_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Clock
# =============================================================================


@pytest.fixture
def clock() -> DeterministicClock:
    """2024-01-01 12:00 UTC, day key ``20240101``."""
    return DeterministicClock(datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc))


# =============================================================================
# Fakes
# =============================================================================


class FakeFetchAdapter:
    """FetchAdapter returning canned rows; records every call."""

    def __init__(
        self,
        rows_by_id: dict[str, list[tuple]] | None = None,
        failing: set[str] | None = None,
        raising: set[str] | None = None,
        empty: set[str] | None = None,
    ):
        self.rows_by_id = rows_by_id or {}
        self.failing = failing or set()
        self.raising = raising or set()
        self.empty = empty or set()
        self.calls: list[str] = []
        self._lock = threading.Lock()

    def fetch(self, account: AccountRef, day_key: str) -> FetchOutcome:
        with self._lock:
            self.calls.append(account.customer_id)
        cid = account.customer_id
        if cid in self.raising:
            raise RuntimeError(f"report service unavailable for {cid}")
        if cid in self.failing:
            return FetchOutcome.error(f"quota exceeded for {cid}")
        if cid in self.empty:
            return FetchOutcome.ok([])
        rows = self.rows_by_id.get(cid, [(cid, f"Account {cid}", 10, 100)])
        return FetchOutcome.ok([tuple(r) + (day_key,) for r in rows])


@pytest.fixture
def fake_fetch() -> FakeFetchAdapter:
    return FakeFetchAdapter()


# =============================================================================
# Stores and coordinator
# =============================================================================


@pytest.fixture
def ledger_store() -> InMemoryTabularStore:
    return InMemoryTabularStore(region="_remoteStorage")


@pytest.fixture
def report_store() -> InMemoryTabularStore:
    return InMemoryTabularStore(region="Report")


@pytest.fixture
def make_coordinator(
    clock: DeterministicClock,
    ledger_store: InMemoryTabularStore,
    report_store: InMemoryTabularStore,
    fake_fetch: FakeFetchAdapter,
) -> Callable[..., RunCoordinator]:
    """
    Build a RunCoordinator over the shared in-memory stores.

    Each call constructs a fresh ledger instance, the way each scheduled
    invocation starts from storage.
    """

    def _make(
        accounts: list[str],
        ceiling: int = 2,
        fetch_adapter: Any = None,
    ) -> RunCoordinator:
        adapter = fetch_adapter or fake_fetch
        return RunCoordinator(
            ledger=KeyValueLedger(ledger_store),
            directory=StaticAccountDirectory(accounts),
            dispatcher=AccountDispatcher(adapter, max_workers=ceiling, clock=clock),
            report_sink=ReportWriter(report_store, REPORT_FIELDS, retention_days=30),
            parallel_execution_limit=ceiling,
            clock=clock,
            day_scope=DayScope(clock),
        )

    return _make


@pytest.fixture
def fetch_factory() -> type[FakeFetchAdapter]:
    """The FakeFetchAdapter class, for tests that need custom behaviour."""
    return FakeFetchAdapter
