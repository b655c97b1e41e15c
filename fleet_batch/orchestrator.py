"""
ReportRunOrchestrator -- DI container for one report invocation.

Contract:
    Wires the workbook-backed ledger and report sheet, the fetch adapter,
    the dispatcher and the RunCoordinator from a ``RunConfig``.  Single
    place where all run dependencies are composed.

    ``run()`` holds the workbook's advisory lock for the whole invocation,
    so a second invocation against the same workbook fails fast with
    ``RunAlreadyInProgressError`` instead of racing on the ledger.
"""

from __future__ import annotations

from uuid import uuid4

from fleet_config.schema import RunConfig
from fleet_kernel.clock import Clock, SystemClock
from fleet_kernel.logging_config import LogContext, get_logger
from fleet_reporting.fetch import QueryRunner, ReportQueryFetchAdapter
from fleet_reporting.writer import ReportWriter
from fleet_store.ledger import KeyValueLedger
from fleet_store.tabular import XlsxWorkbook

from fleet_batch.domain.types import RunOutcome
from fleet_batch.services.coordinator import RunCoordinator
from fleet_batch.services.dispatcher import AccountDispatcher
from fleet_batch.tasks.base import AccountDirectory, FetchAdapter

logger = get_logger("batch.orchestrator")


class ReportRunOrchestrator:
    """DI container for the report batch.

    Contract:
        - ``from_config()`` creates a fully wired orchestrator.
        - ``create_coordinator()`` builds a fresh RunCoordinator; a fresh
          ledger instance recounts its rows from storage.
        - ``run()`` executes one invocation under the run lock.

    Non-goals:
        - Does NOT schedule invocations -- the host scheduler does.
    """

    def __init__(
        self,
        config: RunConfig,
        workbook: XlsxWorkbook,
        directory: AccountDirectory,
        fetch_adapter: FetchAdapter,
        clock: Clock | None = None,
    ) -> None:
        self._config = config
        self._workbook = workbook
        self._directory = directory
        self._fetch_adapter = fetch_adapter
        self._clock = clock or SystemClock()

    # -------------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------------

    @classmethod
    def from_config(
        cls,
        config: RunConfig,
        directory: AccountDirectory,
        query_runner: QueryRunner,
        clock: Clock | None = None,
    ) -> ReportRunOrchestrator:
        """Create a fully wired orchestrator.

        Args:
            config: Validated run configuration.
            directory: Live account directory.
            query_runner: Executes the report query for one account.
            clock: Optional clock for deterministic testing.
        """
        return cls(
            config=config,
            workbook=XlsxWorkbook(config.storage.workbook_path),
            directory=directory,
            fetch_adapter=ReportQueryFetchAdapter(config.query, query_runner),
            clock=clock,
        )

    # -------------------------------------------------------------------------
    # Coordinator
    # -------------------------------------------------------------------------

    def create_coordinator(self) -> RunCoordinator:
        storage = self._config.storage
        ledger = KeyValueLedger(self._workbook.sheet(storage.ledger_sheet))
        writer = ReportWriter(
            self._workbook.sheet(storage.report_sheet),
            fields=self._config.query.select,
            retention_days=self._config.retention_days,
        )
        dispatcher = AccountDispatcher(
            self._fetch_adapter,
            max_workers=self._config.parallel_execution_limit,
            clock=self._clock,
        )
        return RunCoordinator(
            ledger=ledger,
            directory=self._directory,
            dispatcher=dispatcher,
            report_sink=writer,
            parallel_execution_limit=self._config.parallel_execution_limit,
            clock=self._clock,
        )

    def run(self) -> RunOutcome:
        """Execute one invocation under the workbook's run lock."""
        run_id = str(uuid4())
        with LogContext.bind(run_id=run_id):
            with self._workbook.lock():
                self._workbook.reload()
                logger.info(
                    "run_started",
                    extra={
                        "workbook": str(self._workbook.path),
                        "query": self._config.query.to_awql(),
                    },
                )
                return self.create_coordinator().run()

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @property
    def config(self) -> RunConfig:
        return self._config

    @property
    def workbook(self) -> XlsxWorkbook:
        return self._workbook

    @property
    def clock(self) -> Clock:
        return self._clock
