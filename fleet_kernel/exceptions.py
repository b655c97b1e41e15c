"""
Typed Exception Hierarchy for the cross-account report batch.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from FleetReportError:

    FleetReportError (base)
    |
    +-- StorageError
    |   +-- StorageFaultError
    |
    +-- QueryError
    |
    +-- ConcurrencyError
        +-- RunAlreadyInProgressError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                | When Raised
----------------|---------------------|-----------------------------------------
Storage         | STORAGE_FAULT       | Workbook cannot be read, written or saved
----------------|---------------------|-----------------------------------------
Query           | QUERY_FAILED        | A report query could not be run (per account)
----------------|---------------------|-----------------------------------------
Concurrency     | RUN_IN_PROGRESS     | Another run holds the workbook lock
----------------|---------------------|-----------------------------------------

===============================================================================
HANDLING PATTERNS
===============================================================================

Per-account fetch failures never abort a run.  They are carried as data
(``AccountStatus.FAILED`` results).  QueryError is the one per-account
exception, and fetch adapters turn it into an ERROR outcome before it
reaches the run.  Everything else in this module is fatal to the current
invocation:

    try:
        outcome = coordinator.run()
    except StorageFaultError as e:
        log.error("storage fault", extra={"code": e.code, "region": e.region})
        return 1

A malformed ledger value is not an error either: the ledger reports the key
as absent and the run resumes with an empty completion map.
"""


class FleetReportError(Exception):
    """
    Base exception for all report batch errors.

    All subclasses carry a ``code`` class attribute for machine-readable
    error identification.
    """

    code: str = "FLEET_REPORT_ERROR"


# Storage exceptions


class StorageError(FleetReportError):
    """Base for backing-store errors."""

    code: str = "STORAGE_ERROR"


class StorageFaultError(StorageError):
    """The backing tabular store could not complete a read or write.

    Fatal to the invocation: no partial save of the completion map is
    attempted after this is raised.
    """

    code: str = "STORAGE_FAULT"

    def __init__(self, operation: str, region: str, detail: str):
        self.operation = operation
        self.region = region
        self.detail = detail
        super().__init__(
            f"Storage fault during {operation} on {region}: {detail}"
        )


# Concurrency exceptions


class ConcurrencyError(FleetReportError):
    """Base for cross-invocation concurrency errors."""

    code: str = "CONCURRENCY_ERROR"


class RunAlreadyInProgressError(ConcurrencyError):
    """Another invocation currently holds the run lock for this workbook."""

    code: str = "RUN_IN_PROGRESS"

    def __init__(self, lock_path: str):
        self.lock_path = lock_path
        super().__init__(
            f"Another run holds the lock {lock_path}; refusing to start"
        )


# Query exceptions


class QueryError(FleetReportError):
    """A report query could not be run for one account.

    Never fatal: the fetch adapter converts it into an ERROR outcome and the
    account stays unmarked for the next invocation.
    """

    code: str = "QUERY_FAILED"

    def __init__(self, customer_id: str, detail: str):
        self.customer_id = customer_id
        self.detail = detail
        super().__init__(f"Query failed for {customer_id}: {detail}")
