"""
fleet_batch -- Resumable, day-scoped batch over a fleet of accounts.

Each invocation processes at most one bounded batch of accounts that have
not been processed today, records them in a durable completion ledger, and
leaves the rest for the next scheduled invocation.

Architecture:
    fleet_batch/domain    pure types, day scoping, batch selection
    fleet_batch/tasks     collaborator protocols (directory, fetch, report sink)
    fleet_batch/services  dispatcher (bounded fan-out) and RunCoordinator
    fleet_batch/orchestrator.py  wiring of workbook, ledger and collaborators

Invariants:
    At most one completion map is live (all other day keys are purged).
    A batch never includes an account already marked processed today.
    Failed accounts are never marked; they are retried by the next run.
"""
